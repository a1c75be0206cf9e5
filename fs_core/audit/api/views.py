# fs_core/audit/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import serializers, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fs_core.audit.api.serializers import AuditEventSerializer
from fs_core.audit.models import AuditEntity, AuditEvent
from fs_core.audit.selectors import list_audit_events

MAX_LIMIT = 500


class AuditQuerySerializer(serializers.Serializer):
    entity_type = serializers.ChoiceField(choices=AuditEntity.choices, required=False)
    entity_id = serializers.UUIDField(required=False)
    event_code = serializers.CharField(required=False, max_length=128)
    actor_user_id = serializers.IntegerField(required=False)
    since = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=MAX_LIMIT, default=200)


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    Read-only audit trail across inspections, deficiencies, quotes and invoices.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="entity_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY,
                             required=False, enum=AuditEntity.values),
            OpenApiParameter(name="entity_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="event_code",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description='Exact code (quote.accepted) or a prefix ending in "." (invoice.).',
            ),
            OpenApiParameter(name="actor_user_id", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="since", type=OpenApiTypes.DATETIME, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description=f"Max records to return (default 200, max {MAX_LIMIT}).",
            ),
        ],
    )
    def list(self, request):
        q = AuditQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = dict(q.validated_data)
        limit = params.pop("limit")

        qs = list_audit_events(**params)
        return Response(AuditEventSerializer(qs[:limit], many=True).data, status=status.HTTP_200_OK)
