from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fs_core.audit.api.serializers import AuditEventSerializer
from fs_core.audit.models import AuditEntity
from fs_core.audit.selectors import entity_trail
from fs_core.billing.api.serializers import InvoiceSerializer
from fs_core.common.api.pagination import paginate
from fs_core.common.api.utils import actor_id, int_or_none, uuid_or_none, with_warnings
from fs_core.common.notifications import dispatch
from fs_core.conversions.services import ConversionCoordinator
from fs_core.jobs.api.serializers import JobFromQuoteSerializer, JobSerializer
from fs_core.quotes.api.serializers import (
    LineItemCreateSerializer,
    LineItemUpdateSerializer,
    QuoteCreateSerializer,
    QuoteLineItemSerializer,
    QuoteSerializer,
    QuoteUpdateSerializer,
    VersionSerializer,
)
from fs_core.quotes.models import Quote
from fs_core.quotes.selectors import get_quote, quotes_filtered
from fs_core.quotes.services import QuoteService
from fs_core.workflow.machines import QuoteEvent


class QuoteViewSet(viewsets.GenericViewSet):
    """
    Quotes:
    - list/retrieve/create/partial_update/destroy
    - lines: POST, PATCH/DELETE lines/{line_id} (draft only)
    - send / view / accept / decline / expire
    - convert-to-job, create-invoice (accepted quotes)
    """
    permission_classes = [IsAuthenticated]
    serializer_class = QuoteSerializer
    queryset = Quote.objects.none()

    @extend_schema(
        tags=["Quotes"],
        responses={200: QuoteSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="customer_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="inspection_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = quotes_filtered(
            status=request.query_params.get("status") or None,
            customer_id=uuid_or_none(request.query_params.get("customer_id"), "customer_id"),
            inspection_id=uuid_or_none(request.query_params.get("inspection_id"), "inspection_id"),
        )
        return paginate(request, qs, QuoteSerializer)

    @extend_schema(tags=["Quotes"], responses={200: QuoteSerializer})
    def retrieve(self, request, pk=None):
        quote = get_quote(quote_id=UUID(str(pk)))
        return Response(QuoteSerializer(quote).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Quotes"], request=QuoteCreateSerializer, responses={201: QuoteSerializer})
    def create(self, request):
        ser = QuoteCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        quote = QuoteService.create(created_by_id=actor_id(request), **ser.validated_data)
        return Response(QuoteSerializer(get_quote(quote_id=quote.id)).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Quotes"], request=QuoteUpdateSerializer, responses={200: QuoteSerializer})
    def partial_update(self, request, pk=None):
        ser = QuoteUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        quote = QuoteService.update_terms(
            quote_id=UUID(str(pk)),
            expected_version=data.pop("version", None),
            **data,
        )
        return Response(QuoteSerializer(get_quote(quote_id=quote.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Quotes"], responses={204: None})
    def destroy(self, request, pk=None):
        QuoteService.delete(quote_id=UUID(str(pk)), actor_user_id=actor_id(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    # -------------------------
    # Lines
    # -------------------------
    @extend_schema(tags=["Quotes"], request=LineItemCreateSerializer, responses={201: QuoteLineItemSerializer})
    @action(detail=True, methods=["post"], url_path="lines")
    def lines(self, request, pk=None):
        ser = LineItemCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        line = QuoteService.add_line_item(
            quote_id=UUID(str(pk)),
            expected_version=data.pop("version", None),
            **data,
        )
        return Response(QuoteLineItemSerializer(line).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Quotes"], request=LineItemUpdateSerializer, responses={200: QuoteSerializer})
    @action(detail=True, methods=["patch", "delete"], url_path=r"lines/(?P<line_id>[^/.]+)")
    def line_detail(self, request, pk=None, line_id=None):
        quote_id = UUID(str(pk))

        if request.method.lower() == "delete":
            version = int_or_none(request.query_params.get("version"), "version")
            QuoteService.remove_line_item(quote_id=quote_id, line_id=UUID(str(line_id)), expected_version=version)
            return Response(QuoteSerializer(get_quote(quote_id=quote_id)).data, status=status.HTTP_200_OK)

        ser = LineItemUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        QuoteService.update_line_item(
            quote_id=quote_id,
            line_id=UUID(str(line_id)),
            expected_version=data.pop("version", None),
            **data,
        )
        return Response(QuoteSerializer(get_quote(quote_id=quote_id)).data, status=status.HTTP_200_OK)

    # -------------------------
    # Status
    # -------------------------
    def _transition(self, request, pk, event: str) -> Quote:
        ser = VersionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return QuoteService.transition(
            quote_id=UUID(str(pk)),
            event=event,
            actor_user_id=actor_id(request),
            expected_version=ser.validated_data.get("version"),
        )

    @extend_schema(tags=["Quotes"], request=VersionSerializer, responses={200: QuoteSerializer})
    @action(detail=True, methods=["post"], url_path="send")
    def send(self, request, pk=None):
        quote = self._transition(request, pk, QuoteEvent.SEND)
        warnings = dispatch(
            "quote.sent",
            {"quote_id": str(quote.id), "quote_number": quote.quote_number, "email": quote.customer_email},
        )
        out = QuoteSerializer(get_quote(quote_id=quote.id)).data
        return Response(with_warnings(out, warnings), status=status.HTTP_200_OK)

    @extend_schema(tags=["Quotes"], request=VersionSerializer, responses={200: QuoteSerializer})
    @action(detail=True, methods=["post"], url_path="view")
    def mark_viewed(self, request, pk=None):
        quote = self._transition(request, pk, QuoteEvent.VIEW)
        return Response(QuoteSerializer(get_quote(quote_id=quote.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Quotes"], request=VersionSerializer, responses={200: QuoteSerializer})
    @action(detail=True, methods=["post"], url_path="accept")
    def accept(self, request, pk=None):
        quote = self._transition(request, pk, QuoteEvent.ACCEPT)
        warnings = dispatch(
            "quote.accepted",
            {"quote_id": str(quote.id), "quote_number": quote.quote_number, "total": str(quote.total)},
        )
        out = QuoteSerializer(get_quote(quote_id=quote.id)).data
        return Response(with_warnings(out, warnings), status=status.HTTP_200_OK)

    @extend_schema(tags=["Quotes"], request=VersionSerializer, responses={200: QuoteSerializer})
    @action(detail=True, methods=["post"], url_path="decline")
    def decline(self, request, pk=None):
        quote = self._transition(request, pk, QuoteEvent.DECLINE)
        return Response(QuoteSerializer(get_quote(quote_id=quote.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Quotes"], request=VersionSerializer, responses={200: QuoteSerializer})
    @action(detail=True, methods=["post"], url_path="expire")
    def expire(self, request, pk=None):
        quote = self._transition(request, pk, QuoteEvent.EXPIRE)
        return Response(QuoteSerializer(get_quote(quote_id=quote.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Quotes"], responses={200: AuditEventSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request, pk=None):
        quote = Quote.objects.get(id=UUID(str(pk)))
        qs = entity_trail(entity_type=AuditEntity.QUOTE, entity_id=quote.id)
        return Response(AuditEventSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    # -------------------------
    # Conversion
    # -------------------------
    @extend_schema(tags=["Quotes"], request=JobFromQuoteSerializer, responses={201: JobSerializer})
    @action(detail=True, methods=["post"], url_path="convert-to-job")
    def convert_to_job(self, request, pk=None):
        ser = JobFromQuoteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        job = ConversionCoordinator.on_quote_accepted(
            quote_id=UUID(str(pk)),
            actor_user_id=actor_id(request),
            **ser.validated_data,
        )
        out = dict(JobSerializer(job).data)
        out["job_id"] = str(job.id)
        return Response(out, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Quotes"], request=None, responses={201: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="create-invoice")
    def create_invoice(self, request, pk=None):
        invoice = ConversionCoordinator.create_invoice_from_quote(
            quote_id=UUID(str(pk)),
            actor_user_id=actor_id(request),
        )
        warnings = dispatch("invoice.created", {"invoice_id": str(invoice.id), "quote_id": str(pk)})
        return Response(with_warnings(InvoiceSerializer(invoice).data, warnings), status=status.HTTP_201_CREATED)
