from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fs_core.common.api.pagination import paginate
from fs_core.common.api.utils import actor_id, int_or_none, uuid_or_none
from fs_core.conversions.services import ConversionCoordinator
from fs_core.inspections.api.serializers import (
    ChecklistResultCreateSerializer,
    ChecklistResultSerializer,
    DeficiencyCreateSerializer,
    DeficiencySerializer,
    GenerateQuoteSerializer,
    InspectionCompleteSerializer,
    InspectionCreateSerializer,
    InspectionSerializer,
)
from fs_core.inspections.ledger import DeficiencyLedger
from fs_core.inspections.models import Deficiency, Inspection
from fs_core.inspections.selectors import deficiencies_filtered, inspections_filtered
from fs_core.inspections.services import InspectionService
from fs_core.quotes.api.serializers import QuoteSerializer


class InspectionViewSet(viewsets.GenericViewSet):
    """
    Inspections:
    - list/retrieve/create/destroy
    - start / complete / cancel
    - checklist-results: GET/POST
    - deficiencies: GET/POST (records findings)
    """
    permission_classes = [IsAuthenticated]
    serializer_class = InspectionSerializer
    queryset = Inspection.objects.none()

    @extend_schema(
        tags=["Inspections"],
        responses={200: InspectionSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="customer_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="technician_id", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = inspections_filtered(
            status=request.query_params.get("status") or None,
            customer_id=uuid_or_none(request.query_params.get("customer_id"), "customer_id"),
            technician_id=int_or_none(request.query_params.get("technician_id"), "technician_id"),
        )
        return paginate(request, qs, InspectionSerializer)

    @extend_schema(tags=["Inspections"], responses={200: InspectionSerializer})
    def retrieve(self, request, pk=None):
        inspection = Inspection.objects.get(id=UUID(str(pk)))
        return Response(InspectionSerializer(inspection).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Inspections"], request=InspectionCreateSerializer, responses={201: InspectionSerializer})
    def create(self, request):
        ser = InspectionCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        inspection = InspectionService.create(actor_user_id=actor_id(request), **ser.validated_data)
        return Response(InspectionSerializer(inspection).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Inspections"], responses={204: None})
    def destroy(self, request, pk=None):
        InspectionService.delete(inspection_id=UUID(str(pk)), actor_user_id=actor_id(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Inspections"], request=None, responses={200: InspectionSerializer})
    @action(detail=True, methods=["post"], url_path="start")
    def start(self, request, pk=None):
        inspection = InspectionService.start(inspection_id=UUID(str(pk)), actor_user_id=actor_id(request))
        return Response(InspectionSerializer(inspection).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Inspections"], request=InspectionCompleteSerializer, responses={200: InspectionSerializer})
    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        ser = InspectionCompleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        inspection = InspectionService.complete(
            inspection_id=UUID(str(pk)),
            actor_user_id=actor_id(request),
            **ser.validated_data,
        )
        return Response(InspectionSerializer(inspection).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Inspections"], request=None, responses={200: InspectionSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        inspection = InspectionService.cancel(inspection_id=UUID(str(pk)), actor_user_id=actor_id(request))
        return Response(InspectionSerializer(inspection).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Inspections"],
        request=ChecklistResultCreateSerializer,
        responses={200: ChecklistResultSerializer(many=True), 201: ChecklistResultSerializer},
    )
    @action(detail=True, methods=["get", "post"], url_path="checklist-results")
    def checklist_results(self, request, pk=None):
        inspection_id = UUID(str(pk))

        if request.method.lower() == "get":
            inspection = Inspection.objects.get(id=inspection_id)
            qs = inspection.checklist_results.all()
            return Response(ChecklistResultSerializer(qs, many=True).data, status=status.HTTP_200_OK)

        ser = ChecklistResultCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        row = InspectionService.add_checklist_result(inspection_id=inspection_id, **ser.validated_data)
        return Response(ChecklistResultSerializer(row).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Inspections"],
        request=DeficiencyCreateSerializer,
        responses={200: DeficiencySerializer(many=True), 201: DeficiencySerializer},
    )
    @action(detail=True, methods=["get", "post"], url_path="deficiencies")
    def deficiencies(self, request, pk=None):
        inspection_id = UUID(str(pk))

        if request.method.lower() == "get":
            Inspection.objects.get(id=inspection_id)
            qs = deficiencies_filtered(inspection_id=inspection_id)
            return Response(DeficiencySerializer(qs, many=True).data, status=status.HTTP_200_OK)

        ser = DeficiencyCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        data.pop("status", None)

        deficiency = DeficiencyLedger.record(
            inspection_id=inspection_id,
            created_by_id=actor_id(request),
            **data,
        )
        return Response(DeficiencySerializer(deficiency).data, status=status.HTTP_201_CREATED)


class DeficiencyViewSet(viewsets.GenericViewSet):
    """
    Deficiencies across inspections, plus quote generation from a selection.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = DeficiencySerializer
    queryset = Deficiency.objects.none()

    @extend_schema(
        tags=["Deficiencies"],
        responses={200: DeficiencySerializer(many=True)},
        parameters=[
            OpenApiParameter(name="inspection_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="severity", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = deficiencies_filtered(
            inspection_id=uuid_or_none(request.query_params.get("inspection_id"), "inspection_id"),
            status=request.query_params.get("status") or None,
            severity=request.query_params.get("severity") or None,
        )
        return paginate(request, qs, DeficiencySerializer)

    @extend_schema(tags=["Deficiencies"], responses={200: DeficiencySerializer})
    def retrieve(self, request, pk=None):
        deficiency = Deficiency.objects.get(id=UUID(str(pk)))
        return Response(DeficiencySerializer(deficiency).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Deficiencies"],
        request=GenerateQuoteSerializer,
        responses={201: QuoteSerializer},
    )
    @action(detail=False, methods=["post"], url_path="generate-quote")
    def generate_quote(self, request):
        ser = GenerateQuoteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        quote = ConversionCoordinator.on_deficiencies_selected(
            deficiency_ids=data["deficiency_ids"],
            inspection_id=data.get("inspection_id"),
            markup_percent=data.get("markup_percent"),
            tax_rate=data.get("tax_rate"),
            discount_rate=data.get("discount_rate"),
            actor_user_id=actor_id(request),
        )
        out = QuoteSerializer(quote).data
        out["quote_id"] = str(quote.id)
        return Response(out, status=status.HTTP_201_CREATED)
