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
from fs_core.billing.api.serializers import (
    InvoiceCreateSerializer,
    InvoiceLineCreateSerializer,
    InvoiceLineItemSerializer,
    InvoicePatchSerializer,
    InvoiceReasonSerializer,
    InvoiceSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
)
from fs_core.billing.models import Invoice, Payment
from fs_core.billing.selectors import get_invoice, invoices_filtered, payments_filtered
from fs_core.billing.services import InvoiceService, PaymentService
from fs_core.common.api.pagination import paginate
from fs_core.common.api.utils import actor_id, uuid_or_none, with_warnings
from fs_core.common.idempotency import get_key, load_response, save_response
from fs_core.common.notifications import dispatch
from fs_core.conversions.services import ConversionCoordinator
from fs_core.quotes.api.serializers import VersionSerializer

IDEMPOTENCY_HEADER = OpenApiParameter(
    name="Idempotency-Key", location=OpenApiParameter.HEADER, required=False, type=str
)


class InvoiceViewSet(viewsets.GenericViewSet):
    """
    Invoices:
    - list (status filter accepts the derived "overdue") / retrieve / create
    - PATCH: status / amount_paid overrides, notes, due date
    - send / view / void / refund
    - lines: POST, DELETE lines/{line_id} (draft only)
    """
    permission_classes = [IsAuthenticated]
    serializer_class = InvoiceSerializer
    queryset = Invoice.objects.none()

    @extend_schema(
        tags=["Billing"],
        responses={200: InvoiceSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="customer_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="job_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="quote_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = invoices_filtered(
            status=request.query_params.get("status") or None,
            customer_id=uuid_or_none(request.query_params.get("customer_id"), "customer_id"),
            job_id=uuid_or_none(request.query_params.get("job_id"), "job_id"),
            quote_id=uuid_or_none(request.query_params.get("quote_id"), "quote_id"),
        )
        return paginate(request, qs, InvoiceSerializer)

    @extend_schema(tags=["Billing"], responses={200: InvoiceSerializer})
    def retrieve(self, request, pk=None):
        invoice = get_invoice(invoice_id=UUID(str(pk)))
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Billing"], request=InvoiceCreateSerializer, responses={201: InvoiceSerializer})
    def create(self, request):
        ser = InvoiceCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        uid = actor_id(request)
        job_id = data.pop("job_id", None)
        quote_id = data.pop("quote_id", None)

        if job_id:
            invoice = ConversionCoordinator.create_invoice_from_job(job_id=job_id, actor_user_id=uid)
        elif quote_id:
            invoice = ConversionCoordinator.create_invoice_from_quote(quote_id=quote_id, actor_user_id=uid)
        else:
            invoice = InvoiceService.create(created_by_id=uid, **data)

        warnings = dispatch("invoice.created", {"invoice_id": str(invoice.id)})
        out = InvoiceSerializer(get_invoice(invoice_id=invoice.id)).data
        return Response(with_warnings(out, warnings), status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Billing"], request=InvoicePatchSerializer, responses={200: InvoiceSerializer})
    def partial_update(self, request, pk=None):
        invoice_id = UUID(str(pk))
        ser = InvoicePatchSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        InvoiceService.patch(
            invoice_id=invoice_id,
            edits={name: data[name] for name in ("notes", "due_date", "customer_email") if name in data},
            status=data.get("status"),
            amount_paid=data.get("amount_paid"),
            reason=data.get("reason", ""),
            actor_user_id=actor_id(request),
            expected_version=data.get("version"),
        )
        return Response(InvoiceSerializer(get_invoice(invoice_id=invoice_id)).data, status=status.HTTP_200_OK)

    # -------------------------
    # Status actions
    # -------------------------
    @extend_schema(tags=["Billing"], request=VersionSerializer, responses={200: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="send")
    def send(self, request, pk=None):
        ser = VersionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        invoice = InvoiceService.send(
            invoice_id=UUID(str(pk)),
            actor_user_id=actor_id(request),
            expected_version=ser.validated_data.get("version"),
        )
        warnings = dispatch(
            "invoice.sent",
            {"invoice_id": str(invoice.id), "invoice_number": invoice.invoice_number, "email": invoice.customer_email},
        )
        out = InvoiceSerializer(get_invoice(invoice_id=invoice.id)).data
        return Response(with_warnings(out, warnings), status=status.HTTP_200_OK)

    @extend_schema(tags=["Billing"], request=None, responses={200: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="view")
    def mark_viewed(self, request, pk=None):
        invoice = InvoiceService.mark_viewed(invoice_id=UUID(str(pk)), actor_user_id=actor_id(request))
        return Response(InvoiceSerializer(get_invoice(invoice_id=invoice.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Billing"], request=InvoiceReasonSerializer, responses={200: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="void")
    def void(self, request, pk=None):
        ser = InvoiceReasonSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        invoice = InvoiceService.void(
            invoice_id=UUID(str(pk)),
            reason=ser.validated_data.get("reason", ""),
            actor_user_id=actor_id(request),
            expected_version=ser.validated_data.get("version"),
        )
        return Response(InvoiceSerializer(get_invoice(invoice_id=invoice.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Billing"], request=InvoiceReasonSerializer, responses={200: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="refund")
    def refund(self, request, pk=None):
        ser = InvoiceReasonSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        invoice_id = UUID(str(pk))
        InvoiceService.refund(
            invoice_id=invoice_id,
            reason=ser.validated_data.get("reason", ""),
            actor_user_id=actor_id(request),
            expected_version=ser.validated_data.get("version"),
        )
        return Response(InvoiceSerializer(get_invoice(invoice_id=invoice_id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Billing"], responses={200: AuditEventSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request, pk=None):
        invoice = Invoice.objects.get(id=UUID(str(pk)))
        qs = entity_trail(entity_type=AuditEntity.INVOICE, entity_id=invoice.id)
        return Response(AuditEventSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    # -------------------------
    # Lines
    # -------------------------
    @extend_schema(tags=["Billing"], request=InvoiceLineCreateSerializer, responses={201: InvoiceLineItemSerializer})
    @action(detail=True, methods=["post"], url_path="lines")
    def lines(self, request, pk=None):
        ser = InvoiceLineCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        line = InvoiceService.add_line_item(
            invoice_id=UUID(str(pk)),
            expected_version=data.pop("version", None),
            **data,
        )
        return Response(InvoiceLineItemSerializer(line).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Billing"], request=None, responses={200: InvoiceSerializer})
    @action(detail=True, methods=["delete"], url_path=r"lines/(?P<line_id>[^/.]+)")
    def remove_line(self, request, pk=None, line_id=None):
        invoice = InvoiceService.remove_line_item(invoice_id=UUID(str(pk)), line_id=UUID(str(line_id)))
        return Response(InvoiceSerializer(get_invoice(invoice_id=invoice.id)).data, status=status.HTTP_200_OK)


class PaymentViewSet(viewsets.GenericViewSet):
    """
    Payments:
    - list (?invoice_id=, ?customer_id=) / retrieve
    - create: settles synchronously; honours Idempotency-Key
    """
    permission_classes = [IsAuthenticated]
    serializer_class = PaymentSerializer
    queryset = Payment.objects.none()

    @extend_schema(
        tags=["Billing"],
        responses={200: PaymentSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="invoice_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="customer_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = payments_filtered(
            invoice_id=uuid_or_none(request.query_params.get("invoice_id"), "invoice_id"),
            customer_id=uuid_or_none(request.query_params.get("customer_id"), "customer_id"),
        )
        return paginate(request, qs, PaymentSerializer)

    @extend_schema(tags=["Billing"], responses={200: PaymentSerializer})
    def retrieve(self, request, pk=None):
        payment = Payment.objects.get(id=UUID(str(pk)))
        return Response(PaymentSerializer(payment).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Billing"],
        request=PaymentCreateSerializer,
        responses={201: PaymentSerializer},
        parameters=[IDEMPOTENCY_HEADER],
    )
    def create(self, request):
        idem = get_key(request)
        if idem:
            cached = load_response(request.user.id, request.method, request.path, idem)
            if cached is not None:
                return Response(cached, status=status.HTTP_201_CREATED)

        ser = PaymentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        payment = PaymentService.record_payment(
            invoice_id=data.pop("invoice_id"),
            recorded_by_id=actor_id(request),
            **data,
        )
        invoice = get_invoice(invoice_id=payment.invoice_id)

        warnings = dispatch(
            "payment.received",
            {"payment_id": str(payment.id), "invoice_id": str(invoice.id), "amount": str(payment.amount)},
        )
        out = PaymentSerializer(payment).data
        out["invoice"] = InvoiceSerializer(invoice).data
        out = with_warnings(out, warnings)

        if idem:
            save_response(request.user.id, request.method, request.path, idem, out, status.HTTP_201_CREATED)

        return Response(out, status=status.HTTP_201_CREATED)
