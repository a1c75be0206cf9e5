# fs_core/billing/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from fs_core.billing.models import Invoice, InvoiceLineItem, Payment, PaymentMethod
from fs_core.common.api.fields import MoneyField, StatusInfoField
from fs_core.quotes.api.serializers import RATE_KW, LineItemInputSerializer
from fs_core.workflow.machines import INVOICE_MACHINE, InvoiceStatus


class InvoiceLineItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceLineItem
        fields = [
            "id",
            "position",
            "description",
            "quantity",
            "unit_price",
            "item_type",
            "line_total",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "invoice",
            "customer_id",
            "amount",
            "kind",
            "payment_method",
            "status",
            "payment_date",
            "reference",
            "notes",
            "recorded_by_id",
            "created_at",
        ]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    status_info = StatusInfoField(INVOICE_MACHINE)
    display_status = serializers.CharField(read_only=True)
    is_overdue = serializers.SerializerMethodField()
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    lines = InvoiceLineItemSerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "customer_id",
            "customer_name",
            "customer_email",
            "job",
            "quote",
            "status",
            "status_info",
            "display_status",
            "is_overdue",
            "tax_rate",
            "subtotal",
            "tax_amount",
            "total",
            "amount_paid",
            "balance_due",
            "due_date",
            "sent_at",
            "viewed_at",
            "paid_at",
            "voided_at",
            "refunded_at",
            "notes",
            "lines",
            "payments",
            "created_by_id",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_is_overdue(self, obj) -> bool:
        return obj.is_overdue()


class InvoiceCreateSerializer(serializers.Serializer):
    """
    Either a standalone invoice (customer + line_items) or a conversion:
    job_id / quote_id route through the conversion coordinator.
    """
    job_id = serializers.UUIDField(required=False, allow_null=True)
    quote_id = serializers.UUIDField(required=False, allow_null=True)

    customer_id = serializers.UUIDField(required=False, allow_null=True)
    customer_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    line_items = LineItemInputSerializer(many=True, required=False, default=list)
    tax_rate = serializers.DecimalField(required=False, allow_null=True, **RATE_KW)
    due_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs.get("job_id") and attrs.get("quote_id"):
            raise serializers.ValidationError("Provide job_id or quote_id, not both.")
        return attrs


class InvoicePatchSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=InvoiceStatus.choices, required=False)
    amount_paid = MoneyField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True)
    due_date = serializers.DateField(required=False)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    version = serializers.IntegerField(required=False, min_value=1)


class InvoiceReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    version = serializers.IntegerField(required=False, min_value=1)


class InvoiceLineCreateSerializer(LineItemInputSerializer):
    version = serializers.IntegerField(required=False, min_value=1)


class PaymentCreateSerializer(serializers.Serializer):
    """
    amount is validated by the payment service (<= 0 is invalid_amount, not a field error).
    """
    invoice_id = serializers.UUIDField()
    amount = MoneyField()
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    reference = serializers.CharField(required=False, allow_blank=True, default="", max_length=128)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


