# fs_core/quotes/api/serializers.py
from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from fs_core.common.api.fields import MoneyField, StatusInfoField
from fs_core.common.models import LineItemType
from fs_core.quotes.models import Quote, QuoteLineItem
from fs_core.workflow.machines import QUOTE_MACHINE

RATE_KW = dict(max_digits=7, decimal_places=6, min_value=Decimal("0"), max_value=Decimal("1"))


class QuoteLineItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuoteLineItem
        fields = [
            "id",
            "position",
            "description",
            "quantity",
            "unit_price",
            "item_type",
            "line_total",
            "deficiency",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class LineItemInputSerializer(serializers.Serializer):
    """
    Negative quantity / unit_price are let through so the pricing layer can reject them
    with invalid_amount.
    """
    description = serializers.CharField(max_length=500)
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, default=Decimal("1.00"))
    unit_price = MoneyField(default=Decimal("0.00"))
    item_type = serializers.ChoiceField(choices=LineItemType.choices, default=LineItemType.SERVICE)


class LineItemUpdateSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=500, required=False)
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    unit_price = MoneyField(required=False)
    item_type = serializers.ChoiceField(choices=LineItemType.choices, required=False)
    version = serializers.IntegerField(required=False, min_value=1)


class LineItemCreateSerializer(LineItemInputSerializer):
    version = serializers.IntegerField(required=False, min_value=1)


class QuoteSerializer(serializers.ModelSerializer):
    status_info = StatusInfoField(QUOTE_MACHINE)
    taxable_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    lines = QuoteLineItemSerializer(many=True, read_only=True)
    allowed_events = serializers.SerializerMethodField()

    class Meta:
        model = Quote
        fields = [
            "id",
            "quote_number",
            "customer_id",
            "customer_name",
            "customer_email",
            "site_address",
            "inspection",
            "status",
            "status_info",
            "allowed_events",
            "tax_rate",
            "discount_rate",
            "subtotal",
            "discount_amount",
            "taxable_amount",
            "tax_amount",
            "total",
            "expires_at",
            "sent_at",
            "viewed_at",
            "accepted_at",
            "declined_at",
            "expired_at",
            "notes",
            "lines",
            "created_by_id",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_allowed_events(self, obj) -> list[str]:
        return [str(ev) for ev in QUOTE_MACHINE.allowed_events(obj.status)]


class QuoteCreateSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    customer_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    site_address = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)
    inspection_id = serializers.UUIDField(required=False, allow_null=True)
    line_items = LineItemInputSerializer(many=True, required=False, default=list)
    tax_rate = serializers.DecimalField(required=False, allow_null=True, **RATE_KW)
    discount_rate = serializers.DecimalField(required=False, allow_null=True, **RATE_KW)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class QuoteUpdateSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    customer_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    site_address = serializers.CharField(required=False, allow_blank=True, max_length=500)
    tax_rate = serializers.DecimalField(required=False, **RATE_KW)
    discount_rate = serializers.DecimalField(required=False, allow_null=True, **RATE_KW)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    version = serializers.IntegerField(required=False, min_value=1)


class VersionSerializer(serializers.Serializer):
    version = serializers.IntegerField(required=False, min_value=1)
