# fs_core/inspections/api/serializers.py
from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from fs_core.common.api.fields import MoneyField, StatusInfoField
from fs_core.inspections.models import (
    ChecklistOutcome,
    ChecklistResult,
    Deficiency,
    DeficiencyCategory,
    Inspection,
    InspectionType,
    Severity,
)
from fs_core.workflow.machines import DEFICIENCY_MACHINE, INSPECTION_MACHINE


class ChecklistResultSerializer(serializers.ModelSerializer):
    class Meta:
        model = ChecklistResult
        fields = ["id", "inspection", "item_label", "result", "notes", "created_at"]
        read_only_fields = fields


class ChecklistResultCreateSerializer(serializers.Serializer):
    item_label = serializers.CharField(max_length=255)
    result = serializers.ChoiceField(choices=ChecklistOutcome.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class DeficiencySerializer(serializers.ModelSerializer):
    status_info = StatusInfoField(DEFICIENCY_MACHINE)

    class Meta:
        model = Deficiency
        fields = [
            "id",
            "inspection",
            "category",
            "description",
            "recommended_action",
            "location",
            "severity",
            "status",
            "status_info",
            "estimated_cost_low",
            "estimated_cost_high",
            "quote",
            "created_by_id",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DeficiencyCreateSerializer(serializers.Serializer):
    """
    `status` is accepted for compatibility and ignored: new deficiencies are always open.
    """
    category = serializers.ChoiceField(choices=DeficiencyCategory.choices, default=DeficiencyCategory.OTHER)
    description = serializers.CharField()
    recommended_action = serializers.CharField(required=False, allow_blank=True, default="")
    location = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    severity = serializers.ChoiceField(choices=Severity.choices, default=Severity.MINOR)
    estimated_cost_low = MoneyField(required=False, allow_null=True, min_value=Decimal("0.00"))
    estimated_cost_high = MoneyField(required=False, allow_null=True, min_value=Decimal("0.00"))
    status = serializers.CharField(required=False, write_only=True)


class GenerateQuoteSerializer(serializers.Serializer):
    deficiency_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    inspection_id = serializers.UUIDField(required=False, allow_null=True)
    markup_percent = serializers.DecimalField(
        max_digits=7, decimal_places=4, required=False, min_value=Decimal("0"), default=Decimal("0")
    )
    tax_rate = serializers.DecimalField(
        max_digits=7, decimal_places=6, required=False, allow_null=True,
        min_value=Decimal("0"), max_value=Decimal("1"),
    )
    discount_rate = serializers.DecimalField(
        max_digits=7, decimal_places=6, required=False, allow_null=True,
        min_value=Decimal("0"), max_value=Decimal("1"),
    )


class InspectionSerializer(serializers.ModelSerializer):
    status_info = StatusInfoField(INSPECTION_MACHINE)
    deficiency_count = serializers.SerializerMethodField()

    class Meta:
        model = Inspection
        fields = [
            "id",
            "inspection_number",
            "customer_id",
            "customer_name",
            "site_address",
            "inspection_type",
            "status",
            "status_info",
            "scheduled_date",
            "started_at",
            "completed_at",
            "passed",
            "pass_with_deficiencies",
            "technician_id",
            "notes",
            "deficiency_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_deficiency_count(self, obj) -> int:
        return obj.deficiencies.count()


class InspectionCreateSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    customer_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    site_address = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)
    inspection_type = serializers.ChoiceField(choices=InspectionType.choices, default=InspectionType.FIRE_ALARM)
    scheduled_date = serializers.DateField(required=False, allow_null=True)
    technician_id = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class InspectionCompleteSerializer(serializers.Serializer):
    passed = serializers.BooleanField(required=False, allow_null=True, default=None)
    pass_with_deficiencies = serializers.BooleanField(required=False, allow_null=True, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
