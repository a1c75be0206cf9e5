# fs_core/inspections/models.py
from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models

from fs_core.common.models import EntityModel, VersionedModel
from fs_core.workflow.machines import DeficiencyStatus, InspectionStatus


class InspectionType(models.TextChoices):
    FIRE_ALARM = "fire_alarm", "Fire Alarm"
    SPRINKLER = "sprinkler", "Sprinkler"
    EXTINGUISHER = "extinguisher", "Extinguisher"
    EMERGENCY_LIGHTING = "emergency_lighting", "Emergency Lighting"
    FIRE_MARSHAL = "fire_marshal", "Fire Marshal"
    OTHER = "other", "Other"


class Inspection(EntityModel):
    """
    A scheduled site inspection. Owns its checklist results and deficiencies.
    """
    inspection_number = models.CharField(max_length=32, unique=True)

    customer_id = models.UUIDField(null=True, blank=True, db_index=True)
    customer_name = models.CharField(max_length=255, blank=True, default="")
    site_address = models.CharField(max_length=500, blank=True, default="")

    inspection_type = models.CharField(
        max_length=32, choices=InspectionType.choices, default=InspectionType.FIRE_ALARM
    )
    status = models.CharField(
        max_length=16,
        choices=InspectionStatus.choices,
        default=InspectionStatus.SCHEDULED,
        db_index=True,
    )

    scheduled_date = models.DateField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    passed = models.BooleanField(null=True, blank=True)
    pass_with_deficiencies = models.BooleanField(null=True, blank=True)

    technician_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "inspections_inspection"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "scheduled_date"]),
        ]

    def __str__(self) -> str:
        return self.inspection_number

    def delete(self, *args, **kwargs):
        # findings of a completed inspection are part of the record
        if self.status == InspectionStatus.COMPLETED or self.completed_at is not None:
            raise ValidationError("A completed inspection cannot be deleted.")
        return super().delete(*args, **kwargs)


class ChecklistOutcome(models.TextChoices):
    PASS = "pass", "Pass"
    FAIL = "fail", "Fail"
    NOT_APPLICABLE = "n/a", "N/A"


class ChecklistResult(EntityModel):
    inspection = models.ForeignKey(Inspection, on_delete=models.CASCADE, related_name="checklist_results")
    item_label = models.CharField(max_length=255)
    result = models.CharField(max_length=8, choices=ChecklistOutcome.choices)
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "inspections_checklist_result"
        ordering = ["created_at"]


class DeficiencyCategory(models.TextChoices):
    EMERGENCY_LIGHTING = "emergency_lighting", "Emergency Lighting"
    DUCT_SMOKE = "duct_smoke", "Duct Smoke Detector"
    FIRE_LANE = "fire_lane", "Fire Lane"
    PANEL_TROUBLE = "panel_trouble", "Panel Trouble"
    MONITORING = "monitoring", "Monitoring"
    SMOKE_DETECTOR = "smoke_detector", "Smoke Detector"
    HEAT_DETECTOR = "heat_detector", "Heat Detector"
    PULL_STATION = "pull_station", "Pull Station"
    HORN_STROBE = "horn_strobe", "Horn/Strobe"
    SPRINKLER_HEAD = "sprinkler_head", "Sprinkler Head"
    VALVE = "valve", "Valve"
    SIGNAGE = "signage", "Signage"
    DOCUMENTATION = "documentation", "Documentation"
    OTHER = "other", "Other"


class Severity(models.TextChoices):
    MINOR = "minor", "Minor"
    MAJOR = "major", "Major"
    CRITICAL = "critical", "Critical"


class Deficiency(VersionedModel):
    """
    An inspection finding that needs repair.
    While `quoted`, `quote` points at the single active quote that owns it.
    """
    inspection = models.ForeignKey(Inspection, on_delete=models.CASCADE, related_name="deficiencies")

    category = models.CharField(max_length=32, choices=DeficiencyCategory.choices, default=DeficiencyCategory.OTHER)
    description = models.TextField()
    recommended_action = models.TextField(blank=True, default="")
    location = models.CharField(max_length=255, blank=True, default="")
    severity = models.CharField(max_length=16, choices=Severity.choices, default=Severity.MINOR, db_index=True)

    status = models.CharField(
        max_length=16,
        choices=DeficiencyStatus.choices,
        default=DeficiencyStatus.OPEN,
        db_index=True,
    )

    estimated_cost_low = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    estimated_cost_high = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    quote = models.ForeignKey(
        "quotes.Quote",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="deficiencies",
    )

    created_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "inspections_deficiency"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["inspection", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.get_category_display()}: {self.description[:40]}"
