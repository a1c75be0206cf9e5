# fs_core/jobs/models.py
from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from fs_core.common.models import EntityModel, VersionedModel
from fs_core.jobs.events import parse_event
from fs_core.workflow.machines import JobStatus


class JobType(models.TextChoices):
    INSTALLATION = "installation", "Installation"
    INSPECTION = "inspection", "Inspection"
    REPAIR = "repair", "Repair"
    SERVICE_CALL = "service_call", "Service Call"
    MAINTENANCE = "maintenance", "Maintenance"
    MONITORING = "monitoring", "Monitoring"
    OTHER = "other", "Other"


class JobPriority(models.TextChoices):
    EMERGENCY = "emergency", "Emergency"
    URGENT = "urgent", "Urgent"
    NORMAL = "normal", "Normal"
    LOW = "low", "Low"


class Job(VersionedModel):
    """
    Working order. `quote` is provenance only: deleting the quote clears it.
    At most one job per quote (uq_job_quote).
    """
    job_number = models.CharField(max_length=32, unique=True)

    customer_id = models.UUIDField(null=True, blank=True, db_index=True)
    customer_name = models.CharField(max_length=255, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")
    site_address = models.CharField(max_length=500, blank=True, default="")

    quote = models.ForeignKey(
        "quotes.Quote",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="jobs",
    )

    job_type = models.CharField(max_length=32, choices=JobType.choices, default=JobType.SERVICE_CALL)
    priority = models.CharField(max_length=16, choices=JobPriority.choices, default=JobPriority.NORMAL, db_index=True)

    status = models.CharField(max_length=32, choices=JobStatus.choices, default=JobStatus.LEAD, db_index=True)
    held_from_status = models.CharField(max_length=32, choices=JobStatus.choices, blank=True, default="")

    description = models.TextField(blank=True, default="")
    scope_summary = models.TextField(blank=True, default="")

    scheduled_date = models.DateField(null=True, blank=True, db_index=True)
    scheduled_time_start = models.TimeField(null=True, blank=True)
    scheduled_time_end = models.TimeField(null=True, blank=True)

    actual_start_time = models.DateTimeField(null=True, blank=True)
    actual_end_time = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completion_notes = models.TextField(blank=True, default="")

    total_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    created_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "jobs_job"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["quote"],
                condition=Q(quote__isnull=False),
                name="uq_job_quote",
            )
        ]
        indexes = [
            models.Index(fields=["status", "scheduled_date"]),
        ]

    def __str__(self) -> str:
        return self.job_number


class AssignmentRole(models.TextChoices):
    LEAD_TECHNICIAN = "lead_technician", "Lead Technician"
    TECHNICIAN = "technician", "Technician"
    HELPER = "helper", "Helper"
    INSPECTOR = "inspector", "Inspector"


class JobAssignment(EntityModel):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name="assignments")
    technician_id = models.BigIntegerField(db_index=True)
    role = models.CharField(max_length=32, choices=AssignmentRole.choices, default=AssignmentRole.TECHNICIAN)
    assigned_by_id = models.BigIntegerField(null=True, blank=True)
    acknowledged_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "jobs_assignment"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(fields=["job", "technician_id", "role"], name="uq_job_assignment_role"),
        ]


class NoteType(models.TextChoices):
    GENERAL = "general", "General"
    TECHNICAL = "technical", "Technical"
    CUSTOMER = "customer", "Customer"
    INTERNAL = "internal", "Internal"


class JobNote(EntityModel):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name="notes")
    note = models.TextField()
    note_type = models.CharField(max_length=16, choices=NoteType.choices, default=NoteType.GENERAL)
    is_customer_visible = models.BooleanField(default=False)
    user_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "jobs_note"
        ordering = ["-created_at"]


class JobPhoto(EntityModel):
    """
    Photos live in external storage; only the URL is kept.
    """
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name="photos")
    photo_url = models.URLField(max_length=1000)
    caption = models.CharField(max_length=255, blank=True, default="")
    photo_type = models.CharField(max_length=32, blank=True, default="general")
    uploaded_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "jobs_photo"
        ordering = ["created_at"]


class JobChecklist(EntityModel):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name="checklists")
    name = models.CharField(max_length=255)
    checklist_type = models.CharField(max_length=32, blank=True, default="general")
    items = models.JSONField(default=list, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "jobs_checklist"
        ordering = ["created_at"]


class JobEventType(models.TextChoices):
    CREATED = "created", "Created"
    CONVERTED_FROM_QUOTE = "converted_from_quote", "Converted from quote"
    STATUS_CHANGED = "status_changed", "Status changed"
    ASSIGNED = "assigned", "Assigned"
    UNASSIGNED = "unassigned", "Unassigned"
    ASSIGNMENT_ACKNOWLEDGED = "assignment_acknowledged", "Assignment acknowledged"
    NOTE_ADDED = "note_added", "Note added"
    PHOTO_ADDED = "photo_added", "Photo added"
    CHECKLIST_ADDED = "checklist_added", "Checklist added"
    CHECKLIST_COMPLETED = "checklist_completed", "Checklist completed"
    INVOICED = "invoiced", "Invoiced"


class JobEvent(EntityModel):
    """
    Append-only job log. Rows are never updated or deleted.
    `payload` holds the typed variant from fs_core.jobs.events for `event_type`.
    """
    job = models.ForeignKey(Job, on_delete=models.PROTECT, related_name="events")
    event_type = models.CharField(max_length=32, choices=JobEventType.choices, db_index=True)
    from_state = models.CharField(max_length=32, blank=True, default="")
    to_state = models.CharField(max_length=32, blank=True, default="")
    payload = models.JSONField(default=dict, blank=True)
    actor_id = models.BigIntegerField(null=True, blank=True)
    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "jobs_event"
        ordering = ["occurred_at", "created_at"]
        indexes = [
            models.Index(fields=["job", "occurred_at"]),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("JobEvent is immutable (append-only).")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("JobEvent is immutable (append-only).")

    @property
    def typed(self):
        return parse_event(self.event_type, self.payload)
