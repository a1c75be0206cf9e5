# fs_core/audit/models.py
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from fs_core.common.models import EntityModel


class AuditEntity(models.TextChoices):
    INSPECTION = "Inspection", "Inspection"
    DEFICIENCY = "Deficiency", "Deficiency"
    QUOTE = "Quote", "Quote"
    INVOICE = "Invoice", "Invoice"


class AuditEvent(EntityModel):
    """
    Immutable audit record of a state change on an inspection, deficiency, quote or
    invoice. `event_code` is "<entity>.<what happened>", e.g. "invoice.payment_recorded".
    Job history lives in jobs.JobEvent instead.
    """
    event_code = models.CharField(max_length=128, db_index=True)
    entity_type = models.CharField(max_length=32, choices=AuditEntity.choices, db_index=True)
    entity_id = models.UUIDField(db_index=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="audit_events",
        null=True,
        blank=True,
    )

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "audit_event"
        ordering = ["-occurred_at"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id", "occurred_at"]),
            models.Index(fields=["event_code", "occurred_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.event_code} {self.entity_type}:{self.entity_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("AuditEvent is immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("AuditEvent is immutable.")
