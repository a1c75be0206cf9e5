# fs_core/common/models.py
from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class TimeStampedModel(models.Model):
    """
    Standard timestamps for all entities.
    """
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class EntityModel(TimeStampedModel):
    """
    UUID-keyed entity. Everything the API exposes hangs off this.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


class VersionedModel(EntityModel):
    """
    Entity with an optimistic-concurrency counter.
    Writes go through fs_core.common.concurrency.save_versioned (compare-and-set on version).
    """
    version = models.PositiveIntegerField(default=1)

    class Meta:
        abstract = True


class LineItemType(models.TextChoices):
    EQUIPMENT = "equipment", "Equipment"
    LABOR = "labor", "Labor"
    SERVICE = "service", "Service"
    MONITORING = "monitoring", "Monitoring"
    OTHER = "other", "Other"


class LineItem(EntityModel):
    """
    Priced line embedded in a Quote or Invoice.
    line_total is a snapshot of quantity * unit_price, rounded once (see Money.line_total).
    """
    position = models.PositiveIntegerField(default=0)

    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("1.00"))
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    item_type = models.CharField(max_length=16, choices=LineItemType.choices, default=LineItemType.SERVICE)
    line_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        abstract = True
        ordering = ["position", "created_at"]


# -------------------------------------------------------------------
# Durable idempotency
# -------------------------------------------------------------------

class IdempotencyRecord(TimeStampedModel):
    """
    Stores idempotent responses durably.

    Keyed by:
      (user_id, method, path, idempotency_key)

    This makes POST operations (payments in particular) safe across
    multiple workers and restarts.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user_id = models.BigIntegerField(db_index=True)
    method = models.CharField(max_length=16, db_index=True)
    path = models.CharField(max_length=255, db_index=True)
    idempotency_key = models.CharField(max_length=255, db_index=True)

    status_code = models.PositiveIntegerField(default=200)
    response_data = models.JSONField(default=dict, encoder=DjangoJSONEncoder)

    class Meta:
        db_table = "common_idempotency_record"
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "method", "path", "idempotency_key"],
                name="uq_idempo_user_method_path_key",
            )
        ]

    def __str__(self) -> str:
        return f"{self.method} {self.path} {self.idempotency_key}"
