# fs_core/quotes/models.py
from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from fs_core.common.models import LineItem, VersionedModel
from fs_core.workflow.machines import QuoteStatus


class Quote(VersionedModel):
    """
    Priced offer to a customer.

    subtotal / discount_amount / tax_amount / total are derived from the line items and
    rates; QuoteService recomputes them on every line mutation.
    """
    quote_number = models.CharField(max_length=32, unique=True)

    customer_id = models.UUIDField(null=True, blank=True, db_index=True)
    customer_name = models.CharField(max_length=255, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")
    site_address = models.CharField(max_length=500, blank=True, default="")

    inspection = models.ForeignKey(
        "inspections.Inspection",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="quotes",
    )

    # fractions in [0, 1]
    tax_rate = models.DecimalField(max_digits=7, decimal_places=6, default=Decimal("0"))
    discount_rate = models.DecimalField(max_digits=7, decimal_places=6, null=True, blank=True)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(max_length=16, choices=QuoteStatus.choices, default=QuoteStatus.DRAFT, db_index=True)

    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    viewed_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    declined_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, default="")
    created_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "quotes_quote"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "expires_at"]),
        ]

    def __str__(self) -> str:
        return self.quote_number

    @property
    def taxable_amount(self) -> Decimal:
        return self.subtotal - self.discount_amount

    def is_past_expiry(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or timezone.now())


class QuoteLineItem(LineItem):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name="lines")
    deficiency = models.ForeignKey(
        "inspections.Deficiency",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="quote_lines",
    )

    class Meta(LineItem.Meta):
        db_table = "quotes_line_item"
