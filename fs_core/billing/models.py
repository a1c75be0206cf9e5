# fs_core/billing/models.py
from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from fs_core.common.models import EntityModel, LineItem, VersionedModel
from fs_core.workflow.machines import INVOICE_OVERDUE, InvoiceStatus

# Statuses for which a passed due date does not make the invoice overdue.
SETTLED_STATUSES = (InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.REFUNDED)


class Invoice(VersionedModel):
    """
    Billable document. `amount_paid` only moves through PaymentService (and refund);
    `status` follows from it. balance_due is derived, never stored.
    """
    invoice_number = models.CharField(max_length=32, unique=True)

    customer_id = models.UUIDField(null=True, blank=True, db_index=True)
    customer_name = models.CharField(max_length=255, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")

    # provenance (weak references)
    job = models.ForeignKey("jobs.Job", on_delete=models.SET_NULL, null=True, blank=True, related_name="invoices")
    quote = models.ForeignKey("quotes.Quote", on_delete=models.SET_NULL, null=True, blank=True, related_name="invoices")

    tax_rate = models.DecimalField(max_digits=7, decimal_places=6, default=Decimal("0"))
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(max_length=16, choices=InvoiceStatus.choices, default=InvoiceStatus.DRAFT, db_index=True)
    due_date = models.DateField(null=True, blank=True, db_index=True)

    sent_at = models.DateTimeField(null=True, blank=True)
    viewed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, default="")
    created_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "billing_invoice"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["job"], condition=Q(job__isnull=False), name="uq_invoice_job"),
            models.UniqueConstraint(fields=["quote"], condition=Q(quote__isnull=False), name="uq_invoice_quote"),
        ]
        indexes = [
            models.Index(fields=["status", "due_date"]),
        ]

    def __str__(self) -> str:
        return self.invoice_number

    @property
    def balance_due(self) -> Decimal:
        return (self.total or Decimal("0.00")) - (self.amount_paid or Decimal("0.00"))

    def is_overdue(self, today=None) -> bool:
        if self.due_date is None or self.status in SETTLED_STATUSES:
            return False
        return self.due_date < (today or timezone.localdate())

    @property
    def display_status(self) -> str:
        return INVOICE_OVERDUE if self.is_overdue() else self.status


class InvoiceLineItem(LineItem):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="lines")

    class Meta(LineItem.Meta):
        db_table = "billing_invoice_line_item"


class PaymentMethod(models.TextChoices):
    CASH = "cash", "Cash"
    CHECK = "check", "Check"
    CARD = "card", "Card"
    ACH = "ach", "ACH"
    STRIPE = "stripe", "Stripe"
    MANUAL_SETTLEMENT = "manual_settlement", "Manual settlement"
    OTHER = "other", "Other"


class PaymentKind(models.TextChoices):
    PAYMENT = "payment", "Payment"
    REFUND = "refund", "Refund"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class Payment(EntityModel):
    """
    Money received against (or returned from) an invoice. `amount` is always positive;
    a refund is a separate record with kind=refund. Completed payments are immutable.
    """
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="payments")
    customer_id = models.UUIDField(null=True, blank=True, db_index=True)

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    kind = models.CharField(max_length=16, choices=PaymentKind.choices, default=PaymentKind.PAYMENT)
    payment_method = models.CharField(max_length=32, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.COMPLETED)

    payment_date = models.DateTimeField(default=timezone.now, db_index=True)
    reference = models.CharField(max_length=128, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    recorded_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "billing_payment"
        ordering = ["-payment_date", "-created_at"]

    def _is_settled_row(self) -> bool:
        return Payment.objects.filter(pk=self.pk, status=PaymentStatus.COMPLETED).exists()

    def save(self, *args, **kwargs):
        if not self._state.adding and self._is_settled_row():
            raise ValidationError("Completed payments are immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self._is_settled_row():
            raise ValidationError("Completed payments are immutable.")
        return super().delete(*args, **kwargs)
