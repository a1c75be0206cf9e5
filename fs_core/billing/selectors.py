# fs_core/billing/selectors.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from django.db.models import QuerySet
from django.utils import timezone

from fs_core.billing.models import SETTLED_STATUSES, Invoice, Payment
from fs_core.workflow.machines import INVOICE_OVERDUE


def overdue_invoices(*, today: date | None = None) -> QuerySet[Invoice]:
    """
    Overdue is derived: due date passed and not paid / cancelled / refunded.
    """
    return (
        Invoice.objects.filter(due_date__lt=today or timezone.localdate())
        .exclude(status__in=SETTLED_STATUSES)
    )


def invoices_filtered(
    *,
    status: str | None = None,
    customer_id: UUID | None = None,
    job_id: UUID | None = None,
    quote_id: UUID | None = None,
) -> QuerySet[Invoice]:
    qs = Invoice.objects.prefetch_related("lines", "payments").order_by("-created_at")

    if status == INVOICE_OVERDUE:
        qs = qs.filter(id__in=overdue_invoices().values("id"))
    elif status:
        qs = qs.filter(status=status)
    if customer_id:
        qs = qs.filter(customer_id=customer_id)
    if job_id:
        qs = qs.filter(job_id=job_id)
    if quote_id:
        qs = qs.filter(quote_id=quote_id)

    return qs


def get_invoice(*, invoice_id: UUID) -> Invoice:
    return Invoice.objects.prefetch_related("lines", "payments").get(id=invoice_id)


def payments_filtered(*, invoice_id: UUID | None = None, customer_id: UUID | None = None) -> QuerySet[Payment]:
    qs = Payment.objects.select_related("invoice").order_by("-payment_date", "-created_at")
    if invoice_id:
        qs = qs.filter(invoice_id=invoice_id)
    if customer_id:
        qs = qs.filter(customer_id=customer_id)
    return qs
