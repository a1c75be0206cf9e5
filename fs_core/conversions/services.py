# fs_core/conversions/services.py
"""
Cross-aggregate workflows: deficiencies -> quote -> job -> invoice -> paid.

Each conversion runs in one transaction and is single-shot; the database constraints
uq_job_quote / uq_invoice_job / uq_invoice_quote back the AlreadyConverted checks.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from django.db import transaction
from rest_framework.exceptions import ValidationError

from fs_core.billing.models import Invoice
from fs_core.billing.services import InvoiceService
from fs_core.common.exceptions import AlreadyConverted, IllegalTransition
from fs_core.common.models import LineItemType
from fs_core.common.money import Money
from fs_core.jobs.models import Job
from fs_core.jobs.services import JobService
from fs_core.quotes.models import Quote
from fs_core.quotes.services import PricingPolicy, QuoteService
from fs_core.workflow.machines import JOB_MACHINE, JobEvent, JobStatus, QuoteStatus

logger = logging.getLogger(__name__)


def _quote_lines_for_invoice(quote: Quote) -> tuple[list[dict], Decimal]:
    """
    Invoice lines carrying the quote's totals. Without a discount the quote lines are
    copied as-is; a discounted quote collapses to one line at its taxable amount.
    """
    if not quote.discount_rate:
        lines = [
            {
                "description": line.description,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "item_type": line.item_type,
            }
            for line in quote.lines.order_by("position", "created_at")
        ]
        return lines, quote.tax_rate

    return [
        {
            "description": f"Work per quote {quote.quote_number} (discount {quote.discount_rate * 100:.2f}% applied)",
            "quantity": Decimal("1"),
            "unit_price": quote.taxable_amount,
            "item_type": LineItemType.SERVICE,
        }
    ], quote.tax_rate


def _job_lines_for_invoice(job: Job) -> list[dict]:
    """
    One line per non-blank scope_summary line, splitting total_amount to the cent
    (earlier lines take the leftover cents). Without a scope, a single line.
    """
    scope = [line.strip() for line in (job.scope_summary or "").splitlines() if line.strip()]
    if not scope:
        scope = [f"{job.get_job_type_display()} - {job.job_number}"]

    base, leftover = divmod(Money.from_decimal(job.total_amount).cents, len(scope))
    return [
        {
            "description": text,
            "quantity": Decimal("1"),
            "unit_price": Money(base + (1 if i < leftover else 0)).to_decimal(),
            "item_type": LineItemType.SERVICE,
        }
        for i, text in enumerate(scope)
    ]


class ConversionCoordinator:
    @staticmethod
    def on_deficiencies_selected(
        *,
        deficiency_ids: Iterable[UUID],
        inspection_id: UUID | None = None,
        markup_percent: Decimal | None = None,
        tax_rate: Decimal | None = None,
        discount_rate: Decimal | None = None,
        actor_user_id: int | None = None,
    ) -> Quote:
        policy = PricingPolicy(markup_percent=markup_percent or Decimal("0"))
        return QuoteService.from_deficiencies(
            deficiency_ids=deficiency_ids,
            pricing_policy=policy,
            inspection_id=inspection_id,
            tax_rate=tax_rate,
            discount_rate=discount_rate,
            created_by_id=actor_user_id,
        )

    @staticmethod
    @transaction.atomic
    def on_quote_accepted(*, quote_id: UUID, actor_user_id: int | None = None, **job_fields: Any) -> Job:
        """
        Convert an accepted quote into a job (approved, or scheduled when a date is given).
        """
        quote = Quote.objects.select_for_update().get(id=quote_id)
        if quote.status != QuoteStatus.ACCEPTED:
            raise IllegalTransition(
                f"Quote {quote.quote_number} must be accepted before conversion.",
                current=quote.status,
                event="convert_to_job",
            )
        if Job.objects.filter(quote=quote).exists():
            raise AlreadyConverted(f"Quote {quote.quote_number} already has a job.")

        job = JobService.create(
            customer_id=quote.customer_id,
            customer_name=quote.customer_name,
            customer_email=quote.customer_email,
            site_address=quote.site_address,
            total_amount=quote.total,
            quote=quote,
            created_by_id=actor_user_id,
            **job_fields,
        )
        logger.info("quote %s converted to job %s", quote.quote_number, job.job_number)
        return job

    @staticmethod
    def on_job_completed(payload: dict) -> None:
        logger.info("job %s completed (quote=%s)", payload.get("job_id"), payload.get("quote_id"))

    @staticmethod
    @transaction.atomic
    def create_invoice_from_job(*, job_id: UUID, actor_user_id: int | None = None) -> Invoice:
        """
        Bill a completed job and move it to invoiced. The invoice reproduces the quote's
        totals when the job came from a quote, otherwise it bills job.total_amount plus the
        default tax rate.
        """
        job = Job.objects.select_for_update().get(id=job_id)
        if job.status != JobStatus.COMPLETED:
            raise IllegalTransition(
                f"Job {job.job_number} must be completed before invoicing.",
                current=job.status,
                event=JobEvent.INVOICE,
            )
        if Invoice.objects.filter(job=job).exists():
            raise AlreadyConverted(f"Job {job.job_number} is already invoiced.")

        quote = job.quote
        if quote is not None and Invoice.objects.filter(quote=quote).exists():
            raise AlreadyConverted(f"Quote {quote.quote_number} is already invoiced.")

        if quote is not None:
            lines, tax_rate = _quote_lines_for_invoice(quote)
        else:
            if job.total_amount is None:
                raise ValidationError({"total_amount": "Job has no quote and no total amount to bill."})
            lines = _job_lines_for_invoice(job)
            # InvoiceService.create applies FS_DEFAULT_TAX_RATE
            tax_rate = None

        invoice = InvoiceService.create(
            customer_id=job.customer_id,
            customer_name=job.customer_name,
            customer_email=job.customer_email,
            line_items=lines,
            tax_rate=tax_rate,
            job=job,
            quote=quote,
            created_by_id=actor_user_id,
        )
        JobService.record_billing_event(
            job_id=job.id,
            event=JobEvent.INVOICE,
            actor_id=actor_user_id,
            invoice=invoice,
        )
        logger.info("job %s invoiced as %s", job.job_number, invoice.invoice_number)
        return invoice

    @staticmethod
    @transaction.atomic
    def create_invoice_from_quote(*, quote_id: UUID, actor_user_id: int | None = None) -> Invoice:
        """
        Bill an accepted quote directly (work billed without a job).
        """
        quote = Quote.objects.select_for_update().get(id=quote_id)
        if quote.status != QuoteStatus.ACCEPTED:
            raise IllegalTransition(
                f"Quote {quote.quote_number} must be accepted before invoicing.",
                current=quote.status,
                event="create_invoice",
            )
        if Invoice.objects.filter(quote=quote).exists():
            raise AlreadyConverted(f"Quote {quote.quote_number} is already invoiced.")

        lines, tax_rate = _quote_lines_for_invoice(quote)
        return InvoiceService.create(
            customer_id=quote.customer_id,
            customer_name=quote.customer_name,
            customer_email=quote.customer_email,
            line_items=lines,
            tax_rate=tax_rate,
            quote=quote,
            created_by_id=actor_user_id,
        )

    @staticmethod
    def on_job_paid(*, job_id: UUID, actor_user_id: int | None = None) -> Job | None:
        """
        invoiced -> paid. Runs inside the payment's transaction, so a job that cannot take
        `pay` is skipped (logged) rather than failing the payment.
        """
        job = Job.objects.select_for_update().get(id=job_id)
        if not JOB_MACHINE.can_transition(job.status, JobEvent.PAY):
            logger.warning("job %s paid while %s; status left unchanged", job.job_number, job.status)
            return None
        return JobService.record_billing_event(job_id=job.id, event=JobEvent.PAY, actor_id=actor_user_id)
