# fs_core/billing/services.py
from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from fs_core.audit.services import AuditService
from fs_core.billing.models import (
    Invoice,
    InvoiceLineItem,
    Payment,
    PaymentKind,
    PaymentMethod,
    PaymentStatus,
)
from fs_core.common.concurrency import check_version, save_versioned
from fs_core.common.events import publish
from fs_core.common.exceptions import (
    AlreadyConverted,
    AlreadyTerminal,
    IllegalTransition,
    InvalidAmount,
    InvoiceLocked,
)
from fs_core.common.models import LineItemType
from fs_core.common.money import Money, compute_totals, line_total, stored_quantity
from fs_core.common.numbering import next_document_number
from fs_core.workflow.machines import INVOICE_MACHINE, InvoiceEvent, InvoiceStatus

logger = logging.getLogger(__name__)

JOB_PAID = "job.paid"

TOTAL_FIELDS = ["subtotal", "tax_amount", "total"]


def _invoice_due_days() -> int:
    return int(getattr(settings, "FS_INVOICE_DUE_DAYS", 30))


class InvoiceService:
    # -------------------------
    # Internals
    # -------------------------
    @staticmethod
    def _lock(invoice_id: UUID) -> Invoice:
        return Invoice.objects.select_for_update().get(id=invoice_id)

    @staticmethod
    def _ensure_draft(invoice: Invoice) -> None:
        if invoice.status != InvoiceStatus.DRAFT:
            raise InvoiceLocked(f"Invoice {invoice.invoice_number} is {invoice.status}.")

    @staticmethod
    def _ensure_not_terminal(invoice: Invoice) -> None:
        if INVOICE_MACHINE.is_terminal(invoice.status):
            raise AlreadyTerminal(f"Invoice {invoice.invoice_number} is {invoice.status}.")

    @staticmethod
    def _recalc_totals(invoice: Invoice) -> None:
        totals = compute_totals(
            (Money.from_decimal(lt) for lt in invoice.lines.order_by("position", "created_at").values_list("line_total", flat=True)),
            tax_rate=invoice.tax_rate,
        )
        invoice.subtotal = totals.subtotal.to_decimal()
        invoice.tax_amount = totals.tax_amount.to_decimal()
        invoice.total = totals.total.to_decimal()

    @staticmethod
    def _create_line(
        invoice: Invoice,
        *,
        description: str,
        quantity=Decimal("1"),
        unit_price=Decimal("0.00"),
        item_type: str = LineItemType.SERVICE,
    ) -> InvoiceLineItem:
        if not (description or "").strip():
            raise ValidationError({"description": "Description is required."})
        qty = stored_quantity(quantity)
        price = Money.from_decimal(unit_price)
        total = line_total(qty, price)
        if qty == 0:
            raise ValidationError({"quantity": "Quantity must be > 0."})

        last = invoice.lines.order_by("-position").values_list("position", flat=True).first()
        return InvoiceLineItem.objects.create(
            invoice=invoice,
            position=0 if last is None else last + 1,
            description=description.strip(),
            quantity=qty,
            unit_price=price.to_decimal(),
            item_type=item_type,
            line_total=total.to_decimal(),
        )

    @staticmethod
    def _audit(invoice: Invoice, code: str, *, actor_user_id: int | None, **metadata) -> None:
        AuditService.log(
            event_code=f"invoice.{code}",
            entity_type="Invoice",
            entity_id=invoice.id,
            actor_user_id=actor_user_id,
            metadata={"invoice_number": invoice.invoice_number, **metadata},
        )

    # -------------------------
    # Creation / draft edits
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create(
        *,
        customer_id: UUID | None = None,
        customer_name: str = "",
        customer_email: str = "",
        line_items: Iterable[dict] = (),
        tax_rate: Decimal | None = None,
        due_date: date | None = None,
        job=None,
        quote=None,
        notes: str = "",
        created_by_id: int | None = None,
    ) -> Invoice:
        """
        Draft invoice with totals computed from `line_items`. `job` / `quote` are
        provenance; each may be invoiced at most once (uq_invoice_job / uq_invoice_quote).
        """
        if tax_rate is None:
            tax_rate = Decimal(str(getattr(settings, "FS_DEFAULT_TAX_RATE", "0")))

        try:
            with transaction.atomic():
                invoice = Invoice.objects.create(
                    invoice_number=next_document_number(
                        model=Invoice, field="invoice_number", prefix="INV-", width=6
                    ),
                    customer_id=customer_id,
                    customer_name=customer_name or "",
                    customer_email=customer_email or "",
                    job=job,
                    quote=quote,
                    tax_rate=tax_rate,
                    status=INVOICE_MACHINE.initial,
                    due_date=due_date or (timezone.localdate() + timedelta(days=_invoice_due_days())),
                    notes=notes or "",
                    created_by_id=created_by_id,
                )
        except IntegrityError:
            if (job is not None and Invoice.objects.filter(job=job).exists()) or (
                quote is not None and Invoice.objects.filter(quote=quote).exists()
            ):
                raise AlreadyConverted("An invoice already exists for this job or quote.")
            raise

        for item in line_items:
            InvoiceService._create_line(
                invoice,
                description=item.get("description", ""),
                quantity=item.get("quantity", Decimal("1")),
                unit_price=item.get("unit_price", Decimal("0.00")),
                item_type=item.get("item_type", LineItemType.SERVICE),
            )

        InvoiceService._recalc_totals(invoice)
        invoice.save(update_fields=TOTAL_FIELDS + ["updated_at"])

        InvoiceService._audit(
            invoice,
            "created",
            actor_user_id=created_by_id,
            total=str(invoice.total),
            job_id=str(job.id) if job is not None else None,
            quote_id=str(quote.id) if quote is not None else None,
        )
        logger.info("invoice %s created total=%s", invoice.invoice_number, invoice.total)
        return invoice

    @staticmethod
    @transaction.atomic
    def add_line_item(
        *,
        invoice_id: UUID,
        description: str,
        quantity=Decimal("1"),
        unit_price=Decimal("0.00"),
        item_type: str = LineItemType.SERVICE,
        expected_version: int | None = None,
    ) -> InvoiceLineItem:
        invoice = InvoiceService._lock(invoice_id)
        check_version(invoice, expected_version)
        InvoiceService._ensure_draft(invoice)

        line = InvoiceService._create_line(
            invoice,
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            item_type=item_type,
        )
        InvoiceService._recalc_totals(invoice)
        save_versioned(invoice, TOTAL_FIELDS)
        return line

    @staticmethod
    @transaction.atomic
    def remove_line_item(*, invoice_id: UUID, line_id: UUID, expected_version: int | None = None) -> Invoice:
        invoice = InvoiceService._lock(invoice_id)
        check_version(invoice, expected_version)
        InvoiceService._ensure_draft(invoice)

        invoice.lines.get(id=line_id).delete()
        InvoiceService._recalc_totals(invoice)
        save_versioned(invoice, TOTAL_FIELDS)
        return invoice

    @staticmethod
    @transaction.atomic
    def update(
        *,
        invoice_id: UUID,
        expected_version: int | None = None,
        notes: str | None = None,
        due_date: date | None = None,
        customer_email: str | None = None,
    ) -> Invoice:
        invoice = InvoiceService._lock(invoice_id)
        check_version(invoice, expected_version)
        InvoiceService._ensure_not_terminal(invoice)

        changed = []
        for name, value in (("notes", notes), ("due_date", due_date), ("customer_email", customer_email)):
            if value is not None:
                setattr(invoice, name, value)
                changed.append(name)
        if changed:
            save_versioned(invoice, changed)
        return invoice

    # -------------------------
    # Status
    # -------------------------
    @staticmethod
    @transaction.atomic
    def send(*, invoice_id: UUID, actor_user_id: int | None = None, expected_version: int | None = None) -> Invoice:
        """
        draft/sent -> sent. Re-sending keeps the first sent_at.
        """
        invoice = InvoiceService._lock(invoice_id)
        check_version(invoice, expected_version)
        InvoiceService._ensure_not_terminal(invoice)

        if not invoice.lines.exists():
            raise ValidationError({"lines": "Cannot send an invoice without line items."})

        prev = invoice.status
        invoice.status = INVOICE_MACHINE.apply(prev, InvoiceEvent.SEND)
        invoice.sent_at = invoice.sent_at or timezone.now()
        save_versioned(invoice, ["status", "sent_at"])

        InvoiceService._audit(invoice, "sent", actor_user_id=actor_user_id, **{"from": prev, "to": invoice.status})
        return invoice

    @staticmethod
    @transaction.atomic
    def mark_viewed(*, invoice_id: UUID, actor_user_id: int | None = None) -> Invoice:
        """
        sent -> viewed. Later views (viewed, partial, paid) are no-ops.
        """
        invoice = InvoiceService._lock(invoice_id)
        if invoice.status in (InvoiceStatus.VIEWED, InvoiceStatus.PARTIAL, InvoiceStatus.PAID):
            return invoice

        prev = invoice.status
        invoice.status = INVOICE_MACHINE.apply(prev, InvoiceEvent.VIEW)
        invoice.viewed_at = invoice.viewed_at or timezone.now()
        save_versioned(invoice, ["status", "viewed_at"])

        InvoiceService._audit(invoice, "viewed", actor_user_id=actor_user_id, **{"from": prev})
        return invoice

    @staticmethod
    @transaction.atomic
    def void(
        *,
        invoice_id: UUID,
        reason: str = "",
        actor_user_id: int | None = None,
        expected_version: int | None = None,
    ) -> Invoice:
        """
        Any non-paid, non-terminal status -> cancelled. Payment history is kept.
        """
        invoice = InvoiceService._lock(invoice_id)
        check_version(invoice, expected_version)
        InvoiceService._ensure_not_terminal(invoice)

        prev = invoice.status
        invoice.status = INVOICE_MACHINE.apply(prev, InvoiceEvent.VOID)
        invoice.voided_at = timezone.now()
        if reason:
            invoice.notes = (invoice.notes + "\n" + f"VOID: {reason}").strip()
        save_versioned(invoice, ["status", "voided_at", "notes"])

        InvoiceService._audit(invoice, "voided", actor_user_id=actor_user_id, reason=reason, **{"from": prev})
        logger.info("invoice %s voided (was %s)", invoice.invoice_number, prev)
        return invoice

    @staticmethod
    @transaction.atomic
    def refund(
        *,
        invoice_id: UUID,
        reason: str = "",
        actor_user_id: int | None = None,
        expected_version: int | None = None,
    ) -> Payment:
        """
        paid -> refunded. Writes a compensating refund Payment for the amount paid and
        resets amount_paid; the original payments are left untouched.
        """
        invoice = InvoiceService._lock(invoice_id)
        check_version(invoice, expected_version)
        InvoiceService._ensure_not_terminal(invoice)

        invoice.status = INVOICE_MACHINE.apply(invoice.status, InvoiceEvent.REFUND)

        refunded = Money.from_decimal(invoice.amount_paid)
        last = invoice.payments.filter(kind=PaymentKind.PAYMENT).order_by("-payment_date").first()

        refund = Payment.objects.create(
            invoice=invoice,
            customer_id=invoice.customer_id,
            amount=refunded.to_decimal(),
            kind=PaymentKind.REFUND,
            payment_method=last.payment_method if last else PaymentMethod.OTHER,
            status=PaymentStatus.COMPLETED,
            notes=reason or "Refund",
            recorded_by_id=actor_user_id,
        )

        invoice.amount_paid = Decimal("0.00")
        invoice.refunded_at = timezone.now()
        save_versioned(invoice, ["status", "amount_paid", "refunded_at"])

        InvoiceService._audit(invoice, "refunded", actor_user_id=actor_user_id, amount=str(refunded), reason=reason)
        logger.info("invoice %s refunded %s", invoice.invoice_number, refunded)
        return refund

    @staticmethod
    @transaction.atomic
    def settle_manually(
        *,
        invoice_id: UUID,
        amount_paid: Decimal | None = None,
        mark_paid: bool = False,
        notes: str = "",
        actor_user_id: int | None = None,
    ) -> Payment | None:
        """
        Operator override ("mark as paid" / "set amount paid"). Records a synthetic
        manual_settlement Payment for the difference so amount_paid keeps driving status
        and the payment history stays in step with it. Returns None when nothing is owed.
        """
        invoice = InvoiceService._lock(invoice_id)
        current = Money.from_decimal(invoice.amount_paid)

        if mark_paid:
            target = Money.from_decimal(invoice.total)
            if amount_paid is not None and Money.from_decimal(amount_paid) > target:
                target = Money.from_decimal(amount_paid)
        elif amount_paid is not None:
            target = Money.from_decimal(amount_paid)
        else:
            raise ValidationError({"amount_paid": "Provide amount_paid or status=paid."})

        delta = target - current
        if delta.is_negative():
            raise ValidationError({"amount_paid": "amount_paid cannot decrease; use void or refund."})
        if not delta.is_positive():
            return None

        return PaymentService.record_payment(
            invoice_id=invoice.id,
            amount=delta.to_decimal(),
            payment_method=PaymentMethod.MANUAL_SETTLEMENT,
            notes=notes or "Manual settlement",
            recorded_by_id=actor_user_id,
        )

    @staticmethod
    def change_status(*, invoice_id: UUID, status: str, actor_user_id: int | None = None, reason: str = "") -> Invoice:
        """
        PATCH {status} routed to the operation that owns the target status.
        """
        if status == InvoiceStatus.PAID:
            InvoiceService.settle_manually(invoice_id=invoice_id, mark_paid=True, actor_user_id=actor_user_id)
        elif status == InvoiceStatus.SENT:
            InvoiceService.send(invoice_id=invoice_id, actor_user_id=actor_user_id)
        elif status == InvoiceStatus.VIEWED:
            InvoiceService.mark_viewed(invoice_id=invoice_id, actor_user_id=actor_user_id)
        elif status == InvoiceStatus.CANCELLED:
            InvoiceService.void(invoice_id=invoice_id, reason=reason, actor_user_id=actor_user_id)
        elif status == InvoiceStatus.REFUNDED:
            InvoiceService.refund(invoice_id=invoice_id, reason=reason, actor_user_id=actor_user_id)
        else:
            current = Invoice.objects.values_list("status", flat=True).get(id=invoice_id)
            raise IllegalTransition(
                f"Invoice status '{status}' is derived from payments and cannot be set directly.",
                current=current,
                event=status,
            )
        return Invoice.objects.get(id=invoice_id)

    @staticmethod
    @transaction.atomic
    def patch(
        *,
        invoice_id: UUID,
        edits: dict[str, Any],
        status: str | None = None,
        amount_paid: Decimal | None = None,
        reason: str = "",
        actor_user_id: int | None = None,
        expected_version: int | None = None,
    ) -> Invoice:
        """
        PATCH /invoices/{id}: field edits and a status or amount_paid change in one transaction.
        """
        if edits:
            InvoiceService.update(invoice_id=invoice_id, expected_version=expected_version, **edits)
        elif expected_version is not None:
            check_version(InvoiceService._lock(invoice_id), expected_version)

        if status is not None:
            InvoiceService.change_status(invoice_id=invoice_id, status=status, actor_user_id=actor_user_id, reason=reason)
        elif amount_paid is not None:
            InvoiceService.settle_manually(invoice_id=invoice_id, amount_paid=amount_paid, actor_user_id=actor_user_id)
        return Invoice.objects.get(id=invoice_id)


class PaymentService:
    @staticmethod
    @transaction.atomic
    def record_payment(
        *,
        invoice_id: UUID,
        amount: Decimal,
        payment_method: str = PaymentMethod.CASH,
        customer_id: UUID | None = None,
        reference: str = "",
        notes: str = "",
        recorded_by_id: int | None = None,
    ) -> Payment:
        """
        Settles `amount` against the invoice synchronously and re-derives status:
          amount_paid >= total       -> paid (paid_at stamped once)
          0 < amount_paid < total    -> partial
        Any open status may take a payment; paying a settled invoice is an IllegalTransition.
        """
        money = Money.from_decimal(amount)
        if not money.is_positive():
            raise InvalidAmount("Payment amount must be greater than zero.")

        invoice = InvoiceService._lock(invoice_id)
        InvoiceService._ensure_not_terminal(invoice)

        if customer_id and invoice.customer_id and customer_id != invoice.customer_id:
            raise ValidationError({"customer_id": "Payment customer does not match the invoice customer."})

        paid = Money.from_decimal(invoice.amount_paid) + money
        total = Money.from_decimal(invoice.total)
        event = InvoiceEvent.PAY_FULL if paid >= total else InvoiceEvent.PAY_PARTIAL

        prev = invoice.status
        invoice.status = INVOICE_MACHINE.apply(prev, event)

        payment = Payment.objects.create(
            invoice=invoice,
            customer_id=customer_id or invoice.customer_id,
            amount=money.to_decimal(),
            kind=PaymentKind.PAYMENT,
            payment_method=payment_method,
            status=PaymentStatus.COMPLETED,
            reference=reference or "",
            notes=notes or "",
            recorded_by_id=recorded_by_id,
        )

        invoice.amount_paid = paid.to_decimal()
        changed = ["status", "amount_paid"]
        if invoice.status == InvoiceStatus.PAID and invoice.paid_at is None:
            invoice.paid_at = timezone.now()
            changed.append("paid_at")
        save_versioned(invoice, changed)

        InvoiceService._audit(
            invoice,
            "payment_recorded",
            actor_user_id=recorded_by_id,
            payment_id=str(payment.id),
            amount=str(money),
            method=payment_method,
            **{"from": prev, "to": invoice.status},
        )
        logger.info(
            "payment %s on invoice %s: %s -> %s (paid %s of %s)",
            money, invoice.invoice_number, prev, invoice.status, paid, total,
        )

        if invoice.status == InvoiceStatus.PAID and invoice.job_id:
            publish(
                JOB_PAID,
                {
                    "job_id": str(invoice.job_id),
                    "invoice_id": str(invoice.id),
                    "actor_id": recorded_by_id,
                },
            )
        return payment
