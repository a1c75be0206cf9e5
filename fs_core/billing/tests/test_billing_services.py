# fs_core/billing/tests/test_billing_services.py
import datetime as dt
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from fs_core.audit.models import AuditEvent
from fs_core.billing.models import Invoice, Payment, PaymentKind, PaymentMethod
from fs_core.billing.selectors import invoices_filtered, overdue_invoices
from fs_core.billing.services import InvoiceService, PaymentService
from fs_core.common.exceptions import (
    AlreadyTerminal,
    IllegalTransition,
    InvalidAmount,
    InvoiceLocked,
)
from fs_core.workflow.machines import InvoiceStatus

pytestmark = pytest.mark.django_db


def test_create_computes_totals_and_numbers(make_invoice):
    first = make_invoice()
    second = make_invoice(line_items=[])

    assert first.invoice_number == "INV-000001"
    assert second.invoice_number == "INV-000002"
    assert (first.subtotal, first.tax_amount, first.total) == (
        Decimal("1000.00"), Decimal("82.50"), Decimal("1082.50"),
    )
    assert first.status == InvoiceStatus.DRAFT
    assert first.due_date is not None
    assert second.total == Decimal("0.00")


def test_partial_then_full_payment(make_invoice):
    invoice = make_invoice(
        line_items=[{"description": "Panel", "quantity": Decimal("1"), "unit_price": Decimal("900.00")}],
        send=True,
    )
    assert invoice.total == Decimal("974.25")

    PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("500.00"))
    invoice.refresh_from_db()
    assert invoice.status == InvoiceStatus.PARTIAL
    assert invoice.amount_paid == Decimal("500.00")
    assert invoice.balance_due == Decimal("474.25")
    assert invoice.paid_at is None

    PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("474.25"), payment_method=PaymentMethod.CARD)
    invoice.refresh_from_db()
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.balance_due == Decimal("0.00")
    assert invoice.paid_at is not None
    assert invoice.payments.count() == 2

    codes = list(
        AuditEvent.objects.filter(entity_id=invoice.id, event_code="invoice.payment_recorded").values_list(
            "metadata", flat=True
        )
    )
    assert sorted(m["to"] for m in codes) == ["paid", "partial"]


def test_overpayment_still_settles_as_paid(make_invoice):
    invoice = make_invoice(send=True)
    PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("1100.00"))
    invoice.refresh_from_db()

    assert invoice.status == InvoiceStatus.PAID
    assert invoice.balance_due == Decimal("-17.50")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
def test_non_positive_payment_is_invalid(make_invoice, amount):
    invoice = make_invoice(send=True)
    with pytest.raises(InvalidAmount):
        PaymentService.record_payment(invoice_id=invoice.id, amount=amount)
    assert Payment.objects.count() == 0


def test_draft_invoice_takes_payments_and_derives_status(make_invoice):
    invoice = make_invoice()
    assert invoice.status == InvoiceStatus.DRAFT

    PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("82.50"))
    invoice.refresh_from_db()
    assert invoice.status == InvoiceStatus.PARTIAL
    assert invoice.amount_paid == Decimal("82.50")

    PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("1000.00"))
    invoice.refresh_from_db()
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.paid_at is not None


def test_mark_paid_settles_a_draft(make_invoice):
    invoice = make_invoice()
    payment = InvoiceService.settle_manually(invoice_id=invoice.id, mark_paid=True)

    invoice.refresh_from_db()
    assert payment.payment_method == PaymentMethod.MANUAL_SETTLEMENT
    assert payment.amount == Decimal("1082.50")
    assert invoice.status == InvoiceStatus.PAID


def test_payment_customer_must_match(make_invoice):
    import uuid

    invoice = make_invoice(send=True)
    with pytest.raises(ValidationError):
        PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("10.00"), customer_id=uuid.uuid4())


def test_send_requires_lines_and_keeps_first_sent_at(make_invoice):
    empty = make_invoice(line_items=[])
    with pytest.raises(ValidationError):
        InvoiceService.send(invoice_id=empty.id)

    invoice = make_invoice(send=True)
    first = invoice.sent_at
    again = InvoiceService.send(invoice_id=invoice.id)
    assert again.status == InvoiceStatus.SENT
    assert again.sent_at == first


def test_view_is_noop_after_payment(make_invoice):
    invoice = make_invoice(send=True)
    viewed = InvoiceService.mark_viewed(invoice_id=invoice.id)
    assert viewed.status == InvoiceStatus.VIEWED

    PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("100.00"))
    again = InvoiceService.mark_viewed(invoice_id=invoice.id)
    assert again.status == InvoiceStatus.PARTIAL


def test_draft_lines_lock_after_send(make_invoice):
    invoice = make_invoice()
    line = InvoiceService.add_line_item(invoice_id=invoice.id, description="Labor", unit_price=Decimal("100.00"))
    invoice.refresh_from_db()
    assert invoice.subtotal == Decimal("1100.00")

    invoice = InvoiceService.remove_line_item(invoice_id=invoice.id, line_id=line.id)
    assert invoice.subtotal == Decimal("1000.00")

    InvoiceService.send(invoice_id=invoice.id)
    with pytest.raises(InvoiceLocked):
        InvoiceService.add_line_item(invoice_id=invoice.id, description="Late", unit_price=Decimal("1.00"))


def test_void_keeps_payments_and_records_reason(make_invoice):
    invoice = make_invoice(send=True)
    PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("100.00"))

    voided = InvoiceService.void(invoice_id=invoice.id, reason="Duplicate billing")

    assert voided.status == InvoiceStatus.CANCELLED
    assert voided.voided_at is not None
    assert voided.notes.endswith("VOID: Duplicate billing")
    assert voided.payments.count() == 1

    with pytest.raises(AlreadyTerminal):
        PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("5.00"))


def test_void_after_paid_is_illegal(make_invoice):
    invoice = make_invoice(send=True)
    PaymentService.record_payment(invoice_id=invoice.id, amount=invoice.total)

    with pytest.raises(IllegalTransition):
        InvoiceService.void(invoice_id=invoice.id)


def test_refund_writes_compensating_payment(make_invoice):
    invoice = make_invoice(send=True)
    original = PaymentService.record_payment(invoice_id=invoice.id, amount=invoice.total, payment_method=PaymentMethod.CHECK)

    refund = InvoiceService.refund(invoice_id=invoice.id, reason="Customer dispute")

    invoice.refresh_from_db()
    assert invoice.status == InvoiceStatus.REFUNDED
    assert invoice.amount_paid == Decimal("0.00")
    assert invoice.refunded_at is not None
    assert refund.kind == PaymentKind.REFUND
    assert refund.amount == Decimal("1082.50")
    assert refund.payment_method == PaymentMethod.CHECK
    assert Payment.objects.get(id=original.id).amount == Decimal("1082.50")


def test_refund_requires_paid(make_invoice):
    invoice = make_invoice(send=True)
    with pytest.raises(IllegalTransition):
        InvoiceService.refund(invoice_id=invoice.id)


def test_completed_payments_are_immutable(make_invoice):
    invoice = make_invoice(send=True)
    payment = PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("10.00"))

    payment.amount = Decimal("20.00")
    with pytest.raises(DjangoValidationError):
        payment.save()
    with pytest.raises(DjangoValidationError):
        payment.delete()


def test_manual_settlement(make_invoice):
    invoice = make_invoice(send=True)

    payment = InvoiceService.settle_manually(invoice_id=invoice.id, amount_paid=Decimal("200.00"))
    assert payment.payment_method == PaymentMethod.MANUAL_SETTLEMENT
    assert payment.amount == Decimal("200.00")

    assert InvoiceService.settle_manually(invoice_id=invoice.id, amount_paid=Decimal("200.00")) is None
    with pytest.raises(ValidationError):
        InvoiceService.settle_manually(invoice_id=invoice.id, amount_paid=Decimal("100.00"))

    InvoiceService.settle_manually(invoice_id=invoice.id, mark_paid=True)
    invoice.refresh_from_db()
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.amount_paid == Decimal("1082.50")


def test_derived_statuses_cannot_be_set(make_invoice):
    invoice = make_invoice(send=True)
    for target in (InvoiceStatus.PARTIAL, InvoiceStatus.DRAFT):
        with pytest.raises(IllegalTransition):
            InvoiceService.change_status(invoice_id=invoice.id, status=target)


def test_overdue_is_derived():
    today = dt.date(2026, 6, 15)
    lines = [{"description": "Monitoring", "unit_price": Decimal("50.00")}]

    late = InvoiceService.create(customer_name="A", line_items=lines, due_date=dt.date(2026, 6, 1))
    InvoiceService.send(invoice_id=late.id)
    settled = InvoiceService.create(customer_name="B", line_items=lines, due_date=dt.date(2026, 6, 1))
    InvoiceService.send(invoice_id=settled.id)
    PaymentService.record_payment(invoice_id=settled.id, amount=Decimal("500.00"))
    InvoiceService.create(customer_name="C", line_items=lines, due_date=dt.date(2026, 7, 1))

    assert [i.id for i in overdue_invoices(today=today)] == [late.id]

    late.refresh_from_db()
    assert late.status == InvoiceStatus.SENT
    assert late.is_overdue(today=today)
    assert not late.is_overdue(today=dt.date(2026, 5, 1))
    assert Invoice.objects.filter(status="overdue").count() == 0


def test_status_filter_accepts_overdue():
    yesterday = timezone.localdate() - dt.timedelta(days=1)
    late = InvoiceService.create(
        customer_name="A",
        line_items=[{"description": "Monitoring", "unit_price": Decimal("50.00")}],
        due_date=yesterday,
    )
    InvoiceService.create(customer_name="B", line_items=[])

    assert [i.id for i in invoices_filtered(status="overdue")] == [late.id]
    assert invoices_filtered(status="draft").count() == 2


def test_invoice_line_quantity_is_rounded_before_pricing(make_invoice):
    invoice = make_invoice(
        line_items=[{"description": "Sprinkler head", "quantity": Decimal("2.125"), "unit_price": Decimal("40.00")}],
    )
    line = invoice.lines.get()
    assert (line.quantity, line.line_total) == (Decimal("2.13"), Decimal("85.20"))
    assert invoice.subtotal == Decimal("85.20")
