# fs_core/conversions/tests/test_conversions.py
import datetime as dt
from decimal import Decimal

import pytest

from fs_core.billing.models import Invoice
from fs_core.billing.services import InvoiceService, PaymentService
from fs_core.common.exceptions import AlreadyConverted, AlreadyTerminal, IllegalTransition
from fs_core.conversions.services import ConversionCoordinator
from fs_core.inspections.models import Deficiency
from fs_core.jobs.models import Job
from fs_core.jobs.services import JobService
from fs_core.quotes.services import QuoteService
from fs_core.workflow.machines import DeficiencyStatus, JobEvent, JobStatus, QuoteEvent

pytestmark = pytest.mark.django_db


def _accepted_quote(**kw):
    quote = QuoteService.create(
        customer_name="Riverside Apartments",
        line_items=[{"description": "Fire alarm panel", "quantity": Decimal("1"), "unit_price": Decimal("1000.00")}],
        tax_rate=Decimal("0.0825"),
        **kw,
    )
    QuoteService.transition(quote_id=quote.id, event=QuoteEvent.SEND)
    return QuoteService.transition(quote_id=quote.id, event=QuoteEvent.ACCEPT)


def _complete(job):
    JobService.transition(job_id=job.id, event=JobEvent.START)
    return JobService.transition(job_id=job.id, event=JobEvent.COMPLETE)


def test_deficiencies_selected_builds_priced_quote(inspection, make_deficiency):
    a = make_deficiency(low="100.00", high="200.00")
    b = make_deficiency(low="50.00", category="sprinkler_head")

    quote = ConversionCoordinator.on_deficiencies_selected(
        deficiency_ids=[a.id, b.id],
        markup_percent=Decimal("10"),
    )

    assert quote.inspection_id == inspection.id
    assert quote.customer_name == "Lone Star Office Park"
    assert list(quote.lines.values_list("unit_price", flat=True)) == [Decimal("165.00"), Decimal("55.00")]
    assert set(Deficiency.objects.values_list("status", flat=True)) == {DeficiencyStatus.QUOTED}


def test_quote_converts_to_job_once():
    quote = _accepted_quote()

    job = ConversionCoordinator.on_quote_accepted(quote_id=quote.id, scheduled_date=dt.date(2026, 4, 1))
    assert job.status == JobStatus.SCHEDULED
    assert job.quote_id == quote.id
    assert job.total_amount == Decimal("1082.50")

    with pytest.raises(AlreadyConverted):
        ConversionCoordinator.on_quote_accepted(quote_id=quote.id)
    assert Job.objects.count() == 1


def test_only_accepted_quotes_convert():
    quote = QuoteService.create(
        customer_name="Draft Co",
        line_items=[{"description": "Labor", "unit_price": Decimal("10.00")}],
    )
    with pytest.raises(IllegalTransition):
        ConversionCoordinator.on_quote_accepted(quote_id=quote.id)
    with pytest.raises(IllegalTransition):
        ConversionCoordinator.create_invoice_from_quote(quote_id=quote.id)


def test_job_invoice_reproduces_discounted_quote_totals():
    quote = _accepted_quote(discount_rate=Decimal("0.10"))
    assert quote.total == Decimal("974.25")
    job = _complete(ConversionCoordinator.on_quote_accepted(quote_id=quote.id))

    invoice = ConversionCoordinator.create_invoice_from_job(job_id=job.id)

    assert invoice.quote_id == quote.id
    assert invoice.job_id == job.id
    assert invoice.total == Decimal("974.25")
    assert invoice.lines.count() == 1
    assert Job.objects.get(id=job.id).status == JobStatus.INVOICED
    assert job.events.filter(event_type="invoiced").count() == 1

    with pytest.raises(AlreadyConverted):
        ConversionCoordinator.create_invoice_from_job(job_id=job.id)


def test_undiscounted_quote_lines_are_copied():
    quote = _accepted_quote()
    invoice = ConversionCoordinator.create_invoice_from_quote(quote_id=quote.id)

    assert list(invoice.lines.values_list("description", "unit_price")) == [("Fire alarm panel", Decimal("1000.00"))]
    assert invoice.total == quote.total

    with pytest.raises(AlreadyConverted):
        ConversionCoordinator.create_invoice_from_quote(quote_id=quote.id)


def test_job_invoice_refused_when_quote_already_billed():
    quote = _accepted_quote()
    job = _complete(ConversionCoordinator.on_quote_accepted(quote_id=quote.id))
    ConversionCoordinator.create_invoice_from_quote(quote_id=quote.id)

    with pytest.raises(AlreadyConverted):
        ConversionCoordinator.create_invoice_from_job(job_id=job.id)
    assert Job.objects.get(id=job.id).status == JobStatus.COMPLETED


def test_job_without_quote_bills_total_amount_with_default_tax():
    job = JobService.create(customer_name="Walk-in", scheduled_date=dt.date(2026, 4, 1), total_amount=Decimal("350.00"))
    job = _complete(job)

    invoice = ConversionCoordinator.create_invoice_from_job(job_id=job.id)
    assert invoice.tax_rate == Decimal("0.0825")
    assert (invoice.subtotal, invoice.tax_amount, invoice.total) == (
        Decimal("350.00"), Decimal("28.88"), Decimal("378.88"),
    )
    assert invoice.lines.count() == 1
    assert invoice.quote_id is None


def test_job_scope_lines_split_the_amount_to_the_cent():
    job = JobService.create(
        customer_name="Walk-in",
        scheduled_date=dt.date(2026, 4, 1),
        total_amount=Decimal("100.00"),
        scope_summary="Replace pull station\n\n2x Horn strobe\nRetest panel\n",
    )
    invoice = ConversionCoordinator.create_invoice_from_job(job_id=_complete(job).id)

    rows = list(invoice.lines.order_by("position").values_list("description", "unit_price", "line_total"))
    assert rows == [
        ("Replace pull station", Decimal("33.34"), Decimal("33.34")),
        ("2x Horn strobe", Decimal("33.33"), Decimal("33.33")),
        ("Retest panel", Decimal("33.33"), Decimal("33.33")),
    ]
    assert invoice.subtotal == Decimal("100.00")
    assert invoice.total == Decimal("108.25")


def test_job_without_quote_or_amount_cannot_be_billed():
    from rest_framework.exceptions import ValidationError

    job = _complete(JobService.create(customer_name="Walk-in", scheduled_date=dt.date(2026, 4, 1)))
    with pytest.raises(ValidationError):
        ConversionCoordinator.create_invoice_from_job(job_id=job.id)
    assert Invoice.objects.count() == 0


def test_paying_invoice_marks_job_paid():
    job = _complete(JobService.create(customer_name="Walk-in", scheduled_date=dt.date(2026, 4, 1), total_amount=Decimal("350.00")))
    invoice = ConversionCoordinator.create_invoice_from_job(job_id=job.id)
    InvoiceService.send(invoice_id=invoice.id)

    PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("100.00"))
    assert Job.objects.get(id=job.id).status == JobStatus.INVOICED

    PaymentService.record_payment(invoice_id=invoice.id, amount=Decimal("278.88"))
    assert Job.objects.get(id=job.id).status == JobStatus.PAID


def test_job_paid_skips_job_that_cannot_take_pay(caplog):
    job = _complete(JobService.create(customer_name="Walk-in", scheduled_date=dt.date(2026, 4, 1)))

    assert ConversionCoordinator.on_job_paid(job_id=job.id) is None
    assert Job.objects.get(id=job.id).status == JobStatus.COMPLETED
    assert any("status left unchanged" in r.getMessage() for r in caplog.records)


def test_accepted_quote_stays_linked_to_its_job_deficiencies(make_deficiency):
    d = make_deficiency(low="75.00")
    quote = ConversionCoordinator.on_deficiencies_selected(deficiency_ids=[d.id])
    QuoteService.transition(quote_id=quote.id, event=QuoteEvent.SEND)
    QuoteService.transition(quote_id=quote.id, event=QuoteEvent.ACCEPT)
    job = ConversionCoordinator.on_quote_accepted(quote_id=quote.id, scheduled_date=dt.date(2026, 4, 1))

    with pytest.raises(AlreadyTerminal):
        QuoteService.delete(quote_id=quote.id)
    assert Job.objects.get(id=job.id).quote_id == quote.id

    _complete(job)
    assert Deficiency.objects.get(id=d.id).status == DeficiencyStatus.COMPLETED
