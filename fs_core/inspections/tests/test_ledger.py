# fs_core/inspections/tests/test_ledger.py
from decimal import Decimal

import pytest

from fs_core.common.exceptions import AlreadyQuoted, AlreadyTerminal, InvalidAmount
from fs_core.inspections.ledger import DeficiencyLedger
from fs_core.inspections.models import Deficiency
from fs_core.inspections.services import InspectionService
from fs_core.quotes.services import QuoteService
from fs_core.workflow.machines import DeficiencyEvent, DeficiencyStatus

pytestmark = pytest.mark.django_db


def test_record_forces_open_status(make_deficiency):
    d = make_deficiency(low="100.00", high="200.00")
    d.refresh_from_db()

    assert d.status == DeficiencyStatus.OPEN
    assert d.quote_id is None
    assert d.estimated_cost_low == Decimal("100.00")


def test_record_rejects_negative_estimates(make_deficiency):
    with pytest.raises(InvalidAmount):
        make_deficiency(low="-1.00")


def test_record_rejects_cancelled_inspection(inspection, make_deficiency):
    InspectionService.cancel(inspection_id=inspection.id)
    with pytest.raises(AlreadyTerminal):
        make_deficiency()


def test_select_keeps_caller_order(make_deficiency):
    a = make_deficiency(description="A")
    b = make_deficiency(description="B")

    rows = DeficiencyLedger.select(deficiency_ids=[b.id, a.id])
    assert [r.id for r in rows] == [b.id, a.id]


def test_overlapping_selection_only_one_wins(make_deficiency):
    shared = make_deficiency(description="shared")
    only_second = make_deficiency(description="second")
    q1 = QuoteService.create(customer_name="Acme")
    q2 = QuoteService.create(customer_name="Acme")

    # both callers pass the read-side check before either writes
    DeficiencyLedger.select(deficiency_ids=[shared.id])
    DeficiencyLedger.select(deficiency_ids=[shared.id, only_second.id])

    DeficiencyLedger.mark_quoted(deficiency_ids=[shared.id], quote_id=q1.id)
    with pytest.raises(AlreadyQuoted):
        DeficiencyLedger.mark_quoted(deficiency_ids=[shared.id, only_second.id], quote_id=q2.id)

    shared.refresh_from_db()
    only_second.refresh_from_db()
    assert shared.quote_id == q1.id
    # the loser's whole batch rolled back
    assert only_second.status == DeficiencyStatus.OPEN
    assert only_second.quote_id is None


def test_select_rejects_quoted(make_deficiency):
    d = make_deficiency()
    q = QuoteService.create(customer_name="Acme")
    DeficiencyLedger.mark_quoted(deficiency_ids=[d.id], quote_id=q.id)

    with pytest.raises(AlreadyQuoted):
        DeficiencyLedger.select(deficiency_ids=[d.id])


def test_release_is_idempotent(make_deficiency):
    d = make_deficiency()
    q = QuoteService.create(customer_name="Acme")
    DeficiencyLedger.mark_quoted(deficiency_ids=[d.id], quote_id=q.id)

    assert DeficiencyLedger.release(deficiency_ids=[d.id], quote_id=q.id) == 1
    assert DeficiencyLedger.release(deficiency_ids=[d.id], quote_id=q.id) == 0

    d.refresh_from_db()
    assert d.status == DeficiencyStatus.OPEN
    assert d.quote_id is None


def test_release_leaves_other_quotes_alone(make_deficiency):
    d = make_deficiency()
    q1 = QuoteService.create(customer_name="Acme")
    q2 = QuoteService.create(customer_name="Acme")
    DeficiencyLedger.mark_quoted(deficiency_ids=[d.id], quote_id=q1.id)

    assert DeficiencyLedger.release(deficiency_ids=[d.id], quote_id=q2.id) == 0
    assert Deficiency.objects.get(id=d.id).status == DeficiencyStatus.QUOTED


def test_advance_moves_bound_rows(make_deficiency):
    d = make_deficiency()
    q = QuoteService.create(customer_name="Acme")
    DeficiencyLedger.mark_quoted(deficiency_ids=[d.id], quote_id=q.id)

    assert DeficiencyLedger.advance(quote_id=q.id, event=DeficiencyEvent.APPROVE) == 1
    assert DeficiencyLedger.advance(quote_id=q.id, event=DeficiencyEvent.START) == 1
    assert DeficiencyLedger.advance(quote_id=q.id, event=DeficiencyEvent.START) == 0

    d.refresh_from_db()
    assert d.status == DeficiencyStatus.IN_PROGRESS
