# fs_core/billing/tests/test_billing_api.py
import datetime as dt

import pytest
from django.utils import timezone

from fs_core.billing.models import Payment

pytestmark = pytest.mark.django_db


def _create_invoice(api_client, **extra):
    payload = {
        "customer_name": "Riverside Apartments",
        "customer_email": "ap@riverside.example",
        "tax_rate": "0.0825",
        "line_items": [{"description": "Annual sprinkler inspection", "unit_price": "900.00"}],
    }
    payload.update(extra)
    res = api_client.post("/api/v1/invoices/", payload, format="json")
    assert res.status_code == 201, res.content
    return res.json()


def _send(api_client, invoice):
    res = api_client.post(f"/api/v1/invoices/{invoice['id']}/send/", {}, format="json")
    assert res.status_code == 200, res.content
    return res.json()


def test_create_and_send(api_client):
    invoice = _create_invoice(api_client)
    assert invoice["total"] == "974.25"
    assert invoice["balance_due"] == "974.25"
    assert invoice["status_info"]["label"] == "Draft"
    assert invoice["warnings"] == []

    sent = _send(api_client, invoice)
    assert sent["status"] == "sent"
    assert sent["sent_at"] is not None


def test_job_and_quote_ids_are_exclusive(api_client):
    import uuid

    res = api_client.post(
        "/api/v1/invoices/",
        {"job_id": str(uuid.uuid4()), "quote_id": str(uuid.uuid4())},
        format="json",
    )
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_payment_flow_with_idempotency_replay(api_client):
    invoice = _send(api_client, _create_invoice(api_client))
    headers = {"HTTP_IDEMPOTENCY_KEY": "pay-001"}

    first = api_client.post(
        "/api/v1/payments/",
        {"invoice_id": invoice["id"], "amount": "500.00", "payment_method": "check"},
        format="json",
        **headers,
    )
    assert first.status_code == 201, first.content
    body = first.json()
    assert body["invoice"]["status"] == "partial"
    assert body["invoice"]["balance_due"] == "474.25"

    replay = api_client.post(
        "/api/v1/payments/",
        {"invoice_id": invoice["id"], "amount": "500.00", "payment_method": "check"},
        format="json",
        **headers,
    )
    assert replay.status_code == 201
    assert replay.json()["id"] == body["id"]
    assert Payment.objects.count() == 1

    final = api_client.post(
        "/api/v1/payments/",
        {"invoice_id": invoice["id"], "amount": "474.25"},
        format="json",
    )
    assert final.status_code == 201
    assert final.json()["invoice"]["status"] == "paid"

    res = api_client.get("/api/v1/payments/", {"invoice_id": invoice["id"]})
    assert res.json()["count"] == 2


def test_zero_payment_is_invalid_amount(api_client):
    invoice = _send(api_client, _create_invoice(api_client))
    res = api_client.post("/api/v1/payments/", {"invoice_id": invoice["id"], "amount": "0.00"}, format="json")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "invalid_amount"


def test_patch_amount_paid_and_mark_paid(api_client):
    invoice = _send(api_client, _create_invoice(api_client))
    url = f"/api/v1/invoices/{invoice['id']}/"

    res = api_client.patch(url, {"amount_paid": "100.00"}, format="json")
    assert res.status_code == 200, res.content
    body = res.json()
    assert body["status"] == "partial"
    assert body["payments"][0]["payment_method"] == "manual_settlement"

    res = api_client.patch(url, {"amount_paid": "50.00"}, format="json")
    assert res.status_code == 400

    res = api_client.patch(url, {"status": "paid"}, format="json")
    assert res.json()["status"] == "paid"
    assert res.json()["amount_paid"] == "974.25"

    res = api_client.patch(url, {"status": "partial"}, format="json")
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "illegal_transition"


def test_void_and_refund_actions(api_client):
    a = _send(api_client, _create_invoice(api_client))
    res = api_client.post(f"/api/v1/invoices/{a['id']}/void/", {"reason": "Entered twice"}, format="json")
    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"
    assert "VOID: Entered twice" in res.json()["notes"]

    res = api_client.post(f"/api/v1/invoices/{a['id']}/void/", {}, format="json")
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "already_terminal"

    b = _send(api_client, _create_invoice(api_client))
    api_client.post("/api/v1/payments/", {"invoice_id": b["id"], "amount": b["total"]}, format="json")

    res = api_client.post(f"/api/v1/invoices/{b['id']}/void/", {}, format="json")
    assert res.status_code == 409

    res = api_client.post(f"/api/v1/invoices/{b['id']}/refund/", {"reason": "Dispute"}, format="json")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "refunded"
    assert body["amount_paid"] == "0.00"
    assert sorted(p["kind"] for p in body["payments"]) == ["payment", "refund"]


def test_lines_only_on_draft(api_client):
    invoice = _create_invoice(api_client)
    res = api_client.post(
        f"/api/v1/invoices/{invoice['id']}/lines/",
        {"description": "After-hours surcharge", "unit_price": "100.00"},
        format="json",
    )
    assert res.status_code == 201
    line_id = res.json()["id"]

    res = api_client.delete(f"/api/v1/invoices/{invoice['id']}/lines/{line_id}/")
    assert res.status_code == 200
    assert res.json()["subtotal"] == "900.00"

    _send(api_client, invoice)
    res = api_client.post(
        f"/api/v1/invoices/{invoice['id']}/lines/",
        {"description": "Late", "unit_price": "1.00"},
        format="json",
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "invoice_locked"


def test_overdue_is_derived_in_api(api_client):
    late = _send(
        api_client,
        _create_invoice(api_client, due_date=str(timezone.localdate() - dt.timedelta(days=3))),
    )
    _create_invoice(api_client)

    res = api_client.get("/api/v1/invoices/", {"status": "overdue"})
    rows = res.json()["results"]
    assert [r["id"] for r in rows] == [late["id"]]
    assert rows[0]["status"] == "sent"
    assert rows[0]["display_status"] == "overdue"
    assert rows[0]["is_overdue"] is True


def test_history_lists_the_invoice_trail_oldest_first(api_client):
    invoice = _send(api_client, _create_invoice(api_client))
    api_client.post("/api/v1/payments/", {"invoice_id": invoice["id"], "amount": "100.00"}, format="json")

    res = api_client.get(f"/api/v1/invoices/{invoice['id']}/history/")
    assert res.status_code == 200
    rows = res.json()
    assert [r["event_code"] for r in rows] == ["invoice.created", "invoice.sent", "invoice.payment_recorded"]
    assert rows[-1]["actor_username"] == "dispatcher"


def test_patch_rolls_back_edits_when_status_is_refused(api_client):
    invoice = _send(api_client, _create_invoice(api_client, notes="Net 30"))
    url = f"/api/v1/invoices/{invoice['id']}/"

    res = api_client.patch(url, {"notes": "Edited", "status": "partial"}, format="json")
    assert res.status_code == 409

    body = api_client.get(url).json()
    assert body["notes"] == "Net 30"
    assert body["status"] == "sent"


def test_mark_paid_on_a_draft_invoice(api_client):
    invoice = _create_invoice(api_client)

    res = api_client.patch(f"/api/v1/invoices/{invoice['id']}/", {"status": "paid", "notes": "Paid at counter"}, format="json")
    assert res.status_code == 200, res.content
    body = res.json()
    assert body["status"] == "paid"
    assert body["amount_paid"] == "974.25"
    assert body["notes"] == "Paid at counter"
