# tests/test_end_to_end.py
"""
Deficiency -> quote -> job -> invoice -> payment, driven through the HTTP API.
"""
import pytest

from fs_core.inspections.models import Deficiency
from fs_core.jobs.models import Job

pytestmark = pytest.mark.django_db


def _statuses(ids):
    return sorted(Deficiency.objects.filter(id__in=ids).values_list("status", flat=True))


def test_full_chain(api_client, make_deficiency, captured_events):
    a = make_deficiency(low="100.00", high="200.00")
    b = make_deficiency(low="50.00", category="sprinkler_head")
    ids = [a.id, b.id]

    res = api_client.post(
        "/api/v1/deficiencies/generate-quote/",
        {"deficiency_ids": [str(i) for i in ids]},
        format="json",
    )
    assert res.status_code == 201, res.content
    quote = res.json()
    assert quote["total"] == "216.50"
    assert _statuses(ids) == ["quoted", "quoted"]

    qid = quote["id"]
    assert api_client.post(f"/api/v1/quotes/{qid}/send/", {}, format="json").status_code == 200
    assert api_client.post(f"/api/v1/quotes/{qid}/accept/", {}, format="json").status_code == 200
    assert _statuses(ids) == ["approved", "approved"]

    res = api_client.post(f"/api/v1/quotes/{qid}/convert-to-job/", {"scheduled_date": "2026-04-01"}, format="json")
    assert res.status_code == 201, res.content
    job_id = res.json()["job_id"]
    assert res.json()["status"] == "scheduled"

    res = api_client.patch(f"/api/v1/jobs/{job_id}/", {"action": "start"}, format="json")
    assert res.status_code == 200, res.content
    assert _statuses(ids) == ["in_progress", "in_progress"]

    res = api_client.patch(f"/api/v1/jobs/{job_id}/", {"status": "completed", "completion_notes": "Done"}, format="json")
    assert res.status_code == 200, res.content
    assert _statuses(ids) == ["completed", "completed"]

    res = api_client.post(f"/api/v1/jobs/{job_id}/create-invoice/", {}, format="json")
    assert res.status_code == 201, res.content
    invoice = res.json()
    assert invoice["total"] == "216.50"
    assert Job.objects.get(id=job_id).status == "invoiced"

    res = api_client.post(f"/api/v1/jobs/{job_id}/create-invoice/", {}, format="json")
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "already_converted"

    api_client.post(f"/api/v1/invoices/{invoice['id']}/send/", {}, format="json")
    res = api_client.post(
        "/api/v1/payments/",
        {"invoice_id": invoice["id"], "amount": "216.50", "payment_method": "card"},
        format="json",
    )
    assert res.status_code == 201, res.content
    assert res.json()["invoice"]["status"] == "paid"
    assert Job.objects.get(id=job_id).status == "paid"

    names = [name for name, _payload in captured_events]
    assert names.count("quote.accepted") == 1
    assert names.count("job.completed") == 1
    # the paid subscriber moves the job before the recorder sees job.paid
    assert names[-2:] == ["job.status_changed", "job.paid"]
    changed, paid = captured_events[-2][1], captured_events[-1][1]
    assert (changed["from_state"], changed["to_state"]) == ("invoiced", "paid")
    assert paid["job_id"] == job_id
