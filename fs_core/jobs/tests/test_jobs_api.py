# fs_core/jobs/tests/test_jobs_api.py
import pytest

pytestmark = pytest.mark.django_db


def _create_job(api_client, **extra):
    payload = {"customer_name": "Hill Country Storage", "scheduled_date": "2026-03-02", "job_type": "repair"}
    payload.update(extra)
    res = api_client.post("/api/v1/jobs/", payload, format="json")
    assert res.status_code == 201, res.content
    return res.json()


def test_create_and_retrieve(api_client):
    job = _create_job(api_client)
    assert job["status"] == "scheduled"
    assert job["status_info"]["label"] == "Scheduled"
    assert "start" in job["allowed_events"]
    assert "invoice" not in job["allowed_events"]

    res = api_client.get(f"/api/v1/jobs/{job['id']}/")
    assert res.status_code == 200
    body = res.json()
    assert body["notes"] == []
    assert body["checklists"] == []


def test_patch_status_and_action(api_client):
    job = _create_job(api_client)

    res = api_client.patch(f"/api/v1/jobs/{job['id']}/", {"status": "in_progress"}, format="json")
    assert res.status_code == 200, res.content
    assert res.json()["actual_start_time"] is not None

    res = api_client.patch(f"/api/v1/jobs/{job['id']}/", {"action": "hold"}, format="json")
    assert res.json()["status"] == "on_hold"

    res = api_client.patch(f"/api/v1/jobs/{job['id']}/", {"action": "resume"}, format="json")
    assert res.json()["status"] == "in_progress"


def test_patch_to_paid_from_scheduled_is_409(api_client):
    job = _create_job(api_client)

    res = api_client.patch(f"/api/v1/jobs/{job['id']}/", {"status": "paid"}, format="json")
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "illegal_transition"


def test_patch_unknown_action_is_400(api_client):
    job = _create_job(api_client)
    res = api_client.patch(f"/api/v1/jobs/{job['id']}/", {"action": "teleport"}, format="json")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_patch_note_and_assignment_actions(api_client, user):
    job = _create_job(api_client)
    url = f"/api/v1/jobs/{job['id']}/"

    res = api_client.patch(url, {"action": "add_note", "note": "Gate code 4411"}, format="json")
    assert res.status_code == 200
    assert res.json()["note"] == "Gate code 4411"

    res = api_client.patch(url, {"action": "assign_user", "user_id": user.id}, format="json")
    assert res.status_code == 200
    res = api_client.patch(url, {"action": "assign_user", "user_id": user.id}, format="json")
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "already_assigned"

    res = api_client.patch(url, {"action": "acknowledge"}, format="json")
    assert res.status_code == 200
    assert res.json()[0]["acknowledged_at"] is not None

    res = api_client.patch(url, {"action": "remove_assignment", "user_id": user.id}, format="json")
    assert res.json() == {"success": True}
    res = api_client.patch(url, {"action": "remove_assignment", "user_id": user.id}, format="json")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "not_assigned"


def test_list_filters(api_client):
    a = _create_job(api_client, priority="urgent", customer_name="Alamo Lofts")
    _create_job(api_client, priority="low", scheduled_date="2026-05-01")
    api_client.post(f"/api/v1/jobs/{a['id']}/assignments/", {"technician_id": 12}, format="json")

    def ids(params):
        res = api_client.get("/api/v1/jobs/", params)
        assert res.status_code == 200, res.content
        return [r["id"] for r in res.json()["results"]]

    assert ids({"priority": "urgent"}) == [a["id"]]
    assert ids({"technician_id": 12}) == [a["id"]]
    assert ids({"search": "alamo"}) == [a["id"]]
    assert ids({"scheduled_to": "2026-04-01"}) == [a["id"]]
    assert len(ids({"status": "scheduled"})) == 2
    assert ids({"status": "paid"}) == []


def test_events_endpoint(api_client):
    job = _create_job(api_client)
    api_client.patch(f"/api/v1/jobs/{job['id']}/", {"action": "start"}, format="json")

    res = api_client.get(f"/api/v1/jobs/{job['id']}/events/", {"event_type": "status_changed"})
    assert res.status_code == 200
    rows = res.json()
    assert len(rows) == 1
    assert rows[0]["payload"] == {"from_state": "scheduled", "to_state": "in_progress", "event": "start"}


def test_create_invoice_requires_completed_job(api_client):
    job = _create_job(api_client, total_amount="500.00")

    res = api_client.post(f"/api/v1/jobs/{job['id']}/create-invoice/", {}, format="json")
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "illegal_transition"


def test_patch_is_all_or_nothing(api_client):
    job = _create_job(api_client, description="Replace two horn strobes")
    url = f"/api/v1/jobs/{job['id']}/"

    res = api_client.patch(url, {"description": "Edited", "status": "paid"}, format="json")
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "illegal_transition"

    body = api_client.get(url).json()
    assert body["description"] == "Replace two horn strobes"
    assert body["status"] == "scheduled"
    assert body["version"] == job["version"]

    res = api_client.patch(url, {"description": "Edited", "action": "start"}, format="json")
    assert res.status_code == 200, res.content
    assert (res.json()["description"], res.json()["status"]) == ("Edited", "in_progress")
