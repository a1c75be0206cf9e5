# fs_core/common/tests/test_error_envelope.py
import uuid

import pytest

pytestmark = pytest.mark.django_db


def _assert_envelope(res, code):
    body = res.json()
    assert "error" in body
    err = body["error"]
    assert err["code"] == code
    assert isinstance(err["message"], str) and err["message"]
    assert err["request_id"]
    return err


def test_missing_row_is_not_found_envelope(api_client):
    res = api_client.get(f"/api/v1/quotes/{uuid.uuid4()}/")
    assert res.status_code == 404
    _assert_envelope(res, "not_found")


def test_validation_error_envelope(api_client):
    res = api_client.post("/api/v1/payments/", {"amount": "10.00"}, format="json")
    assert res.status_code == 400
    err = _assert_envelope(res, "validation_error")
    assert "invoice_id" in err["details"]


def test_domain_error_uses_default_code(api_client):
    res = api_client.post("/api/v1/quotes/", {"customer_name": "Acme"}, format="json")
    assert res.status_code == 201
    quote_id = res.json()["id"]

    res = api_client.post(f"/api/v1/quotes/{quote_id}/accept/", {}, format="json")
    assert res.status_code == 409
    _assert_envelope(res, "illegal_transition")


def test_unauthenticated_envelope(anon_client):
    res = anon_client.get("/api/v1/jobs/")
    assert res.status_code == 401
    _assert_envelope(res, "not_authenticated")


def test_illegal_transition_details_name_state_and_event(api_client):
    quote_id = api_client.post("/api/v1/quotes/", {"customer_name": "Acme"}, format="json").json()["id"]

    res = api_client.post(f"/api/v1/quotes/{quote_id}/decline/", {}, format="json")
    assert res.status_code == 409
    err = _assert_envelope(res, "illegal_transition")
    assert err["details"] == {"current": "draft", "event": "decline"}


def test_model_guard_maps_to_conflict(api_client, inspection):
    api_client.post(f"/api/v1/inspections/{inspection.id}/start/", {}, format="json")
    api_client.post(f"/api/v1/inspections/{inspection.id}/complete/", {"passed": True}, format="json")

    res = api_client.delete(f"/api/v1/inspections/{inspection.id}/")
    assert res.status_code == 409
    err = _assert_envelope(res, "conflict")
    assert "cannot be deleted" in err["message"]


def test_request_id_is_echoed(api_client):
    res = api_client.get(f"/api/v1/quotes/{uuid.uuid4()}/", HTTP_X_REQUEST_ID="trace-123")
    assert res.status_code == 404
    assert res.json()["error"]["request_id"] == "trace-123"
    assert res["X-Request-ID"] == "trace-123"
