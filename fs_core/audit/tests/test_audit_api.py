# fs_core/audit/tests/test_audit_api.py
import pytest

from fs_core.audit.models import AuditEvent
from fs_core.inspections.services import InspectionService

pytestmark = pytest.mark.django_db


def test_lists_events_for_an_entity(api_client, inspection, user):
    InspectionService.start(inspection_id=inspection.id, actor_user_id=user.id)

    res = api_client.get("/api/v1/audit/events/", {"entity_type": "Inspection", "entity_id": str(inspection.id)})
    assert res.status_code == 200
    codes = sorted(row["event_code"] for row in res.json())
    assert codes == ["inspection.scheduled", "inspection.start"]

    res = api_client.get("/api/v1/audit/events/", {"actor_user_id": user.id})
    assert [row["event_code"] for row in res.json()] == ["inspection.start"]


def test_bad_entity_id_is_validation_error(api_client):
    res = api_client.get("/api/v1/audit/events/", {"entity_id": "not-a-uuid"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_audit_rows_are_append_only(inspection):
    from django.core.exceptions import ValidationError

    row = AuditEvent.objects.get(entity_id=inspection.id)
    row.event_code = "tampered"
    with pytest.raises(ValidationError):
        row.save()


def test_event_code_prefix_and_entity_type_choices(api_client, inspection):
    InspectionService.cancel(inspection_id=inspection.id)

    res = api_client.get("/api/v1/audit/events/", {"event_code": "inspection."})
    assert [row["event_code"] for row in res.json()] == ["inspection.cancel", "inspection.scheduled"]

    res = api_client.get("/api/v1/audit/events/", {"entity_type": "Spaceship"})
    assert res.status_code == 400
