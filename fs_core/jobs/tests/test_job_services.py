# fs_core/jobs/tests/test_job_services.py
import datetime as dt
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError

from fs_core.common.exceptions import (
    AlreadyAssigned,
    AlreadyTerminal,
    ConcurrentModification,
    IllegalTransition,
    NotAssigned,
)
from fs_core.jobs import events as ev
from fs_core.jobs.models import Job, JobEvent
from fs_core.jobs.services import JobService
from fs_core.workflow.machines import JobEvent as JobTransition, JobStatus

pytestmark = pytest.mark.django_db


def _scheduled_job(**kw):
    kw.setdefault("customer_name", "Hill Country Storage")
    kw.setdefault("scheduled_date", dt.date(2026, 3, 2))
    return JobService.create(**kw)


def test_new_job_starts_as_lead_or_scheduled():
    lead = JobService.create(customer_name="Walk-in")
    scheduled = _scheduled_job()

    assert lead.status == JobStatus.LEAD
    assert scheduled.status == JobStatus.SCHEDULED
    assert lead.job_number.startswith("JOB-")
    assert lead.job_number != scheduled.job_number


def test_end_before_start_is_rejected():
    from rest_framework.exceptions import ValidationError

    with pytest.raises(ValidationError):
        JobService.create(scheduled_time_start=dt.time(14, 0), scheduled_time_end=dt.time(9, 0))


def test_start_stamps_actual_start_once_across_hold_and_resume():
    job = _scheduled_job()

    job = JobService.transition(job_id=job.id, event=JobTransition.START)
    started = job.actual_start_time
    assert job.status == JobStatus.IN_PROGRESS
    assert started is not None

    job = JobService.transition(job_id=job.id, event=JobTransition.HOLD)
    assert job.status == JobStatus.ON_HOLD
    assert job.held_from_status == JobStatus.IN_PROGRESS

    job = JobService.transition(job_id=job.id, event=JobTransition.RESUME)
    assert job.status == JobStatus.IN_PROGRESS
    assert job.held_from_status == ""
    assert Job.objects.get(id=job.id).actual_start_time == started


def test_complete_stamps_completion_and_keeps_notes():
    job = _scheduled_job()
    JobService.transition(job_id=job.id, event=JobTransition.START)

    job = JobService.transition(job_id=job.id, event=JobTransition.COMPLETE, completion_notes="All heads replaced")

    assert job.status == JobStatus.COMPLETED
    assert job.completed_at is not None
    assert job.actual_end_time is not None
    assert Job.objects.get(id=job.id).completion_notes == "All heads replaced"


def test_skipping_ahead_is_illegal():
    job = _scheduled_job()

    with pytest.raises(IllegalTransition):
        JobService.transition_to(job_id=job.id, status=JobStatus.PAID)

    assert Job.objects.get(id=job.id).status == JobStatus.SCHEDULED


@pytest.mark.parametrize("event", [JobTransition.INVOICE, JobTransition.PAY])
def test_billing_events_cannot_be_applied_directly(event):
    job = _scheduled_job()
    JobService.transition(job_id=job.id, event=JobTransition.START)
    JobService.transition(job_id=job.id, event=JobTransition.COMPLETE)

    with pytest.raises(IllegalTransition):
        JobService.transition(job_id=job.id, event=event)

    job = JobService.record_billing_event(job_id=job.id, event=JobTransition.INVOICE)
    assert job.status == JobStatus.INVOICED


def test_record_billing_event_rejects_operator_events():
    job = _scheduled_job()
    with pytest.raises(IllegalTransition):
        JobService.record_billing_event(job_id=job.id, event=JobTransition.START)


def test_cancel_is_terminal():
    job = _scheduled_job()
    job = JobService.transition(job_id=job.id, event=JobTransition.CANCEL)
    assert job.status == JobStatus.CANCELLED

    with pytest.raises(IllegalTransition):
        JobService.transition(job_id=job.id, event=JobTransition.START)
    with pytest.raises(AlreadyTerminal):
        JobService.update_details(job_id=job.id, priority="urgent")


def test_stale_version_is_rejected():
    job = _scheduled_job()
    JobService.update_details(job_id=job.id, expected_version=job.version, priority="emergency")

    with pytest.raises(ConcurrentModification):
        JobService.update_details(job_id=job.id, expected_version=job.version, priority="urgent")

    assert Job.objects.get(id=job.id).priority == "emergency"


def test_assign_twice_and_unassign_missing():
    job = _scheduled_job()

    JobService.assign(job_id=job.id, technician_id=7)
    with pytest.raises(AlreadyAssigned):
        JobService.assign(job_id=job.id, technician_id=7)

    JobService.assign(job_id=job.id, technician_id=7, role="lead_technician")
    assert job.assignments.count() == 2

    JobService.unassign(job_id=job.id, technician_id=7)
    assert list(job.assignments.values_list("role", flat=True)) == ["lead_technician"]

    with pytest.raises(NotAssigned):
        JobService.unassign(job_id=job.id, technician_id=99)


def test_acknowledge_requires_assignment():
    job = _scheduled_job()
    with pytest.raises(NotAssigned):
        JobService.acknowledge_assignment(job_id=job.id, technician_id=7)

    JobService.assign(job_id=job.id, technician_id=7)
    rows = JobService.acknowledge_assignment(job_id=job.id, technician_id=7)
    assert all(r.acknowledged_at is not None for r in rows)


def test_event_log_is_typed_and_append_only():
    job = _scheduled_job()
    JobService.transition(job_id=job.id, event=JobTransition.START)
    JobService.add_note(job_id=job.id, note="  Panel door sticks  ")

    rows = list(JobEvent.objects.filter(job=job))
    assert [r.event_type for r in rows] == ["created", "status_changed", "note_added"]

    changed = rows[1].typed
    assert isinstance(changed, ev.StatusChanged)
    assert (changed.from_state, changed.to_state, changed.event) == ("scheduled", "in_progress", "start")
    assert (rows[1].from_state, rows[1].to_state) == ("scheduled", "in_progress")

    with pytest.raises(DjangoValidationError):
        rows[0].save()
    with pytest.raises(DjangoValidationError):
        rows[0].delete()


def test_blank_note_is_rejected():
    from rest_framework.exceptions import ValidationError

    job = _scheduled_job()
    with pytest.raises(ValidationError):
        JobService.add_note(job_id=job.id, note="   ")


def test_checklist_completes_once():
    job = _scheduled_job()
    row = JobService.add_checklist(job_id=job.id, name="Sprinkler 5-year", items=[{"label": "FDC", "ok": None}])

    done = JobService.complete_checklist(job_id=job.id, checklist_id=row.id, items=[{"label": "FDC", "ok": True}])
    assert done.completed_at is not None
    assert done.items == [{"label": "FDC", "ok": True}]

    with pytest.raises(AlreadyTerminal):
        JobService.complete_checklist(job_id=job.id, checklist_id=row.id)


def test_total_amount_edit():
    job = _scheduled_job()
    job = JobService.update_details(job_id=job.id, total_amount=Decimal("1250.00"))
    assert Job.objects.get(id=job.id).total_amount == Decimal("1250.00")
