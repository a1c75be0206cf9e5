# fs_core/jobs/services.py
from __future__ import annotations

import logging
from datetime import date, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from fs_core.common.concurrency import check_version, save_versioned
from fs_core.common.events import publish
from fs_core.common.exceptions import (
    AlreadyAssigned,
    AlreadyConverted,
    AlreadyTerminal,
    IllegalTransition,
    NotAssigned,
)
from fs_core.common.numbering import next_document_number, year_prefix
from fs_core.jobs import events as ev
from fs_core.jobs.models import (
    AssignmentRole,
    Job,
    JobAssignment,
    JobChecklist,
    JobEvent,
    JobNote,
    JobPhoto,
    JobPriority,
    JobType,
    NoteType,
)
from fs_core.workflow.machines import JOB_BILLING_EVENTS, JOB_MACHINE, JobEvent as JobTransition, JobStatus

logger = logging.getLogger(__name__)

JOB_STATUS_CHANGED = "job.status_changed"
JOB_COMPLETED = "job.completed"


class JobService:
    # -------------------------
    # Internals
    # -------------------------
    @staticmethod
    def _lock(job_id: UUID) -> Job:
        return Job.objects.select_for_update().get(id=job_id)

    @staticmethod
    def _ensure_open(job: Job) -> None:
        if JOB_MACHINE.is_terminal(job.status):
            raise AlreadyTerminal(f"Job {job.job_number} is {job.status}.")

    @staticmethod
    def _log(job: Job, entry: ev.JobLogEntry, *, actor_id: int | None, from_state: str = "", to_state: str = "") -> JobEvent:
        return JobEvent.objects.create(
            job=job,
            event_type=entry.event_type,
            from_state=from_state or "",
            to_state=to_state or "",
            payload=entry.to_payload(),
            actor_id=actor_id,
        )

    # -------------------------
    # Creation
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create(
        *,
        customer_id: UUID | None = None,
        customer_name: str = "",
        customer_email: str = "",
        site_address: str = "",
        job_type: str = JobType.SERVICE_CALL,
        priority: str = JobPriority.NORMAL,
        description: str = "",
        scope_summary: str = "",
        scheduled_date: date | None = None,
        scheduled_time_start: time | None = None,
        scheduled_time_end: time | None = None,
        total_amount: Decimal | None = None,
        quote=None,
        created_by_id: int | None = None,
    ) -> Job:
        """
        New jobs start in `lead`, or `scheduled` when a date is given.
        Jobs created from an accepted quote start `approved` (or `scheduled`).
        """
        if scheduled_time_start and scheduled_time_end and scheduled_time_end < scheduled_time_start:
            raise ValidationError({"scheduled_time_end": "End time must be after start time."})

        if quote is not None:
            status = JobStatus.SCHEDULED if scheduled_date else JobStatus.APPROVED
        else:
            status = JobStatus.SCHEDULED if scheduled_date else JOB_MACHINE.initial

        now = timezone.now()
        try:
            with transaction.atomic():
                job = Job.objects.create(
                    job_number=next_document_number(
                        model=Job, field="job_number", prefix=year_prefix("JOB", now=now), width=4
                    ),
                    customer_id=customer_id,
                    customer_name=customer_name or "",
                    customer_email=customer_email or "",
                    site_address=site_address or "",
                    quote=quote,
                    job_type=job_type,
                    priority=priority,
                    status=status,
                    description=description or "",
                    scope_summary=scope_summary or "",
                    scheduled_date=scheduled_date,
                    scheduled_time_start=scheduled_time_start,
                    scheduled_time_end=scheduled_time_end,
                    total_amount=total_amount,
                    created_by_id=created_by_id,
                )
        except IntegrityError:
            if quote is not None and Job.objects.filter(quote=quote).exists():
                raise AlreadyConverted(f"Quote {quote.quote_number} already has a job.")
            raise

        JobService._log(job, ev.Created(status=status, job_number=job.job_number), actor_id=created_by_id, to_state=status)
        if quote is not None:
            JobService._log(
                job,
                ev.ConvertedFromQuote(
                    quote_id=str(quote.id),
                    quote_number=quote.quote_number,
                    total_amount=None if total_amount is None else str(total_amount),
                ),
                actor_id=created_by_id,
            )

        logger.info("job %s created status=%s quote=%s", job.job_number, status, getattr(quote, "id", None))
        return job

    @staticmethod
    @transaction.atomic
    def update_details(*, job_id: UUID, expected_version: int | None = None, **fields: Any) -> Job:
        allowed = {
            "customer_name", "customer_email", "site_address", "job_type", "priority",
            "description", "scope_summary", "scheduled_date", "scheduled_time_start",
            "scheduled_time_end", "total_amount", "completion_notes",
        }
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError({name: "Field cannot be changed." for name in sorted(unknown)})

        job = JobService._lock(job_id)
        check_version(job, expected_version)
        JobService._ensure_open(job)

        for name, value in fields.items():
            setattr(job, name, value)
        if fields:
            save_versioned(job, list(fields))
        return job

    # -------------------------
    # Status
    # -------------------------
    @staticmethod
    def _transition_locked(
        job: Job,
        event: str,
        *,
        actor_id: int | None,
        completion_notes: str | None = None,
    ) -> Job:
        prev = job.status
        resume_to = job.held_from_status or None
        job.status = JOB_MACHINE.apply(prev, event, resume_to=resume_to)
        changed = ["status"]
        now = timezone.now()

        if event == JobTransition.HOLD:
            job.held_from_status = prev
            changed.append("held_from_status")
        elif job.held_from_status:
            job.held_from_status = ""
            changed.append("held_from_status")

        if job.status == JobStatus.IN_PROGRESS and job.actual_start_time is None:
            job.actual_start_time = now
            changed.append("actual_start_time")

        if job.status == JobStatus.COMPLETED:
            job.completed_at = now
            changed.append("completed_at")
            if job.actual_end_time is None:
                job.actual_end_time = now
                changed.append("actual_end_time")
            if completion_notes is not None:
                job.completion_notes = completion_notes
                changed.append("completion_notes")

        save_versioned(job, changed)

        JobService._log(
            job,
            ev.StatusChanged(from_state=prev, to_state=job.status, event=str(event)),
            actor_id=actor_id,
            from_state=prev,
            to_state=job.status,
        )
        logger.info("job %s %s -> %s (%s)", job.job_number, prev, job.status, event)

        payload = {
            "job_id": str(job.id),
            "quote_id": str(job.quote_id) if job.quote_id else None,
            "from_state": prev,
            "to_state": job.status,
            "actor_id": actor_id,
        }
        publish(JOB_STATUS_CHANGED, payload)
        if job.status == JobStatus.COMPLETED:
            publish(JOB_COMPLETED, payload)
        return job

    @staticmethod
    @transaction.atomic
    def transition(
        *,
        job_id: UUID,
        event: str,
        actor_id: int | None = None,
        expected_version: int | None = None,
        completion_notes: str | None = None,
    ) -> Job:
        """
        Operator-driven status change. `invoice` and `pay` follow the invoice and are
        rejected here.
        """
        if event in JOB_BILLING_EVENTS:
            raise IllegalTransition(
                f"'{event}' is driven by billing and cannot be applied to a job directly.",
                event=event,
            )
        job = JobService._lock(job_id)
        check_version(job, expected_version)
        return JobService._transition_locked(job, event, actor_id=actor_id, completion_notes=completion_notes)

    @staticmethod
    @transaction.atomic
    def transition_to(
        *,
        job_id: UUID,
        status: str,
        actor_id: int | None = None,
        expected_version: int | None = None,
        completion_notes: str | None = None,
    ) -> Job:
        """
        Resolve a requested target status into the single event that reaches it.
        """
        job = JobService._lock(job_id)
        event = JOB_MACHINE.event_for(job.status, status, resume_to=job.held_from_status or None)
        return JobService.transition(
            job_id=job_id,
            event=event,
            actor_id=actor_id,
            expected_version=expected_version,
            completion_notes=completion_notes,
        )

    @staticmethod
    @transaction.atomic
    def patch(
        *,
        job_id: UUID,
        details: dict[str, Any],
        event: str | None = None,
        status: str | None = None,
        completion_notes: str | None = None,
        actor_id: int | None = None,
        expected_version: int | None = None,
    ) -> Job:
        """
        Field edits plus an optional status move, committed together or not at all.
        """
        if event is None and status is None:
            if completion_notes is not None:
                details = {**details, "completion_notes": completion_notes}
            return JobService.update_details(job_id=job_id, expected_version=expected_version, **details)

        if details:
            JobService.update_details(job_id=job_id, expected_version=expected_version, **details)
            expected_version = None
        if event is not None:
            return JobService.transition(
                job_id=job_id,
                event=event,
                actor_id=actor_id,
                expected_version=expected_version,
                completion_notes=completion_notes,
            )
        return JobService.transition_to(
            job_id=job_id,
            status=status,
            actor_id=actor_id,
            expected_version=expected_version,
            completion_notes=completion_notes,
        )

    @staticmethod
    @transaction.atomic
    def record_billing_event(
        *,
        job_id: UUID,
        event: str,
        actor_id: int | None = None,
        invoice=None,
    ) -> Job:
        """
        invoice / pay, applied on behalf of the invoice ledger.
        """
        if event not in JOB_BILLING_EVENTS:
            raise IllegalTransition(f"'{event}' is not a billing event.", event=event)

        job = JobService._lock(job_id)
        JobService._transition_locked(job, event, actor_id=actor_id)

        if event == JobTransition.INVOICE and invoice is not None:
            JobService._log(
                job,
                ev.Invoiced(
                    invoice_id=str(invoice.id),
                    invoice_number=invoice.invoice_number,
                    total=str(invoice.total),
                ),
                actor_id=actor_id,
            )
        return job

    # -------------------------
    # Assignments
    # -------------------------
    @staticmethod
    @transaction.atomic
    def assign(
        *,
        job_id: UUID,
        technician_id: int,
        role: str = AssignmentRole.TECHNICIAN,
        assigned_by_id: int | None = None,
    ) -> JobAssignment:
        job = JobService._lock(job_id)
        JobService._ensure_open(job)

        if job.assignments.filter(technician_id=technician_id, role=role).exists():
            raise AlreadyAssigned()

        assignment = JobAssignment.objects.create(
            job=job,
            technician_id=technician_id,
            role=role,
            assigned_by_id=assigned_by_id,
        )
        JobService._log(job, ev.Assigned(technician_id=technician_id, role=role), actor_id=assigned_by_id)
        return assignment

    @staticmethod
    @transaction.atomic
    def unassign(
        *,
        job_id: UUID,
        technician_id: int,
        role: str | None = None,
        actor_id: int | None = None,
    ) -> None:
        """
        Removes one assignment. Without `role`, the technician's oldest assignment goes.
        """
        job = JobService._lock(job_id)

        qs = job.assignments.filter(technician_id=technician_id)
        if role:
            qs = qs.filter(role=role)
        assignment = qs.order_by("created_at").first()
        if assignment is None:
            raise NotAssigned()

        removed_role = assignment.role
        assignment.delete()
        JobService._log(job, ev.Unassigned(technician_id=technician_id, role=removed_role), actor_id=actor_id)

    @staticmethod
    @transaction.atomic
    def acknowledge_assignment(*, job_id: UUID, technician_id: int) -> list[JobAssignment]:
        job = JobService._lock(job_id)

        rows = list(job.assignments.filter(technician_id=technician_id))
        if not rows:
            raise NotAssigned()

        now = timezone.now()
        for row in rows:
            if row.acknowledged_at is None:
                row.acknowledged_at = now
                row.save(update_fields=["acknowledged_at", "updated_at"])

        JobService._log(job, ev.AssignmentAcknowledged(technician_id=technician_id), actor_id=technician_id)
        return rows

    # -------------------------
    # Notes / photos / checklists
    # -------------------------
    @staticmethod
    @transaction.atomic
    def add_note(
        *,
        job_id: UUID,
        note: str,
        note_type: str = NoteType.GENERAL,
        is_customer_visible: bool = False,
        user_id: int | None = None,
    ) -> JobNote:
        job = JobService._lock(job_id)
        if not (note or "").strip():
            raise ValidationError({"note": "Note text is required."})

        row = JobNote.objects.create(
            job=job,
            note=note.strip(),
            note_type=note_type,
            is_customer_visible=is_customer_visible,
            user_id=user_id,
        )
        JobService._log(
            job,
            ev.NoteAdded(note_id=str(row.id), note_type=note_type, is_customer_visible=is_customer_visible),
            actor_id=user_id,
        )
        return row

    @staticmethod
    @transaction.atomic
    def add_photo(
        *,
        job_id: UUID,
        photo_url: str,
        caption: str = "",
        photo_type: str = "general",
        uploaded_by_id: int | None = None,
    ) -> JobPhoto:
        job = JobService._lock(job_id)
        row = JobPhoto.objects.create(
            job=job,
            photo_url=photo_url,
            caption=caption or "",
            photo_type=photo_type or "general",
            uploaded_by_id=uploaded_by_id,
        )
        JobService._log(job, ev.PhotoAdded(photo_id=str(row.id), photo_url=photo_url), actor_id=uploaded_by_id)
        return row

    @staticmethod
    @transaction.atomic
    def add_checklist(
        *,
        job_id: UUID,
        name: str,
        checklist_type: str = "general",
        items: list | None = None,
        actor_id: int | None = None,
    ) -> JobChecklist:
        job = JobService._lock(job_id)
        JobService._ensure_open(job)

        row = JobChecklist.objects.create(
            job=job,
            name=name,
            checklist_type=checklist_type or "general",
            items=items or [],
        )
        JobService._log(job, ev.ChecklistAdded(checklist_id=str(row.id), name=name), actor_id=actor_id)
        return row

    @staticmethod
    @transaction.atomic
    def complete_checklist(
        *,
        job_id: UUID,
        checklist_id: UUID,
        items: list | None = None,
        actor_id: int | None = None,
    ) -> JobChecklist:
        job = JobService._lock(job_id)
        row = job.checklists.select_for_update().get(id=checklist_id)
        if row.completed_at is not None:
            raise AlreadyTerminal("Checklist is already completed.")

        if items is not None:
            row.items = items
        row.completed_at = timezone.now()
        row.completed_by_id = actor_id
        row.save(update_fields=["items", "completed_at", "completed_by_id", "updated_at"])

        JobService._log(job, ev.ChecklistCompleted(checklist_id=str(row.id), name=row.name), actor_id=actor_id)
        return row
