# fs_core/jobs/selectors.py
from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

from django.db.models import QuerySet
from rest_framework.exceptions import ValidationError

from fs_core.jobs.filters import JobFilter
from fs_core.jobs.models import Job, JobEvent


def jobs_qs() -> QuerySet[Job]:
    return Job.objects.prefetch_related("assignments")


def jobs_filtered(*, params: Mapping[str, Any]) -> QuerySet[Job]:
    """
    Query params: status (repeatable), priority, job_type, customer_id, quote,
    technician_id, scheduled_from, scheduled_to, search.
    """
    f = JobFilter(params, queryset=jobs_qs().order_by("-created_at"))
    if not f.is_valid():
        raise ValidationError(f.errors)
    return f.qs


def get_job(*, job_id: UUID) -> Job:
    return jobs_qs().prefetch_related("notes", "photos", "checklists").get(id=job_id)


def job_events(*, job_id: UUID, event_type: str | None = None) -> QuerySet[JobEvent]:
    qs = JobEvent.objects.filter(job_id=job_id).order_by("occurred_at", "created_at")
    if event_type:
        qs = qs.filter(event_type=event_type)
    return qs
