# fs_core/conversions/subscribers.py
"""
Reactions to domain events published by the quote, job and billing services.
Handlers run synchronously inside the publisher's transaction.
"""
from __future__ import annotations

import logging
from uuid import UUID

from fs_core.billing.services import JOB_PAID
from fs_core.common.events import subscribe
from fs_core.conversions.services import ConversionCoordinator
from fs_core.inspections.ledger import DeficiencyLedger
from fs_core.jobs.services import JOB_COMPLETED, JOB_STATUS_CHANGED
from fs_core.quotes.services import QUOTE_ACCEPTED
from fs_core.workflow.machines import DeficiencyEvent, JobStatus

logger = logging.getLogger(__name__)

_DEFICIENCY_EVENT_FOR_JOB_STATUS = {
    JobStatus.IN_PROGRESS: DeficiencyEvent.START,
    JobStatus.COMPLETED: DeficiencyEvent.COMPLETE,
}


@subscribe(QUOTE_ACCEPTED)
def approve_quoted_deficiencies(payload: dict) -> None:
    moved = DeficiencyLedger.advance(
        quote_id=UUID(str(payload["quote_id"])),
        event=DeficiencyEvent.APPROVE,
        actor_user_id=payload.get("actor_user_id"),
    )
    logger.debug("quote %s accepted: %s deficiencies approved", payload["quote_id"], moved)


@subscribe(JOB_STATUS_CHANGED)
def advance_job_deficiencies(payload: dict) -> None:
    event = _DEFICIENCY_EVENT_FOR_JOB_STATUS.get(payload.get("to_state"))
    if event is None or not payload.get("quote_id"):
        return
    DeficiencyLedger.advance(
        quote_id=UUID(str(payload["quote_id"])),
        event=event,
        actor_user_id=payload.get("actor_id"),
    )


@subscribe(JOB_COMPLETED)
def notify_job_completed(payload: dict) -> None:
    ConversionCoordinator.on_job_completed(payload)


@subscribe(JOB_PAID)
def mark_job_paid(payload: dict) -> None:
    ConversionCoordinator.on_job_paid(
        job_id=UUID(str(payload["job_id"])),
        actor_user_id=payload.get("actor_id"),
    )
