# fs_core/workflow/machines.py
"""
Single source of truth for every status set, its transitions and its presentation
metadata (label + tone). Models take their `choices` from here and the API exposes
`describe()` output instead of re-declaring labels per consumer.
"""
from __future__ import annotations

from django.db import models

from fs_core.common.state_machine import StatusMachine, table


def _labels(choices_cls) -> dict[str, str]:
    return {member.value: member.label for member in choices_cls}


# -------------------------------------------------------------------
# Inspection
# -------------------------------------------------------------------

class InspectionStatus(models.TextChoices):
    SCHEDULED = "scheduled", "Scheduled"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class InspectionEvent(models.TextChoices):
    START = "start", "Start"
    COMPLETE = "complete", "Complete"
    CANCEL = "cancel", "Cancel"


INSPECTION_MACHINE = StatusMachine(
    kind="inspection",
    states=_labels(InspectionStatus),
    initial=InspectionStatus.SCHEDULED,
    terminal=frozenset({InspectionStatus.COMPLETED, InspectionStatus.CANCELLED}),
    transitions=table([
        (InspectionStatus.SCHEDULED, InspectionEvent.START, InspectionStatus.IN_PROGRESS),
        (InspectionStatus.IN_PROGRESS, InspectionEvent.COMPLETE, InspectionStatus.COMPLETED),
    ]),
    universal={InspectionEvent.CANCEL: InspectionStatus.CANCELLED},
    tones={
        InspectionStatus.SCHEDULED: "info",
        InspectionStatus.IN_PROGRESS: "warning",
        InspectionStatus.COMPLETED: "success",
        InspectionStatus.CANCELLED: "neutral",
    },
)


# -------------------------------------------------------------------
# Deficiency
# -------------------------------------------------------------------

class DeficiencyStatus(models.TextChoices):
    OPEN = "open", "Open"
    QUOTED = "quoted", "Quoted"
    APPROVED = "approved", "Approved"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"


class DeficiencyEvent(models.TextChoices):
    QUOTE = "quote", "Quote"
    APPROVE = "approve", "Approve"
    START = "start", "Start"
    COMPLETE = "complete", "Complete"
    RELEASE = "release", "Release"


DEFICIENCY_MACHINE = StatusMachine(
    kind="deficiency",
    states=_labels(DeficiencyStatus),
    initial=DeficiencyStatus.OPEN,
    terminal=frozenset({DeficiencyStatus.COMPLETED}),
    transitions=table([
        (DeficiencyStatus.OPEN, DeficiencyEvent.QUOTE, DeficiencyStatus.QUOTED),
        (DeficiencyStatus.QUOTED, DeficiencyEvent.APPROVE, DeficiencyStatus.APPROVED),
        (DeficiencyStatus.QUOTED, DeficiencyEvent.RELEASE, DeficiencyStatus.OPEN),
        (DeficiencyStatus.APPROVED, DeficiencyEvent.START, DeficiencyStatus.IN_PROGRESS),
        (DeficiencyStatus.IN_PROGRESS, DeficiencyEvent.COMPLETE, DeficiencyStatus.COMPLETED),
    ]),
    tones={
        DeficiencyStatus.OPEN: "danger",
        DeficiencyStatus.QUOTED: "info",
        DeficiencyStatus.APPROVED: "info",
        DeficiencyStatus.IN_PROGRESS: "warning",
        DeficiencyStatus.COMPLETED: "success",
    },
)


# -------------------------------------------------------------------
# Quote
# -------------------------------------------------------------------

class QuoteStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    VIEWED = "viewed", "Viewed"
    ACCEPTED = "accepted", "Accepted"
    DECLINED = "declined", "Declined"
    EXPIRED = "expired", "Expired"


class QuoteEvent(models.TextChoices):
    SEND = "send", "Send"
    VIEW = "view", "View"
    ACCEPT = "accept", "Accept"
    DECLINE = "decline", "Decline"
    EXPIRE = "expire", "Expire"


QUOTE_MACHINE = StatusMachine(
    kind="quote",
    states=_labels(QuoteStatus),
    initial=QuoteStatus.DRAFT,
    terminal=frozenset({QuoteStatus.ACCEPTED, QuoteStatus.DECLINED, QuoteStatus.EXPIRED}),
    transitions=table([
        (QuoteStatus.DRAFT, QuoteEvent.SEND, QuoteStatus.SENT),
        (QuoteStatus.SENT, QuoteEvent.VIEW, QuoteStatus.VIEWED),
        (QuoteStatus.SENT, QuoteEvent.ACCEPT, QuoteStatus.ACCEPTED),
        (QuoteStatus.SENT, QuoteEvent.DECLINE, QuoteStatus.DECLINED),
        (QuoteStatus.VIEWED, QuoteEvent.ACCEPT, QuoteStatus.ACCEPTED),
        (QuoteStatus.VIEWED, QuoteEvent.DECLINE, QuoteStatus.DECLINED),
        (QuoteStatus.SENT, QuoteEvent.EXPIRE, QuoteStatus.EXPIRED),
        (QuoteStatus.VIEWED, QuoteEvent.EXPIRE, QuoteStatus.EXPIRED),
    ]),
    tones={
        QuoteStatus.DRAFT: "neutral",
        QuoteStatus.SENT: "info",
        QuoteStatus.VIEWED: "info",
        QuoteStatus.ACCEPTED: "success",
        QuoteStatus.DECLINED: "danger",
        QuoteStatus.EXPIRED: "neutral",
    },
)


# -------------------------------------------------------------------
# Job
# -------------------------------------------------------------------

class JobStatus(models.TextChoices):
    LEAD = "lead", "Lead"
    QUOTED = "quoted", "Quoted"
    APPROVED = "approved", "Approved"
    PENDING = "pending", "Pending"
    SCHEDULED = "scheduled", "Scheduled"
    IN_PROGRESS = "in_progress", "In Progress"
    AWAITING_INSPECTION = "awaiting_inspection", "Awaiting Inspection"
    CORRECTIONS_REQUIRED = "corrections_required", "Corrections Required"
    PASSED = "passed", "Passed"
    ON_HOLD = "on_hold", "On Hold"
    COMPLETED = "completed", "Completed"
    INVOICED = "invoiced", "Invoiced"
    PAID = "paid", "Paid"
    CLOSED = "closed", "Closed"
    CANCELLED = "cancelled", "Cancelled"


class JobEvent(models.TextChoices):
    QUOTE = "quote", "Quote"
    APPROVE = "approve", "Approve"
    QUEUE = "queue", "Queue"
    SCHEDULE = "schedule", "Schedule"
    START = "start", "Start"
    REQUEST_INSPECTION = "request_inspection", "Request Inspection"
    FAIL_INSPECTION = "fail_inspection", "Fail Inspection"
    PASS_INSPECTION = "pass_inspection", "Pass Inspection"
    HOLD = "hold", "Hold"
    RESUME = "resume", "Resume"
    COMPLETE = "complete", "Complete"
    INVOICE = "invoice", "Invoice"
    PAY = "pay", "Pay"
    CLOSE = "close", "Close"
    CANCEL = "cancel", "Cancel"


# `invoice` and `pay` are driven by billing; job-side callers cannot emit them.
JOB_BILLING_EVENTS = frozenset({JobEvent.INVOICE, JobEvent.PAY})

JOB_ACTIVE_STATES = frozenset({
    JobStatus.APPROVED,
    JobStatus.PENDING,
    JobStatus.SCHEDULED,
    JobStatus.IN_PROGRESS,
    JobStatus.AWAITING_INSPECTION,
    JobStatus.CORRECTIONS_REQUIRED,
    JobStatus.PASSED,
})

JOB_MACHINE = StatusMachine(
    kind="job",
    states=_labels(JobStatus),
    initial=JobStatus.LEAD,
    terminal=frozenset({JobStatus.CLOSED, JobStatus.CANCELLED}),
    transitions=table([
        (JobStatus.LEAD, JobEvent.QUOTE, JobStatus.QUOTED),
        (JobStatus.QUOTED, JobEvent.APPROVE, JobStatus.APPROVED),
        (JobStatus.APPROVED, JobEvent.QUEUE, JobStatus.PENDING),
        (JobStatus.PENDING, JobEvent.SCHEDULE, JobStatus.SCHEDULED),
        (JobStatus.SCHEDULED, JobEvent.START, JobStatus.IN_PROGRESS),
        (JobStatus.IN_PROGRESS, JobEvent.REQUEST_INSPECTION, JobStatus.AWAITING_INSPECTION),
        (JobStatus.AWAITING_INSPECTION, JobEvent.FAIL_INSPECTION, JobStatus.CORRECTIONS_REQUIRED),
        (JobStatus.AWAITING_INSPECTION, JobEvent.PASS_INSPECTION, JobStatus.PASSED),
        (JobStatus.CORRECTIONS_REQUIRED, JobEvent.START, JobStatus.IN_PROGRESS),
        (JobStatus.IN_PROGRESS, JobEvent.COMPLETE, JobStatus.COMPLETED),
        (JobStatus.PASSED, JobEvent.COMPLETE, JobStatus.COMPLETED),
        (JobStatus.COMPLETED, JobEvent.INVOICE, JobStatus.INVOICED),
        (JobStatus.INVOICED, JobEvent.PAY, JobStatus.PAID),
        (JobStatus.PAID, JobEvent.CLOSE, JobStatus.CLOSED),
    ]),
    universal={JobEvent.CANCEL: JobStatus.CANCELLED},
    hold_event=JobEvent.HOLD,
    resume_event=JobEvent.RESUME,
    hold_state=JobStatus.ON_HOLD,
    holdable=JOB_ACTIVE_STATES,
    tones={
        JobStatus.LEAD: "neutral",
        JobStatus.QUOTED: "info",
        JobStatus.APPROVED: "info",
        JobStatus.PENDING: "warning",
        JobStatus.SCHEDULED: "warning",
        JobStatus.IN_PROGRESS: "warning",
        JobStatus.AWAITING_INSPECTION: "info",
        JobStatus.CORRECTIONS_REQUIRED: "danger",
        JobStatus.PASSED: "success",
        JobStatus.ON_HOLD: "neutral",
        JobStatus.COMPLETED: "success",
        JobStatus.INVOICED: "info",
        JobStatus.PAID: "success",
        JobStatus.CLOSED: "neutral",
        JobStatus.CANCELLED: "neutral",
    },
)


# -------------------------------------------------------------------
# Invoice
# -------------------------------------------------------------------

class InvoiceStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    VIEWED = "viewed", "Viewed"
    PARTIAL = "partial", "Partial"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


# Derived, never stored.
INVOICE_OVERDUE = "overdue"


class InvoiceEvent(models.TextChoices):
    SEND = "send", "Send"
    VIEW = "view", "View"
    PAY_PARTIAL = "pay_partial", "Partial Payment"
    PAY_FULL = "pay_full", "Full Payment"
    VOID = "void", "Void"
    REFUND = "refund", "Refund"


INVOICE_MACHINE = StatusMachine(
    kind="invoice",
    states=_labels(InvoiceStatus),
    initial=InvoiceStatus.DRAFT,
    terminal=frozenset({InvoiceStatus.CANCELLED, InvoiceStatus.REFUNDED}),
    transitions=table([
        (InvoiceStatus.DRAFT, InvoiceEvent.SEND, InvoiceStatus.SENT),
        (InvoiceStatus.SENT, InvoiceEvent.SEND, InvoiceStatus.SENT),
        (InvoiceStatus.SENT, InvoiceEvent.VIEW, InvoiceStatus.VIEWED),
        (InvoiceStatus.DRAFT, InvoiceEvent.PAY_PARTIAL, InvoiceStatus.PARTIAL),
        (InvoiceStatus.SENT, InvoiceEvent.PAY_PARTIAL, InvoiceStatus.PARTIAL),
        (InvoiceStatus.VIEWED, InvoiceEvent.PAY_PARTIAL, InvoiceStatus.PARTIAL),
        (InvoiceStatus.PARTIAL, InvoiceEvent.PAY_PARTIAL, InvoiceStatus.PARTIAL),
        (InvoiceStatus.DRAFT, InvoiceEvent.PAY_FULL, InvoiceStatus.PAID),
        (InvoiceStatus.SENT, InvoiceEvent.PAY_FULL, InvoiceStatus.PAID),
        (InvoiceStatus.VIEWED, InvoiceEvent.PAY_FULL, InvoiceStatus.PAID),
        (InvoiceStatus.PARTIAL, InvoiceEvent.PAY_FULL, InvoiceStatus.PAID),
        (InvoiceStatus.PAID, InvoiceEvent.REFUND, InvoiceStatus.REFUNDED),
    ]),
    universal={InvoiceEvent.VOID: InvoiceStatus.CANCELLED},
    universal_excludes={InvoiceEvent.VOID: frozenset({InvoiceStatus.PAID})},
    tones={
        InvoiceStatus.DRAFT: "neutral",
        InvoiceStatus.SENT: "info",
        InvoiceStatus.VIEWED: "info",
        InvoiceStatus.PARTIAL: "warning",
        InvoiceStatus.PAID: "success",
        InvoiceStatus.CANCELLED: "neutral",
        InvoiceStatus.REFUNDED: "neutral",
    },
)
