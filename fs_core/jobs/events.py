# fs_core/jobs/events.py
"""
Typed payloads for the job event log. One frozen dataclass per event type; the stored
JSON is exactly `to_payload()` and `parse_event` turns it back into the variant.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, Optional, Type


@dataclass(frozen=True)
class JobLogEntry:
    event_type: ClassVar[str] = ""

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Created(JobLogEntry):
    event_type: ClassVar[str] = "created"
    status: str
    job_number: str


@dataclass(frozen=True)
class ConvertedFromQuote(JobLogEntry):
    event_type: ClassVar[str] = "converted_from_quote"
    quote_id: str
    quote_number: str
    total_amount: Optional[str] = None


@dataclass(frozen=True)
class StatusChanged(JobLogEntry):
    event_type: ClassVar[str] = "status_changed"
    from_state: str
    to_state: str
    event: str


@dataclass(frozen=True)
class Assigned(JobLogEntry):
    event_type: ClassVar[str] = "assigned"
    technician_id: int
    role: str


@dataclass(frozen=True)
class Unassigned(JobLogEntry):
    event_type: ClassVar[str] = "unassigned"
    technician_id: int
    role: str


@dataclass(frozen=True)
class AssignmentAcknowledged(JobLogEntry):
    event_type: ClassVar[str] = "assignment_acknowledged"
    technician_id: int


@dataclass(frozen=True)
class NoteAdded(JobLogEntry):
    event_type: ClassVar[str] = "note_added"
    note_id: str
    note_type: str
    is_customer_visible: bool


@dataclass(frozen=True)
class PhotoAdded(JobLogEntry):
    event_type: ClassVar[str] = "photo_added"
    photo_id: str
    photo_url: str


@dataclass(frozen=True)
class ChecklistAdded(JobLogEntry):
    event_type: ClassVar[str] = "checklist_added"
    checklist_id: str
    name: str


@dataclass(frozen=True)
class ChecklistCompleted(JobLogEntry):
    event_type: ClassVar[str] = "checklist_completed"
    checklist_id: str
    name: str


@dataclass(frozen=True)
class Invoiced(JobLogEntry):
    event_type: ClassVar[str] = "invoiced"
    invoice_id: str
    invoice_number: str
    total: str


EVENT_TYPES: Dict[str, Type[JobLogEntry]] = {
    cls.event_type: cls
    for cls in (
        Created,
        ConvertedFromQuote,
        StatusChanged,
        Assigned,
        Unassigned,
        AssignmentAcknowledged,
        NoteAdded,
        PhotoAdded,
        ChecklistAdded,
        ChecklistCompleted,
        Invoiced,
    )
}


def parse_event(event_type: str, payload: Dict[str, Any]) -> JobLogEntry:
    try:
        cls = EVENT_TYPES[event_type]
    except KeyError:
        raise ValueError(f"Unknown job event type: {event_type!r}")
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in (payload or {}).items() if k in known})
