# fs_core/audit/selectors.py
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from django.db.models import QuerySet

from fs_core.audit.models import AuditEvent


def list_audit_events(
    *,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
    event_code: str | None = None,
    actor_user_id: int | None = None,
    since: datetime | None = None,
) -> QuerySet[AuditEvent]:
    """
    Newest first. An `event_code` ending in "." is a prefix ("invoice." = every invoice event).
    """
    qs = AuditEvent.objects.select_related("actor_user")

    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id:
        qs = qs.filter(entity_id=entity_id)
    if event_code:
        if event_code.endswith("."):
            qs = qs.filter(event_code__startswith=event_code)
        else:
            qs = qs.filter(event_code=event_code)
    if actor_user_id is not None:
        qs = qs.filter(actor_user_id=actor_user_id)
    if since is not None:
        qs = qs.filter(occurred_at__gte=since)

    return qs.order_by("-occurred_at", "-created_at")


def entity_trail(*, entity_type: str, entity_id: UUID) -> QuerySet[AuditEvent]:
    """Oldest first: the life story of one document."""
    return (
        AuditEvent.objects.select_related("actor_user")
        .filter(entity_type=entity_type, entity_id=entity_id)
        .order_by("occurred_at", "created_at")
    )
