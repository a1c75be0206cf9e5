# fs_core/audit/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from django.db import transaction

from fs_core.audit.models import AuditEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    event_code: str
    entity_type: str
    entity_id: UUID
    actor_user_id: int | None
    metadata: Dict[str, Any]


class AuditService:
    """
    Central audit writer. Persists into AuditEvent (immutable).
    """

    @staticmethod
    @transaction.atomic
    def log(
        *,
        event_code: str,
        entity_type: str,
        entity_id: UUID,
        actor_user_id: int | None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        metadata = metadata or {}

        AuditEvent.objects.create(
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )
        logger.debug("audit %s %s:%s actor=%s", event_code, entity_type, entity_id, actor_user_id)

        return AuditRecord(
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )
