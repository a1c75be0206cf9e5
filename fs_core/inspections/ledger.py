# fs_core/inspections/ledger.py
"""
Deficiency ledger: records inspection findings and guards the rule that a deficiency
sits on at most one active quote at a time.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from django.db import transaction
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from fs_core.audit.services import AuditService
from fs_core.common.exceptions import AlreadyQuoted, AlreadyTerminal, InvalidAmount
from fs_core.inspections.models import Deficiency, Inspection
from fs_core.workflow.machines import (
    DEFICIENCY_MACHINE,
    DeficiencyEvent,
    DeficiencyStatus,
    InspectionStatus,
)

logger = logging.getLogger(__name__)


def _unique_ids(ids: Iterable[UUID]) -> list[UUID]:
    out: list[UUID] = []
    for raw in ids:
        value = raw if isinstance(raw, UUID) else UUID(str(raw))
        if value not in out:
            out.append(value)
    if not out:
        raise ValidationError({"deficiency_ids": "At least one deficiency id is required."})
    return out


class DeficiencyLedger:
    @staticmethod
    @transaction.atomic
    def record(
        *,
        inspection_id: UUID,
        description: str,
        category: str = "other",
        severity: str = "minor",
        recommended_action: str = "",
        location: str = "",
        estimated_cost_low: Decimal | None = None,
        estimated_cost_high: Decimal | None = None,
        created_by_id: int | None = None,
    ) -> Deficiency:
        """
        Record a finding against an inspection. Status is always `open` on creation,
        whatever the caller sends.
        """
        inspection = Inspection.objects.select_for_update().get(id=inspection_id)
        if inspection.status == InspectionStatus.CANCELLED:
            raise AlreadyTerminal("Cannot record deficiencies on a cancelled inspection.")

        if not (description or "").strip():
            raise ValidationError({"description": "Description is required."})

        for name, value in (("estimated_cost_low", estimated_cost_low), ("estimated_cost_high", estimated_cost_high)):
            if value is not None and value < 0:
                raise InvalidAmount(f"{name} must not be negative.")
        if (
            estimated_cost_low is not None
            and estimated_cost_high is not None
            and estimated_cost_low > estimated_cost_high
        ):
            raise ValidationError({"estimated_cost_high": "High estimate must be >= low estimate."})

        deficiency = Deficiency.objects.create(
            inspection=inspection,
            category=category,
            severity=severity,
            description=description.strip(),
            recommended_action=recommended_action or "",
            location=location or "",
            estimated_cost_low=estimated_cost_low,
            estimated_cost_high=estimated_cost_high,
            status=DeficiencyStatus.OPEN,
            created_by_id=created_by_id,
        )

        AuditService.log(
            event_code="deficiency.recorded",
            entity_type="Deficiency",
            entity_id=deficiency.id,
            actor_user_id=created_by_id,
            metadata={"inspection_id": str(inspection.id), "severity": severity},
        )
        return deficiency

    @staticmethod
    def select(*, deficiency_ids: Iterable[UUID]) -> list[Deficiency]:
        """
        Load the requested deficiencies, all of which must currently be `open`.
        This is a read-side check; mark_quoted is the authoritative guard.
        """
        ids = _unique_ids(deficiency_ids)
        rows = list(Deficiency.objects.filter(id__in=ids).order_by("created_at"))

        found = {d.id for d in rows}
        missing = [str(i) for i in ids if i not in found]
        if missing:
            raise ValidationError({"deficiency_ids": f"Unknown deficiencies: {', '.join(missing)}"})

        taken = [str(d.id) for d in rows if d.status != DeficiencyStatus.OPEN]
        if taken:
            raise AlreadyQuoted(f"Deficiencies not open for quoting: {', '.join(taken)}")

        # keep the caller's order
        by_id = {d.id: d for d in rows}
        return [by_id[i] for i in ids]

    @staticmethod
    @transaction.atomic
    def mark_quoted(*, deficiency_ids: Iterable[UUID], quote_id: UUID, actor_user_id: int | None = None) -> int:
        """
        open -> quoted for every id, or for none of them.
        A single conditional UPDATE; if another writer got to any row first the row count
        comes up short and the whole transaction is rolled back.
        """
        ids = _unique_ids(deficiency_ids)

        updated = Deficiency.objects.filter(id__in=ids, status=DeficiencyStatus.OPEN).update(
            status=DEFICIENCY_MACHINE.apply(DeficiencyStatus.OPEN, DeficiencyEvent.QUOTE),
            quote_id=quote_id,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if updated != len(ids):
            logger.info("mark_quoted lost race for quote %s (%s of %s rows)", quote_id, updated, len(ids))
            raise AlreadyQuoted()

        for deficiency_id in ids:
            AuditService.log(
                event_code="deficiency.quoted",
                entity_type="Deficiency",
                entity_id=deficiency_id,
                actor_user_id=actor_user_id,
                metadata={"quote_id": str(quote_id)},
            )
        return updated

    @staticmethod
    @transaction.atomic
    def release(
        *,
        deficiency_ids: Iterable[UUID],
        quote_id: UUID | None = None,
        actor_user_id: int | None = None,
    ) -> int:
        """
        quoted -> open. Idempotent: ids that are already open (or bound to another quote
        when quote_id is given) are left alone.
        """
        ids = list(deficiency_ids)
        if not ids:
            return 0

        qs = Deficiency.objects.filter(id__in=ids, status=DeficiencyStatus.QUOTED)
        if quote_id is not None:
            qs = qs.filter(quote_id=quote_id)

        released = list(qs.values_list("id", flat=True))
        if not released:
            return 0

        count = Deficiency.objects.filter(id__in=released, status=DeficiencyStatus.QUOTED).update(
            status=DEFICIENCY_MACHINE.apply(DeficiencyStatus.QUOTED, DeficiencyEvent.RELEASE),
            quote=None,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )

        for deficiency_id in released:
            AuditService.log(
                event_code="deficiency.released",
                entity_type="Deficiency",
                entity_id=deficiency_id,
                actor_user_id=actor_user_id,
                metadata={"quote_id": str(quote_id) if quote_id else None},
            )
        logger.info("released %s deficiencies from quote %s", count, quote_id)
        return count

    @staticmethod
    @transaction.atomic
    def advance(*, quote_id: UUID, event: str, actor_user_id: int | None = None) -> int:
        """
        Move every deficiency bound to `quote_id` through `event` (approve / start / complete).
        Rows not in a source state for the event are skipped.
        """
        moved = 0
        sources = [src for (src, ev) in DEFICIENCY_MACHINE.transitions if ev == event]
        for src in sources:
            target = DEFICIENCY_MACHINE.apply(src, event)
            ids = list(
                Deficiency.objects.filter(quote_id=quote_id, status=src).values_list("id", flat=True)
            )
            if not ids:
                continue
            moved += Deficiency.objects.filter(id__in=ids, status=src).update(
                status=target,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )
            for deficiency_id in ids:
                AuditService.log(
                    event_code=f"deficiency.{target}",
                    entity_type="Deficiency",
                    entity_id=deficiency_id,
                    actor_user_id=actor_user_id,
                    metadata={"quote_id": str(quote_id), "from": src, "to": target},
                )
        return moved
