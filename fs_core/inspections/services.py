# fs_core/inspections/services.py
from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from fs_core.audit.services import AuditService
from fs_core.common.exceptions import AlreadyTerminal
from fs_core.common.numbering import next_document_number, year_prefix
from fs_core.inspections.models import ChecklistResult, Inspection, InspectionType
from fs_core.workflow.machines import INSPECTION_MACHINE, InspectionEvent, InspectionStatus

logger = logging.getLogger(__name__)


class InspectionService:
    @staticmethod
    @transaction.atomic
    def create(
        *,
        customer_id: UUID | None = None,
        customer_name: str = "",
        site_address: str = "",
        inspection_type: str = InspectionType.FIRE_ALARM,
        scheduled_date: date | None = None,
        technician_id: int | None = None,
        notes: str = "",
        actor_user_id: int | None = None,
    ) -> Inspection:
        number = next_document_number(
            model=Inspection,
            field="inspection_number",
            prefix=year_prefix("INS"),
            width=4,
        )
        inspection = Inspection.objects.create(
            inspection_number=number,
            customer_id=customer_id,
            customer_name=customer_name or "",
            site_address=site_address or "",
            inspection_type=inspection_type,
            status=INSPECTION_MACHINE.initial,
            scheduled_date=scheduled_date,
            technician_id=technician_id,
            notes=notes or "",
        )
        AuditService.log(
            event_code="inspection.scheduled",
            entity_type="Inspection",
            entity_id=inspection.id,
            actor_user_id=actor_user_id,
            metadata={"inspection_number": number},
        )
        return inspection

    @staticmethod
    def _apply(inspection: Inspection, event: str, *, actor_user_id: int | None) -> str:
        prev = inspection.status
        inspection.status = INSPECTION_MACHINE.apply(prev, event)
        AuditService.log(
            event_code=f"inspection.{event}",
            entity_type="Inspection",
            entity_id=inspection.id,
            actor_user_id=actor_user_id,
            metadata={"from": prev, "to": inspection.status},
        )
        logger.info("inspection %s %s -> %s", inspection.inspection_number, prev, inspection.status)
        return prev

    @staticmethod
    @transaction.atomic
    def start(*, inspection_id: UUID, actor_user_id: int | None = None) -> Inspection:
        inspection = Inspection.objects.select_for_update().get(id=inspection_id)
        InspectionService._apply(inspection, InspectionEvent.START, actor_user_id=actor_user_id)
        inspection.started_at = inspection.started_at or timezone.now()
        inspection.save(update_fields=["status", "started_at", "updated_at"])
        return inspection

    @staticmethod
    @transaction.atomic
    def complete(
        *,
        inspection_id: UUID,
        passed: bool | None = None,
        pass_with_deficiencies: bool | None = None,
        notes: str | None = None,
        actor_user_id: int | None = None,
    ) -> Inspection:
        inspection = Inspection.objects.select_for_update().get(id=inspection_id)
        InspectionService._apply(inspection, InspectionEvent.COMPLETE, actor_user_id=actor_user_id)

        inspection.completed_at = timezone.now()
        if passed is not None:
            inspection.passed = passed
        if pass_with_deficiencies is not None:
            inspection.pass_with_deficiencies = pass_with_deficiencies
        elif passed and inspection.deficiencies.exists():
            inspection.pass_with_deficiencies = True
        if notes is not None:
            inspection.notes = notes

        inspection.save(
            update_fields=["status", "completed_at", "passed", "pass_with_deficiencies", "notes", "updated_at"]
        )
        return inspection

    @staticmethod
    @transaction.atomic
    def cancel(*, inspection_id: UUID, actor_user_id: int | None = None) -> Inspection:
        inspection = Inspection.objects.select_for_update().get(id=inspection_id)
        InspectionService._apply(inspection, InspectionEvent.CANCEL, actor_user_id=actor_user_id)
        inspection.save(update_fields=["status", "updated_at"])
        return inspection

    @staticmethod
    @transaction.atomic
    def delete(*, inspection_id: UUID, actor_user_id: int | None = None) -> None:
        """
        Deletes the inspection with its checklist results and deficiencies.
        Completed inspections are kept (Inspection.delete raises).
        """
        inspection = Inspection.objects.select_for_update().get(id=inspection_id)
        number = inspection.inspection_number
        inspection_pk = inspection.id
        inspection.delete()
        AuditService.log(
            event_code="inspection.deleted",
            entity_type="Inspection",
            entity_id=inspection_pk,
            actor_user_id=actor_user_id,
            metadata={"inspection_number": number},
        )

    @staticmethod
    @transaction.atomic
    def add_checklist_result(
        *,
        inspection_id: UUID,
        item_label: str,
        result: str,
        notes: str = "",
    ) -> ChecklistResult:
        inspection = Inspection.objects.select_for_update().get(id=inspection_id)
        if inspection.status == InspectionStatus.CANCELLED:
            raise AlreadyTerminal("Inspection is cancelled.")
        return ChecklistResult.objects.create(
            inspection=inspection,
            item_label=item_label,
            result=result,
            notes=notes or "",
        )
