# fs_core/inspections/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from fs_core.inspections.models import Deficiency, Inspection


def inspections_filtered(
    *,
    status: str | None = None,
    customer_id: UUID | None = None,
    technician_id: int | None = None,
) -> QuerySet[Inspection]:
    qs = Inspection.objects.all().order_by("-created_at")

    if status:
        qs = qs.filter(status=status)
    if customer_id:
        qs = qs.filter(customer_id=customer_id)
    if technician_id is not None:
        qs = qs.filter(technician_id=technician_id)

    return qs


def deficiencies_filtered(
    *,
    inspection_id: UUID | None = None,
    status: str | None = None,
    severity: str | None = None,
    quote_id: UUID | None = None,
) -> QuerySet[Deficiency]:
    qs = Deficiency.objects.select_related("inspection").order_by("created_at")

    if inspection_id:
        qs = qs.filter(inspection_id=inspection_id)
    if status:
        qs = qs.filter(status=status)
    if severity:
        qs = qs.filter(severity=severity)
    if quote_id:
        qs = qs.filter(quote_id=quote_id)

    return qs
