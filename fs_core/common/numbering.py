# fs_core/common/numbering.py
from __future__ import annotations

import re

from django.db.models.functions import Length
from django.utils import timezone


def year_prefix(code: str, *, now=None) -> str:
    """
    year_prefix("QT") -> "QT-2026-"
    """
    now = now or timezone.now()
    return f"{code}-{now.year}-"


def next_document_number(*, model, field: str, prefix: str, width: int) -> str:
    """
    Next human-facing document number for `model.field` under `prefix`.
    Must be called inside a transaction; the latest row is locked so two writers
    cannot hand out the same number.

    next_document_number(model=Invoice, field="invoice_number", prefix="INV-", width=6)
      -> "INV-000001", "INV-000002", ...
    """
    latest = (
        model.objects.select_for_update()
        .filter(**{f"{field}__startswith": prefix})
        .order_by(Length(field).desc(), f"-{field}")
        .values_list(field, flat=True)
        .first()
    )

    if not latest:
        return f"{prefix}{1:0{width}d}"

    m = re.match(rf"^{re.escape(prefix)}(\d+)$", latest.strip())
    if not m:
        return f"{prefix}{timezone.now().strftime('%y%m%d%H%M%S')}"

    n = int(m.group(1)) + 1
    return f"{prefix}{n:0{width}d}"
