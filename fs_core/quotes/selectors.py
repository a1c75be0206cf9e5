# fs_core/quotes/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from fs_core.quotes.models import Quote


def quotes_filtered(
    *,
    status: str | None = None,
    customer_id: UUID | None = None,
    inspection_id: UUID | None = None,
) -> QuerySet[Quote]:
    qs = Quote.objects.prefetch_related("lines").order_by("-created_at")

    if status:
        qs = qs.filter(status=status)
    if customer_id:
        qs = qs.filter(customer_id=customer_id)
    if inspection_id:
        qs = qs.filter(inspection_id=inspection_id)

    return qs


def get_quote(*, quote_id: UUID) -> Quote:
    return Quote.objects.prefetch_related("lines").get(id=quote_id)
