# fs_core/quotes/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from fractions import Fraction
from typing import Any, Iterable
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from fs_core.audit.services import AuditService
from fs_core.common.concurrency import check_version, save_versioned
from fs_core.common.events import publish
from fs_core.common.exceptions import AlreadyTerminal, QuoteLocked
from fs_core.common.models import LineItemType
from fs_core.common.money import (
    DocumentTotals,
    Money,
    compute_totals,
    line_total,
    multiply_by_rational,
    percentage_of,
    stored_quantity,
)
from fs_core.common.numbering import next_document_number, year_prefix
from fs_core.inspections.ledger import DeficiencyLedger
from fs_core.inspections.models import Deficiency, Inspection
from fs_core.quotes.models import Quote, QuoteLineItem
from fs_core.workflow.machines import QUOTE_MACHINE, QuoteEvent, QuoteStatus

logger = logging.getLogger(__name__)

QUOTE_ACCEPTED = "quote.accepted"

TOTAL_FIELDS = ["subtotal", "discount_amount", "tax_amount", "total"]


def default_tax_rate() -> Decimal:
    return Decimal(str(getattr(settings, "FS_DEFAULT_TAX_RATE", "0")))


def _quote_valid_days() -> int:
    return int(getattr(settings, "FS_QUOTE_VALID_DAYS", 30))


@dataclass(frozen=True)
class QuoteAccepted:
    quote_id: UUID
    total: Decimal
    actor_user_id: int | None = None

    def as_payload(self) -> dict[str, Any]:
        return {
            "quote_id": str(self.quote_id),
            "total": str(self.total),
            "actor_user_id": self.actor_user_id,
        }


@dataclass(frozen=True)
class PricingPolicy:
    """
    How a deficiency's estimated cost range becomes a unit price:
      both bounds -> midpoint; one bound -> that bound; none -> 0.00
    then markup_percent is added on top (one rounding).
    """
    markup_percent: Decimal = Decimal("0")
    item_type: str = LineItemType.SERVICE

    def unit_price_for(self, deficiency: Deficiency) -> Money:
        low = deficiency.estimated_cost_low
        high = deficiency.estimated_cost_high

        if low is not None and high is not None:
            base = multiply_by_rational(Money.from_decimal(low) + Money.from_decimal(high), Fraction(1, 2))
        elif low is not None:
            base = Money.from_decimal(low)
        elif high is not None:
            base = Money.from_decimal(high)
        else:
            base = Money.zero()

        if self.markup_percent:
            base = base + percentage_of(base, self.markup_percent)
        return base

    @staticmethod
    def describe(deficiency: Deficiency) -> str:
        text = f"{deficiency.get_category_display()} Repair: {deficiency.description}"
        if deficiency.recommended_action:
            text += f"\n\nRecommended: {deficiency.recommended_action}"
        return text[:500]


class QuoteService:
    # -------------------------
    # Internals
    # -------------------------
    @staticmethod
    def _lock(quote_id: UUID) -> Quote:
        return Quote.objects.select_for_update().get(id=quote_id)

    @staticmethod
    def _ensure_draft(quote: Quote) -> None:
        if quote.status != QuoteStatus.DRAFT:
            raise QuoteLocked(f"Quote {quote.quote_number} is {quote.status}; lines can only change while draft.")

    @staticmethod
    def _priced(quantity, unit_price) -> tuple[Decimal, Decimal, Decimal]:
        """
        Returns (quantity, unit_price, line_total) as storable decimals.
        Negative values raise InvalidAmount; zero quantity is malformed input.
        """
        qty = stored_quantity(quantity)
        price = Money.from_decimal(unit_price)
        total = line_total(qty, price)
        if qty == 0:
            raise ValidationError({"quantity": "Quantity must be > 0."})
        return qty, price.to_decimal(), total.to_decimal()

    @staticmethod
    def _recalc_totals(quote: Quote) -> DocumentTotals:
        totals = compute_totals(
            (Money.from_decimal(lt) for lt in quote.lines.order_by("position", "created_at").values_list("line_total", flat=True)),
            tax_rate=quote.tax_rate,
            discount_rate=quote.discount_rate,
        )
        quote.subtotal = totals.subtotal.to_decimal()
        quote.discount_amount = totals.discount_amount.to_decimal()
        quote.tax_amount = totals.tax_amount.to_decimal()
        quote.total = totals.total.to_decimal()
        return totals

    @staticmethod
    def _next_position(quote: Quote) -> int:
        last = quote.lines.order_by("-position").values_list("position", flat=True).first()
        return 0 if last is None else last + 1

    @staticmethod
    def _create_line(
        quote: Quote,
        *,
        description: str,
        quantity=Decimal("1"),
        unit_price=Decimal("0.00"),
        item_type: str = LineItemType.SERVICE,
        deficiency_id: UUID | None = None,
    ) -> QuoteLineItem:
        if not (description or "").strip():
            raise ValidationError({"description": "Description is required."})
        qty, price, total = QuoteService._priced(quantity, unit_price)
        return QuoteLineItem.objects.create(
            quote=quote,
            position=QuoteService._next_position(quote),
            description=description.strip(),
            quantity=qty,
            unit_price=price,
            item_type=item_type,
            line_total=total,
            deficiency_id=deficiency_id,
        )

    @staticmethod
    def _deficiency_ids(quote: Quote) -> list[UUID]:
        return list(
            quote.lines.exclude(deficiency_id=None).values_list("deficiency_id", flat=True)
        )

    # -------------------------
    # Creation
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create(
        *,
        customer_id: UUID | None = None,
        customer_name: str = "",
        customer_email: str = "",
        site_address: str = "",
        line_items: Iterable[dict] = (),
        tax_rate: Decimal | None = None,
        discount_rate: Decimal | None = None,
        inspection_id: UUID | None = None,
        expires_at=None,
        notes: str = "",
        created_by_id: int | None = None,
    ) -> Quote:
        now = timezone.now()
        quote = Quote.objects.create(
            quote_number=next_document_number(
                model=Quote, field="quote_number", prefix=year_prefix("QT", now=now), width=3
            ),
            customer_id=customer_id,
            customer_name=customer_name or "",
            customer_email=customer_email or "",
            site_address=site_address or "",
            inspection_id=inspection_id,
            tax_rate=default_tax_rate() if tax_rate is None else tax_rate,
            discount_rate=discount_rate,
            status=QUOTE_MACHINE.initial,
            expires_at=expires_at or (now + timedelta(days=_quote_valid_days())),
            notes=notes or "",
            created_by_id=created_by_id,
        )

        for item in line_items:
            QuoteService._create_line(
                quote,
                description=item.get("description", ""),
                quantity=item.get("quantity", Decimal("1")),
                unit_price=item.get("unit_price", Decimal("0.00")),
                item_type=item.get("item_type", LineItemType.SERVICE),
            )

        QuoteService._recalc_totals(quote)
        quote.save(update_fields=TOTAL_FIELDS + ["updated_at"])

        AuditService.log(
            event_code="quote.created",
            entity_type="Quote",
            entity_id=quote.id,
            actor_user_id=created_by_id,
            metadata={"quote_number": quote.quote_number, "total": str(quote.total)},
        )
        logger.info("quote %s created total=%s", quote.quote_number, quote.total)
        return quote

    @staticmethod
    @transaction.atomic
    def from_deficiencies(
        *,
        deficiency_ids: Iterable[UUID],
        pricing_policy: PricingPolicy | None = None,
        inspection_id: UUID | None = None,
        tax_rate: Decimal | None = None,
        discount_rate: Decimal | None = None,
        created_by_id: int | None = None,
    ) -> Quote:
        """
        One service line per deficiency (quantity 1), then every deficiency is marked
        quoted against the new quote. If any of them was taken in the meantime the whole
        quote is rolled back with AlreadyQuoted.
        """
        policy = pricing_policy or PricingPolicy()
        deficiencies = DeficiencyLedger.select(deficiency_ids=deficiency_ids)

        if inspection_id is not None:
            inspection = Inspection.objects.get(id=inspection_id)
        else:
            inspection = deficiencies[0].inspection

        quote = QuoteService.create(
            customer_id=inspection.customer_id,
            customer_name=inspection.customer_name,
            site_address=inspection.site_address,
            tax_rate=tax_rate,
            discount_rate=discount_rate,
            inspection_id=inspection.id,
            notes=f"Deficiency repair quote for inspection {inspection.inspection_number}",
            created_by_id=created_by_id,
        )

        for deficiency in deficiencies:
            QuoteService._create_line(
                quote,
                description=policy.describe(deficiency),
                quantity=Decimal("1"),
                unit_price=policy.unit_price_for(deficiency).to_decimal(),
                item_type=policy.item_type,
                deficiency_id=deficiency.id,
            )

        DeficiencyLedger.mark_quoted(
            deficiency_ids=[d.id for d in deficiencies],
            quote_id=quote.id,
            actor_user_id=created_by_id,
        )

        QuoteService._recalc_totals(quote)
        save_versioned(quote, TOTAL_FIELDS)
        return quote

    # -------------------------
    # Draft edits
    # -------------------------
    @staticmethod
    @transaction.atomic
    def update_terms(
        *,
        quote_id: UUID,
        expected_version: int | None = None,
        **fields,
    ) -> Quote:
        """
        Header edits while draft: customer context, rates, notes, expires_at.
        Totals are recomputed when a rate changes.
        """
        allowed = {
            "customer_id", "customer_name", "customer_email", "site_address",
            "tax_rate", "discount_rate", "notes", "expires_at",
        }
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError({name: "Field cannot be changed." for name in sorted(unknown)})

        quote = QuoteService._lock(quote_id)
        check_version(quote, expected_version)
        QuoteService._ensure_draft(quote)

        for name, value in fields.items():
            setattr(quote, name, value)

        QuoteService._recalc_totals(quote)
        save_versioned(quote, list(fields) + TOTAL_FIELDS)
        return quote

    @staticmethod
    @transaction.atomic
    def add_line_item(
        *,
        quote_id: UUID,
        description: str,
        quantity=Decimal("1"),
        unit_price=Decimal("0.00"),
        item_type: str = LineItemType.SERVICE,
        expected_version: int | None = None,
    ) -> QuoteLineItem:
        quote = QuoteService._lock(quote_id)
        check_version(quote, expected_version)
        QuoteService._ensure_draft(quote)

        line = QuoteService._create_line(
            quote,
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            item_type=item_type,
        )
        QuoteService._recalc_totals(quote)
        save_versioned(quote, TOTAL_FIELDS)
        return line

    @staticmethod
    @transaction.atomic
    def update_line_item(
        *,
        quote_id: UUID,
        line_id: UUID,
        expected_version: int | None = None,
        **fields,
    ) -> QuoteLineItem:
        quote = QuoteService._lock(quote_id)
        check_version(quote, expected_version)
        QuoteService._ensure_draft(quote)

        line = quote.lines.get(id=line_id)
        for name in ("description", "item_type"):
            if name in fields:
                setattr(line, name, fields[name])
        if not (line.description or "").strip():
            raise ValidationError({"description": "Description is required."})

        qty, price, total = QuoteService._priced(
            fields.get("quantity", line.quantity),
            fields.get("unit_price", line.unit_price),
        )
        line.quantity, line.unit_price, line.line_total = qty, price, total
        line.save(update_fields=["description", "item_type", "quantity", "unit_price", "line_total", "updated_at"])

        QuoteService._recalc_totals(quote)
        save_versioned(quote, TOTAL_FIELDS)
        return line

    @staticmethod
    @transaction.atomic
    def remove_line_item(*, quote_id: UUID, line_id: UUID, expected_version: int | None = None) -> Quote:
        quote = QuoteService._lock(quote_id)
        check_version(quote, expected_version)
        QuoteService._ensure_draft(quote)

        line = quote.lines.get(id=line_id)
        deficiency_id = line.deficiency_id
        line.delete()
        if deficiency_id is not None:
            DeficiencyLedger.release(deficiency_ids=[deficiency_id], quote_id=quote.id)

        QuoteService._recalc_totals(quote)
        save_versioned(quote, TOTAL_FIELDS)
        return quote

    @staticmethod
    @transaction.atomic
    def recompute(*, quote_id: UUID) -> Quote:
        """
        Recompute derived totals from the current lines and rates. A no-op write when
        nothing changed.
        """
        quote = QuoteService._lock(quote_id)
        before = [getattr(quote, f) for f in TOTAL_FIELDS]
        QuoteService._recalc_totals(quote)
        if [getattr(quote, f) for f in TOTAL_FIELDS] != before:
            save_versioned(quote, TOTAL_FIELDS)
        return quote

    @staticmethod
    @transaction.atomic
    def delete(*, quote_id: UUID, actor_user_id: int | None = None) -> None:
        """
        Delete a quote that was never accepted; its quoted deficiencies go back to open.
        An accepted quote is kept: its deficiencies follow the resulting job through it.
        """
        quote = QuoteService._lock(quote_id)
        if quote.status == QuoteStatus.ACCEPTED:
            raise AlreadyTerminal(f"Quote {quote.quote_number} is accepted and cannot be deleted.")
        DeficiencyLedger.release(
            deficiency_ids=QuoteService._deficiency_ids(quote),
            quote_id=quote.id,
            actor_user_id=actor_user_id,
        )
        AuditService.log(
            event_code="quote.deleted",
            entity_type="Quote",
            entity_id=quote.id,
            actor_user_id=actor_user_id,
            metadata={"quote_number": quote.quote_number, "status": quote.status},
        )
        quote.delete()

    # -------------------------
    # Status
    # -------------------------
    @staticmethod
    def _apply(quote: Quote, event: str, *, now, actor_user_id: int | None) -> list[str]:
        prev = quote.status
        quote.status = QUOTE_MACHINE.apply(prev, event)
        changed = ["status"]

        stamp = {
            QuoteEvent.SEND: "sent_at",
            QuoteEvent.VIEW: "viewed_at",
            QuoteEvent.ACCEPT: "accepted_at",
            QuoteEvent.DECLINE: "declined_at",
            QuoteEvent.EXPIRE: "expired_at",
        }.get(event)
        if stamp and getattr(quote, stamp) is None:
            setattr(quote, stamp, now)
            changed.append(stamp)

        if event in (QuoteEvent.DECLINE, QuoteEvent.EXPIRE):
            DeficiencyLedger.release(
                deficiency_ids=QuoteService._deficiency_ids(quote),
                quote_id=quote.id,
                actor_user_id=actor_user_id,
            )

        AuditService.log(
            event_code=f"quote.{quote.status}",
            entity_type="Quote",
            entity_id=quote.id,
            actor_user_id=actor_user_id,
            metadata={"from": prev, "to": quote.status, "event": str(event)},
        )
        logger.info("quote %s %s -> %s", quote.quote_number, prev, quote.status)
        return changed

    @staticmethod
    @transaction.atomic
    def expire_if_due(*, quote_id: UUID, now=None) -> bool:
        now = now or timezone.now()
        quote = QuoteService._lock(quote_id)
        if quote.status not in (QuoteStatus.SENT, QuoteStatus.VIEWED) or not quote.is_past_expiry(now):
            return False
        changed = QuoteService._apply(quote, QuoteEvent.EXPIRE, now=now, actor_user_id=None)
        save_versioned(quote, changed)
        return True

    @staticmethod
    def transition(
        *,
        quote_id: UUID,
        event: str,
        actor_user_id: int | None = None,
        expected_version: int | None = None,
        now=None,
    ) -> Quote:
        """
        Apply a customer/operator event. A sent/viewed quote past its expires_at is expired
        first (and stays expired), so accepting a stale quote fails with IllegalTransition.
        """
        now = now or timezone.now()
        if event != QuoteEvent.EXPIRE:
            QuoteService.expire_if_due(quote_id=quote_id, now=now)
        return QuoteService._transition(
            quote_id=quote_id,
            event=event,
            actor_user_id=actor_user_id,
            expected_version=expected_version,
            now=now,
        )

    @staticmethod
    @transaction.atomic
    def _transition(*, quote_id: UUID, event: str, actor_user_id, expected_version, now) -> Quote:
        quote = QuoteService._lock(quote_id)
        check_version(quote, expected_version)

        if event == QuoteEvent.SEND and not quote.lines.exists():
            raise ValidationError({"lines": "Cannot send a quote without line items."})

        changed = QuoteService._apply(quote, event, now=now, actor_user_id=actor_user_id)
        save_versioned(quote, changed)

        if event == QuoteEvent.ACCEPT:
            publish(
                QUOTE_ACCEPTED,
                QuoteAccepted(quote_id=quote.id, total=quote.total, actor_user_id=actor_user_id).as_payload(),
            )
        return quote

    @staticmethod
    def expire_due(*, now=None) -> int:
        """
        Expire every sent/viewed quote whose expires_at has passed. Returns the count.
        """
        now = now or timezone.now()
        due = list(
            Quote.objects.filter(
                status__in=[QuoteStatus.SENT, QuoteStatus.VIEWED],
                expires_at__lte=now,
            ).values_list("id", flat=True)
        )
        expired = 0
        for quote_id in due:
            if QuoteService.expire_if_due(quote_id=quote_id, now=now):
                expired += 1
        if expired:
            logger.info("expired %s quotes", expired)
        return expired
