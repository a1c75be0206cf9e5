# fs_core/common/money.py
"""
Fixed-point currency arithmetic.

Amounts are integer cents. Rates are exact rationals (Fraction); a rate is applied to an
amount in a single step and rounded half-up to the nearest cent exactly once.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction
from typing import Iterable, Union

from fs_core.common.exceptions import InvalidAmount

Rational = Union[Fraction, Decimal, int, str]

CENT = Decimal("0.01")


def to_fraction(value: Rational) -> Fraction:
    if isinstance(value, Fraction):
        return value
    if isinstance(value, float):
        # floats are only accepted through their decimal repr
        value = str(value)
    return Fraction(Decimal(str(value)))


def _round_half_up(value: Fraction) -> int:
    """Round an exact rational number of cents to an int, halves away from zero."""
    sign = -1 if value < 0 else 1
    magnitude = abs(value)
    whole, rem = divmod(magnitude.numerator, magnitude.denominator)
    if rem * 2 >= magnitude.denominator:
        whole += 1
    return sign * whole


@dataclass(frozen=True, order=True)
class Money:
    cents: int = 0

    # -------------------------
    # Construction / conversion
    # -------------------------
    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def from_decimal(cls, value) -> "Money":
        """
        Accepts Decimal / str / int. Sub-cent input is rounded half-up once.
        """
        if value is None:
            return cls(0)
        return cls(_round_half_up(to_fraction(value) * 100))

    def to_decimal(self) -> Decimal:
        return (Decimal(self.cents) / Decimal(100)).quantize(CENT)

    def __str__(self) -> str:
        return str(self.to_decimal())

    # -------------------------
    # Arithmetic
    # -------------------------
    def __add__(self, other: "Money") -> "Money":
        return Money(self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        return Money(self.cents - other.cents)

    def __neg__(self) -> "Money":
        return Money(-self.cents)

    def is_positive(self) -> bool:
        return self.cents > 0

    def is_negative(self) -> bool:
        return self.cents < 0


def add(a: Money, b: Money) -> Money:
    return a + b


def subtract(a: Money, b: Money) -> Money:
    return a - b


def multiply_by_rational(amount: Money, rate: Rational) -> Money:
    """
    amount * rate, computed exactly and rounded half-up to the cent once.
    """
    return Money(_round_half_up(Fraction(amount.cents) * to_fraction(rate)))


def percentage_of(base: Money, rate_percent: Rational) -> Money:
    """
    percentage_of(Money(100000), "8.25") -> 82.50
    """
    return multiply_by_rational(base, to_fraction(rate_percent) / 100)


def sum_of(items: Iterable[Money]) -> Money:
    total = Money.zero()
    for item in items:
        total = total + item
    return total


def line_total(quantity: Rational, unit_price: Money) -> Money:
    q = to_fraction(quantity)
    if q < 0:
        raise InvalidAmount("Quantity must not be negative.")
    if unit_price.is_negative():
        raise InvalidAmount("Unit price must not be negative.")
    return multiply_by_rational(unit_price, q)


def stored_quantity(quantity: Rational) -> Decimal:
    """Quantity as persisted (two places, half-up). Line totals are priced from this value."""
    return Decimal(str(quantity)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Money
    discount_amount: Money
    taxable_amount: Money
    tax_amount: Money
    total: Money


def compute_totals(
    line_totals: Iterable[Money],
    tax_rate: Rational,
    discount_rate: Rational | None = None,
) -> DocumentTotals:
    """
    subtotal       = sum of line totals (left-to-right)
    discountAmount = subtotal * discount_rate        (one rounding)
    taxableAmount  = subtotal - discountAmount
    taxAmount      = taxableAmount * tax_rate        (one rounding)
    total          = taxableAmount + taxAmount

    Rates are fractions in [0, 1].
    """
    tax = to_fraction(tax_rate or 0)
    discount = to_fraction(discount_rate or 0)
    for name, rate in (("tax_rate", tax), ("discount_rate", discount)):
        if rate < 0 or rate > 1:
            raise InvalidAmount(f"{name} must be between 0 and 1.")

    subtotal = sum_of(line_totals)
    discount_amount = multiply_by_rational(subtotal, discount)
    taxable_amount = subtotal - discount_amount
    tax_amount = multiply_by_rational(taxable_amount, tax)

    return DocumentTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        total=taxable_amount + tax_amount,
    )
