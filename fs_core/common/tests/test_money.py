# fs_core/common/tests/test_money.py
from decimal import Decimal

import pytest

from fs_core.common.exceptions import InvalidAmount
from fs_core.common.money import (
    Money,
    compute_totals,
    line_total,
    multiply_by_rational,
    percentage_of,
    stored_quantity,
    sum_of,
)


def test_discounted_taxed_quote_scenario():
    totals = compute_totals([Money.from_decimal("1000.00")], tax_rate="0.0825", discount_rate="0.10")

    assert str(totals.subtotal) == "1000.00"
    assert str(totals.discount_amount) == "100.00"
    assert str(totals.taxable_amount) == "900.00"
    assert str(totals.tax_amount) == "74.25"
    assert str(totals.total) == "974.25"


def test_totals_are_stable_across_recomputes():
    lines = [Money.from_decimal("333.33"), Money.from_decimal("333.33"), Money.from_decimal("333.34")]
    first = compute_totals(lines, tax_rate="0.0825", discount_rate="0.15")
    second = compute_totals(lines, tax_rate="0.0825", discount_rate="0.15")

    assert first == second
    assert first.total == first.taxable_amount + first.tax_amount
    assert first.taxable_amount == first.subtotal - first.discount_amount


def test_rounding_is_half_up_once():
    # 0.125 * 100 cents -> 12.5 -> 13
    assert multiply_by_rational(Money(100), "0.125") == Money(13)
    assert multiply_by_rational(Money(-100), "0.125") == Money(-13)
    assert Money.from_decimal("0.005") == Money(1)
    assert percentage_of(Money.from_decimal("1000.00"), "8.25") == Money.from_decimal("82.50")


def test_sum_of_empty_is_zero():
    assert sum_of([]) == Money.zero()
    assert str(Money.zero()) == "0.00"


def test_line_total_rejects_negative_inputs():
    assert line_total(Decimal("2.5"), Money.from_decimal("10.01")) == Money.from_decimal("25.03")

    with pytest.raises(InvalidAmount):
        line_total(Decimal("-1"), Money.from_decimal("10.00"))
    with pytest.raises(InvalidAmount):
        line_total(Decimal("1"), Money.from_decimal("-10.00"))


def test_rates_outside_unit_interval_are_invalid():
    with pytest.raises(InvalidAmount):
        compute_totals([Money(100)], tax_rate="1.5")
    with pytest.raises(InvalidAmount):
        compute_totals([Money(100)], tax_rate="0", discount_rate="-0.1")


def test_to_decimal_has_two_places():
    assert Money(97425).to_decimal() == Decimal("974.25")
    assert Money(5).to_decimal() == Decimal("0.05")


@pytest.mark.parametrize(
    "raw, stored",
    [("1.005", Decimal("1.01")), ("2.125", Decimal("2.13")), ("3", Decimal("3.00")), (Decimal("0.004"), Decimal("0.00"))],
)
def test_stored_quantity_rounds_half_up(raw, stored):
    assert stored_quantity(raw) == stored
