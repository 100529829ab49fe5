"""Unit tests for the pure pricing helpers."""

from __future__ import annotations

from decimal import Decimal

import pytest

from clinic_pos import pricing


def test_calculate_totals_combines_lines_tax_and_charge():
    """Two lines plus 18% tax and a flat charge should add up exactly."""

    totals = pricing.calculate_totals(
        [(2, Decimal("10.00")), (1, Decimal("5.00"))],
        tax_rate=Decimal("18"),
        consultation_charge=Decimal("200"),
    )

    assert totals.subtotal == Decimal("25.00")
    assert totals.tax == Decimal("4.50")
    assert totals.consultation_charge == Decimal("200")
    assert totals.total == Decimal("229.50")


def test_calculate_totals_total_is_sum_of_components():
    """The grand total must always equal subtotal + tax + charge."""

    totals = pricing.calculate_totals(
        [(3, "3.33"), (7, "1.19")],
        tax_rate="12.5",
        consultation_charge="49.99",
    )

    assert totals.total == totals.subtotal + totals.tax + totals.consultation_charge


def test_calculate_totals_with_no_lines_is_charge_only():
    """An empty line list should still apply the consultation charge."""

    totals = pricing.calculate_totals([], tax_rate=Decimal("18"), consultation_charge=Decimal("150"))

    assert totals.subtotal == Decimal("0")
    assert totals.tax == Decimal("0")
    assert totals.total == Decimal("150")


def test_calculate_totals_rejects_negative_charge():
    """Negative consultation charges are invalid input."""

    with pytest.raises(ValueError):
        pricing.calculate_totals([(1, "1.00")], tax_rate="0", consultation_charge="-1")


@pytest.mark.parametrize("rate", ["-0.01", "100.01"])
def test_calculate_tax_rejects_rates_outside_percentage_range(rate):
    """Tax rates must stay within 0 to 100 inclusive."""

    with pytest.raises(ValueError):
        pricing.calculate_tax(Decimal("10"), rate)


@pytest.mark.parametrize("rate, expected", [("0", Decimal("0")), ("100", Decimal("10"))])
def test_calculate_tax_accepts_range_boundaries(rate, expected):
    """The 0 and 100 boundaries are both valid tax rates."""

    assert pricing.calculate_tax(Decimal("10"), rate) == expected


def test_line_total_rejects_negative_price():
    """A negative unit price cannot be priced."""

    with pytest.raises(ValueError):
        pricing.line_total(1, Decimal("-0.01"))


def test_line_total_keeps_full_precision():
    """Line totals are not rounded until persistence."""

    assert pricing.line_total(3, Decimal("0.333")) == Decimal("0.999")


def test_to_decimal_goes_through_string_form():
    """Floats should convert via their repr rather than binary expansion."""

    assert pricing.to_decimal(0.1) == Decimal("0.1")
    assert pricing.to_decimal(10.0) == pricing.to_decimal(Decimal("10.0"))


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
def test_to_decimal_rejects_non_finite_values(value):
    """Non numeric and non finite values should raise ValueError."""

    with pytest.raises(ValueError):
        pricing.to_decimal(value)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2.345", Decimal("2.35")),
        ("2.344", Decimal("2.34")),
        ("0.005", Decimal("0.01")),
        ("10", Decimal("10.00")),
    ],
)
def test_to_money_rounds_half_up(value, expected):
    """Money rounding should quantize to cents with ROUND_HALF_UP."""

    assert pricing.to_money(value) == expected
