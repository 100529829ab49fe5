"""Pure pricing helpers for candidate sales.

Every function here is deterministic and side-effect free. Amounts keep full
``Decimal`` precision; :func:`to_money` is applied only when a value is about
to be persisted or displayed.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Tuple, Union

Number = Union[Decimal, int, float, str]
PricedLine = Tuple[int, Number]

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class SaleTotals:
    """Full-precision totals for a candidate sale."""

    subtotal: Decimal
    tax: Decimal
    consultation_charge: Decimal
    total: Decimal


def to_decimal(value: Number) -> Decimal:
    """Coerce ``value`` to ``Decimal`` through its string form.

    ``10.0`` and ``Decimal("10.0")`` therefore produce the same result.

    Raises:
        ValueError: If the value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def to_money(value: Number) -> Decimal:
    """Round to two decimals (half up) for persistence or display."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Number) -> Decimal:
    """Return ``quantity * unit_price`` without rounding."""
    price = to_decimal(unit_price)
    if price < 0:
        raise ValueError(f"Unit price must be zero or positive, got {price}")
    return Decimal(quantity) * price


def calculate_subtotal(lines: Iterable[PricedLine]) -> Decimal:
    """Sum the line totals of ``(quantity, unit_price)`` pairs."""
    return sum((line_total(quantity, price) for quantity, price in lines), Decimal("0"))


def calculate_tax(subtotal: Number, tax_rate: Number) -> Decimal:
    """Apply a percentage tax rate (0-100) to ``subtotal``."""
    rate = to_decimal(tax_rate)
    if rate < 0 or rate > HUNDRED:
        raise ValueError(f"Tax rate must be between 0 and 100, got {rate}")
    return to_decimal(subtotal) * rate / HUNDRED


def calculate_totals(
    lines: Iterable[PricedLine],
    *,
    tax_rate: Number,
    consultation_charge: Number,
) -> SaleTotals:
    """Compute subtotal, tax, consultation charge, and grand total.

    Args:
        lines: ``(quantity, unit_price)`` pairs, each priced independently.
        tax_rate: Percentage applied to the subtotal.
        consultation_charge: Flat, non-negative charge added after tax.

    Returns:
        SaleTotals: Unrounded amounts where
            ``total == subtotal + tax + consultation_charge``.

    Raises:
        ValueError: For a negative price or charge, or a tax rate outside
            ``[0, 100]``.
    """
    charge = to_decimal(consultation_charge)
    if charge < 0:
        raise ValueError(f"Consultation charge must be zero or positive, got {charge}")
    subtotal = calculate_subtotal(lines)
    tax = calculate_tax(subtotal, tax_rate)
    return SaleTotals(
        subtotal=subtotal,
        tax=tax,
        consultation_charge=charge,
        total=subtotal + tax + charge,
    )


__all__ = [
    "SaleTotals",
    "to_decimal",
    "to_money",
    "line_total",
    "calculate_subtotal",
    "calculate_tax",
    "calculate_totals",
]
