"""
Warranty claim totals calculator.

Pure functions, no database access.

Rounding rule: each component (labor, parts, shipping) is rounded to cents
with ROUND_HALF_UP on its exact decimal value, and total_requested is the
sum of the already-rounded components.  Rounding the unrounded sum instead
can drift by a cent, so the order matters.

    labor  = hours × rate                       (0 if either is absent)
    parts  = Σ(quantity × unit_cost) if an item list is supplied,
             else the explicit parts amount
    total  = round(labor) + round(parts) + round(shipping)
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from dealer_portal.utils.helpers import parse_decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(value) -> Decimal:
    """Round to cents, half away from zero."""
    return _to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return parse_decimal(value)


@dataclass(frozen=True)
class ClaimTotals:
    labor_amount: Decimal
    parts_amount: Decimal
    shipping_amount: Decimal
    total_requested: Decimal

    def as_columns(self) -> dict:
        return {
            "labor_amount": self.labor_amount,
            "parts_amount": self.parts_amount,
            "shipping_amount": self.shipping_amount,
            "total_requested": self.total_requested,
        }


def line_total(quantity, unit_cost) -> Decimal:
    """Exact (unrounded) quantity × unit_cost."""
    return _to_decimal(quantity) * _to_decimal(unit_cost)


def calculate_totals(
    *,
    labor_hours=None,
    labor_rate=None,
    parts_amount=None,
    shipping_amount=None,
    items=None,
) -> ClaimTotals:
    """Derive claim amounts.

    Args:
        items: iterable of mappings with ``quantity`` and ``unit_cost``.  Any
               list, empty included, overrides ``parts_amount``; ``None``
               means no item list was supplied.
    """
    labor = _to_decimal(labor_hours) * _to_decimal(labor_rate)

    if items is not None:
        parts = sum(
            (line_total(item.get("quantity"), item.get("unit_cost")) for item in items),
            Decimal("0"),
        )
    else:
        parts = _to_decimal(parts_amount)

    labor_r = round_money(labor)
    parts_r = round_money(parts)
    shipping_r = round_money(shipping_amount)

    return ClaimTotals(
        labor_amount=labor_r,
        parts_amount=parts_r,
        shipping_amount=shipping_r,
        total_requested=labor_r + parts_r + shipping_r,
    )
