"""
Money helpers: quantity-tiered pricing, tax amounts and tolerant comparison.

Amounts are dollars as floats (the catalog's storage format). Rounding is
half-up to the cent, and comparisons go through Decimal so that a one-cent
tolerance is exactly one cent.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from shopcore.catalog import DynamicPriceRange

CENT = Decimal("0.01")
DEFAULT_TOLERANCE = 0.01


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


def round_money(value: float) -> float:
    """Round to cents, half-up."""
    return float(_dec(value).quantize(CENT, rounding=ROUND_HALF_UP))


def money_differs(sent: float, expected: float, tolerance: float = DEFAULT_TOLERANCE) -> bool:
    """True when two amounts are further apart than the tolerance."""
    return abs(_dec(sent) - _dec(expected)) > _dec(tolerance)


def apply_dynamic_pricing(
    base_price: float,
    enabled: bool,
    tiers: Optional[Iterable[DynamicPriceRange]],
    quantity: int,
) -> float:
    """
    Price for a purchased quantity.

    The applicable tier is the one with the largest min_quantity that is
    <= quantity. Tiers are an unordered set: they are always sorted here,
    never trusted in storage order. Below the lowest tier, or with dynamic
    pricing disabled, the base price applies.
    """
    tiers = list(tiers or ())
    if not enabled or not tiers:
        return base_price

    for tier in sorted(tiers, key=lambda t: t.min_quantity, reverse=True):
        if quantity >= tier.min_quantity:
            return tier.price
    return base_price


def calculate_tax_amount(subtotal: float, tax_percentage: float) -> float:
    """Tax on a subtotal, e.g. (100.00, 16) -> 16.00."""
    return float((_dec(subtotal) * _dec(tax_percentage) / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP))
