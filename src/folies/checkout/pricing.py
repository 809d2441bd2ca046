"""Checkout pricing: promotion price, loyalty-point discount, final amount.

Loyalty points redeem at 10 points per euro, capped so the price never
goes below zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

POINTS_PER_EURO = 10

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class PriceQuote:
    base_price: Decimal
    max_points_usable: int
    points_used: int
    points_discount: Decimal
    final_price: Decimal

    @property
    def points_awarded(self) -> int:
        """Loyalty points shown as earned for this purchase (whole euros paid)."""
        return int(self.final_price.to_integral_value(rounding=ROUND_FLOOR))


def base_price(price: Decimal, promotion_price: Decimal | None) -> Decimal:
    """Promotion price when set and cheaper than the list price."""
    if promotion_price is not None and promotion_price < price:
        return Decimal(promotion_price)
    return Decimal(price)


def max_points_usable(loyalty_points: int, price: Decimal) -> int:
    """Points that can be spent on ``price`` given the current balance."""
    cap = int((price * POINTS_PER_EURO).to_integral_value(rounding=ROUND_FLOOR))
    return max(0, min(loyalty_points, cap))


def quote(
    price: Decimal,
    promotion_price: Decimal | None,
    loyalty_points: int,
    use_points: bool,
) -> PriceQuote:
    """Compute the full price breakdown for one dish."""
    base = base_price(Decimal(price), promotion_price)
    usable = max_points_usable(loyalty_points, base)
    points_used = usable if use_points else 0
    discount = (Decimal(points_used) / POINTS_PER_EURO).quantize(_CENT)
    final = max(Decimal("0"), base - discount).quantize(_CENT)
    return PriceQuote(
        base_price=base.quantize(_CENT),
        max_points_usable=usable,
        points_used=points_used,
        points_discount=discount,
        final_price=final,
    )
