# storefront/domain/pricing.py
"""
Pricing calculator for cart lines and cart/order totals.

Line level: an active promotion price wins over a catalog markdown, which
wins over the base price. Promocodes are never applied to a line; they are
applied once, against the cart subtotal.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from storefront.domain.enums import DiscountType
from storefront.domain.money import ZERO, quantize_money, to_money


class PricedLine(Protocol):
    price: Decimal
    applied_price: Decimal
    quantity: int


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount: Decimal
    promocode_discount: Decimal
    total: Decimal
    items_count: int


def calculate_applied_price(product) -> Decimal:
    base = to_money(product.price)

    if product.has_promotion and product.promotion_price is not None:
        candidate = to_money(product.promotion_price)
    elif product.is_discount and product.discount_price is not None:
        candidate = to_money(product.discount_price)
    else:
        return base

    # a "promotional" price above the base price is a catalog error, not a markup
    return candidate if candidate <= base else base


def calculate_promocode_discount(discount_type, value, subtotal) -> Decimal:
    subtotal = to_money(subtotal)
    value = to_money(value)

    if DiscountType(discount_type) == DiscountType.PERCENT:
        return quantize_money(subtotal * value / Decimal(100))

    return quantize_money(min(value, subtotal))


def calculate_cart_totals(lines: Iterable[PricedLine], promocode_discount=ZERO) -> CartTotals:
    subtotal = ZERO
    discount = ZERO
    items_count = 0

    for line in lines:
        base = to_money(line.price)
        applied = to_money(line.applied_price)
        subtotal += applied * line.quantity
        discount += (base - applied) * line.quantity
        items_count += line.quantity

    promocode_discount = to_money(promocode_discount)
    total = max(ZERO, subtotal - promocode_discount)

    return CartTotals(
        subtotal=quantize_money(subtotal),
        discount=quantize_money(discount),
        promocode_discount=quantize_money(promocode_discount),
        total=quantize_money(total),
        items_count=items_count,
    )
