"""
Pricing engine for cart totals

Order of operations is fixed: subtotal, shipping, discount, tax, total.
All amounts are Decimal; nothing here touches shared state.
"""

from decimal import Decimal
from typing import Iterable, Optional

from storefront.models import CartLineItem, PromoCode, DiscountType
from storefront.schemas.cart import CartTotals
from storefront.utils.helpers import get_total_quantity

SHIPPING_THRESHOLD = Decimal("200")
SHIPPING_RATE = Decimal("15")
TAX_RATE = Decimal("0.15")

ZERO = Decimal("0")

def calculate_subtotal(items: Iterable[CartLineItem]) -> Decimal:
    return sum((item.line_total for item in items), ZERO)

def calculate_shipping(subtotal: Decimal) -> Decimal:
    """Empty carts ship free without counting as meeting the threshold"""
    if subtotal == ZERO:
        return ZERO
    if subtotal >= SHIPPING_THRESHOLD:
        return ZERO
    return SHIPPING_RATE

def calculate_discount(subtotal: Decimal, promo: Optional[PromoCode]) -> Decimal:
    """
    Discount a promo code grants on the given subtotal

    Percentage discounts are capped at max_discount. Fixed and freeship
    amounts are clamped to the subtotal so the discount never exceeds it.
    """
    if promo is None or not promo.is_active:
        return ZERO

    if promo.min_order_amount is not None and subtotal < promo.min_order_amount:
        return ZERO

    if promo.type == DiscountType.PERCENTAGE:
        discount = subtotal * promo.discount / Decimal("100")
        if promo.max_discount is not None:
            discount = min(discount, promo.max_discount)
    else:  # fixed amount, freeship included
        discount = promo.discount

    return min(discount, subtotal)

def calculate_tax(subtotal: Decimal, discount: Decimal = ZERO) -> Decimal:
    """Tax is levied on the discounted amount and never negative"""
    return max(ZERO, subtotal - discount) * TAX_RATE

def calculate_total(
    subtotal: Decimal,
    shipping: Decimal,
    tax: Decimal,
    discount: Decimal = ZERO
) -> Decimal:
    return subtotal + shipping + tax - discount


class PricingEngine:
    """Computes CartTotals from a cart snapshot"""

    @staticmethod
    def compute(
        items: Iterable[CartLineItem],
        promo: Optional[PromoCode] = None
    ) -> CartTotals:
        items = list(items)

        subtotal = calculate_subtotal(items)
        shipping = calculate_shipping(subtotal)
        discount = calculate_discount(subtotal, promo)
        tax = calculate_tax(subtotal, discount)
        total = calculate_total(subtotal, shipping, tax, discount)

        return CartTotals(
            subtotal=subtotal,
            shipping=shipping,
            tax=tax,
            discount=discount,
            total=total,
            item_count=get_total_quantity(items),
        )
