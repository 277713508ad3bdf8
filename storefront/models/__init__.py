"""Models package initialization"""

from .cart import CartLineItem, LineItemVariant
from .promo import PromoCode, DiscountType, normalize_promo_code
from .checkout import (
    CheckoutStep,
    CHECKOUT_STEPS,
    PaymentMethod,
    ShippingAddress,
    PaymentDetails,
    SwipeDirection,
    TransitionDirection,
    SubmissionStatus,
)

__all__ = [
    "CartLineItem",
    "LineItemVariant",
    "PromoCode",
    "DiscountType",
    "normalize_promo_code",
    "CheckoutStep",
    "CHECKOUT_STEPS",
    "PaymentMethod",
    "ShippingAddress",
    "PaymentDetails",
    "SwipeDirection",
    "TransitionDirection",
    "SubmissionStatus",
]
