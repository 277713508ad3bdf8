"""Services package"""

from .analytics import AnalyticsEmitter, InMemoryAnalyticsEmitter
from .pricing import PricingEngine
from .promo_service import PromoCodeValidator
from .validation import FieldRule, ValidationEngine, ValidationMode
from .gestures import HapticFeedback, SwipeGestureDetector, TouchTracker
from .cart_service import CartStore
from .order_service import OrderProcessor
from .checkout import CheckoutStateMachine

__all__ = [
    "AnalyticsEmitter",
    "InMemoryAnalyticsEmitter",
    "PricingEngine",
    "PromoCodeValidator",
    "FieldRule",
    "ValidationEngine",
    "ValidationMode",
    "HapticFeedback",
    "SwipeGestureDetector",
    "TouchTracker",
    "CartStore",
    "OrderProcessor",
    "CheckoutStateMachine",
]
