"""
Typed analytics event payloads

Each event kind has its own properties model; the emitter serializes it to
JSON at the boundary.
"""

from pydantic import BaseModel, ConfigDict, PlainSerializer
from typing import Annotated, Optional, List
from decimal import Decimal

from storefront.models import CheckoutStep, PaymentMethod, TransitionDirection

# Money travels to analytics as a JSON number
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class EventProperties(BaseModel):
    """Base for all analytics payloads"""
    model_config = ConfigDict(frozen=True, use_enum_values=True)


class CheckoutStartProperties(EventProperties):
    cart_value: Money
    item_count: int
    currency: str


class StepTransitionProperties(EventProperties):
    step_name: CheckoutStep
    step_number: int
    step_index: int
    step_completion_time: int  # ms spent in the step
    cart_value: Money
    success: bool
    direction: TransitionDirection
    target_step: Optional[CheckoutStep] = None
    trigger: str = "button"
    errors: List[str] = []
    reason: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None


class PlaceOrderAttemptProperties(EventProperties):
    cart_value: Money
    item_count: int
    payment_method: PaymentMethod
    shipping_city: str
    has_promo: bool


class CheckoutCompleteProperties(EventProperties):
    order_number: str
    order_value: Money
    payment_method: PaymentMethod
    shipping_method: str = "standard"
    item_count: int
    has_promo: bool
    discount_amount: Money
    total_checkout_time: int
    step_completion_time: int


class PlaceOrderFailedProperties(EventProperties):
    cart_value: Money
    item_count: int
    payment_method: PaymentMethod
    error: str
    step_completion_time: int


class CheckoutAbandonProperties(EventProperties):
    step: CheckoutStep
    cart_value: Money
    item_count: int
    reason: str
    time_spent: int


class PaymentMethodSelectedProperties(EventProperties):
    method: PaymentMethod
    previous_method: PaymentMethod
    cart_value: Money


class PromoCodeAppliedProperties(EventProperties):
    code: str
    success: bool
    cart_value: Money
    step: str


class FieldInteractionProperties(EventProperties):
    field_name: str
    field_type: str
    step: CheckoutStep


class CartItemProperties(EventProperties):
    product_id: str
    quantity: int
    price: Money
    previous_cart_value: Money
    new_cart_value: Money
    is_existing_item: bool = False
    reason: Optional[str] = None


class AnalyticsEvent(BaseModel):
    """One recorded event as held by the in-memory emitter"""
    category: str
    action: str
    properties: dict
    value: Optional[float] = None
    timestamp: float


class CartQuantityProperties(EventProperties):
    product_id: str
    previous_quantity: int
    new_quantity: int
    quantity_change: int
    price: Money
    previous_cart_value: Money
    new_cart_value: Money


class ClearCartProperties(EventProperties):
    previous_cart_value: Money
    previous_item_count: int
    items_cleared: int
    reason: str = "user_cleared"


class PromoAttemptProperties(EventProperties):
    promo_code: str
    success: bool
    cart_value: Money
    reason: Optional[str] = None
    promo_type: Optional[str] = None
    minimum_required: Optional[Money] = None
    discount_amount: Optional[Money] = None
