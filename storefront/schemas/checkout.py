"""
Checkout schemas for request/response validation
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict
from datetime import datetime

from storefront.models import (
    CheckoutStep,
    PaymentMethod,
    ShippingAddress,
    SubmissionStatus,
)
from storefront.schemas.cart import CartTotals


class FieldValidationResult(BaseModel):
    """Outcome of validating one field; error outranks warning"""
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    error: Optional[str] = None
    warning: Optional[str] = None
    suggestion: Optional[str] = None


class TransitionResult(BaseModel):
    """Outcome of an attempted step transition"""
    success: bool
    from_step: CheckoutStep
    to_step: CheckoutStep
    errors: Dict[str, str] = {}
    reason: Optional[str] = None


class OrderConfirmation(BaseModel):
    """Placed order as shown on the confirmation page"""
    order_number: str
    tracking_number: str
    estimated_delivery: datetime
    totals: CartTotals
    payment_method: PaymentMethod
    shipping_address: ShippingAddress
    placed_at: datetime


class SubmissionResult(BaseModel):
    status: SubmissionStatus
    confirmation: Optional[OrderConfirmation] = None
    error: Optional[str] = None


# Request schemas
class CheckoutSessionCreate(BaseModel):
    """Start checkout for an existing cart"""
    cart_id: str = Field(..., min_length=1)
    prefers_reduced_motion: bool = False


class FieldEditRequest(BaseModel):
    """Value typed into a checkout form field"""
    field: str = Field(..., min_length=1)
    value: str = Field(default="", max_length=500)


class StepJumpRequest(BaseModel):
    step: CheckoutStep


class SwipeRequest(BaseModel):
    start_x: float
    end_x: float
    elapsed_ms: float = Field(..., ge=0)


class PaymentMethodRequest(BaseModel):
    method: PaymentMethod


# Response schemas
class CheckoutSessionResponse(BaseModel):
    """Snapshot of a checkout session"""
    session_id: str
    cart_id: str
    current_step: CheckoutStep
    completed_steps: List[CheckoutStep]
    payment_method: PaymentMethod
    shipping_address: ShippingAddress
    visible_errors: Dict[str, str]
    totals: CartTotals
    promo_code: Optional[str] = None
    is_submitting: bool = False
    submission_error: Optional[str] = None
    confirmation: Optional[OrderConfirmation] = None


class FieldEditResponse(BaseModel):
    field: str
    result: FieldValidationResult
    show_error: bool


class SwipeResponse(BaseModel):
    handled: bool
    transition: Optional[TransitionResult] = None
