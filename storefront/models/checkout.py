"""Checkout flow models"""

from pydantic import BaseModel
from typing import Optional, List
import enum

class CheckoutStep(str, enum.Enum):
    SHIPPING = "shipping"
    PAYMENT = "payment"
    REVIEW = "review"

    @property
    def position(self) -> int:
        return CHECKOUT_STEPS.index(self)

    @property
    def number(self) -> int:
        """1-based position shown to users"""
        return self.position + 1

    @property
    def next(self) -> Optional["CheckoutStep"]:
        if self.position + 1 < len(CHECKOUT_STEPS):
            return CHECKOUT_STEPS[self.position + 1]
        return None

    @property
    def previous(self) -> Optional["CheckoutStep"]:
        if self.position > 0:
            return CHECKOUT_STEPS[self.position - 1]
        return None

CHECKOUT_STEPS: List[CheckoutStep] = [
    CheckoutStep.SHIPPING,
    CheckoutStep.PAYMENT,
    CheckoutStep.REVIEW,
]

class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "credit-card"
    MADA = "mada"
    FAWRY = "fawry"
    COD = "cod"

class ShippingAddress(BaseModel):
    """Shipping address draft as entered on the shipping step"""

    full_name: str = ""
    phone: str = ""
    street_address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "Saudi Arabia"
    delivery_instructions: Optional[str] = None

class PaymentDetails(BaseModel):
    """Card details draft; never cached or sent to analytics"""

    cardholder_name: str = ""
    card_number: str = ""
    expiry_date: str = ""
    cvv: str = ""
    save_card: bool = False

class SwipeDirection(str, enum.Enum):
    LEFT = "left"    # next step
    RIGHT = "right"  # previous step

class TransitionDirection(str, enum.Enum):
    FORWARD = "forward"
    BACKWARD = "backward"

class SubmissionStatus(str, enum.Enum):
    PLACED = "placed"
    FAILED = "failed"
    REJECTED = "rejected"
