"""Promo code model"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
import enum

class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREESHIP = "freeship"

class PromoCode(BaseModel):
    """Discount rule a user-entered code resolves to"""

    model_config = ConfigDict(frozen=True)

    code: str
    discount: Decimal = Field(..., gt=0)
    type: DiscountType
    description: Optional[str] = None
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, gt=0)
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return normalize_promo_code(v)

    def is_expired(self, now: datetime) -> bool:
        """Check expiry relative to the given moment"""
        return self.expires_at is not None and self.expires_at < now

def normalize_promo_code(code: str) -> str:
    """Codes are case-insensitive and whitespace-trimmed"""
    return code.strip().upper()
