"""
Cart schemas for request/response validation
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from storefront.models import CartLineItem, LineItemVariant, DiscountType


class CartTotals(BaseModel):
    """Derived cart totals; recomputed on every read"""
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    item_count: int = 0


class CartResponse(BaseModel):
    """Schema for cart response"""
    cart_id: str
    items: List[CartLineItem]
    totals: CartTotals
    promo_code: Optional[str] = None
    is_empty: bool


class AddToCartRequest(BaseModel):
    """Schema for add to cart request"""
    product_id: str = Field(..., min_length=1, description="Product ID")
    product_title: str = Field(..., min_length=1)
    product_image: Optional[str] = None
    price: Decimal = Field(..., gt=0)
    quantity: int = Field(default=1, ge=1, description="Quantity to add")
    variant: Optional[LineItemVariant] = None
    original_price: Optional[Decimal] = Field(None, gt=0)


class CartItemUpdate(BaseModel):
    """Schema for updating cart item; zero removes the item"""
    quantity: int = Field(..., ge=0, description="New quantity")


class PromoCodeRequest(BaseModel):
    """Schema for promo code validation or application"""
    code: str = Field(..., max_length=50, description="Promo code to validate")


class PromoCodeResponse(BaseModel):
    """Schema for promo code validation response"""
    valid: bool
    code: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    description: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None
