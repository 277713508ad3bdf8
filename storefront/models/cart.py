"""Cart line item model"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from decimal import Decimal

class LineItemVariant(BaseModel):
    """Product variant chosen for a line item"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    shade: Optional[str] = None

class CartLineItem(BaseModel):
    """
    One product/variant entry in the cart

    Immutable once created; quantity edits replace the item wholesale.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    product_title: str = ""
    product_image: Optional[str] = None
    variant: Optional[LineItemVariant] = None
    price: Decimal = Field(..., gt=0)
    quantity: int = Field(..., ge=1)
    original_price: Optional[Decimal] = Field(None, gt=0)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def matches(self, product_id: str, variant: Optional[LineItemVariant]) -> bool:
        """Same product and same variant (or both without variant)"""
        return self.product_id == product_id and self.variant == variant
