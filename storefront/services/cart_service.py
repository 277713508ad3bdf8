"""
Cart service for managing the shopping cart
"""

import logging
import uuid
from collections import deque
from decimal import Decimal
from typing import Deque, Dict, List, Optional

from storefront.core.cache import RedisCache
from storefront.core.config import settings
from storefront.core.exceptions import BadRequestException, CartItemNotFoundException
from storefront.models import CartLineItem, LineItemVariant, PromoCode, normalize_promo_code
from storefront.schemas.analytics import (
    CartItemProperties,
    CartQuantityProperties,
    ClearCartProperties,
    EventProperties,
    PromoAttemptProperties,
)
from storefront.schemas.cart import CartTotals
from storefront.services.analytics import AnalyticsEmitter
from storefront.services.pricing import PricingEngine, calculate_discount, calculate_subtotal
from storefront.services.promo_service import PromoCodeValidator
from storefront.utils.helpers import get_total_quantity

logger = logging.getLogger(__name__)

RECENT_PROMO_ATTEMPTS = 5


class CartStore:
    """
    In-memory cart for one shopper

    Line items are immutable; edits replace them. Totals are derived on
    every read through the pricing engine.
    """

    def __init__(
        self,
        cart_id: Optional[str] = None,
        promo_validator: Optional[PromoCodeValidator] = None,
        analytics: Optional[AnalyticsEmitter] = None,
        cache: Optional[RedisCache] = None,
    ):
        self.cart_id = cart_id or str(uuid.uuid4())
        self.promo_validator = promo_validator or PromoCodeValidator()
        self.analytics = analytics
        self.cache = cache
        self._items: List[CartLineItem] = []
        self.promo: Optional[PromoCode] = None
        self.recent_promo_attempts: Deque[str] = deque(maxlen=RECENT_PROMO_ATTEMPTS)

    @property
    def cache_key(self) -> str:
        return f"cart:{self.cart_id}"

    def _track(self, action: str, properties: EventProperties, value: Decimal) -> None:
        if self.analytics is not None:
            self.analytics.emit("cart", action, properties, float(value))

    def _find(self, item_id: str) -> CartLineItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise CartItemNotFoundException(item_id)

    # Reads

    def snapshot(self) -> List[CartLineItem]:
        return list(self._items)

    @property
    def subtotal(self) -> Decimal:
        return calculate_subtotal(self._items)

    @property
    def totals(self) -> CartTotals:
        return PricingEngine.compute(self._items, self.promo)

    @property
    def item_count(self) -> int:
        return get_total_quantity(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    # Mutations

    def add_item(
        self,
        product_id: str,
        product_title: str,
        price: Decimal,
        quantity: int = 1,
        variant: Optional[LineItemVariant] = None,
        product_image: Optional[str] = None,
        original_price: Optional[Decimal] = None,
    ) -> CartLineItem:
        """Add a product; the same product and variant merge into one line"""
        if not product_id or not product_title or price <= 0:
            raise BadRequestException("Invalid product data", error_code="INVALID_PRODUCT")

        quantity = max(1, quantity)
        previous_value = self.subtotal

        existing = next(
            (item for item in self._items if item.matches(product_id, variant)),
            None
        )
        if existing is not None:
            line = existing.model_copy(update={"quantity": existing.quantity + quantity})
            self._items = [line if item.id == existing.id else item for item in self._items]
            logger.debug(f"Updated existing cart item {existing.id}")
        else:
            line = CartLineItem(
                id=f"{product_id}-{uuid.uuid4().hex[:9]}",
                product_id=product_id,
                product_title=product_title,
                product_image=product_image,
                variant=variant,
                price=price,
                quantity=quantity,
                original_price=original_price,
            )
            self._items.append(line)
            logger.debug(f"Added cart item {line.id}")

        self._track(
            "add_item",
            CartItemProperties(
                product_id=product_id,
                quantity=quantity,
                price=price,
                previous_cart_value=previous_value,
                new_cart_value=self.subtotal,
                is_existing_item=existing is not None,
            ),
            self.subtotal,
        )
        return line

    def remove_item(self, item_id: str) -> CartLineItem:
        item = self._find(item_id)
        previous_value = self.subtotal
        self._items = [line for line in self._items if line.id != item_id]

        self._track(
            "remove_item",
            CartItemProperties(
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
                previous_cart_value=previous_value,
                new_cart_value=self.subtotal,
                reason="user_removed",
            ),
            self.subtotal,
        )
        return item

    def update_quantity(self, item_id: str, quantity: int) -> Optional[CartLineItem]:
        """Set a line's quantity; zero or less removes the line"""
        if quantity <= 0:
            self.remove_item(item_id)
            return None

        item = self._find(item_id)
        if item.quantity == quantity:
            return item

        previous_value = self.subtotal
        line = item.model_copy(update={"quantity": quantity})
        self._items = [line if existing.id == item_id else existing for existing in self._items]

        self._track(
            "update_quantity",
            CartQuantityProperties(
                product_id=item.product_id,
                previous_quantity=item.quantity,
                new_quantity=quantity,
                quantity_change=quantity - item.quantity,
                price=item.price,
                previous_cart_value=previous_value,
                new_cart_value=self.subtotal,
            ),
            self.subtotal,
        )
        return line

    def clear(self) -> None:
        """Empty the cart and drop the promo code"""
        previous_value = self.subtotal
        previous_count = self.item_count
        cleared = len(self._items)

        self._items = []
        self.promo = None

        self._track(
            "clear_cart",
            ClearCartProperties(
                previous_cart_value=previous_value,
                previous_item_count=previous_count,
                items_cleared=cleared,
            ),
            previous_value,
        )

    async def apply_promo_code(self, code: str) -> bool:
        """Resolve and apply a code; the current subtotal must meet its minimum"""
        normalized = normalize_promo_code(code or "")
        subtotal = self.subtotal

        if not normalized:
            self._track(
                "apply_promo",
                PromoAttemptProperties(
                    promo_code=normalized, success=False,
                    cart_value=subtotal, reason="invalid_format",
                ),
                subtotal,
            )
            return False

        self.recent_promo_attempts.append(normalized)
        promo = await self.promo_validator.validate(normalized)
        if promo is None:
            self._track(
                "apply_promo",
                PromoAttemptProperties(
                    promo_code=normalized, success=False,
                    cart_value=subtotal, reason="invalid_code",
                ),
                subtotal,
            )
            return False

        if promo.min_order_amount is not None and subtotal < promo.min_order_amount:
            logger.debug(
                f"Promo {promo.code} needs {promo.min_order_amount}, cart has {subtotal}"
            )
            self._track(
                "apply_promo",
                PromoAttemptProperties(
                    promo_code=normalized, success=False,
                    cart_value=subtotal, reason="minimum_not_met",
                    minimum_required=promo.min_order_amount,
                ),
                subtotal,
            )
            return False

        self.promo = promo
        logger.info(f"Promo code {promo.code} applied to cart {self.cart_id}")
        self._track(
            "apply_promo",
            PromoAttemptProperties(
                promo_code=promo.code, success=True, cart_value=subtotal,
                promo_type=promo.type.value,
                discount_amount=calculate_discount(subtotal, promo),
            ),
            subtotal,
        )
        return True

    def remove_promo_code(self) -> None:
        previous = self.promo
        self.promo = None

        if previous is not None:
            self._track(
                "remove_promo",
                PromoAttemptProperties(
                    promo_code=previous.code, success=True,
                    cart_value=self.subtotal, promo_type=previous.type.value,
                ),
                self.subtotal,
            )

    # Draft persistence

    async def persist(self) -> bool:
        """Save items and promo code to the draft cache"""
        if self.cache is None:
            return False
        payload: Dict = {
            "items": [item.model_dump(mode="json") for item in self._items],
            "promo_code": self.promo.code if self.promo else None,
            "recent_promo_attempts": list(self.recent_promo_attempts),
        }
        return await self.cache.set(self.cache_key, payload, expire=settings.DRAFT_TTL_SECONDS)

    async def restore(self) -> bool:
        """Load a saved draft; the promo code is re-validated on load"""
        if self.cache is None:
            return False
        payload = await self.cache.get(self.cache_key)
        if not payload:
            return False

        self._items = [CartLineItem.model_validate(item) for item in payload.get("items", [])]
        self.recent_promo_attempts.extend(payload.get("recent_promo_attempts", []))
        promo_code = payload.get("promo_code")
        self.promo = await self.promo_validator.validate(promo_code) if promo_code else None
        logger.debug(f"Restored cart {self.cart_id} with {len(self._items)} items")
        return True
