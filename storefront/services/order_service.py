"""Order placement with simulated payment processing"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from storefront.core.config import settings
from storefront.core.exceptions import OrderProcessingError
from storefront.models import CartLineItem, PaymentMethod, ShippingAddress
from storefront.schemas.cart import CartTotals
from storefront.schemas.checkout import OrderConfirmation
from storefront.utils.helpers import (
    calculate_delivery_date,
    generate_order_number,
    format_price,
    generate_tracking_number,
)

logger = logging.getLogger(__name__)

DELIVERY_BUSINESS_DAYS = 7

class OrderProcessor:
    """Places orders; the gateway round trip is a fixed delay"""

    def __init__(
        self,
        processing_delay: Optional[float] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.processing_delay = (
            settings.ORDER_PROCESSING_DELAY if processing_delay is None else processing_delay
        )
        self.clock = clock

    async def place_order(
        self,
        items: List[CartLineItem],
        totals: CartTotals,
        payment_method: PaymentMethod,
        shipping_address: ShippingAddress,
    ) -> OrderConfirmation:
        """
        Place order for the given cart snapshot

        Raises:
            OrderProcessingError: If the order cannot be placed
        """
        if not items:
            raise OrderProcessingError("Cart is empty")

        if self.processing_delay > 0:
            await asyncio.sleep(self.processing_delay)

        placed_at = self.clock()
        confirmation = OrderConfirmation(
            order_number=generate_order_number("NB", placed_at),
            tracking_number=generate_tracking_number("NB", placed_at),
            estimated_delivery=calculate_delivery_date(placed_at, DELIVERY_BUSINESS_DAYS),
            totals=totals,
            payment_method=payment_method,
            shipping_address=shipping_address,
            placed_at=placed_at,
        )

        logger.info(
            f"Order {confirmation.order_number} placed for "
            f"{format_price(totals.total, settings.ANALYTICS_CURRENCY + ' ')}"
        )
        return confirmation
