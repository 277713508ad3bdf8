"""
Promo code service
Resolves user-entered codes against the promo catalog
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional

from storefront.core.config import settings
from storefront.core.monitoring import promo_lookups
from storefront.models import PromoCode, DiscountType, normalize_promo_code
from storefront.services.pricing import SHIPPING_RATE

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def default_catalog(now: datetime) -> Dict[str, PromoCode]:
    """Built-in promo table; SAVE25 runs for thirty days from `now`"""
    promos = [
        PromoCode(
            code="BUTTERFLY10",
            discount=Decimal("10"),
            type=DiscountType.PERCENTAGE,
            description="10% off your order",
            min_order_amount=Decimal("50"),
            max_discount=Decimal("50"),
        ),
        PromoCode(
            code="FLAT20",
            discount=Decimal("20"),
            type=DiscountType.FIXED,
            description="$20 off orders over $100",
            min_order_amount=Decimal("100"),
        ),
        PromoCode(
            code="FREESHIP",
            discount=SHIPPING_RATE,
            type=DiscountType.FREESHIP,
            description="Free shipping on your order",
        ),
        PromoCode(
            code="SAVE25",
            discount=Decimal("25"),
            type=DiscountType.PERCENTAGE,
            description="25% off orders over $200",
            min_order_amount=Decimal("200"),
            max_discount=Decimal("100"),
            expires_at=now + timedelta(days=30),
        ),
    ]
    return {promo.code: promo for promo in promos}


class PromoCodeValidator:
    """
    Resolves promo codes after a simulated remote lookup

    Unknown, inactive and expired codes resolve to None. Codes without an
    expiry are memoized since the catalog is static.
    """

    def __init__(
        self,
        catalog: Optional[Iterable[PromoCode]] = None,
        lookup_delay: Optional[float] = None,
        clock: Clock = utc_now,
    ):
        self.clock = clock
        self.lookup_delay = (
            settings.PROMO_LOOKUP_DELAY if lookup_delay is None else lookup_delay
        )
        if catalog is None:
            self._catalog = default_catalog(clock())
        else:
            self._catalog = {promo.code: promo for promo in catalog}
        self._memo: Dict[str, PromoCode] = {}

    async def validate(self, code: str) -> Optional[PromoCode]:
        """Look up a code; case and surrounding whitespace are ignored"""
        normalized = normalize_promo_code(code)

        if normalized in self._memo:
            return self._memo[normalized]

        if self.lookup_delay > 0:
            await asyncio.sleep(self.lookup_delay)

        promo = self._catalog.get(normalized)
        if promo is None:
            logger.info(f"Unknown promo code: {normalized!r}")
            promo_lookups.labels(outcome="unknown").inc()
            return None

        if not promo.is_active:
            logger.info(f"Inactive promo code: {normalized}")
            promo_lookups.labels(outcome="inactive").inc()
            return None

        if promo.is_expired(self.clock()):
            logger.info(f"Expired promo code: {normalized}")
            promo_lookups.labels(outcome="expired").inc()
            return None

        promo_lookups.labels(outcome="valid").inc()
        if promo.expires_at is None:
            self._memo[normalized] = promo

        return promo
