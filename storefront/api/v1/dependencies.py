"""
Shared dependencies for the v1 routes
Carts and checkout sessions live in process memory; drafts go to the cache
"""

import logging
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional

from storefront.core.cache import RedisCache, cache
from storefront.core.config import settings
from storefront.core.exceptions import CheckoutSessionNotFoundException
from storefront.services.analytics import AnalyticsEmitter, InMemoryAnalyticsEmitter
from storefront.services.cart_service import CartStore
from storefront.services.checkout import CheckoutStateMachine
from storefront.services.checkout_rules import payment_rules, shipping_rules
from storefront.services.order_service import OrderProcessor
from storefront.services.promo_service import PromoCodeValidator
from storefront.services.validation import ValidationEngine, ValidationMode

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Holds the live carts and checkout sessions for this process

    Both maps are bounded and evict the least recently used entry first.
    Checkout sessions also expire after sitting idle; one with an order in
    flight is never evicted. Evicted carts come back from their draft.
    """

    def __init__(
        self,
        analytics: Optional[AnalyticsEmitter] = None,
        promo_validator: Optional[PromoCodeValidator] = None,
        order_processor: Optional[OrderProcessor] = None,
        cache: Optional[RedisCache] = None,
        settle_delay: Optional[float] = None,
        debounce_delay: Optional[float] = None,
        max_carts: Optional[int] = None,
        max_sessions: Optional[int] = None,
        session_idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.analytics = analytics or InMemoryAnalyticsEmitter(
            max_events=settings.ANALYTICS_QUEUE_SIZE
        )
        self.promo_validator = promo_validator or PromoCodeValidator()
        self.order_processor = order_processor or OrderProcessor()
        self.cache = cache
        self.settle_delay = settle_delay
        self.debounce_delay = debounce_delay
        self.max_carts = max_carts or settings.MAX_LIVE_CARTS
        self.max_sessions = max_sessions or settings.MAX_LIVE_SESSIONS
        self.session_idle_timeout = (
            settings.SESSION_IDLE_TIMEOUT if session_idle_timeout is None else session_idle_timeout
        )
        self.clock = clock
        self.carts: "OrderedDict[str, CartStore]" = OrderedDict()
        self.sessions: "OrderedDict[str, CheckoutStateMachine]" = OrderedDict()
        self._last_seen: Dict[str, float] = {}

    async def get_cart(self, cart_id: str) -> CartStore:
        """Return the cart, restoring its draft on first use"""
        cart = self.carts.get(cart_id)
        if cart is not None:
            self.carts.move_to_end(cart_id)
            return cart

        cart = CartStore(
            cart_id=cart_id,
            promo_validator=self.promo_validator,
            analytics=self.analytics,
            cache=self.cache,
        )
        if await cart.restore():
            logger.info(f"Restored cart {cart_id} from draft cache")
        self.carts[cart_id] = cart
        while len(self.carts) > self.max_carts:
            evicted, _ = self.carts.popitem(last=False)
            logger.debug(f"Evicted cart {evicted} from memory")
        return cart

    def _engine(self, rules) -> ValidationEngine:
        return ValidationEngine(
            rules,
            mode=ValidationMode.PROGRESSIVE,
            settle_delay=self.settle_delay,
            debounce_delay=self.debounce_delay,
        )

    def _prune_sessions(self) -> None:
        now = self.clock()
        idle = [
            session_id for session_id, seen in self._last_seen.items()
            if now - seen > self.session_idle_timeout
            and not self.sessions[session_id].is_submitting
        ]
        for session_id in idle:
            logger.info(f"Checkout session {session_id} expired after sitting idle")
            self.close_session(session_id)

        for session_id in list(self.sessions):
            if len(self.sessions) <= self.max_sessions:
                break
            if not self.sessions[session_id].is_submitting:
                logger.info(f"Evicted checkout session {session_id} from memory")
                self.close_session(session_id)

    def create_session(
        self,
        cart: CartStore,
        prefers_reduced_motion: bool = False
    ) -> CheckoutStateMachine:
        session = CheckoutStateMachine(
            cart,
            analytics=self.analytics,
            order_processor=self.order_processor,
            shipping_validator=self._engine(shipping_rules()),
            payment_validator=self._engine(payment_rules()),
            prefers_reduced_motion=prefers_reduced_motion,
            cache=self.cache,
        )
        self.sessions[session.session_id] = session
        self._last_seen[session.session_id] = self.clock()
        self._prune_sessions()
        return session

    def get_session(self, session_id: str) -> CheckoutStateMachine:
        self._prune_sessions()
        session = self.sessions.get(session_id)
        if session is None:
            raise CheckoutSessionNotFoundException(session_id)
        self.sessions.move_to_end(session_id)
        self._last_seen[session_id] = self.clock()
        return session

    def close_session(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)


registry = SessionRegistry(cache=cache)


def get_registry() -> SessionRegistry:
    return registry
