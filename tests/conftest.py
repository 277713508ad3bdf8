"""Shared fixtures: zero latencies so the async core runs instantly."""

import os

# Set env vars BEFORE any storefront imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PROMO_LOOKUP_DELAY", "0")
os.environ.setdefault("ORDER_PROCESSING_DELAY", "0")
os.environ.setdefault("VALIDATION_SETTLE_DELAY", "0")
os.environ.setdefault("ASYNC_VALIDATION_DEBOUNCE", "0")

from datetime import date
from decimal import Decimal

import pytest

from storefront.core.cache import RedisCache
from storefront.services.analytics import InMemoryAnalyticsEmitter
from storefront.services.cart_service import CartStore
from storefront.services.checkout import CheckoutStateMachine
from storefront.services.checkout_rules import payment_rules, shipping_rules
from storefront.services.order_service import OrderProcessor
from storefront.services.promo_service import PromoCodeValidator
from storefront.services.validation import ValidationEngine, ValidationMode


VALID_SHIPPING = {
    "full_name": "Sara Ahmed",
    "phone": "0501234567",
    "street_address": "King Fahd Road 12",
    "city": "Riyadh",
    "postal_code": "12345",
    "country": "Saudi Arabia",
}

VALID_CARD = {
    "cardholder_name": "Sara Ahmed",
    "card_number": "4111 1111 1111 1111",
    "expiry_date": "12/30",
    "cvv": "123",
}

TODAY = date(2026, 1, 15)


# ---------- Core collaborators ----------

@pytest.fixture()
def analytics():
    return InMemoryAnalyticsEmitter(max_events=100)


@pytest.fixture()
def promo_validator():
    return PromoCodeValidator(lookup_delay=0)


@pytest.fixture()
def draft_cache():
    """Unconnected cache; runs on its in-memory fallback."""
    return RedisCache()


@pytest.fixture()
def cart(promo_validator, analytics, draft_cache):
    return CartStore(
        cart_id="cart-1",
        promo_validator=promo_validator,
        analytics=analytics,
        cache=draft_cache,
    )


@pytest.fixture()
def filled_cart(cart):
    """One lipstick at 220, above the free-shipping threshold."""
    cart.add_item("lip-01", "Velvet Lipstick", Decimal("220"))
    return cart


# ---------- Checkout ----------

def build_checkout(cart, analytics=None, **kwargs):
    kwargs.setdefault("order_processor", OrderProcessor(processing_delay=0))
    kwargs.setdefault(
        "shipping_validator",
        ValidationEngine(shipping_rules(), mode=ValidationMode.PROGRESSIVE),
    )
    kwargs.setdefault(
        "payment_validator",
        ValidationEngine(payment_rules(today=lambda: TODAY), mode=ValidationMode.PROGRESSIVE),
    )
    return CheckoutStateMachine(cart, analytics=analytics, **kwargs)


async def fill_form(checkout, values):
    for field, value in values.items():
        await checkout.edit_field(field, value)


async def walk_to_review(checkout):
    await fill_form(checkout, VALID_SHIPPING)
    await checkout.advance()
    await fill_form(checkout, VALID_CARD)
    await checkout.advance()


@pytest.fixture()
def checkout(filled_cart, analytics, draft_cache):
    machine = build_checkout(filled_cart, analytics, cache=draft_cache)
    machine.start()
    return machine


# ---------- HTTP ----------

@pytest.fixture()
def registry(analytics, promo_validator, draft_cache):
    from storefront.api.v1.dependencies import SessionRegistry
    return SessionRegistry(
        analytics=analytics,
        promo_validator=promo_validator,
        order_processor=OrderProcessor(processing_delay=0),
        cache=draft_cache,
        settle_delay=0,
        debounce_delay=0,
    )


@pytest.fixture()
def client(registry):
    """FastAPI TestClient (sync) with an isolated session registry."""
    from fastapi.testclient import TestClient
    from storefront.api.v1.dependencies import get_registry
    from storefront.main import app

    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()
