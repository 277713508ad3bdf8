"""Tests for promo code lookup."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from storefront.models import DiscountType, PromoCode
from storefront.services.promo_service import PromoCodeValidator

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_lookup_ignores_case_and_whitespace(promo_validator):
    """'  butterfly10  ' resolves to the same promo as 'BUTTERFLY10'."""
    padded = asyncio.run(promo_validator.validate("  butterfly10  "))
    exact = asyncio.run(promo_validator.validate("BUTTERFLY10"))
    assert padded is not None
    assert padded == exact
    assert padded.type == DiscountType.PERCENTAGE


def test_unknown_code_is_none(promo_validator):
    assert asyncio.run(promo_validator.validate("NOPE")) is None


def test_expired_code_is_none():
    """An otherwise valid code past its expiry resolves to None."""
    expired = PromoCode(
        code="OLD10",
        discount=Decimal("10"),
        type=DiscountType.PERCENTAGE,
        expires_at=NOW - timedelta(days=1),
    )
    validator = PromoCodeValidator(catalog=[expired], lookup_delay=0, clock=lambda: NOW)
    assert asyncio.run(validator.validate("old10")) is None


def test_expiry_checked_at_call_time():
    """A code valid now stops resolving once the clock passes its expiry."""
    current = {"now": NOW}
    promo = PromoCode(
        code="SOON",
        discount=Decimal("5"),
        type=DiscountType.FIXED,
        expires_at=NOW + timedelta(hours=1),
    )
    validator = PromoCodeValidator(catalog=[promo], lookup_delay=0, clock=lambda: current["now"])

    assert asyncio.run(validator.validate("SOON")) == promo
    current["now"] = NOW + timedelta(hours=2)
    assert asyncio.run(validator.validate("SOON")) is None


def test_inactive_code_is_none():
    promo = PromoCode(
        code="PAUSED", discount=Decimal("5"), type=DiscountType.FIXED, is_active=False
    )
    validator = PromoCodeValidator(catalog=[promo], lookup_delay=0)
    assert asyncio.run(validator.validate("PAUSED")) is None


def test_default_catalog_contents(promo_validator):
    """Built-in codes resolve; SAVE25 carries an expiry, the others none."""
    for code in ("BUTTERFLY10", "FLAT20", "FREESHIP", "SAVE25"):
        assert asyncio.run(promo_validator.validate(code)) is not None

    save25 = asyncio.run(promo_validator.validate("save25"))
    assert save25.expires_at is not None
    assert asyncio.run(promo_validator.validate("FLAT20")).expires_at is None
