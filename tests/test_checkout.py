"""Tests for the checkout state machine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import (
    TODAY,
    VALID_CARD,
    VALID_SHIPPING,
    build_checkout,
    fill_form,
    walk_to_review,
)
from storefront.core.exceptions import (
    EmptyCartException,
    OrderProcessingError,
    SubmissionInProgressException,
    UnknownFieldException,
)
from storefront.models import CheckoutStep, PaymentMethod, SubmissionStatus
from storefront.services.checkout import (
    INVALID_ORDER_DATA_MESSAGE,
    SUBMISSION_FAILED_MESSAGE,
)
from storefront.services.checkout_rules import payment_rules
from storefront.services.order_service import OrderProcessor
from storefront.services.validation import FieldRule, ValidationEngine, ValidationMode


def step_events(analytics):
    return analytics.events("checkout_step")


# ---------- Lifecycle ----------

def test_start_requires_items(cart, analytics):
    checkout = build_checkout(cart, analytics)
    with pytest.raises(EmptyCartException):
        checkout.start()


def test_start_emits_event(checkout, analytics):
    [event] = analytics.events("checkout_start")
    assert event.category == "checkout"
    assert event.properties["cart_value"] == 253.0
    assert event.properties["currency"] == "SAR"
    assert checkout.current_step == CheckoutStep.SHIPPING


def test_abandon_reports_step(checkout, analytics):
    checkout.abandon()
    [event] = analytics.events("checkout_abandon")
    assert event.properties["step"] == "shipping"
    assert event.properties["reason"] == "back_to_cart"


# ---------- Forward gating ----------

def test_empty_shipping_blocks_advance(checkout, analytics):
    """Required shipping fields empty: no transition, errors recorded and reported."""
    result = asyncio.run(checkout.advance())

    assert not result.success
    assert result.reason == "validation_failed"
    assert set(result.errors) == {"full_name", "phone", "street_address", "city", "postal_code"}
    assert checkout.current_step == CheckoutStep.SHIPPING
    assert CheckoutStep.SHIPPING not in checkout.completed_steps
    assert checkout.visible_errors()["phone"] == "Phone is required"

    [event] = step_events(analytics)
    assert event.properties["success"] is False
    assert event.properties["direction"] == "forward"
    assert event.properties["reason"] == "validation_failed"


def test_valid_shipping_advances(checkout, analytics):
    async def scenario():
        await fill_form(checkout, VALID_SHIPPING)
        return await checkout.advance()

    result = asyncio.run(scenario())

    assert result.success
    assert (result.from_step, result.to_step) == (CheckoutStep.SHIPPING, CheckoutStep.PAYMENT)
    assert checkout.current_step == CheckoutStep.PAYMENT
    assert checkout.completed_steps == {CheckoutStep.SHIPPING}

    [event] = step_events(analytics)
    assert event.properties["step_name"] == "shipping"
    assert event.properties["step_number"] == 1
    assert event.properties["target_step"] == "payment"
    assert event.properties["success"] is True


def test_invalid_card_blocks_payment_step(checkout):
    async def scenario():
        await fill_form(checkout, VALID_SHIPPING)
        await checkout.advance()
        await fill_form(checkout, {**VALID_CARD, "card_number": "4111 1111 1111 1112"})
        return await checkout.advance()

    result = asyncio.run(scenario())
    assert not result.success
    assert result.errors == {"card_number": "Please enter a valid card number"}
    assert checkout.current_step == CheckoutStep.PAYMENT


def test_non_card_payment_skips_card_validation(checkout, analytics):
    async def scenario():
        await fill_form(checkout, VALID_SHIPPING)
        await checkout.advance()
        checkout.select_payment_method(PaymentMethod.COD)
        return await checkout.advance()

    result = asyncio.run(scenario())
    assert result.success
    assert checkout.current_step == CheckoutStep.REVIEW

    [selected] = analytics.events("payment_method_selected")
    assert selected.properties["method"] == "cod"
    assert selected.properties["previous_method"] == "credit-card"


def test_advance_from_review_is_rejected(checkout):
    asyncio.run(walk_to_review(checkout))
    result = asyncio.run(checkout.advance())
    assert not result.success
    assert result.reason == "last_step"


# ---------- Backward and jumps ----------

def test_retreat_never_revalidates(checkout):
    """review -> payment succeeds even after the card data turns invalid."""
    asyncio.run(walk_to_review(checkout))
    checkout.payment_details.card_number = "1234"

    result = checkout.retreat()

    assert result.success
    assert checkout.current_step == CheckoutStep.PAYMENT
    assert checkout.completed_steps == {CheckoutStep.SHIPPING, CheckoutStep.PAYMENT}


def test_retreat_from_first_step(checkout):
    result = checkout.retreat()
    assert not result.success
    assert result.reason == "first_step"


def test_jump_back_to_edit_and_return(checkout):
    asyncio.run(walk_to_review(checkout))

    back = checkout.jump_to(CheckoutStep.SHIPPING)
    assert back.success
    assert checkout.current_step == CheckoutStep.SHIPPING
    assert checkout.completed_steps == {CheckoutStep.SHIPPING, CheckoutStep.PAYMENT}

    asyncio.run(checkout.advance())
    asyncio.run(checkout.advance())
    assert checkout.current_step == CheckoutStep.REVIEW


def test_jump_ahead_is_rejected(checkout, analytics):
    result = checkout.jump_to(CheckoutStep.REVIEW)
    assert not result.success
    assert result.reason == "forward_jump"
    assert checkout.current_step == CheckoutStep.SHIPPING

    [event] = step_events(analytics)
    assert event.properties["success"] is False
    assert event.properties["reason"] == "forward_jump"


def test_edited_shipping_cannot_skip_to_review(checkout):
    """Invalid shipping data blocks the way back to review."""
    async def scenario():
        await walk_to_review(checkout)
        checkout.jump_to(CheckoutStep.SHIPPING)
        await checkout.edit_field("full_name", "")
        jump = checkout.jump_to(CheckoutStep.REVIEW)
        advance = await checkout.advance()
        return jump, advance

    jump, advance = asyncio.run(scenario())
    assert jump.reason == "forward_jump"
    assert advance.reason == "validation_failed"
    assert "full_name" in advance.errors
    assert checkout.current_step == CheckoutStep.SHIPPING


def test_submit_rechecks_fields_edited_after_their_step(checkout, analytics):
    async def scenario():
        await walk_to_review(checkout)
        await checkout.edit_field("full_name", "")
        return await checkout.submit()

    result = asyncio.run(scenario())
    assert result.status == SubmissionStatus.REJECTED
    assert result.error == INVALID_ORDER_DATA_MESSAGE
    assert checkout.confirmation is None
    assert not checkout.is_submitting
    assert analytics.events("place_order_attempt") == []


def test_jump_to_current_step_is_not_a_transition(checkout, analytics):
    result = checkout.jump_to(CheckoutStep.SHIPPING)
    assert not result.success
    assert result.reason == "already_on_step"
    assert step_events(analytics) == []


def test_stale_advance_result_is_discarded(filled_cart, analytics):
    """Leaving payment while the card check runs keeps the shopper where they went."""
    gate = asyncio.Event()

    async def slow_card_check(value):
        await gate.wait()
        return None

    rules = payment_rules(today=lambda: TODAY)
    rules["card_number"] = FieldRule(required=True, async_rule=slow_card_check)
    checkout = build_checkout(
        filled_cart,
        analytics,
        payment_validator=ValidationEngine(rules, mode=ValidationMode.PROGRESSIVE),
    )

    async def scenario():
        await fill_form(checkout, VALID_SHIPPING)
        await checkout.advance()
        # Stored directly; the progressive check would block on the gate
        for field, value in VALID_CARD.items():
            setattr(checkout.payment_details, field, value)
        pending = asyncio.ensure_future(checkout.advance())
        await asyncio.sleep(0)
        checkout.retreat()
        gate.set()
        return await pending

    result = asyncio.run(scenario())
    assert not result.success
    assert result.reason == "stale"
    assert checkout.current_step == CheckoutStep.SHIPPING
    assert CheckoutStep.PAYMENT not in checkout.completed_steps
    assert all(e.properties["reason"] != "stale" for e in step_events(analytics))


# ---------- Gestures ----------

def test_left_swipe_advances_with_haptic_pulse(checkout):
    async def scenario():
        await fill_form(checkout, VALID_SHIPPING)
        checkout.blur_field("country")
        return await checkout.handle_swipe(300, 150, 200)

    result = asyncio.run(scenario())
    assert result.success
    assert checkout.current_step == CheckoutStep.PAYMENT
    assert checkout.haptics.pulses == [50]


def test_right_swipe_retreats(checkout, analytics):
    asyncio.run(walk_to_review(checkout))
    result = asyncio.run(checkout.handle_swipe(100, 250, 200))

    assert result.success
    assert checkout.current_step == CheckoutStep.PAYMENT
    assert step_events(analytics)[-1].properties["trigger"] == "swipe"


def test_swipe_ignored_while_field_focused(checkout):
    asyncio.run(fill_form(checkout, VALID_SHIPPING))
    checkout.focus_field("city")

    assert asyncio.run(checkout.handle_swipe(300, 100, 100)) is None
    assert checkout.current_step == CheckoutStep.SHIPPING


def test_failed_swipe_gives_no_pulse(checkout):
    result = asyncio.run(checkout.handle_swipe(300, 100, 100))
    assert not result.success
    assert checkout.haptics.pulses == []


def test_reduced_motion_skips_haptics(filled_cart, analytics):
    checkout = build_checkout(filled_cart, analytics, prefers_reduced_motion=True)

    async def scenario():
        await fill_form(checkout, VALID_SHIPPING)
        return await checkout.handle_swipe(300, 100, 100)

    assert asyncio.run(scenario()).success
    assert checkout.haptics.pulses == []


def test_touch_sequence_drives_swipe(filled_cart, analytics):
    now = {"t": 0.0}
    checkout = build_checkout(filled_cart, analytics, clock=lambda: now["t"])

    async def scenario():
        await fill_form(checkout, VALID_SHIPPING)
        checkout.touch_start(300)
        checkout.touch_move(200)
        checkout.touch_move(120)
        now["t"] = 0.15
        return await checkout.touch_end()

    assert asyncio.run(scenario()).success
    assert checkout.current_step == CheckoutStep.PAYMENT


# ---------- Form interaction ----------

def test_edit_field_returns_feedback(checkout):
    result = asyncio.run(checkout.edit_field("postal_code", "12345"))
    assert result.is_valid
    assert result.suggestion is not None
    assert checkout.shipping_address.postal_code == "12345"


def test_edit_field_shows_error_once_touched(checkout):
    result = asyncio.run(checkout.edit_field("phone", "123"))
    assert result.error == "Please enter a valid phone number"
    assert checkout.visible_errors() == {"phone": "Please enter a valid phone number"}


def test_unknown_field_rejected(checkout):
    with pytest.raises(UnknownFieldException):
        asyncio.run(checkout.edit_field("favourite_colour", "blue"))
    with pytest.raises(UnknownFieldException):
        checkout.focus_field("favourite_colour")


def test_delivery_instructions_are_free_text(checkout):
    result = asyncio.run(checkout.edit_field("delivery_instructions", "Leave at the door"))
    assert result.is_valid
    assert checkout.shipping_address.delivery_instructions == "Leave at the door"


def test_focus_emits_field_interaction(checkout, analytics):
    checkout.focus_field("card_number")
    [event] = analytics.events("form_field_interaction")
    assert event.properties == {"field_name": "card_number", "field_type": "numeric", "step": "payment"}
    assert checkout.is_form_focused

    checkout.blur_field("card_number")
    assert not checkout.is_form_focused
    assert checkout.payment_validator.is_field_touched("card_number")


def test_apply_promo_during_checkout(checkout, analytics):
    assert asyncio.run(checkout.apply_promo_code("butterfly10"))
    [event] = analytics.events("promo_code_applied")
    assert event.properties["code"] == "BUTTERFLY10"
    assert event.properties["step"] == "shipping"


# ---------- Submission ----------

def test_submit_places_order(checkout, analytics, draft_cache):
    asyncio.run(walk_to_review(checkout))
    result = asyncio.run(checkout.submit())

    assert result.status == SubmissionStatus.PLACED
    assert result.confirmation.order_number.startswith("NB-")
    assert result.confirmation.totals.total == 253
    assert checkout.is_complete
    assert checkout.cart.is_empty
    assert asyncio.run(draft_cache.get(checkout.draft_key)) is None

    [attempt] = analytics.events("place_order_attempt")
    assert attempt.properties["shipping_city"] == "Riyadh"
    [complete] = analytics.events("checkout_complete")
    assert complete.properties["order_number"] == result.confirmation.order_number
    assert complete.properties["order_value"] == 253.0


def test_submit_requires_review_step(checkout):
    result = asyncio.run(checkout.submit())
    assert result.status == SubmissionStatus.REJECTED
    assert result.error == "Complete shipping and payment before placing the order"


def test_failed_submission_keeps_data(filled_cart, analytics):
    processor = AsyncMock(spec=OrderProcessor)
    processor.place_order.side_effect = OrderProcessingError("gateway timeout")
    checkout = build_checkout(filled_cart, analytics, order_processor=processor)

    asyncio.run(walk_to_review(checkout))
    result = asyncio.run(checkout.submit())

    assert result.status == SubmissionStatus.FAILED
    assert result.error == SUBMISSION_FAILED_MESSAGE
    assert checkout.current_step == CheckoutStep.REVIEW
    assert checkout.visible_errors()["submit"] == SUBMISSION_FAILED_MESSAGE
    assert not checkout.is_submitting
    assert not filled_cart.is_empty
    assert checkout.shipping_address.full_name == VALID_SHIPPING["full_name"]

    [failed] = analytics.events("place_order_failed")
    assert failed.properties["error"] == "gateway timeout"


def test_retry_after_failure_succeeds(filled_cart, analytics):
    processor = AsyncMock(spec=OrderProcessor)
    real = OrderProcessor(processing_delay=0)
    processor.place_order.side_effect = OrderProcessingError("declined")
    checkout = build_checkout(filled_cart, analytics, order_processor=processor)

    async def scenario():
        await walk_to_review(checkout)
        first = await checkout.submit()
        processor.place_order.side_effect = real.place_order
        second = await checkout.submit()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.status == SubmissionStatus.FAILED
    assert second.status == SubmissionStatus.PLACED
    assert checkout.submission_error is None


def test_second_submit_while_in_flight_is_rejected(filled_cart, analytics):
    """Only one order is placed when submit is pressed twice."""
    processor = OrderProcessor(processing_delay=0.05)
    checkout = build_checkout(filled_cart, analytics, order_processor=processor)

    async def scenario():
        await walk_to_review(checkout)
        first = asyncio.ensure_future(checkout.submit())
        await asyncio.sleep(0)
        assert checkout.is_submitting
        second = await checkout.submit()
        return await first, second

    first, second = asyncio.run(scenario())
    assert first.status == SubmissionStatus.PLACED
    assert second.status == SubmissionStatus.REJECTED
    assert second.error == "Order submission already in progress"
    assert len(analytics.events("checkout_complete")) == 1


def test_flow_is_frozen_while_order_is_in_flight(filled_cart, analytics):
    """A failing submission still ends on review with the chosen method."""
    async def slow_failure(*args):
        await asyncio.sleep(0.05)
        raise OrderProcessingError("gateway timeout")

    processor = AsyncMock(spec=OrderProcessor)
    processor.place_order.side_effect = slow_failure
    checkout = build_checkout(filled_cart, analytics, order_processor=processor)

    async def scenario():
        await walk_to_review(checkout)
        submission = asyncio.ensure_future(checkout.submit())
        await asyncio.sleep(0)

        moves = [
            checkout.retreat(),
            checkout.jump_to(CheckoutStep.SHIPPING),
            await checkout.advance(),
        ]
        with pytest.raises(SubmissionInProgressException):
            checkout.select_payment_method(PaymentMethod.COD)
        with pytest.raises(SubmissionInProgressException):
            await checkout.edit_field("city", "Jeddah")
        with pytest.raises(SubmissionInProgressException):
            await checkout.apply_promo_code("SAVE25")
        return moves, await submission

    moves, result = asyncio.run(scenario())
    assert [move.reason for move in moves] == ["submission_in_progress"] * 3
    assert result.status == SubmissionStatus.FAILED
    assert checkout.current_step == CheckoutStep.REVIEW
    assert checkout.payment_method == PaymentMethod.CREDIT_CARD
    assert checkout.shipping_address.city == "Riyadh"

    [failed] = analytics.events("place_order_failed")
    assert failed.properties["payment_method"] == "credit-card"


def test_submit_after_completion_is_rejected(checkout):
    asyncio.run(walk_to_review(checkout))
    asyncio.run(checkout.submit())
    result = asyncio.run(checkout.submit())
    assert result.status == SubmissionStatus.REJECTED
    assert result.error == "Order already placed"


# ---------- Drafts ----------

def test_shipping_draft_survives_new_session(checkout, filled_cart, analytics, draft_cache):
    asyncio.run(fill_form(checkout, VALID_SHIPPING))

    resumed = build_checkout(
        filled_cart, analytics, cache=draft_cache, session_id=checkout.session_id
    )
    assert asyncio.run(resumed.restore_shipping_draft())
    assert resumed.shipping_address.city == "Riyadh"


def test_card_details_never_cached(checkout, draft_cache):
    asyncio.run(walk_to_review(checkout))
    draft = asyncio.run(draft_cache.get(checkout.draft_key))
    assert "card_number" not in draft
    assert draft["full_name"] == "Sara Ahmed"
