"""
Checkout flow state machine

Steps run shipping -> payment -> review; placing the order leaves the flow.
Forward moves are gated on the current step's validation, backward moves
never re-validate. Every attempted move is reported to analytics.
"""

import asyncio
import logging
import time
import uuid
from typing import Callable, Dict, Optional, Set

from storefront.core.cache import RedisCache
from storefront.core.config import settings
from storefront.core.exceptions import (
    EmptyCartException,
    SubmissionInProgressException,
    UnknownFieldException,
)
from storefront.core.monitoring import checkout_transitions, order_submissions
from storefront.models import (
    CheckoutStep,
    PaymentDetails,
    PaymentMethod,
    ShippingAddress,
    SubmissionStatus,
    SwipeDirection,
    TransitionDirection,
    normalize_promo_code,
)
from storefront.schemas.analytics import (
    CheckoutAbandonProperties,
    CheckoutCompleteProperties,
    CheckoutStartProperties,
    EventProperties,
    FieldInteractionProperties,
    PaymentMethodSelectedProperties,
    PlaceOrderAttemptProperties,
    PlaceOrderFailedProperties,
    PromoCodeAppliedProperties,
    StepTransitionProperties,
)
from storefront.schemas.checkout import (
    FieldValidationResult,
    OrderConfirmation,
    SubmissionResult,
    TransitionResult,
)
from storefront.services.analytics import AnalyticsEmitter
from storefront.services.cart_service import CartStore
from storefront.services.checkout_rules import (
    PAYMENT_FIELDS,
    SHIPPING_FIELDS,
    payment_rules,
    shipping_rules,
)
from storefront.services.gestures import HapticFeedback, SwipeGestureDetector, TouchTracker
from storefront.services.order_service import OrderProcessor
from storefront.services.validation import ValidationEngine, ValidationMode

logger = logging.getLogger(__name__)

SUBMISSION_FAILED_MESSAGE = "Failed to place order. Please try again."
INVALID_ORDER_DATA_MESSAGE = "Please correct your shipping and payment details before placing the order"

FIELD_TYPES = {
    "phone": "tel",
    "postal_code": "numeric",
    "card_number": "numeric",
    "expiry_date": "numeric",
    "cvv": "numeric",
    "delivery_instructions": "textarea",
}

# Free-text shipping fields stored without a validation rule
UNVALIDATED_SHIPPING_FIELDS = ("delivery_instructions",)


class CheckoutStateMachine:
    """
    One shopper's pass through checkout

    `clock` returns seconds; `flow_started_at` pins the flow start used for
    total checkout time and defaults to construction time.
    """

    def __init__(
        self,
        cart: CartStore,
        analytics: Optional[AnalyticsEmitter] = None,
        order_processor: Optional[OrderProcessor] = None,
        shipping_validator: Optional[ValidationEngine] = None,
        payment_validator: Optional[ValidationEngine] = None,
        swipe_detector: Optional[SwipeGestureDetector] = None,
        prefers_reduced_motion: bool = False,
        cache: Optional[RedisCache] = None,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        flow_started_at: Optional[float] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.cart = cart
        self.analytics = analytics
        self.order_processor = order_processor or OrderProcessor()
        self.shipping_validator = shipping_validator or ValidationEngine(
            shipping_rules(), mode=ValidationMode.PROGRESSIVE
        )
        self.payment_validator = payment_validator or ValidationEngine(
            payment_rules(), mode=ValidationMode.PROGRESSIVE
        )
        self.swipe_detector = swipe_detector or SwipeGestureDetector()
        self.haptics = HapticFeedback(prefers_reduced_motion=prefers_reduced_motion)
        self.touch = TouchTracker(clock=clock)
        self.cache = cache
        self.clock = clock
        self.flow_started_at = clock() if flow_started_at is None else flow_started_at

        self.current_step = CheckoutStep.SHIPPING
        self.completed_steps: Set[CheckoutStep] = set()
        self.step_started_at = self.clock()

        self.shipping_address = ShippingAddress()
        self.payment_details = PaymentDetails()
        self.payment_method = PaymentMethod.CREDIT_CARD

        self.is_form_focused = False
        self.focused_field: Optional[str] = None
        self.is_submitting = False
        self.submission_error: Optional[str] = None
        self.confirmation: Optional[OrderConfirmation] = None
        self._submission: Optional[asyncio.Future] = None

    # Helpers

    @property
    def draft_key(self) -> str:
        return f"checkout:{self.session_id}:shipping"

    @property
    def is_complete(self) -> bool:
        return self.confirmation is not None

    def _elapsed_ms(self, since: float) -> int:
        return max(0, int((self.clock() - since) * 1000))

    def _enter(self, step: CheckoutStep) -> None:
        self.current_step = step
        self.step_started_at = self.clock()

    def _track(self, action: str, properties: EventProperties) -> None:
        if self.analytics is not None:
            self.analytics.emit("checkout", action, properties, float(self.cart.totals.total))

    def _track_transition(
        self,
        origin: CheckoutStep,
        target: Optional[CheckoutStep],
        direction: TransitionDirection,
        success: bool,
        elapsed_ms: int,
        trigger: str,
        errors: Optional[Dict[str, str]] = None,
        reason: Optional[str] = None,
    ) -> None:
        checkout_transitions.labels(
            step=origin.value,
            direction=direction.value,
            outcome="success" if success else "failure",
        ).inc()
        self._track(
            "checkout_step",
            StepTransitionProperties(
                step_name=origin,
                step_number=origin.number,
                step_index=origin.position,
                step_completion_time=elapsed_ms,
                cart_value=self.cart.totals.total,
                success=success,
                direction=direction,
                target_step=target,
                trigger=trigger,
                errors=sorted(errors or {}),
                reason=reason,
                payment_method=self.payment_method if origin != CheckoutStep.SHIPPING else None,
            ),
        )

    def _engine_for(self, field: str) -> Optional[ValidationEngine]:
        if field in SHIPPING_FIELDS:
            return self.shipping_validator
        if field in PAYMENT_FIELDS:
            return self.payment_validator
        return None

    def _step_for(self, field: str) -> CheckoutStep:
        if field in SHIPPING_FIELDS or field in UNVALIDATED_SHIPPING_FIELDS:
            return CheckoutStep.SHIPPING
        if field in PAYMENT_FIELDS:
            return CheckoutStep.PAYMENT
        raise UnknownFieldException(field)

    def _ensure_editable(self) -> None:
        # Order data is frozen while the processor holds it
        if self.is_submitting:
            raise SubmissionInProgressException()

    def _rejected(self, target: CheckoutStep, reason: str) -> TransitionResult:
        return TransitionResult(
            success=False,
            from_step=self.current_step,
            to_step=target,
            reason=reason,
        )

    async def _validate_step(self, step: CheckoutStep) -> Dict[str, str]:
        """Whole-form validation for a step; returns field -> error"""
        if step == CheckoutStep.SHIPPING:
            engine = self.shipping_validator
            form_data = self.shipping_address.model_dump(include=set(SHIPPING_FIELDS))
        elif step == CheckoutStep.PAYMENT:
            engine = self.payment_validator
            if self.payment_method != PaymentMethod.CREDIT_CARD:
                engine.clear_errors()
                return {}
            form_data = self.payment_details.model_dump(include=set(PAYMENT_FIELDS))
        else:
            return {}

        await engine.validate_form(form_data)
        return {name: error for name, error in engine.errors.items() if error}

    # Lifecycle

    def start(self) -> None:
        """Open checkout; an empty cart cannot be checked out"""
        if self.cart.is_empty:
            raise EmptyCartException()

        self._track(
            "checkout_start",
            CheckoutStartProperties(
                cart_value=self.cart.totals.total,
                item_count=self.cart.item_count,
                currency=settings.ANALYTICS_CURRENCY,
            ),
        )
        logger.info(f"Checkout session {self.session_id} started for cart {self.cart.cart_id}")

    def abandon(self, reason: str = "back_to_cart") -> None:
        self._track(
            "checkout_abandon",
            CheckoutAbandonProperties(
                step=self.current_step,
                cart_value=self.cart.totals.total,
                item_count=self.cart.item_count,
                reason=reason,
                time_spent=self._elapsed_ms(self.flow_started_at),
            ),
        )
        logger.info(f"Checkout session {self.session_id} abandoned at {self.current_step.value}")

    # Transitions

    async def advance(self, trigger: str = "button") -> TransitionResult:
        """Validate the current step and move forward if it passes"""
        origin = self.current_step
        target = origin.next
        elapsed = self._elapsed_ms(self.step_started_at)

        if self.is_complete:
            return self._rejected(origin, "checkout_complete")

        if self.is_submitting:
            self._track_transition(
                origin, target, TransitionDirection.FORWARD, False, elapsed, trigger,
                reason="submission_in_progress",
            )
            return self._rejected(target or origin, "submission_in_progress")

        if target is None:
            self._track_transition(
                origin, None, TransitionDirection.FORWARD, False, elapsed, trigger,
                reason="last_step",
            )
            return self._rejected(origin, "last_step")

        errors = await self._validate_step(origin)

        # The shopper moved on while validation ran
        if self.current_step != origin or self.is_complete:
            logger.debug(f"Discarding stale validation result for {origin.value}")
            return TransitionResult(
                success=False, from_step=origin, to_step=target, reason="stale"
            )

        if errors:
            self._track_transition(
                origin, target, TransitionDirection.FORWARD, False, elapsed, trigger,
                errors=errors, reason="validation_failed",
            )
            return TransitionResult(
                success=False,
                from_step=origin,
                to_step=target,
                errors=errors,
                reason="validation_failed",
            )

        self.completed_steps.add(origin)
        self._enter(target)
        self._track_transition(
            origin, target, TransitionDirection.FORWARD, True, elapsed, trigger
        )
        if origin == CheckoutStep.SHIPPING:
            await self.save_shipping_draft()

        return TransitionResult(success=True, from_step=origin, to_step=target)

    def retreat(self, trigger: str = "button") -> TransitionResult:
        """Go back one step; never re-validates"""
        origin = self.current_step
        target = origin.previous
        elapsed = self._elapsed_ms(self.step_started_at)

        if self.is_complete:
            return self._rejected(origin, "checkout_complete")

        if self.is_submitting:
            self._track_transition(
                origin, target, TransitionDirection.BACKWARD, False, elapsed, trigger,
                reason="submission_in_progress",
            )
            return self._rejected(target or origin, "submission_in_progress")

        if target is None:
            self._track_transition(
                origin, None, TransitionDirection.BACKWARD, False, elapsed, trigger,
                reason="first_step",
            )
            return self._rejected(origin, "first_step")

        self._enter(target)
        self._track_transition(
            origin, target, TransitionDirection.BACKWARD, True, elapsed, trigger
        )
        return TransitionResult(success=True, from_step=origin, to_step=target)

    def jump_to(self, step: CheckoutStep, trigger: str = "edit") -> TransitionResult:
        """
        Jump back to an earlier step to edit it

        Later steps are only reached through advance(), which validates the
        step being left. Jumping to the current step is not a transition.
        """
        origin = self.current_step
        step = CheckoutStep(step)

        if self.is_complete:
            return self._rejected(step, "checkout_complete")
        if step == origin:
            return self._rejected(step, "already_on_step")

        elapsed = self._elapsed_ms(self.step_started_at)
        if self.is_submitting:
            direction = (
                TransitionDirection.BACKWARD if step.position < origin.position
                else TransitionDirection.FORWARD
            )
            self._track_transition(
                origin, step, direction, False, elapsed, trigger,
                reason="submission_in_progress",
            )
            return self._rejected(step, "submission_in_progress")

        if step.position > origin.position:
            self._track_transition(
                origin, step, TransitionDirection.FORWARD, False, elapsed, trigger,
                reason="forward_jump",
            )
            return self._rejected(step, "forward_jump")

        self._enter(step)
        self._track_transition(
            origin, step, TransitionDirection.BACKWARD, True, elapsed, trigger
        )
        return TransitionResult(success=True, from_step=origin, to_step=step)

    # Gestures

    async def handle_swipe(
        self,
        start_x: float,
        end_x: float,
        elapsed_ms: float
    ) -> Optional[TransitionResult]:
        """Left swipe advances, right swipe retreats; ignored while typing"""
        if self.is_form_focused or self.is_complete:
            return None

        direction = self.swipe_detector.classify(start_x, end_x, elapsed_ms)
        if direction == SwipeDirection.LEFT and self.current_step.next is not None:
            result = await self.advance(trigger="swipe")
        elif direction == SwipeDirection.RIGHT and self.current_step.previous is not None:
            result = self.retreat(trigger="swipe")
        else:
            return None

        if result.success:
            self.haptics.pulse()
        return result

    def touch_start(self, x: float) -> None:
        if self.is_form_focused:
            return
        self.touch.start(x)

    def touch_move(self, x: float) -> None:
        if self.is_form_focused or not self.touch.active:
            return
        self.touch.move(x)

    async def touch_end(self) -> Optional[TransitionResult]:
        sample = self.touch.finish()
        if sample is None or self.is_form_focused:
            return None
        return await self.handle_swipe(*sample)

    # Form interaction

    def focus_field(self, field: str) -> None:
        step = self._step_for(field)
        self.is_form_focused = True
        self.focused_field = field
        self._track(
            "form_field_interaction",
            FieldInteractionProperties(
                field_name=field,
                field_type=FIELD_TYPES.get(field, "text"),
                step=step,
            ),
        )

    def blur_field(self, field: str) -> None:
        self._step_for(field)
        self.is_form_focused = False
        self.focused_field = None
        engine = self._engine_for(field)
        if engine is not None:
            engine.set_field_touched(field)

    async def edit_field(self, field: str, value: str) -> FieldValidationResult:
        """Store a field value and return progressive feedback for it"""
        self._ensure_editable()
        step = self._step_for(field)
        if step == CheckoutStep.SHIPPING:
            setattr(self.shipping_address, field, value)
        else:
            setattr(self.payment_details, field, value)

        engine = self._engine_for(field)
        if engine is None:
            result = FieldValidationResult(is_valid=True)
        else:
            engine.set_field_touched(field)
            result = await engine.validate_field_with_feedback(field, value)

        if step == CheckoutStep.SHIPPING:
            await self.save_shipping_draft()
        return result

    def select_payment_method(self, method: PaymentMethod) -> None:
        self._ensure_editable()
        method = PaymentMethod(method)
        self._track(
            "payment_method_selected",
            PaymentMethodSelectedProperties(
                method=method,
                previous_method=self.payment_method,
                cart_value=self.cart.totals.total,
            ),
        )
        self.payment_method = method
        if method != PaymentMethod.CREDIT_CARD:
            self.payment_validator.clear_errors()

    async def apply_promo_code(self, code: str) -> bool:
        self._ensure_editable()
        success = await self.cart.apply_promo_code(code)
        self._track(
            "promo_code_applied",
            PromoCodeAppliedProperties(
                code=normalize_promo_code(code),
                success=success,
                cart_value=self.cart.totals.total,
                step=self.current_step.value,
            ),
        )
        return success

    def visible_errors(self) -> Dict[str, str]:
        """Field errors the shopper should currently see, plus the submit error"""
        errors: Dict[str, str] = {}
        errors.update(self.shipping_validator.visible_errors())
        if self.payment_method == PaymentMethod.CREDIT_CARD:
            errors.update(self.payment_validator.visible_errors())
        if self.submission_error:
            errors["submit"] = self.submission_error
        return errors

    # Submission

    async def submit(self) -> SubmissionResult:
        """
        Place the order from the review step

        Only one submission runs at a time and a running submission is
        shielded from cancellation. Failures leave the flow on review with
        all entered data intact.
        """
        if self.is_submitting:
            return SubmissionResult(
                status=SubmissionStatus.REJECTED,
                error="Order submission already in progress",
            )
        if self.is_complete:
            return SubmissionResult(
                status=SubmissionStatus.REJECTED,
                error="Order already placed",
            )
        if (
            self.current_step != CheckoutStep.REVIEW
            or not {CheckoutStep.SHIPPING, CheckoutStep.PAYMENT} <= self.completed_steps
        ):
            return SubmissionResult(
                status=SubmissionStatus.REJECTED,
                error="Complete shipping and payment before placing the order",
            )
        if self.cart.is_empty:
            return SubmissionResult(
                status=SubmissionStatus.REJECTED,
                error="Your cart is empty",
            )

        self.is_submitting = True
        self.submission_error = None
        self._submission = asyncio.ensure_future(self._run_submission())
        return await asyncio.shield(self._submission)

    async def _run_submission(self) -> SubmissionResult:
        try:
            return await self._place_order()
        finally:
            self.is_submitting = False

    async def _place_order(self) -> SubmissionResult:
        # Fields stay editable after their step completes; check them again
        errors: Dict[str, str] = {}
        for step in (CheckoutStep.SHIPPING, CheckoutStep.PAYMENT):
            errors.update(await self._validate_step(step))
        if errors:
            logger.info(f"Session {self.session_id} submitted with invalid fields: {sorted(errors)}")
            return SubmissionResult(
                status=SubmissionStatus.REJECTED,
                error=INVALID_ORDER_DATA_MESSAGE,
            )

        step_elapsed = self._elapsed_ms(self.step_started_at)
        items = self.cart.snapshot()
        totals = self.cart.totals
        has_promo = self.cart.promo is not None

        self._track(
            "place_order_attempt",
            PlaceOrderAttemptProperties(
                cart_value=totals.total,
                item_count=totals.item_count,
                payment_method=self.payment_method,
                shipping_city=self.shipping_address.city,
                has_promo=has_promo,
            ),
        )

        try:
            confirmation = await self.order_processor.place_order(
                items,
                totals,
                self.payment_method,
                self.shipping_address.model_copy(),
            )
        except Exception as e:
            logger.error(f"Order placement failed for session {self.session_id}: {e}")
            order_submissions.labels(outcome="failed").inc()
            self.submission_error = SUBMISSION_FAILED_MESSAGE
            self._track(
                "place_order_failed",
                PlaceOrderFailedProperties(
                    cart_value=totals.total,
                    item_count=totals.item_count,
                    payment_method=self.payment_method,
                    error=str(e) or type(e).__name__,
                    step_completion_time=step_elapsed,
                ),
            )
            return SubmissionResult(
                status=SubmissionStatus.FAILED,
                error=SUBMISSION_FAILED_MESSAGE,
            )

        self.confirmation = confirmation
        order_submissions.labels(outcome="placed").inc()
        self._track(
            "checkout_complete",
            CheckoutCompleteProperties(
                order_number=confirmation.order_number,
                order_value=totals.total,
                payment_method=self.payment_method,
                item_count=totals.item_count,
                has_promo=has_promo,
                discount_amount=totals.discount,
                total_checkout_time=self._elapsed_ms(self.flow_started_at),
                step_completion_time=step_elapsed,
            ),
        )

        self.cart.clear()
        await self.cart.persist()
        if self.cache is not None:
            await self.cache.delete(self.draft_key)

        return SubmissionResult(status=SubmissionStatus.PLACED, confirmation=confirmation)

    # Draft persistence

    async def save_shipping_draft(self) -> bool:
        """Cache the shipping address; card details are never cached"""
        if self.cache is None:
            return False
        return await self.cache.set(
            self.draft_key,
            self.shipping_address.model_dump(),
            expire=settings.DRAFT_TTL_SECONDS,
        )

    async def restore_shipping_draft(self) -> bool:
        if self.cache is None:
            return False
        draft = await self.cache.get(self.draft_key)
        if not draft:
            return False
        self.shipping_address = ShippingAddress.model_validate(draft)
        return True
