"""Checkout router: session lifecycle, step navigation and order submission"""

import logging

from fastapi import APIRouter, Depends, Response, status

from storefront.api.v1.dependencies import SessionRegistry, get_registry
from storefront.core.exceptions import (
    BadRequestException,
    SubmissionInProgressException,
)
from storefront.models import SubmissionStatus
from storefront.schemas.cart import PromoCodeRequest
from storefront.schemas.checkout import (
    CheckoutSessionCreate,
    CheckoutSessionResponse,
    FieldEditRequest,
    FieldEditResponse,
    PaymentMethodRequest,
    StepJumpRequest,
    SubmissionResult,
    SwipeRequest,
    SwipeResponse,
    TransitionResult,
)
from storefront.services.checkout import CheckoutStateMachine

logger = logging.getLogger(__name__)

router = APIRouter()


def build_session_response(session: CheckoutStateMachine) -> CheckoutSessionResponse:
    cart = session.cart
    return CheckoutSessionResponse(
        session_id=session.session_id,
        cart_id=cart.cart_id,
        current_step=session.current_step,
        completed_steps=sorted(session.completed_steps, key=lambda step: step.position),
        payment_method=session.payment_method,
        shipping_address=session.shipping_address,
        visible_errors=session.visible_errors(),
        totals=cart.totals,
        promo_code=cart.promo.code if cart.promo else None,
        is_submitting=session.is_submitting,
        submission_error=session.submission_error,
        confirmation=session.confirmation,
    )


@router.post("/sessions", response_model=CheckoutSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    session_data: CheckoutSessionCreate,
    registry: SessionRegistry = Depends(get_registry)
):
    """Open checkout for a cart; the cart must not be empty"""
    cart = await registry.get_cart(session_data.cart_id)
    session = registry.create_session(cart, session_data.prefers_reduced_motion)
    try:
        session.start()
    except BadRequestException:
        registry.close_session(session.session_id)
        raise
    return build_session_response(session)


@router.get("/sessions/{session_id}", response_model=CheckoutSessionResponse)
async def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    return build_session_response(registry.get_session(session_id))


@router.post("/sessions/{session_id}/restore", response_model=CheckoutSessionResponse)
async def restore_shipping_draft(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    """Reload the cached shipping address into the session, if any"""
    session = registry.get_session(session_id)
    await session.restore_shipping_draft()
    return build_session_response(session)


@router.put("/sessions/{session_id}/fields", response_model=FieldEditResponse)
async def edit_field(
    session_id: str,
    edit: FieldEditRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    """Store a field value and return progressive validation feedback"""
    session = registry.get_session(session_id)
    result = await session.edit_field(edit.field, edit.value)
    return FieldEditResponse(
        field=edit.field,
        result=result,
        show_error=edit.field in session.visible_errors(),
    )


@router.post("/sessions/{session_id}/fields/{field}/focus", status_code=status.HTTP_204_NO_CONTENT)
async def focus_field(
    session_id: str,
    field: str,
    registry: SessionRegistry = Depends(get_registry)
):
    registry.get_session(session_id).focus_field(field)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/fields/{field}/blur", status_code=status.HTTP_204_NO_CONTENT)
async def blur_field(
    session_id: str,
    field: str,
    registry: SessionRegistry = Depends(get_registry)
):
    registry.get_session(session_id).blur_field(field)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/advance", response_model=TransitionResult)
async def advance(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    """Validate the current step and continue"""
    return await registry.get_session(session_id).advance()


@router.post("/sessions/{session_id}/retreat", response_model=TransitionResult)
async def retreat(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    return registry.get_session(session_id).retreat()


@router.post("/sessions/{session_id}/jump", response_model=TransitionResult)
async def jump_to_step(
    session_id: str,
    jump: StepJumpRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    """Jump back to an earlier step, e.g. the edit links on the review step"""
    return registry.get_session(session_id).jump_to(jump.step)


@router.post("/sessions/{session_id}/swipe", response_model=SwipeResponse)
async def swipe(
    session_id: str,
    gesture: SwipeRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    """Navigate with a completed horizontal swipe"""
    session = registry.get_session(session_id)
    result = await session.handle_swipe(gesture.start_x, gesture.end_x, gesture.elapsed_ms)
    return SwipeResponse(handled=result is not None, transition=result)


@router.post("/sessions/{session_id}/payment-method", response_model=CheckoutSessionResponse)
async def select_payment_method(
    session_id: str,
    selection: PaymentMethodRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    session = registry.get_session(session_id)
    session.select_payment_method(selection.method)
    return build_session_response(session)


@router.post("/sessions/{session_id}/promo", response_model=CheckoutSessionResponse)
async def apply_promo_code(
    session_id: str,
    promo_data: PromoCodeRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    session = registry.get_session(session_id)
    if not await session.apply_promo_code(promo_data.code):
        raise BadRequestException(
            "Invalid or expired promo code",
            error_code="INVALID_PROMO_CODE"
        )
    await session.cart.persist()
    return build_session_response(session)


@router.post("/sessions/{session_id}/submit", response_model=SubmissionResult)
async def submit_order(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    """
    Place the order

    A second submit while one is running gets 409. Other rejected
    submissions get 400; a failed placement returns the failure result.
    A placed order closes the session.
    """
    session = registry.get_session(session_id)
    if session.is_submitting:
        raise SubmissionInProgressException()

    result = await session.submit()
    if result.status == SubmissionStatus.REJECTED:
        raise BadRequestException(result.error, error_code="SUBMISSION_REJECTED")

    logger.info(f"Submission for session {session_id} finished: {result.status.value}")
    if result.status == SubmissionStatus.PLACED:
        registry.close_session(session_id)
    return result


@router.post("/sessions/{session_id}/abandon", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_checkout(
    session_id: str,
    reason: str = "back_to_cart",
    registry: SessionRegistry = Depends(get_registry)
):
    """Leave checkout; the cart is kept"""
    session = registry.get_session(session_id)
    session.abandon(reason)
    registry.close_session(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
