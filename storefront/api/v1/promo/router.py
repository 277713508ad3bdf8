"""Promo code lookup"""

from fastapi import APIRouter, Depends

from storefront.api.v1.dependencies import SessionRegistry, get_registry
from storefront.models import normalize_promo_code
from storefront.schemas.cart import PromoCodeRequest, PromoCodeResponse

router = APIRouter()


@router.post("/validate", response_model=PromoCodeResponse)
async def validate_promo_code(
    promo_data: PromoCodeRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    """Check a promo code without applying it to a cart"""
    code = normalize_promo_code(promo_data.code)
    if not code:
        return PromoCodeResponse(valid=False, error="Please enter a promo code")

    promo = await registry.promo_validator.validate(code)
    if promo is None:
        return PromoCodeResponse(valid=False, code=code, error="Invalid or expired promo code")

    return PromoCodeResponse(
        valid=True,
        code=promo.code,
        discount_type=promo.type,
        discount_value=promo.discount,
        description=promo.description,
        expires_at=promo.expires_at,
    )
