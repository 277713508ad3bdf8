"""Cart router: line items, quantities and promo codes"""

from fastapi import APIRouter, Depends, status

from storefront.api.v1.dependencies import SessionRegistry, get_registry
from storefront.core.exceptions import BadRequestException
from storefront.schemas.cart import (
    AddToCartRequest,
    CartItemUpdate,
    CartResponse,
    PromoCodeRequest,
)
from storefront.services.cart_service import CartStore

router = APIRouter()


def build_cart_response(cart: CartStore) -> CartResponse:
    return CartResponse(
        cart_id=cart.cart_id,
        items=cart.snapshot(),
        totals=cart.totals,
        promo_code=cart.promo.code if cart.promo else None,
        is_empty=cart.is_empty,
    )


@router.get("/{cart_id}", response_model=CartResponse)
async def get_cart(
    cart_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    """Get cart with derived totals; unknown ids start empty"""
    cart = await registry.get_cart(cart_id)
    return build_cart_response(cart)


@router.post("/{cart_id}/items", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    cart_id: str,
    item_data: AddToCartRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    """Add item to cart"""
    cart = await registry.get_cart(cart_id)
    cart.add_item(
        product_id=item_data.product_id,
        product_title=item_data.product_title,
        price=item_data.price,
        quantity=item_data.quantity,
        variant=item_data.variant,
        product_image=item_data.product_image,
        original_price=item_data.original_price,
    )
    await cart.persist()
    return build_cart_response(cart)


@router.patch("/{cart_id}/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    cart_id: str,
    item_id: str,
    update_data: CartItemUpdate,
    registry: SessionRegistry = Depends(get_registry)
):
    """Update cart item quantity; zero removes the line"""
    cart = await registry.get_cart(cart_id)
    cart.update_quantity(item_id, update_data.quantity)
    await cart.persist()
    return build_cart_response(cart)


@router.delete("/{cart_id}/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    cart_id: str,
    item_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    cart = await registry.get_cart(cart_id)
    cart.remove_item(item_id)
    await cart.persist()
    return build_cart_response(cart)


@router.delete("/{cart_id}", response_model=CartResponse)
async def clear_cart(
    cart_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    cart = await registry.get_cart(cart_id)
    cart.clear()
    await cart.persist()
    return build_cart_response(cart)


@router.post("/{cart_id}/promo", response_model=CartResponse)
async def apply_promo_code(
    cart_id: str,
    promo_data: PromoCodeRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    """Apply promo code to cart"""
    cart = await registry.get_cart(cart_id)
    if not await cart.apply_promo_code(promo_data.code):
        raise BadRequestException(
            "Invalid or expired promo code",
            error_code="INVALID_PROMO_CODE"
        )
    await cart.persist()
    return build_cart_response(cart)


@router.delete("/{cart_id}/promo", response_model=CartResponse)
async def remove_promo_code(
    cart_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    cart = await registry.get_cart(cart_id)
    cart.remove_promo_code()
    await cart.persist()
    return build_cart_response(cart)
