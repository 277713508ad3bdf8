"""API v1 routes aggregation"""

from fastapi import APIRouter

from .cart.router import router as cart_router
from .checkout.router import router as checkout_router
from .promo.router import router as promo_router

# Create v1 router
api_router = APIRouter()

# Include all routers
api_router.include_router(cart_router, prefix="/cart", tags=["Cart"])
api_router.include_router(promo_router, prefix="/promo", tags=["Promo Codes"])
api_router.include_router(checkout_router, prefix="/checkout", tags=["Checkout"])

# Export router
router = api_router
