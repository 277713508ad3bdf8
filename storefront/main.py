"""Main FastAPI application with all middleware"""

from fastapi import FastAPI
import logging

from storefront.api.v1 import api_router
from storefront.core.cache import cache
from storefront.core.config import settings
from storefront.core.events import lifespan
from storefront.core.middleware import setup_middleware
from storefront.core.monitoring import metrics_response, setup_monitoring_middleware

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Cart, promo code and multi-step checkout API",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

# Add middleware
setup_middleware(app)
if settings.PROMETHEUS_ENABLED:
    setup_monitoring_middleware(app)

# Include routers
app.include_router(api_router, prefix="/api/v1")

# Health check
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "draft_store": "redis" if cache.is_connected else "memory"
    }

@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()

# Root endpoint
@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "docs": "/api/docs",
        "health": "/health"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "storefront.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=settings.WORKERS
    )
