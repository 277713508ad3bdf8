"""
Application lifecycle events
Handles startup and shutdown tasks
"""

from fastapi import FastAPI
import logging
from contextlib import asynccontextmanager

from .cache import cache
from .logging import setup_logging
from .config import settings

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    Handles startup and shutdown events
    """
    try:
        setup_logging()
        logger.info(f"Starting {settings.APP_NAME}...")

        # Draft cache falls back to memory when Redis is unreachable
        if settings.ENVIRONMENT != "test":
            await cache.connect()
            backend = "redis" if cache.is_connected else "memory"
            logger.info(f"Draft cache ready ({backend})")

        logger.info(f"{settings.APP_NAME} started successfully")

        yield

    finally:
        logger.info(f"Shutting down {settings.APP_NAME}...")
        await cache.disconnect()
