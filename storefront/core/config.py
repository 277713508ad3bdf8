"""
Application configuration management using Pydantic Settings
Handles environment variables and checkout tuning values
"""

from pydantic_settings import BaseSettings
from typing import Optional, List
from functools import lru_cache

class Settings(BaseSettings):
    """Main application settings"""

    # Application Settings
    APP_NAME: str = "Storefront Checkout API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 1

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Redis Configuration (draft cache)
    REDIS_URL: str = "redis://localhost:6379"
    REDIS_DECODE_RESPONSES: bool = True
    REDIS_MAX_CONNECTIONS: int = 10
    DRAFT_TTL_SECONDS: int = 7 * 24 * 3600

    # Live carts and checkout sessions kept per process
    MAX_LIVE_CARTS: int = 1000
    MAX_LIVE_SESSIONS: int = 1000
    SESSION_IDLE_TIMEOUT: int = 30 * 60  # seconds

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    LOG_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # Simulated latencies (seconds)
    PROMO_LOOKUP_DELAY: float = 0.5
    ORDER_PROCESSING_DELAY: float = 2.0

    # Progressive validation (seconds)
    VALIDATION_SETTLE_DELAY: float = 0.3
    ASYNC_VALIDATION_DEBOUNCE: float = 0.5

    # Swipe navigation tuning
    SWIPE_MIN_DISTANCE: float = 50.0
    SWIPE_VELOCITY_DISTANCE: float = 20.0
    SWIPE_MIN_VELOCITY: float = 0.3  # px per ms
    HAPTIC_PULSE_MS: int = 50

    # Analytics
    ANALYTICS_QUEUE_SIZE: int = 500
    ANALYTICS_CURRENCY: str = "SAR"

    # Monitoring
    PROMETHEUS_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    """
    Create cached settings instance
    This ensures settings are loaded only once
    """
    return Settings()

# Global settings instance
settings = get_settings()
