"""
Application configuration using pydantic-settings.
All config is loaded from environment variables with sensible defaults.

Every availability and lock policy knob lives here so components can be
constructed with an explicit Settings value (tests build their own).
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Coworking Availability API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Europe/Paris"

    # Storage
    STORAGE_BACKEND: str = "redis"  # redis, memory
    REDIS_URL: str = "redis://localhost:6379/0"
    KEY_PREFIX: str = "cw"
    STORAGE_MAX_RETRIES: int = 5

    # Availability
    DEFAULT_CAPACITY: int = 1
    LOW_AVAILABILITY_THRESHOLD: int = 2

    # Lock policy
    EXCLUSIVE_CAPACITY_MAX: int = 1
    LOCK_TTL_EXCLUSIVE_SECONDS: int = 1200  # 20 minutes
    LOCK_TTL_SHARED_SECONDS: int = 300  # 5 minutes
    LOCK_STRICT_THRESHOLD_SECONDS: int = 900  # 15 minutes

    # Booking
    MIN_LEAD_DAYS: int = 1
    DRAFT_GRACE_HOURS: int = 24
    WEEK_PRICE_MULTIPLIER: float = 5
    MONTH_PRICE_MULTIPLIER: float = 4

    # External order system
    ORDER_SYSTEM_URL: str = ""
    ORDER_SYSTEM_TIMEOUT: float = 10.0
    ORDER_SYSTEM_API_KEY: str = ""
    PRODUCT_MAPPING: dict[int, str] = {}
    ORDER_WEBHOOK_SECRET: str = ""

    # Admin
    ADMIN_API_KEY: str = "change-me-in-production"

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    LOCK_SWEEP_INTERVAL_MINUTES: int = 10
    MAINTENANCE_HOUR: int = 3

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
    }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
