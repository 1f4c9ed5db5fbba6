"""
Configuration management for MedDrop
"""

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "MedDrop"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Local durable store
    DATABASE_URL: str = "sqlite:///./meddrop.db"
    DATABASE_ECHO: bool = False

    # Remote document store
    REMOTE_STORE_URL: Optional[str] = None
    REMOTE_STORE_API_KEY: Optional[str] = None
    REMOTE_STORE_TIMEOUT_SECONDS: float = 10.0

    # Dose status
    DOSE_EARLY_TOLERANCE_MINUTES: int = 30
    DOSE_LATE_TOLERANCE_MINUTES: int = 30

    # Reminders
    REMINDER_LOOKAHEAD_DAYS: int = 7
    DEFAULT_SNOOZE_MINUTES: int = 15

    # Offline sync
    SYNC_RETRY_THRESHOLD: int = 5
    SYNC_RETENTION_DAYS: int = 30

    # Risk sweep
    INACTIVITY_HOURS: int = 48
    IMPORTANT_MISSED_DOSES: int = 2
    REFILL_URGENT_DAYS: int = 3
    REFILL_WARNING_DAYS: int = 7

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:19006"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Record store collection names
class Collections:
    PATIENTS = "patients"
    MEDICINES = "medicines"
    ADHERENCE_LOGS = "adherence_logs"
    SYNC_QUEUE = "sync_queue"
    ALERTS = "alerts"


settings = get_settings()
