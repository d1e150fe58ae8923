"""
Configuration management for PillWatch
"""

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "PillWatch"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # Database (document store backend)
    DATABASE_URL: str = "sqlite:///./pillwatch.db"
    DATABASE_ECHO: bool = False

    # Time handling
    DEFAULT_TIMEZONE: str = "UTC"

    # Reminder scheduler
    SCHEDULER_ENABLED: bool = True
    POLL_INTERVAL_SECONDS: float = 10.0
    REMINDER_WINDOW_MINUTES: int = 1
    MISSED_WINDOW_START_MINUTES: int = 2
    MISSED_WINDOW_END_MINUTES: int = 5
    LOW_STOCK_THRESHOLD: int = 10
    LOW_STOCK_POLICY: str = "edge"  # "edge" or "level"
    LEGACY_MISSED_LOG_ALERTS: bool = False

    # Dedup ledger
    LEDGER_COMPACT_THRESHOLD: int = 1000
    LEDGER_COMPACTION_POLICY: str = "global"  # "global" or "per_partition"

    # Notifications
    NOTIFICATION_CHANNELS: list[str] = ["email", "push"]
    DISPATCH_TIMEOUT_SECONDS: float = 10.0
    EMAIL_PROVIDER: str = "console"  # "console" or "http"
    EMAIL_API_URL: str = "https://api.resend.com/emails"
    EMAIL_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "PillWatch <onboarding@resend.dev>"
    PUSH_GATEWAY_URL: Optional[str] = None
    PUSH_ICON: str = "/icon.svg"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

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


class SchedulerConfig:
    """Fixed vocabulary shared by the scheduler, dispatcher and API"""

    DOSE_TYPES: list[str] = ["morning", "evening"]
    DOSE_STATUSES: list[str] = ["taken", "missed"]
    DEVICE_STATUSES: list[str] = ["online", "offline"]
    ADHERENCE_PERIODS: dict[str, Optional[int]] = {
        "week": 7,
        "month": 30,
        "all": None,
    }
    PATIENT_ID_PATTERN: str = r"^[A-Z]+\d+$"
    DOSE_TIME_PATTERN: str = r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$"


# Database table names
class TableNames:
    PATIENTS = "patient_settings"
    DOSE_LOGS = "dose_logs"


settings = get_settings()
scheduler_config = SchedulerConfig()
