from enum import Enum
from functools import lru_cache
from typing import List, Optional
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from accountability.core.errors import ConfigurationError


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment Configuration
    ENVIRONMENT: Environment = Environment.DEVELOPMENT

    # Database
    DATABASE_URL: str = "sqlite:///./accountability.db"

    # Timezone configuration (used for goal auto-reminders)
    DEFAULT_TIMEZONE: str = "UTC"

    # Redis broker
    REDIS_URL: Optional[str] = None
    REDIS_HOST: Optional[str] = None
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0

    # Any of these forces the immediate-fallback queue
    DISABLE_REDIS: bool = False
    SKIP_REDIS_INIT: bool = False
    REDIS_DISABLED: bool = False

    # Notification queue
    QUEUE_NAME: str = "email-delivery"
    JOB_MAX_ATTEMPTS: int = 5
    JOB_BACKOFF_BASE_SECONDS: float = 2.0
    JOB_RATE_LIMIT: Optional[str] = "1000/m"
    JOB_REMOVE_ON_COMPLETE: bool = True
    DEFAULT_JOB_PRIORITY: int = 3
    WORKER_CONCURRENCY: int = 4
    BROKER_CONNECT_RETRIES: int = 1

    # Scheduling
    SCHEDULER_SCAN_INTERVAL_SECONDS: int = 60
    SCHEDULER_BATCH_SIZE: int = 500

    # Goal due-date reminders
    GOAL_REMINDER_HOUR: int = 9
    GOAL_REMINDER_OFFSETS_DAYS: List[int] = [1, 3, 7]

    # SMTP transport
    SMTP_SERVER: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    FROM_EMAIL: Optional[str] = None
    TRANSPORT_TIMEOUT_SECONDS: float = 30.0

    # Logging / metrics
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    METRICS_ENABLED: bool = False
    METRICS_PORT: int = 9108

    @field_validator("JOB_MAX_ATTEMPTS")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("JOB_MAX_ATTEMPTS must be at least 1")
        return v

    @field_validator("GOAL_REMINDER_HOUR")
    @classmethod
    def valid_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("GOAL_REMINDER_HOUR must be between 0 and 23")
        return v

    @property
    def redis_disabled(self) -> bool:
        return self.DISABLE_REDIS or self.SKIP_REDIS_INIT or self.REDIS_DISABLED

    @property
    def broker_url(self) -> str:
        """Resolve the Redis broker URL; REDIS_URL wins over host/port variables."""
        if self.REDIS_URL:
            return self.REDIS_URL
        if self.REDIS_HOST:
            scheme = "rediss" if self.ENVIRONMENT == Environment.PRODUCTION else "redis"
            auth = f":{quote_plus(self.REDIS_PASSWORD)}@" if self.REDIS_PASSWORD else ""
            return f"{scheme}://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        # No localhost fallback: a missing broker means immediate mode
        raise ConfigurationError(
            "Redis configuration not found. REDIS_URL or REDIS_HOST must be set."
        )

    def broker_summary(self) -> dict:
        """Broker settings safe for logging (no credentials)."""
        return {
            "type": "URL" if self.REDIS_URL else "host",
            "has_password": bool(self.REDIS_PASSWORD) or bool(self.REDIS_URL and "@" in self.REDIS_URL),
            "host": self.REDIS_HOST or "from URL",
            "port": self.REDIS_PORT if self.REDIS_HOST else "from URL",
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
