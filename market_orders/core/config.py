"""
Market Orders — Configuration
All settings are read from environment variables (or .env file).
"""
import re
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "market-orders"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ── JWT ──────────────────────────────────────────────────
    JWT_SECRET_KEY: str = "CHANGE_ME_IN_PRODUCTION"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # ── PostgreSQL ────────────────────────────────────────────
    POSTGRES_HOST: str = "orders-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "orders_db"
    POSTGRES_USER: str = "orders_user"
    POSTGRES_PASSWORD: str = "orders_pass"
    DATABASE_URL: str | None = None

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Redis / Celery Broker ──────────────────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def celery_broker_url(self) -> str:
        return self.redis_url

    @property
    def celery_result_backend(self) -> str:
        return self.redis_url

    # ── Coupon ────────────────────────────────────────────────
    COUPON_CODE: str = ""
    COUPON_DISCOUNT_PERCENTAGE: Decimal = Field(Decimal("0"), ge=0, le=100)

    # ── Notifications ─────────────────────────────────────────
    NOTIFICATION_BACKEND: Literal["celery", "inline"] = "celery"
    HTTP_TIMEOUT_SECONDS: float = 10.0
    STORE_NAME: str = "Sandy's Market"
    STORE_PHONE: str = ""

    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM: str = "Sandy's Market <orders@sandysmarket.net>"
    STORE_EMAILS: str = ""

    TEXTBEE_API_KEY: str = ""
    TEXTBEE_DEVICE_ID: str = ""
    TEXTBEE_BASE_URL: str = "https://api.textbee.dev/api/v1"
    ADMIN_PHONE_NUMBERS: str = ""

    EXPO_PUSH_URL: str = "https://exp.host/--/api/v2/push/send"
    EXPO_ACCESS_TOKEN: str = ""

    @property
    def store_email_list(self) -> list[str]:
        return [e for e in _split_csv(self.STORE_EMAILS) if _EMAIL_RE.match(e)]

    @property
    def admin_phone_list(self) -> list[str]:
        return _split_csv(self.ADMIN_PHONE_NUMBERS)

    # ── Live order feed (SSE over Redis pub/sub) ───────────────
    LIVE_FEED_ENABLED: bool = True
    LIVE_FEED_CHANNEL: str = "orders:live"
    SSE_KEEPALIVE_INTERVAL_SECONDS: int = 15
    SSE_RETRY_MILLISECONDS: int = 3000

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
