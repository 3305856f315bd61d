from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: Literal["dev", "prod", "test"] = "prod"
    DEBUG: bool = False

    # App
    APP_NAME: str = "adopsiak-api"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:3001"  # comma separated

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./adopsiak.db"  # async driver for runtime
    SYNC_DATABASE_URL: str | None = Field(default=None, validate_default=True)  # sync driver for Alembic

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Email OTP
    OTP_NAMESPACE: str = "adopsiak"
    OTP_EXPIRE_MINUTES: int = 10
    OTP_HASH_SECRET: str = "dev-otp-secret-change-me"

    # Verified-email proof (cookie set after a successful check)
    JWT_SECRET: str = "dev-secret-change-me"
    VERIFIED_EMAIL_TTL_MINUTES: int = 30
    VERIFIED_EMAIL_COOKIE_NAME: str = "email_verified"
    COOKIE_SECURE: bool = True

    # Orders
    ORDER_COOLDOWN_SECONDS: int = 5 * 60
    ADMIN_API_TOKEN: str | None = None

    # Rate limits
    RL_OTP_SEND_PER_IP_10S: int = 3
    RL_OTP_CHECK_PER_IP_10S: int = 10
    # wrong or right, counted per identifier over one code lifetime
    RL_OTP_CHECK_PER_IDENTIFIER: int = 5
    # honour X-Forwarded-For only when a trusted proxy sets it
    TRUST_PROXY_HEADERS: bool = False

    # Transactional email (Resend-compatible HTTP API)
    EMAIL_API_URL: str = "https://api.resend.com/emails"
    EMAIL_API_KEY: str | None = None
    EMAIL_FROM_ADDRESS: str = "Adopsiak <no-reply@adopsiak.pl>"
    EMAIL_TIMEOUT_SEC: float = 10.0

    # Logging / Observability
    LOG_LEVEL: str = "INFO"
    SLOW_QUERY_MS: int = 300          # warn if a DB query exceeds this
    METRICS_ENABLED: bool = True
    REQUEST_ID_HEADER: str = "X-Request-ID"

    # Expired verification sweeper
    SWEEP_INTERVAL_SEC: int = 300
    SWEEP_BATCH: int = 500
    SWEEP_LOCK_TTL_SEC: int = 240      # Redis lock TTL (must be < interval)

    @field_validator("SYNC_DATABASE_URL", mode="before")
    @classmethod
    def default_sync_if_missing(cls, v, info: ValidationInfo):
        if v:
            return v
        url = info.data.get("DATABASE_URL")
        # Swap async drivers for their sync counterparts for Alembic usage
        if url and url.startswith("postgresql+asyncpg://"):
            return url.replace("postgresql+asyncpg://", "postgresql+psycopg://", 1)
        if url and url.startswith("sqlite+aiosqlite://"):
            return url.replace("sqlite+aiosqlite://", "sqlite://", 1)
        return v

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


def get_settings() -> Settings:
    # slightly faster singleton
    global _SETTINGS_SINGLETON
    try:
        return _SETTINGS_SINGLETON  # type: ignore[name-defined]
    except NameError:
        _SETTINGS_SINGLETON = Settings()  # type: ignore[assignment]
        return _SETTINGS_SINGLETON
