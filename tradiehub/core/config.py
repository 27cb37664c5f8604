"""
Core Configuration Module
Uses pydantic-settings for environment variable management.
All secrets loaded from .env file - NEVER hardcode secrets.
"""
from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    project_name: str = "TradieHub"
    environment: str = Field(default="development", description="development | staging | production")
    debug: bool = Field(default=False)
    api_v1_str: str = "/api/v1"
    app_version: str = Field(default="1.0.0", description="Application version")

    # Database
    database_url: str = Field(
        default="postgresql+asyncpg://tradiehub:tradiehub_password@db:5432/tradiehub",
        description="Async SQLAlchemy database URL",
    )
    db_pool_size: int = Field(default=20, description="SQLAlchemy connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_echo: bool = Field(default=False, description="Echo SQL queries")

    # Redis
    redis_url: str = Field(default="redis://redis:6379/0", description="Redis connection URL (pub/sub)")

    # Celery
    celery_broker_url: str = Field(default="redis://redis:6379/1", description="Celery broker URL")
    celery_result_backend: str = Field(default="redis://redis:6379/1", description="Celery result backend")
    expiry_sweep_interval_seconds: float = Field(default=3600.0, description="Expired job sweep interval")

    # Security
    secret_key: str = Field(default="CHANGE_ME_IN_PRODUCTION", description="JWT secret key")
    algorithm: str = Field(default="HS256", description="JWT algorithm")
    access_token_expire_minutes: int = Field(default=60 * 24, description="Token expiry in minutes")

    # CORS
    cors_origins: str = Field(default="http://localhost:3000", description="Comma-separated CORS origins")

    # Sentry (Error Tracking)
    sentry_dsn: str = Field(default="", description="Sentry DSN for error tracking")
    sentry_traces_sample_rate: float = Field(default=0.1, description="Sentry traces sample rate")

    # Prometheus
    prometheus_enabled: bool = Field(default=True, description="Enable Prometheus metrics")

    # Marketplace
    job_expiry_days: int = Field(default=30, description="Days until a marketplace job expires")
    max_applications_per_job: int = Field(default=50, description="Application cap per job")
    completion_bonus_budget_divisor: int = Field(
        default=100,
        description="Bonus credits on completion = floor(budget / divisor)",
    )

    # Credits
    base_application_cost: Decimal = Field(default=Decimal("2"), description="Base credits per application")
    credit_rounding_increment: Decimal = Field(
        default=Decimal("0.01"),
        description="Credit costs are rounded up to a multiple of this increment",
    )
    trial_credits: Decimal = Field(default=Decimal("10"), description="Credits seeded on registration")
    refund_on_withdrawal: bool = Field(default=True, description="Refund credits when a tradie withdraws")
    refund_on_job_cancellation: bool = Field(default=True, description="Refund applicants when a job is cancelled")
    auto_topup_default_trigger: Decimal = Field(default=Decimal("5"), description="Default auto-topup trigger balance")
    auto_topup_default_credits: Decimal = Field(default=Decimal("25"), description="Default auto-topup size")
    auto_topup_max_failures: int = Field(default=3, description="Auto-topup disabled after this many failures")
    auto_topup_cooldown_minutes: int = Field(default=60, description="Minimum gap between auto-topups")

    # Payments (credit purchases)
    payments_api_url: str = Field(default="http://payments:8080", description="Payment service base URL")
    payments_api_key: str = Field(default="", description="Payment service API key")
    payments_timeout_seconds: float = Field(default=10.0, description="Payment request timeout")

    # Quotes
    gst_rate: Decimal = Field(default=Decimal("0.10"), description="GST rate applied to quotes")
    quote_valid_days: int = Field(default=30, description="Default quote validity")
    quote_number_prefix: str = Field(default="QT", description="Quote number prefix")
    max_items_per_quote: int = Field(default=50, description="Maximum line items per quote")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from the comma-separated setting."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
