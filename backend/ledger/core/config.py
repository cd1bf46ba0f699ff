"""Application configuration using Pydantic settings."""

from typing import Any, Literal, Self

from pydantic import PostgresDsn, RedisDsn, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Revenue Ledger API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    RELOAD: bool = False

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "ledger"
    DATABASE_URL: PostgresDsn | None = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: str | None, info: Any) -> str:
        """Build database URL from components if not provided."""
        if isinstance(v, str):
            return v

        data = info.data
        return str(
            PostgresDsn.build(
                scheme="postgresql+asyncpg",
                username=data.get("POSTGRES_USER"),
                password=data.get("POSTGRES_PASSWORD"),
                host=data.get("POSTGRES_SERVER"),
                port=data.get("POSTGRES_PORT"),
                path=f"{data.get('POSTGRES_DB') or ''}",
            ),
        )

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_URL: RedisDsn | None = None
    REDIS_MAX_CONNECTIONS: int = 50

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_connection(cls, v: str | None, info: Any) -> str:
        """Build Redis URL from components if not provided."""
        if isinstance(v, str):
            return v

        data = info.data
        password_part = f":{data.get('REDIS_PASSWORD')}@" if data.get("REDIS_PASSWORD") else ""
        return f"redis://{password_part}{data.get('REDIS_HOST')}:{data.get('REDIS_PORT')}/{data.get('REDIS_DB')}"

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Event idempotency
    # "memory" only deduplicates within one process; use "redis" when running several workers
    IDEMPOTENCY_BACKEND: Literal["memory", "redis"] = "memory"
    IDEMPOTENCY_KEY_PREFIX: str = "revenue:event"
    IDEMPOTENCY_TTL_SECONDS: int = 7 * 24 * 60 * 60
    IDEMPOTENCY_MEMORY_MAX_ENTRIES: int = 100_000  # Oldest claims are forgotten beyond this

    # Failed events
    DEAD_LETTER_BACKEND: Literal["log", "redis"] = "log"
    DEAD_LETTER_KEY: str = "revenue:dead_letter"
    DEAD_LETTER_MAX_ENTRIES: int = 1000

    # Revenue periods and reporting
    PERIOD_MIN_YEAR: int = 1900
    PERIOD_MAX_YEAR: int = 2100
    ROLLING_WINDOW_MONTHS: int = 12
    MINOR_UNITS_PER_MAJOR: int = 100  # Amounts are stored in cents

    @property
    def uses_redis(self) -> bool:
        """Whether any revenue component needs a Redis connection."""
        return self.IDEMPOTENCY_BACKEND == "redis" or self.DEAD_LETTER_BACKEND == "redis"

    @model_validator(mode="after")
    def validate_revenue_settings(self) -> Self:
        """Reject period and window settings that cannot produce a valid report."""
        if self.PERIOD_MIN_YEAR > self.PERIOD_MAX_YEAR:
            raise ValueError(
                f"PERIOD_MIN_YEAR ({self.PERIOD_MIN_YEAR}) must not exceed "
                f"PERIOD_MAX_YEAR ({self.PERIOD_MAX_YEAR})"
            )
        if self.ROLLING_WINDOW_MONTHS < 1:
            raise ValueError("ROLLING_WINDOW_MONTHS must be at least 1")
        if self.MINOR_UNITS_PER_MAJOR < 1:
            raise ValueError("MINOR_UNITS_PER_MAJOR must be at least 1")
        if self.IDEMPOTENCY_MEMORY_MAX_ENTRIES < 1:
            raise ValueError("IDEMPOTENCY_MEMORY_MAX_ENTRIES must be at least 1")

        return self


settings = Settings()
