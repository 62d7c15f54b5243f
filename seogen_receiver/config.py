"""
SEOgen Receiver - Configuration

STRICT CONFIGURATION LOADER
============================

Settings are read from os.environ only. Auto-loading of .env files is
DISABLED; entrypoints that want a dotenv file load it explicitly first
(see seogen_receiver.cli --env-file).

Environment variables:
  DATABASE_URL               – Postgres DSN. Empty selects in-memory stores
                               (development and tests only)
  SEOGEN_LICENSE_KEY         – License key the generation API sends back
  SEOGEN_CALLBACK_SECRET     – Optional seed for the shared HMAC secret.
                               When unset, a secret is generated on startup
                               and persisted in receiver_options
  SEOGEN_API_URL             – Generation API base URL (pull importer)
  SEOGEN_ADMIN_API_KEY       – Key for /admin endpoints (X-Seogen-Admin-Key)
  SITE_URL                   – Public site URL reported by /ping
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Receiver settings.

    Does NOT auto-load any .env file. All variables must be present in
    os.environ before instantiation.
    """

    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # =========================================================================
    # ENVIRONMENT CONTROL
    # =========================================================================

    ENVIRONMENT: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Deployment environment",
    )
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # =========================================================================
    # STORAGE
    # =========================================================================

    DATABASE_URL: str = Field(
        default="",
        description="Postgres connection string; empty uses in-memory stores",
    )

    # =========================================================================
    # SITE / CALLBACK CONFIGURATION
    # =========================================================================

    SITE_URL: str = Field(default="http://localhost:8888")
    REST_NAMESPACE: str = Field(default="seogen/v1")

    SEOGEN_LICENSE_KEY: str = Field(default="")
    SEOGEN_CALLBACK_SECRET: str | None = Field(default=None)
    SEOGEN_API_URL: str = Field(default="")
    SEOGEN_ADMIN_API_KEY: str | None = Field(default=None)

    # =========================================================================
    # IMPORT TUNING
    # =========================================================================

    IMPORT_LOCK_TTL_SECONDS: int = Field(default=60, ge=1)
    SIGNATURE_MAX_AGE_SECONDS: int = Field(default=300, ge=1)
    PULL_BATCH_MAX_ITEMS: int = Field(default=10, ge=1)
    PULL_BATCH_MAX_SECONDS: float = Field(default=15.0, gt=0)
    PULL_HTTP_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # =========================================================================
    # SERVER CONFIGURATION
    # =========================================================================

    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8888)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "prod"

    @property
    def uses_database(self) -> bool:
        return bool(self.DATABASE_URL.strip())

    @property
    def rest_base_url(self) -> str:
        """Public base URL of the callback routes, with trailing slash."""
        return f"{self.SITE_URL.rstrip('/')}/{self.REST_NAMESPACE.strip('/')}/"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Clear the cached settings (for testing or environment switch)."""
    get_settings.cache_clear()


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure application logging based on settings.

    In production, uses structured JSON logging for observability.
    In development, uses colored console output.
    """
    if settings is None:
        settings = get_settings()

    from .core.logging import configure_structured_logging

    configure_structured_logging(
        level=settings.LOG_LEVEL,
        json_output=settings.is_production,
        service_name="seogen-receiver",
    )

    # Quiet noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
