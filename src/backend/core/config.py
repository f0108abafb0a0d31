"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables or a local .env file.
"""

import json
from functools import lru_cache
from typing import Any

from pydantic import field_validator
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
    APP_NAME: str = "TrustChain"
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Ledger
    # "memory" runs an in-process ledger (local development, tests)
    # "http" talks to the JSON-RPC ledger gateway at LEDGER_URL
    LEDGER_BACKEND: str = "memory"
    LEDGER_URL: str | None = None

    # Seed values for the in-memory ledger owner account
    LEDGER_ADMIN_ADDRESS: str = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"
    LEDGER_ADMIN_USERNAME: str = "admin"
    LEDGER_ADMIN_PASSWORD: str = "admin123"

    # Candidate portraits
    IMAGE_MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Display / export
    DISPLAY_TIMEZONE: str = "UTC"
    EXPORT_FILENAME_PREFIX: str = "Election_Details"

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:5173"

    @field_validator("LEDGER_BACKEND")
    @classmethod
    def validate_ledger_backend(cls, v: str) -> str:
        """Only the in-memory and HTTP ledgers exist."""
        backend = v.strip().lower()
        if backend not in ("memory", "http"):
            raise ValueError(f"LEDGER_BACKEND must be 'memory' or 'http', got {v!r}")
        return backend

    @field_validator("LEDGER_URL")
    @classmethod
    def validate_ledger_url(cls, v: str | None, info: Any) -> str | None:
        """The HTTP ledger needs a gateway URL."""
        if info.data.get("LEDGER_BACKEND") == "http" and not v:
            raise ValueError("LEDGER_URL must be set when LEDGER_BACKEND is 'http'")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
