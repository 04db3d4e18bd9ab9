"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from bank_ledger.config import settings
    print(settings.LOCK_TIMEOUT_SECONDS)
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the ledger service.

    Every field has a default, so the service starts with a local SQLite
    database when nothing is configured.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Bank Ledger API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Database ---
    # SQLite for local use; a postgresql+asyncpg:// URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/bank.db"

    # How long SQLite waits for another writer before giving up
    SQLITE_BUSY_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # --- Transfers ---
    # Upper bound on waiting for the account locks of a transfer or a
    # balance correction. Exceeding it fails the request as retryable.
    LOCK_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # --- CORS ---
    # Origins allowed to make cross-origin requests (frontend URLs)
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
