"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Ledger Sync"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Relational store
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite+aiosqlite:///./ledger_sync.db"
    )

    # Blob store
    STORAGE_ROOT: str = os.getenv("STORAGE_ROOT", "./storage")
    STORAGE_BUCKET: str = os.getenv("STORAGE_BUCKET", "ledger-files")
    STORAGE_PUBLIC_URL: str = os.getenv(
        "STORAGE_PUBLIC_URL",
        "http://localhost:8000/storage"
    )

    # Maximum attachment uploads running at once for a single entry
    UPLOAD_CONCURRENCY: int = int(os.getenv("UPLOAD_CONCURRENCY", "4"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    The Settings object is created once and reused for all
    subsequent calls, so environment variables are read a
    single time per process.
    """
    return Settings()
