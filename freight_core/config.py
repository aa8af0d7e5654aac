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
    APP_NAME: str = "Freight Core"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/freight_core"
    )

    # Transactions
    # Every transaction carries a timeout. Exceeding it aborts the
    # transaction and is reported as a retryable failure.
    TRANSACTION_TIMEOUT_MS: int = int(os.getenv("TRANSACTION_TIMEOUT_MS", "5000"))
    MAX_TRANSACTION_ATTEMPTS: int = int(os.getenv("MAX_TRANSACTION_ATTEMPTS", "3"))
    RETRY_BASE_DELAY_MS: int = int(os.getenv("RETRY_BASE_DELAY_MS", "50"))
    SQLITE_BUSY_TIMEOUT_S: float = float(os.getenv("SQLITE_BUSY_TIMEOUT_S", "30"))

    # Trips
    # Received quantity may exceed the loaded quantity by at most this
    # percentage before the receive card is rejected.
    RECEIVE_TOLERANCE_PERCENT: int = int(os.getenv("RECEIVE_TOLERANCE_PERCENT", "5"))

    # Ledger
    ALLOW_ADVANCE_PAYMENTS: bool = (
        os.getenv("ALLOW_ADVANCE_PAYMENTS", "false").lower() == "true"
    )
    LEDGER_TIMELINE_MAX_LIMIT: int = int(os.getenv("LEDGER_TIMELINE_MAX_LIMIT", "500"))
    # User ids allowed to run operational reads such as the integrity scan
    LEDGER_OPERATOR_USER_IDS: frozenset[str] = frozenset(
        part.strip()
        for part in os.getenv("LEDGER_OPERATOR_USER_IDS", "").split(",")
        if part.strip()
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls. This avoids reading
    environment variables repeatedly.
    """
    return Settings()
