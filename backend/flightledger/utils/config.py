"""
Environment configuration loader with validation for the flight ledger.
"""

import logging
import os
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from dotenv import load_dotenv


TRUTHY = ("true", "1", "yes", "on")


class LedgerConfig(BaseModel):
    """Configuration model for the flight ledger with validation."""

    model_config = ConfigDict(frozen=True)

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///flightledger.db", description="Database connection URL"
    )
    sql_echo: bool = Field(default=False, description="Log every SQL statement")

    # Transaction Configuration
    transaction_timeout_seconds: int = Field(
        default=30, ge=1, description="Upper bound for a single ledger transaction"
    )
    storage_retry_attempts: int = Field(
        default=2,
        ge=0,
        description="Retries of idempotent operations after a storage failure",
    )
    id_retry_attempts: int = Field(
        default=5, ge=1, description="Attempts to claim a unique user identifier"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()


def load_config(env_file: Optional[str] = None) -> LedgerConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        LedgerConfig: Validated configuration object

    Raises:
        ValueError: If configuration is invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    try:
        config_data: Dict[str, Any] = {
            "database_url": os.getenv("DATABASE_URL", "sqlite:///flightledger.db"),
            "sql_echo": os.getenv("LEDGER_SQL_ECHO", "false").lower() in TRUTHY,
            "transaction_timeout_seconds": int(
                os.getenv("LEDGER_TRANSACTION_TIMEOUT", "30")
            ),
            "storage_retry_attempts": int(os.getenv("LEDGER_STORAGE_RETRIES", "2")),
            "id_retry_attempts": int(os.getenv("LEDGER_ID_RETRIES", "5")),
            "log_level": os.getenv("LEDGER_LOG_LEVEL", "INFO"),
        }
        return LedgerConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler used by the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# Global configuration instance
_config: Optional[LedgerConfig] = None


def get_config() -> LedgerConfig:
    """
    Get the global configuration instance, loading it if necessary.

    Returns:
        LedgerConfig: The global configuration object
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next call reloads it."""
    global _config
    _config = None
