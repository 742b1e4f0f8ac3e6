"""Application configuration from environment variables and .env file."""

from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Billing ledger settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite:///./clinic_billing.db",
        description="SQLAlchemy connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/billing.log", description="Log file path")

    # Ledger
    patient_lock_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a mutation waits for another one on the same patient",
    )
    payments_page_size: int = Field(
        default=50, gt=0, description="Default number of payments returned per page"
    )
    paid_at_visit_note: str = Field(
        default="Paid at visit",
        description="Note stored on payments created for appointments paid on the spot",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
