"""
Configuration Management for FinFlow

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The financial engine itself takes no configuration: everything below
only shapes the flows around it (defaults for new records, logging and
backup formatting).
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from ``FINFLOW_*`` environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FINFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_id: str = Field(
        default="finflow-v3.4",
        description="Application identifier attached to every audit log line"
    )
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum level of locally emitted log lines"
    )
    log_json: bool = Field(
        default=True,
        description="Render log lines as JSON (False = human readable console)"
    )

    # Record defaults
    default_withdrawal_note: str = Field(
        default="Withdrawal",
        description="Note used when a withdrawal is recorded without one"
    )
    default_sip_name: str = Field(
        default="SIP",
        description="Name used when a SIP entry is added without one"
    )

    # Storage writes
    storage_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per write when the store reports a transient failure"
    )
    storage_retry_wait: float = Field(
        default=1.0,
        ge=0.0,
        le=10.0,
        description="Exponential backoff multiplier in seconds (0 = retry at once)"
    )

    # Backup
    backup_indent: int = Field(
        default=2,
        ge=0,
        le=8,
        description="Indentation of exported backup documents"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @property
    def effective_log_level(self) -> str:
        """Debug mode always logs at DEBUG."""
        return "DEBUG" if self.debug_mode else self.log_level


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return AppSettings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    ``<name>_error`` entry for every failure. Useful for startup checks.
    """
    results = {}

    try:
        AppSettings()
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
