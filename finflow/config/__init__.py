"""Configuration package."""

from finflow.config.settings import (
    AppSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "get_settings",
    "validate_all_settings",
]
