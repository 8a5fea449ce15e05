"""Validation package."""

from finflow.validation.validator import BackupValidator

__all__ = ["BackupValidator"]
