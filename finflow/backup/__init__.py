"""Backup export and import."""

from finflow.backup.codec import BackupImportError, export_backup, parse_backup

__all__ = ["BackupImportError", "export_backup", "parse_backup"]
