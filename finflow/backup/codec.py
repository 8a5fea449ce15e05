"""
Backup Export / Import

A backup is a single JSON object ``{"months": [...], "buckets": [...]}``
holding the owner's documents in their stored (camelCase) form.

DESIGN DECISION: Import is all-or-nothing. ``parse_backup`` validates the
whole document first and raises before anything can be written, so a
malformed backup never leaves the records half restored.
"""

import json
from typing import Iterable, Mapping, Union

import structlog

from finflow.models.amounts import to_priority
from finflow.models.backup import BackupDocument, ValidationIssue
from finflow.models.records import Bucket, MonthRecord
from finflow.validation import BackupValidator


logger = structlog.get_logger(__name__)

DEFAULT_INDENT = 2


class BackupImportError(Exception):
    """A backup failed validation; nothing was restored."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        messages = "; ".join(issue.message for issue in issues) or "invalid backup"
        super().__init__(f"Backup rejected: {messages}")

    @property
    def messages(self) -> list[str]:
        return [issue.message for issue in self.issues]


def _as_document(record: Union[MonthRecord, Bucket, Mapping]) -> dict:
    if isinstance(record, (MonthRecord, Bucket)):
        return record.to_document()
    return dict(record)


def export_backup(
    months: Iterable[Union[MonthRecord, Mapping]],
    buckets: Iterable[Union[Bucket, Mapping]],
    indent: int = DEFAULT_INDENT,
) -> str:
    """
    Serialize an owner's records to backup JSON.

    Months are written in chronological order, buckets in priority order.
    """
    month_docs = sorted((_as_document(m) for m in months), key=lambda d: str(d.get("id", "")))
    bucket_docs = [_as_document(b) for b in buckets]
    bucket_docs.sort(key=lambda d: to_priority(d.get("priority")))

    logger.debug(
        "backup_exported",
        month_count=len(month_docs),
        bucket_count=len(bucket_docs),
    )
    return json.dumps(
        {"months": month_docs, "buckets": bucket_docs},
        indent=indent,
        ensure_ascii=False,
    )


def parse_backup(text: Union[str, bytes]) -> BackupDocument:
    """
    Parse and validate backup JSON.

    Raises:
        BackupImportError: If the backup is structurally invalid
    """
    result = BackupValidator().validate(text)

    if not result.schema_valid or result.document is None:
        logger.warning("backup_invalid", issues=[i.message for i in result.errors])
        raise BackupImportError(result.errors)

    for warning in result.warnings:
        logger.info("backup_warning", warning=warning)

    return result.document
