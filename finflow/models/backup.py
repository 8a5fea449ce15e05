"""
Backup Models

A backup is the owner's raw month and bucket documents, exported as one
JSON object. These models describe a parsed backup and the outcome of
validating one before it is restored.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from finflow.models.records import Bucket, MonthRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Location of the issue (e.g., 'months[3].id')"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_type', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class BackupDocument(BaseModel):
    """
    A structurally valid backup.

    Documents are kept raw so a restore writes back exactly what was
    exported, including fields this version does not know about.
    """

    months: list[dict[str, Any]] = Field(default_factory=list)
    buckets: list[dict[str, Any]] = Field(default_factory=list)

    def month_records(self) -> list[MonthRecord]:
        return [MonthRecord.model_validate(doc) for doc in self.months]

    def bucket_records(self) -> list[Bucket]:
        return [Bucket.model_validate(doc) for doc in self.buckets]

    @property
    def document_count(self) -> int:
        return len(self.months) + len(self.buckets)


class ValidationResult(BaseModel):
    """
    Result of the two-stage backup validation.

    Stage 1: Schema validation (shape of the document, ids)
    Stage 2: Semantic validation (suspicious but restorable content)
    """

    validated_at: datetime = Field(
        default_factory=_utcnow
    )

    # Stage results
    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    semantic_valid: bool = Field(
        ...,
        description="Did semantic validation pass?"
    )

    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    document: Optional[BackupDocument] = Field(
        default=None,
        description="The parsed backup, present when the schema is valid"
    )

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]
