"""
Data Models Package

This package contains all Pydantic models used in FinFlow:
stored records, the derived financial state, backups and audit events.
"""

from finflow.models.amounts import Amount, Priority, to_amount
from finflow.models.records import (
    GENERAL_SIP_NAME,
    UNNAMED_SIP_NAME,
    Bucket,
    BucketStatus,
    ExpenseItem,
    MonthRecord,
    SipEntry,
    Withdrawal,
)
from finflow.models.state import (
    AccumulatedInvestments,
    FinancialState,
    MonthlyAverages,
    ProcessedBucket,
)
from finflow.models.backup import (
    BackupDocument,
    ValidationIssue,
    ValidationResult,
)
from finflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Amounts
    "Amount",
    "Priority",
    "to_amount",
    # Record models
    "GENERAL_SIP_NAME",
    "UNNAMED_SIP_NAME",
    "Bucket",
    "BucketStatus",
    "ExpenseItem",
    "MonthRecord",
    "SipEntry",
    "Withdrawal",
    # State models
    "AccumulatedInvestments",
    "FinancialState",
    "MonthlyAverages",
    "ProcessedBucket",
    # Backup models
    "BackupDocument",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
