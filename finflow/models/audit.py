"""
Audit Models for FinFlow

Every mutation intent issued against an owner's records is logged.
This provides:
1. Traceability of how the current financial state came to be
2. Debugging information when a balance looks wrong
3. A record of rejected backup imports

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Month records
    MONTH_UPDATED = "month_updated"
    MONTH_DELETED = "month_deleted"
    EXPENSE_ADDED = "expense_added"
    EXPENSE_REMOVED = "expense_removed"
    SIP_ADDED = "sip_added"
    SIP_REMOVED = "sip_removed"

    # Buckets
    BUCKET_SAVED = "bucket_saved"
    BUCKET_DELETED = "bucket_deleted"
    BUCKET_WITHDRAWN = "bucket_withdrawn"
    BUCKET_STATUS_CHANGED = "bucket_status_changed"
    BUCKETS_REORDERED = "buckets_reordered"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_RESTORED = "backup_restored"
    BACKUP_REJECTED = "backup_rejected"

    # Derived state
    STATE_COMPUTED = "state_computed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every mutation intent creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - whose records, and which one?
    owner_id: Optional[str] = Field(
        default=None,
        description="Owner of the records this event touched"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'month', 'bucket', 'backup')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one restore)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.bucket_withdrawn(owner_id, bucket_id, "5000", note)
        event = AuditEventBuilder.backup_restored(owner_id, 12, 3, correlation_id)
    """

    @staticmethod
    def month_updated(
        owner_id: str,
        month_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_UPDATED,
            owner_id=owner_id,
            entity_type="month",
            entity_id=month_id,
            correlation_id=correlation_id,
            description=f"Month {month_id} updated",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def month_deleted(
        owner_id: str,
        month_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_DELETED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="month",
            entity_id=month_id,
            correlation_id=correlation_id,
            description=f"Month {month_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def line_item_changed(
        event_type: AuditEventType,
        owner_id: str,
        month_id: str,
        item_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Expense or SIP line item added to / removed from a month."""
        label = event_type.value.replace("_", " ")
        return AuditEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type="month",
            entity_id=month_id,
            correlation_id=correlation_id,
            description=f"{label.capitalize()} in {month_id}: ₹{amount}",
            details={
                "item_id": item_id,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def bucket_saved(
        owner_id: str,
        bucket_id: str,
        name: str,
        target: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUCKET_SAVED,
            owner_id=owner_id,
            entity_type="bucket",
            entity_id=bucket_id,
            correlation_id=correlation_id,
            description=f"Bucket {'created' if created else 'edited'}: {name} (target ₹{target})",
            details={
                "name": name,
                "target": target,
                "created": created,
            },
            is_user_action=True,
        )

    @staticmethod
    def bucket_deleted(
        owner_id: str,
        bucket_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUCKET_DELETED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="bucket",
            entity_id=bucket_id,
            correlation_id=correlation_id,
            description=f"Bucket {bucket_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def bucket_withdrawn(
        owner_id: str,
        bucket_id: str,
        amount: str,
        note: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUCKET_WITHDRAWN,
            owner_id=owner_id,
            entity_type="bucket",
            entity_id=bucket_id,
            correlation_id=correlation_id,
            description=f"Withdrawal of ₹{amount} from bucket {bucket_id}",
            details={
                "amount": amount,
                "note": note,
            },
            is_user_action=True,
        )

    @staticmethod
    def bucket_status_changed(
        owner_id: str,
        bucket_id: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUCKET_STATUS_CHANGED,
            owner_id=owner_id,
            entity_type="bucket",
            entity_id=bucket_id,
            correlation_id=correlation_id,
            description=f"Bucket {bucket_id} marked {status}",
            details={"status": status},
            is_user_action=True,
        )

    @staticmethod
    def buckets_reordered(
        owner_id: str,
        order: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUCKETS_REORDERED,
            owner_id=owner_id,
            entity_type="bucket",
            correlation_id=correlation_id,
            description=f"Bucket priorities reordered ({len(order)} buckets)",
            details={"order": order},
            is_user_action=True,
        )

    @staticmethod
    def backup_exported(
        owner_id: str,
        month_count: int,
        bucket_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            owner_id=owner_id,
            entity_type="backup",
            correlation_id=correlation_id,
            description=f"Backup exported: {month_count} months, {bucket_count} buckets",
            details={
                "month_count": month_count,
                "bucket_count": bucket_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def backup_restored(
        owner_id: str,
        month_count: int,
        bucket_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            owner_id=owner_id,
            entity_type="backup",
            correlation_id=correlation_id,
            description=f"Backup restored: {month_count} months, {bucket_count} buckets",
            details={
                "month_count": month_count,
                "bucket_count": bucket_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def backup_rejected(
        owner_id: str,
        issues: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="backup",
            correlation_id=correlation_id,
            description=f"Backup import rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def state_computed(
        owner_id: str,
        month_count: int,
        bucket_count: int,
        net_worth: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_COMPUTED,
            severity=AuditSeverity.DEBUG,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Financial state recomputed",
            details={
                "month_count": month_count,
                "bucket_count": bucket_count,
                "net_worth": net_worth,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
