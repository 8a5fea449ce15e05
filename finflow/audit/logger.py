"""
Audit Logger

DESIGN DECISION: Every mutation intent issued against an owner's records
is logged. This provides:
1. Traceability of how a balance came to be
2. Debugging capability
3. A history the owner can inspect

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't break a save if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finflow.config import AppSettings, get_settings
from finflow.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finflow.services.storage import AuditStorageInterface


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """
    Configure structlog for local logging.

    ``log_json`` picks the renderer: JSON lines for machines, a console
    renderer for humans.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.effective_log_level)
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and owner visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        settings: Optional[AppSettings] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            settings: Application settings (for the app_id tag on log lines).
        """
        settings = settings or get_settings()
        self._storage = storage
        self._logger = structlog.get_logger(__name__).bind(app_id=settings.app_id)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()
        severity = event.severity.value

        if severity in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif severity == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif severity == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_month_updated(
        self,
        owner_id: str,
        month_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.month_updated(
            owner_id=owner_id,
            month_id=month_id,
            fields=fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_month_deleted(
        self,
        owner_id: str,
        month_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.month_deleted(
            owner_id=owner_id,
            month_id=month_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_line_item(
        self,
        event_type: AuditEventType,
        owner_id: str,
        month_id: str,
        item_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense or SIP entry being added or removed."""
        event = AuditEventBuilder.line_item_changed(
            event_type=event_type,
            owner_id=owner_id,
            month_id=month_id,
            item_id=item_id,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_bucket_saved(
        self,
        owner_id: str,
        bucket_id: str,
        name: str,
        target: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.bucket_saved(
            owner_id=owner_id,
            bucket_id=bucket_id,
            name=name,
            target=target,
            created=created,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_bucket_deleted(
        self,
        owner_id: str,
        bucket_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.bucket_deleted(
            owner_id=owner_id,
            bucket_id=bucket_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_bucket_withdrawn(
        self,
        owner_id: str,
        bucket_id: str,
        amount: str,
        note: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.bucket_withdrawn(
            owner_id=owner_id,
            bucket_id=bucket_id,
            amount=amount,
            note=note,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_bucket_status_changed(
        self,
        owner_id: str,
        bucket_id: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.bucket_status_changed(
            owner_id=owner_id,
            bucket_id=bucket_id,
            status=status,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_buckets_reordered(
        self,
        owner_id: str,
        order: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.buckets_reordered(
            owner_id=owner_id,
            order=order,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_exported(
        self,
        owner_id: str,
        month_count: int,
        bucket_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.backup_exported(
            owner_id=owner_id,
            month_count=month_count,
            bucket_count=bucket_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_restored(
        self,
        owner_id: str,
        month_count: int,
        bucket_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.backup_restored(
            owner_id=owner_id,
            month_count=month_count,
            bucket_count=bucket_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_rejected(
        self,
        owner_id: str,
        issues: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a backup that failed validation (nothing was written)."""
        event = AuditEventBuilder.backup_rejected(
            owner_id=owner_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_state_computed(
        self,
        owner_id: str,
        month_count: int,
        bucket_count: int,
        net_worth: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.state_computed(
            owner_id=owner_id,
            month_count=month_count,
            bucket_count=bucket_count,
            net_worth=net_worth,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a backup restore)
    and pass it through all subsequent operations.
    """
    return uuid4()
