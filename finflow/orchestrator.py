"""
Main Orchestrator for FinFlow

This module ties together all the components and defines the
end-to-end flows for:
1. Month planning (open a month, edit amounts, line items)
2. Buckets (create/edit, withdraw, complete, reprioritize)
3. Backup (export, validated all-or-nothing restore)
4. Dashboard (the derived financial state and its projections)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Mutations change stored records only; nothing derived is ever stored
- The financial state is recomputed from the full history on every read
- Every mutation is audited

Ledger helpers do the record surgery and the engine does the math. The
flows only load, delegate, save and audit.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from finflow.audit import AuditLogger, create_correlation_id
from finflow.backup import BackupImportError, export_backup, parse_backup
from finflow.config import AppSettings, get_settings
from finflow.engine import (
    NetWorthBreakdown,
    TimelineEntry,
    compute,
    current_month_key,
    goal_timeline,
    net_worth_breakdown,
)
from finflow.ledger import (
    LedgerError,
    add_expense,
    add_sip,
    draft_month,
    edit_bucket,
    move_bucket,
    new_bucket,
    remove_expense,
    remove_sip,
    set_month_field,
    toggle_completed,
    withdraw,
)
from finflow.models.audit import AuditEventType
from finflow.models.backup import BackupDocument
from finflow.models.records import Bucket, MonthRecord
from finflow.models.state import FinancialState
from finflow.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    TransientStorageError,
)


class _Flow:
    """Shared wiring: record store, audit logger and settings."""

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._settings = settings or get_settings()

    async def _report_storage_error(
        self,
        error: StorageError,
        owner_id: str,
        operation: str,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                details={"operation": operation},
                owner_id=owner_id,
                correlation_id=correlation_id,
            )

    async def _write(
        self,
        owner_id: str,
        operation: str,
        *args: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Any:
        """
        Run one store write, retrying transient failures with backoff.

        A failure that survives the retries (or is not transient) is
        audited and re-raised.
        """
        write = getattr(self._store, operation)
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TransientStorageError),
                stop=stop_after_attempt(self._settings.storage_retry_attempts),
                wait=wait_exponential(multiplier=self._settings.storage_retry_wait, max=10),
                reraise=True,
            ):
                with attempt:
                    return await write(owner_id, *args)
        except StorageError as e:
            await self._report_storage_error(e, owner_id, operation, correlation_id)
            raise


class MonthPlanFlow(_Flow):
    """
    Orchestrates edits to month records.

    A month that was never saved is drafted from the latest earlier month
    (income, fixed expenses, SIP entries, liquid funds carry forward) and
    only stored once it is first edited.
    """

    async def _load(self, owner_id: str, month_id: str) -> MonthRecord:
        month = await self._store.get_month(owner_id, month_id)
        if month is not None:
            return month
        return draft_month(await self._store.list_months(owner_id), month_id)

    async def _save(
        self,
        owner_id: str,
        month: MonthRecord,
        correlation_id: Optional[UUID],
    ) -> MonthRecord:
        await self._write(owner_id, "save_month", month, correlation_id=correlation_id)
        return month

    async def open_month(
        self,
        owner_id: str,
        month_id: Optional[str] = None,
        as_of: Optional[date] = None,
    ) -> MonthRecord:
        """
        Get a month for editing (defaults to the current month).

        Nothing is written.
        """
        return await self._load(owner_id, month_id or current_month_key(as_of))

    async def update_field(
        self,
        owner_id: str,
        month_id: str,
        field: str,
        value: Any,
        correlation_id: Optional[UUID] = None,
    ) -> MonthRecord:
        """
        Set one editable amount (``income``, ``fixedExpenses``,
        ``variableExpenses`` or ``liquidFunds``).
        """
        correlation_id = correlation_id or create_correlation_id()

        month = set_month_field(await self._load(owner_id, month_id), field, value)
        await self._save(owner_id, month, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_month_updated(
                owner_id=owner_id,
                month_id=month_id,
                fields=[field],
                correlation_id=correlation_id,
            )
        return month

    async def add_expense(
        self,
        owner_id: str,
        month_id: str,
        desc: str,
        amount: Any,
        correlation_id: Optional[UUID] = None,
    ) -> MonthRecord:
        correlation_id = correlation_id or create_correlation_id()

        month = add_expense(await self._load(owner_id, month_id), desc, amount)
        await self._save(owner_id, month, correlation_id)

        item = month.transactions[-1]
        if self._audit_logger:
            await self._audit_logger.log_line_item(
                event_type=AuditEventType.EXPENSE_ADDED,
                owner_id=owner_id,
                month_id=month_id,
                item_id=item.id,
                amount=str(item.amount),
                correlation_id=correlation_id,
            )
        return month

    async def remove_expense(
        self,
        owner_id: str,
        month_id: str,
        item_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> MonthRecord:
        correlation_id = correlation_id or create_correlation_id()

        before = await self._load(owner_id, month_id)
        month = remove_expense(before, item_id)
        await self._save(owner_id, month, correlation_id)

        removed = next(t for t in before.transactions if t.id == item_id)
        if self._audit_logger:
            await self._audit_logger.log_line_item(
                event_type=AuditEventType.EXPENSE_REMOVED,
                owner_id=owner_id,
                month_id=month_id,
                item_id=item_id,
                amount=str(removed.amount),
                correlation_id=correlation_id,
            )
        return month

    async def add_sip(
        self,
        owner_id: str,
        month_id: str,
        name: Optional[str],
        amount: Any,
        correlation_id: Optional[UUID] = None,
    ) -> MonthRecord:
        correlation_id = correlation_id or create_correlation_id()

        name = (name or "").strip() or self._settings.default_sip_name
        month = add_sip(await self._load(owner_id, month_id), name, amount)
        await self._save(owner_id, month, correlation_id)

        entry = month.sip_entries[-1]
        if self._audit_logger:
            await self._audit_logger.log_line_item(
                event_type=AuditEventType.SIP_ADDED,
                owner_id=owner_id,
                month_id=month_id,
                item_id=entry.id,
                amount=str(entry.amount),
                correlation_id=correlation_id,
            )
        return month

    async def remove_sip(
        self,
        owner_id: str,
        month_id: str,
        entry_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> MonthRecord:
        correlation_id = correlation_id or create_correlation_id()

        before = await self._load(owner_id, month_id)
        month = remove_sip(before, entry_id)
        await self._save(owner_id, month, correlation_id)

        removed = next(s for s in before.sip_entries if s.id == entry_id)
        if self._audit_logger:
            await self._audit_logger.log_line_item(
                event_type=AuditEventType.SIP_REMOVED,
                owner_id=owner_id,
                month_id=month_id,
                item_id=entry_id,
                amount=str(removed.amount),
                correlation_id=correlation_id,
            )
        return month

    async def delete_month(
        self,
        owner_id: str,
        month_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()

        deleted = await self._write(owner_id, "delete_month", month_id, correlation_id=correlation_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_month_deleted(
                owner_id=owner_id,
                month_id=month_id,
                correlation_id=correlation_id,
            )
        return deleted


class BucketFlow(_Flow):
    """
    Orchestrates bucket changes.

    Priorities are rewritten as a whole through the store's batch update,
    so active buckets always hold the dense sequence 1..n.
    """

    async def _get(self, owner_id: str, bucket_id: str) -> Bucket:
        bucket = await self._store.get_bucket(owner_id, bucket_id)
        if bucket is None:
            raise NotFoundError(f"Bucket not found: {bucket_id}")
        return bucket

    async def save_bucket(
        self,
        owner_id: str,
        name: str,
        target: Any,
        deadline: Optional[str] = None,
        bucket_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Bucket:
        """
        Create a bucket, or edit one when ``bucket_id`` is given.

        New buckets go to the end of the active priority list.
        """
        correlation_id = correlation_id or create_correlation_id()

        name = (name or "").strip()
        if not name:
            raise LedgerError("Bucket name is required")

        created = bucket_id is None
        if created:
            bucket = new_bucket(name, target, await self._store.list_buckets(owner_id), deadline)
        else:
            bucket = edit_bucket(await self._get(owner_id, bucket_id), name, target, deadline)

        await self._write(owner_id, "save_bucket", bucket, correlation_id=correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_bucket_saved(
                owner_id=owner_id,
                bucket_id=bucket.id,
                name=bucket.name,
                target=str(bucket.target),
                created=created,
                correlation_id=correlation_id,
            )
        return bucket

    async def withdraw(
        self,
        owner_id: str,
        bucket_id: str,
        amount: Any,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Bucket:
        """
        Record spending from a bucket.

        Withdrawals are not limited to the bucket's balance; an overdrawn
        bucket shows a negative balance.
        """
        correlation_id = correlation_id or create_correlation_id()

        note = (note or "").strip() or self._settings.default_withdrawal_note
        bucket = withdraw(await self._get(owner_id, bucket_id), amount, note)
        await self._write(owner_id, "save_bucket", bucket, correlation_id=correlation_id)

        latest = bucket.transactions[0]
        if self._audit_logger:
            await self._audit_logger.log_bucket_withdrawn(
                owner_id=owner_id,
                bucket_id=bucket_id,
                amount=str(latest.amount),
                note=latest.note,
                correlation_id=correlation_id,
            )
        return bucket

    async def toggle_completed(
        self,
        owner_id: str,
        bucket_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Bucket:
        correlation_id = correlation_id or create_correlation_id()

        bucket = toggle_completed(await self._get(owner_id, bucket_id))
        await self._write(owner_id, "save_bucket", bucket, correlation_id=correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_bucket_status_changed(
                owner_id=owner_id,
                bucket_id=bucket_id,
                status=bucket.status.value,
                correlation_id=correlation_id,
            )
        return bucket

    async def reorder(
        self,
        owner_id: str,
        ordered_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> list[str]:
        """
        Assign priorities 1..n following ``ordered_ids``.

        Raises:
            NotFoundError: If an id is unknown (no priority changes)
        """
        correlation_id = correlation_id or create_correlation_id()

        await self._write(owner_id, "update_bucket_priorities", ordered_ids, correlation_id=correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_buckets_reordered(
                owner_id=owner_id,
                order=list(ordered_ids),
                correlation_id=correlation_id,
            )
        return list(ordered_ids)

    async def move(
        self,
        owner_id: str,
        bucket_id: str,
        direction: int,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[list[str]]:
        """
        Move an active bucket up (-1) or down (+1) one place.

        Returns the new active order, or None when already at the edge.
        """
        order = move_bucket(await self._store.list_buckets(owner_id), bucket_id, direction)
        if order is None:
            return None
        return await self.reorder(owner_id, order, correlation_id)

    async def delete_bucket(
        self,
        owner_id: str,
        bucket_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()

        deleted = await self._write(owner_id, "delete_bucket", bucket_id, correlation_id=correlation_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_bucket_deleted(
                owner_id=owner_id,
                bucket_id=bucket_id,
                correlation_id=correlation_id,
            )
        return deleted


class BackupFlow(_Flow):
    """
    Orchestrates backup export and restore.

    Restore:
    1. Parse → JSON must parse and be structurally sound
    2. Reject → On any issue, audit the rejection and write nothing
    3. Write → All documents in one atomic batch, keyed by their ids
    """

    async def export(
        self,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        correlation_id = correlation_id or create_correlation_id()

        months = await self._store.list_months(owner_id)
        buckets = await self._store.list_buckets(owner_id)
        text = export_backup(months, buckets, indent=self._settings.backup_indent)

        if self._audit_logger:
            await self._audit_logger.log_backup_exported(
                owner_id=owner_id,
                month_count=len(months),
                bucket_count=len(buckets),
                correlation_id=correlation_id,
            )
        return text

    async def restore(
        self,
        owner_id: str,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> BackupDocument:
        """
        Restore a backup over the owner's records.

        Records in the backup replace stored records with the same id;
        other stored records are left alone.

        Raises:
            BackupImportError: If the backup is invalid (nothing written)
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            document = parse_backup(text)
        except BackupImportError as e:
            if self._audit_logger:
                await self._audit_logger.log_backup_rejected(
                    owner_id=owner_id,
                    issues=e.messages,
                    correlation_id=correlation_id,
                )
            raise

        await self._write(
            owner_id, "bulk_write", document.months, document.buckets, correlation_id=correlation_id,
        )

        if self._audit_logger:
            await self._audit_logger.log_backup_restored(
                owner_id=owner_id,
                month_count=len(document.months),
                bucket_count=len(document.buckets),
                correlation_id=correlation_id,
            )
        return document


class DashboardFlow(_Flow):
    """
    Read side: the financial state and its projections.

    Always recomputed from the full record history.
    """

    async def get_state(
        self,
        owner_id: str,
        as_of: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialState:
        months = await self._store.list_months(owner_id)
        buckets = await self._store.list_buckets(owner_id)
        state = compute(months, buckets, as_of=as_of)

        if self._audit_logger:
            await self._audit_logger.log_state_computed(
                owner_id=owner_id,
                month_count=len(months),
                bucket_count=len(buckets),
                net_worth=str(state.net_worth),
                correlation_id=correlation_id,
            )
        return state

    async def get_breakdown(
        self,
        owner_id: str,
        as_of: Optional[date] = None,
    ) -> NetWorthBreakdown:
        return net_worth_breakdown(await self.get_state(owner_id, as_of=as_of))

    async def get_timeline(
        self,
        owner_id: str,
        as_of: Optional[date] = None,
    ) -> list[TimelineEntry]:
        state = await self.get_state(owner_id, as_of=as_of)
        return goal_timeline(state, as_of=as_of)


def create_app_components(
    store: Optional[RecordStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    settings: Optional[AppSettings] = None,
) -> tuple[MonthPlanFlow, BucketFlow, BackupFlow, DashboardFlow]:
    """
    Factory function to create all application components.

    Args:
        store: Record store. Defaults to a fresh in-memory store.
        audit_storage: Audit log storage. Defaults to in-memory.
        settings: Application settings. Defaults to ``get_settings()``.

    Returns:
        (month_flow, bucket_flow, backup_flow, dashboard_flow)
    """
    settings = settings or get_settings()
    store = store or InMemoryRecordStore()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage(), settings)

    return (
        MonthPlanFlow(store, audit_logger, settings),
        BucketFlow(store, audit_logger, settings),
        BackupFlow(store, audit_logger, settings),
        DashboardFlow(store, audit_logger, settings),
    )
