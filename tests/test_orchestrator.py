"""
Integration tests for the flows.

Each test wires the flows to in-memory storage through
``create_app_components`` and drives them with ``asyncio.run``.
"""

import asyncio
import json
import pytest
from datetime import date
from decimal import Decimal

from finflow.backup import BackupImportError
from finflow.config import AppSettings
from finflow.ledger import LedgerError
from finflow.models import AuditEventType, BucketStatus
from finflow.orchestrator import create_app_components
from finflow.services.storage import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    StorageError,
    TransientStorageError,
)


OWNER = "user-1"
AS_OF = date(2024, 1, 15)


@pytest.fixture
def app():
    store = InMemoryRecordStore()
    audit = InMemoryAuditStorage()
    settings = AppSettings(_env_file=None, default_withdrawal_note="Spent")
    months, buckets, backup, dashboard = create_app_components(store, audit, settings)
    return {
        "store": store,
        "audit": audit,
        "months": months,
        "buckets": buckets,
        "backup": backup,
        "dashboard": dashboard,
    }


def run(coro):
    return asyncio.run(coro)


def event_types(audit):
    return [e.event_type for e in reversed(run(audit.get_recent_events()))]


class TestMonthPlanFlow:
    """Tests for month editing."""

    def test_open_month_writes_nothing(self, app):
        month = run(app["months"].open_month(OWNER, as_of=AS_OF))

        assert month.id == "2024-01"
        assert run(app["store"].list_months(OWNER)) == []

    def test_first_edit_stores_carried_forward_month(self, app):
        """Test that editing a new month persists the carried-forward draft."""
        flow = app["months"]
        run(flow.update_field(OWNER, "2023-12", "income", 100000))
        run(flow.update_field(OWNER, "2023-12", "fixedExpenses", 30000))
        run(flow.update_field(OWNER, "2024-01", "variableExpenses", 5000))

        january = run(app["store"].get_month(OWNER, "2024-01"))
        assert january.income == Decimal("100000")
        assert january.fixed_expenses == Decimal("30000")
        assert january.variable_expenses == Decimal("5000")
        assert event_types(app["audit"]) == [AuditEventType.MONTH_UPDATED] * 3

    def test_line_items(self, app):
        flow = app["months"]
        month = run(flow.add_expense(OWNER, "2024-01", "Dinner", 1200))
        month = run(flow.add_sip(OWNER, "2024-01", None, 3000))

        assert month.variable_expenses == Decimal("1200")
        assert month.sip_entries[0].name == "SIP"

        month = run(flow.remove_expense(OWNER, "2024-01", month.transactions[0].id))
        month = run(flow.remove_sip(OWNER, "2024-01", month.sip_entries[0].id))

        stored = run(app["store"].get_month(OWNER, "2024-01"))
        assert stored.variable_expenses == 0
        assert stored.transactions == []
        assert stored.sip_entries == []
        assert event_types(app["audit"]) == [
            AuditEventType.EXPENSE_ADDED,
            AuditEventType.SIP_ADDED,
            AuditEventType.EXPENSE_REMOVED,
            AuditEventType.SIP_REMOVED,
        ]

    def test_rejected_expense_writes_nothing(self, app):
        with pytest.raises(LedgerError):
            run(app["months"].add_expense(OWNER, "2024-01", "Free lunch", 0))
        assert run(app["store"].list_months(OWNER)) == []

    def test_delete_month(self, app):
        flow = app["months"]
        run(flow.update_field(OWNER, "2024-01", "income", 1))

        assert run(flow.delete_month(OWNER, "2024-01")) is True
        assert run(flow.delete_month(OWNER, "2024-01")) is False
        assert event_types(app["audit"])[-1] == AuditEventType.MONTH_DELETED


class TestBucketFlow:
    """Tests for bucket management."""

    def test_create_edit_and_withdraw(self, app):
        flow = app["buckets"]
        bucket = run(flow.save_bucket(OWNER, "Emergency", 50000))
        assert bucket.priority == 1

        edited = run(flow.save_bucket(OWNER, "Emergency fund", 60000, bucket_id=bucket.id))
        assert edited.id == bucket.id
        assert edited.target == Decimal("60000")

        spent = run(flow.withdraw(OWNER, bucket.id, 2500))
        assert spent.transactions[0].note == "Spent"
        assert run(app["store"].get_bucket(OWNER, bucket.id)).total_withdrawn == Decimal("2500")

    def test_blank_name_rejected(self, app):
        with pytest.raises(LedgerError, match="name"):
            run(app["buckets"].save_bucket(OWNER, "  ", 100))

    def test_edit_unknown_bucket(self, app):
        with pytest.raises(NotFoundError):
            run(app["buckets"].save_bucket(OWNER, "Ghost", 1, bucket_id="nope"))

    def test_new_buckets_queue_after_active_ones(self, app):
        flow = app["buckets"]
        first = run(flow.save_bucket(OWNER, "A", 1))
        run(flow.save_bucket(OWNER, "B", 1))
        run(flow.toggle_completed(OWNER, first.id))
        third = run(flow.save_bucket(OWNER, "C", 1))

        assert third.priority == 2
        assert run(app["store"].get_bucket(OWNER, first.id)).status == BucketStatus.COMPLETED

    def test_move_and_reorder(self, app):
        flow = app["buckets"]
        ids = [run(flow.save_bucket(OWNER, name, 1)).id for name in ("A", "B", "C")]

        assert run(flow.move(OWNER, ids[2], -1)) == [ids[0], ids[2], ids[1]]
        assert run(flow.move(OWNER, ids[0], -1)) is None

        priorities = {b.id: b.priority for b in run(app["store"].list_buckets(OWNER))}
        assert priorities == {ids[0]: 1, ids[2]: 2, ids[1]: 3}

    def test_reorder_unknown_id_audits_error(self, app):
        flow = app["buckets"]
        bucket = run(flow.save_bucket(OWNER, "A", 1))

        with pytest.raises(NotFoundError):
            run(flow.reorder(OWNER, [bucket.id, "ghost"]))
        assert event_types(app["audit"])[-1] == AuditEventType.SYSTEM_ERROR

    def test_delete_bucket(self, app):
        flow = app["buckets"]
        bucket = run(flow.save_bucket(OWNER, "A", 1))

        assert run(flow.delete_bucket(OWNER, bucket.id)) is True
        assert run(app["store"].list_buckets(OWNER)) == []


class TestBackupFlow:
    """Tests for export and all-or-nothing restore."""

    def test_export_then_restore_elsewhere(self, app):
        run(app["months"].update_field(OWNER, "2024-01", "income", 1000))
        run(app["buckets"].save_bucket(OWNER, "Trip", 500))
        text = run(app["backup"].export(OWNER))

        document = run(app["backup"].restore("new-owner", text))

        assert document.document_count == 2
        restored = run(app["store"].get_month("new-owner", "2024-01"))
        assert restored.income == Decimal("1000")
        assert [b.name for b in run(app["store"].list_buckets("new-owner"))] == ["Trip"]
        assert AuditEventType.BACKUP_RESTORED in event_types(app["audit"])

    def test_restore_replaces_by_id_and_keeps_others(self, app):
        run(app["months"].update_field(OWNER, "2023-12", "income", 1))
        run(app["months"].update_field(OWNER, "2024-01", "income", 1))
        text = json.dumps({"months": [{"id": "2024-01", "income": 9}], "buckets": []})

        run(app["backup"].restore(OWNER, text))

        months = {m.id: m.income for m in run(app["store"].list_months(OWNER))}
        assert months == {"2023-12": Decimal("1"), "2024-01": Decimal("9")}

    def test_malformed_backup_writes_nothing(self, app):
        """Test that one bad record rejects the whole restore."""
        text = json.dumps({
            "months": [{"id": "2024-01", "income": 5000}],
            "buckets": [{"name": "no id"}],
        })
        with pytest.raises(BackupImportError):
            run(app["backup"].restore(OWNER, text))

        assert run(app["store"].list_months(OWNER)) == []
        assert event_types(app["audit"]) == [AuditEventType.BACKUP_REJECTED]

    def test_unparseable_backup(self, app):
        with pytest.raises(BackupImportError):
            run(app["backup"].restore(OWNER, "not json at all"))


class FlakyStore(InMemoryRecordStore):
    """Fails the first `failures` bucket saves."""

    def __init__(self, failures, error=TransientStorageError):
        super().__init__()
        self.failures = failures
        self.error = error
        self.attempts = 0

    async def save_bucket(self, owner_id, bucket):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error("store busy")
        return await super().save_bucket(owner_id, bucket)


class TestStorageRetries:
    """Tests for retrying transient store failures."""

    def flows(self, store, audit):
        settings = AppSettings(_env_file=None, storage_retry_attempts=3, storage_retry_wait=0)
        return create_app_components(store, audit, settings)

    def test_transient_failure_retried(self):
        store, audit = FlakyStore(failures=2), InMemoryAuditStorage()
        _, buckets, _, _ = self.flows(store, audit)

        bucket = run(buckets.save_bucket(OWNER, "Trip", 100))

        assert store.attempts == 3
        assert run(store.get_bucket(OWNER, bucket.id)) is not None
        assert event_types(audit) == [AuditEventType.BUCKET_SAVED]

    def test_retries_exhausted(self):
        store, audit = FlakyStore(failures=5), InMemoryAuditStorage()
        _, buckets, _, _ = self.flows(store, audit)

        with pytest.raises(TransientStorageError):
            run(buckets.save_bucket(OWNER, "Trip", 100))

        assert store.attempts == 3
        assert event_types(audit) == [AuditEventType.SYSTEM_ERROR]

    def test_permanent_failure_not_retried(self):
        store, audit = FlakyStore(failures=1, error=StorageError), InMemoryAuditStorage()
        _, buckets, _, _ = self.flows(store, audit)

        with pytest.raises(StorageError):
            run(buckets.save_bucket(OWNER, "Trip", 100))

        assert store.attempts == 1


class TestDashboardFlow:
    """Tests for the read side."""

    def test_state_follows_every_change(self, app):
        months, buckets, dashboard = app["months"], app["buckets"], app["dashboard"]
        run(months.update_field(OWNER, "2024-01", "income", 100000))
        run(months.update_field(OWNER, "2024-01", "fixedExpenses", 30000))
        run(months.update_field(OWNER, "2024-01", "variableExpenses", 10000))
        bucket = run(buckets.save_bucket(OWNER, "B1", 50000))

        state = run(dashboard.get_state(OWNER, as_of=AS_OF))
        assert state.bucket(bucket.id).gross_allocated == Decimal("50000")
        assert state.unallocated_cash == Decimal("10000")

        run(buckets.withdraw(OWNER, bucket.id, 20000))
        state = run(dashboard.get_state(OWNER, as_of=AS_OF))
        assert state.bucket(bucket.id).current_balance == Decimal("30000")
        assert state.net_worth == Decimal("40000")

    def test_breakdown_and_timeline(self, app):
        run(app["months"].update_field(OWNER, "2024-01", "income", 10000))
        run(app["buckets"].save_bucket(OWNER, "Laptop", 30000))

        breakdown = run(app["dashboard"].get_breakdown(OWNER, as_of=AS_OF))
        timeline = run(app["dashboard"].get_timeline(OWNER, as_of=AS_OF))

        assert breakdown.total_in_buckets == Decimal("10000")
        assert timeline[0].remaining == Decimal("20000")
        assert timeline[0].estimated_month == "2024-03"

    def test_empty_owner(self, app):
        state = run(app["dashboard"].get_state(OWNER, as_of=AS_OF))
        assert state.net_worth == 0
        assert state.processed_buckets == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
