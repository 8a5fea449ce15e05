"""
Tests for the in-memory record store.

Async methods are driven with ``asyncio.run``.
"""

import asyncio
import pytest
from decimal import Decimal

from finflow.models import AuditEventBuilder, Bucket, MonthRecord
from finflow.services.storage import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    StorageError,
)


OWNER = "user-1"


def run(coro):
    return asyncio.run(coro)


class TestMonths:
    """Tests for month documents."""

    def test_save_and_get(self):
        store = InMemoryRecordStore()
        run(store.save_month(OWNER, MonthRecord(id="2024-01", income=1000)))

        month = run(store.get_month(OWNER, "2024-01"))
        assert month.income == Decimal("1000")
        assert isinstance(month.model_extra["updatedAt"], int)

    def test_get_missing(self):
        assert run(InMemoryRecordStore().get_month(OWNER, "2024-01")) is None

    def test_save_merges_fields(self):
        """Test that stored fields absent from the new document are kept."""
        store = InMemoryRecordStore()
        run(store.bulk_write(OWNER, [{"id": "2024-01", "income": 1000, "note": "keep me"}], []))
        run(store.save_month(OWNER, MonthRecord(id="2024-01", income=2000)))

        month = run(store.get_month(OWNER, "2024-01"))
        assert month.income == Decimal("2000")
        assert month.model_extra["note"] == "keep me"

    def test_owners_are_isolated(self):
        store = InMemoryRecordStore()
        run(store.save_month(OWNER, MonthRecord(id="2024-01")))

        assert run(store.list_months("someone-else")) == []
        assert len(run(store.list_months(OWNER))) == 1

    def test_delete(self):
        store = InMemoryRecordStore()
        run(store.save_month(OWNER, MonthRecord(id="2024-01")))

        assert run(store.delete_month(OWNER, "2024-01")) is True
        assert run(store.delete_month(OWNER, "2024-01")) is False
        assert run(store.list_months(OWNER)) == []

    def test_owner_required(self):
        with pytest.raises(StorageError, match="Owner ID"):
            run(InMemoryRecordStore().list_months(""))

    def test_stored_document_is_a_copy(self):
        store = InMemoryRecordStore()
        doc = {"id": "2024-01", "income": 5, "sipEntries": [{"name": "A", "amount": 1}]}
        run(store.bulk_write(OWNER, [doc], []))
        doc["sipEntries"][0]["amount"] = 999

        assert run(store.get_month(OWNER, "2024-01")).sip_entries[0].amount == Decimal("1")


class TestBuckets:
    """Tests for bucket documents and batch priority updates."""

    @pytest.fixture
    def store(self):
        store = InMemoryRecordStore()
        for index, bucket_id in enumerate(["a", "b", "c"], start=1):
            run(store.save_bucket(OWNER, Bucket(id=bucket_id, name=bucket_id, priority=index)))
        return store

    def test_list_and_get(self, store):
        assert {b.id for b in run(store.list_buckets(OWNER))} == {"a", "b", "c"}
        assert run(store.get_bucket(OWNER, "b")).priority == 2

    def test_update_priorities(self, store):
        run(store.update_bucket_priorities(OWNER, ["c", "a", "b"]))

        priorities = {b.id: b.priority for b in run(store.list_buckets(OWNER))}
        assert priorities == {"c": 1, "a": 2, "b": 3}

    def test_update_priorities_unknown_id_writes_nothing(self, store):
        """Test that the batch is rejected as a whole."""
        with pytest.raises(NotFoundError, match="ghost"):
            run(store.update_bucket_priorities(OWNER, ["c", "ghost", "a"]))

        priorities = {b.id: b.priority for b in run(store.list_buckets(OWNER))}
        assert priorities == {"a": 1, "b": 2, "c": 3}

    def test_delete_bucket(self, store):
        assert run(store.delete_bucket(OWNER, "a")) is True
        assert run(store.get_bucket(OWNER, "a")) is None


class TestBulkWrite:
    """Tests for the atomic batch write."""

    def test_replaces_documents(self):
        """Test that a bulk write replaces, not merges, each document."""
        store = InMemoryRecordStore()
        run(store.bulk_write(OWNER, [{"id": "2024-01", "income": 1, "note": "old"}], []))
        count = run(store.bulk_write(
            OWNER,
            [{"id": "2024-01", "income": 2}],
            [{"id": "b1", "target": 10}],
        ))

        assert count == 2
        month = run(store.get_month(OWNER, "2024-01"))
        assert month.income == Decimal("2")
        assert "note" not in month.model_extra
        assert run(store.get_bucket(OWNER, "b1")).target == Decimal("10")

    def test_invalid_document_writes_nothing(self):
        store = InMemoryRecordStore()
        with pytest.raises(StorageError):
            run(store.bulk_write(OWNER, [{"id": "2024-01"}, {"income": 5}], []))

        assert run(store.list_months(OWNER)) == []

    def test_last_duplicate_wins(self):
        store = InMemoryRecordStore()
        run(store.bulk_write(OWNER, [{"id": "2024-01", "income": 1}, {"id": "2024-01", "income": 2}], []))
        assert run(store.get_month(OWNER, "2024-01")).income == Decimal("2")


class TestAuditStorage:
    """Tests for the in-memory audit log."""

    def test_query_by_entity_and_correlation(self):
        storage = InMemoryAuditStorage()
        first = AuditEventBuilder.bucket_saved(OWNER, "b1", "Trip", "100", True)
        second = AuditEventBuilder.bucket_withdrawn(
            OWNER, "b1", "10", "Taxi", correlation_id=first.event_id,
        )
        other = AuditEventBuilder.month_deleted(OWNER, "2024-01")
        for event in (first, second, other):
            run(storage.append_event(event))

        by_entity = run(storage.get_events_by_entity("bucket", "b1"))
        assert [e.event_id for e in by_entity] == [first.event_id, second.event_id]

        by_correlation = run(storage.get_events_by_correlation_id(first.event_id))
        assert [e.event_id for e in by_correlation] == [second.event_id]

        recent = run(storage.get_recent_events(limit=2))
        assert len(recent) == 2
        assert recent[0].timestamp >= recent[1].timestamp


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
