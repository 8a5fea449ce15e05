"""
In-Memory Storage Implementation

DESIGN DECISION: Records are kept as raw documents (plain dicts), exactly
like a schemaless document store would keep them. Models are only built
on the way out, so coercion happens at the same boundary as in production.

Batch operations (priority rewrites, backup restores) are validated in
full before the first document is touched, and run under a lock, so a
batch is applied entirely or not at all.
"""

import asyncio
import copy
import time
from collections import defaultdict
from typing import Optional
from uuid import UUID

from finflow.models.audit import AuditEvent
from finflow.models.records import Bucket, MonthRecord
from finflow.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)


MONTHS = "months"
BUCKETS = "buckets"


def _now_millis() -> int:
    return int(time.time() * 1000)


class InMemoryRecordStore(RecordStoreInterface):
    """
    Record store backed by nested dicts: owner -> collection -> id -> doc.
    """

    def __init__(self):
        self._data: dict[str, dict[str, dict[str, dict]]] = defaultdict(
            lambda: {MONTHS: {}, BUCKETS: {}}
        )
        self._lock = asyncio.Lock()

    def _collection(self, owner_id: str, name: str) -> dict[str, dict]:
        if not owner_id:
            raise StorageError("Owner ID is required")
        return self._data[owner_id][name]

    def _merge(self, owner_id: str, name: str, document: dict) -> None:
        collection = self._collection(owner_id, name)
        record_id = document.get("id")
        if not record_id:
            raise StorageError(f"Cannot save a {name} document without an id")
        merged = dict(collection.get(record_id, {}))
        merged.update(copy.deepcopy(document))
        merged["updatedAt"] = _now_millis()
        collection[record_id] = merged

    # -------------------------------------------------------------------------
    # Months
    # -------------------------------------------------------------------------

    async def list_months(self, owner_id: str) -> list[MonthRecord]:
        return [
            MonthRecord.model_validate(doc)
            for doc in self._collection(owner_id, MONTHS).values()
        ]

    async def get_month(self, owner_id: str, month_id: str) -> Optional[MonthRecord]:
        doc = self._collection(owner_id, MONTHS).get(month_id)
        return MonthRecord.model_validate(doc) if doc is not None else None

    async def save_month(self, owner_id: str, month: MonthRecord) -> bool:
        async with self._lock:
            self._merge(owner_id, MONTHS, month.to_document())
        return True

    async def delete_month(self, owner_id: str, month_id: str) -> bool:
        async with self._lock:
            return self._collection(owner_id, MONTHS).pop(month_id, None) is not None

    # -------------------------------------------------------------------------
    # Buckets
    # -------------------------------------------------------------------------

    async def list_buckets(self, owner_id: str) -> list[Bucket]:
        return [
            Bucket.model_validate(doc)
            for doc in self._collection(owner_id, BUCKETS).values()
        ]

    async def get_bucket(self, owner_id: str, bucket_id: str) -> Optional[Bucket]:
        doc = self._collection(owner_id, BUCKETS).get(bucket_id)
        return Bucket.model_validate(doc) if doc is not None else None

    async def save_bucket(self, owner_id: str, bucket: Bucket) -> bool:
        async with self._lock:
            self._merge(owner_id, BUCKETS, bucket.to_document())
        return True

    async def delete_bucket(self, owner_id: str, bucket_id: str) -> bool:
        async with self._lock:
            return self._collection(owner_id, BUCKETS).pop(bucket_id, None) is not None

    async def update_bucket_priorities(
        self,
        owner_id: str,
        ordered_ids: list[str],
    ) -> bool:
        async with self._lock:
            collection = self._collection(owner_id, BUCKETS)
            missing = [bucket_id for bucket_id in ordered_ids if bucket_id not in collection]
            if missing:
                raise NotFoundError(f"Buckets not found: {', '.join(missing)}")

            stamp = _now_millis()
            for index, bucket_id in enumerate(ordered_ids):
                collection[bucket_id] = {
                    **collection[bucket_id],
                    "priority": index + 1,
                    "updatedAt": stamp,
                }
        return True

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    async def bulk_write(
        self,
        owner_id: str,
        months: list[dict],
        buckets: list[dict],
    ) -> int:
        staged = [(MONTHS, doc) for doc in months] + [(BUCKETS, doc) for doc in buckets]
        for name, doc in staged:
            if not isinstance(doc, dict) or not doc.get("id"):
                raise StorageError(f"Cannot write a {name} document without an id")

        async with self._lock:
            for name, doc in staged:
                self._collection(owner_id, name)[str(doc["id"])] = copy.deepcopy(doc)
        return len(staged)


class InMemoryAuditStorage(AuditStorageInterface):
    """
    In-memory audit log.

    Audit events are append-only.
    """

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        # Stable ascending sort, then flip: ties stay newest-appended first
        events = sorted(self._events, key=lambda e: e.timestamp)
        return events[::-1][:limit]
