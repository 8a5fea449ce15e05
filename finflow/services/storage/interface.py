"""
Abstract Storage Interface

DESIGN DECISION: The financial engine never talks to storage. Records are
kept by a generic document store behind this interface, which allows us to:
1. Swap the backing store (Firestore, a database, files) freely
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

Documents are grouped per owner into two collections, ``months`` and
``buckets``, each keyed by the record's id.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from finflow.models.records import Bucket, MonthRecord
from finflow.models.audit import AuditEvent


class RecordStoreInterface(ABC):
    """
    Abstract interface for an owner's month and bucket records.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def list_months(self, owner_id: str) -> list[MonthRecord]:
        """
        List all month records of an owner, in no particular order.
        """
        pass

    @abstractmethod
    async def get_month(self, owner_id: str, month_id: str) -> Optional[MonthRecord]:
        """
        Retrieve a month record by its key.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_month(self, owner_id: str, month: MonthRecord) -> bool:
        """
        Create or merge a month record.

        Fields of ``month`` overwrite the stored ones; stored fields it
        does not carry are kept. ``updatedAt`` is stamped.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete_month(self, owner_id: str, month_id: str) -> bool:
        """
        Delete a month record.

        Returns:
            True if a record was deleted
        """
        pass

    @abstractmethod
    async def list_buckets(self, owner_id: str) -> list[Bucket]:
        """
        List all buckets of an owner, in no particular order.
        """
        pass

    @abstractmethod
    async def get_bucket(self, owner_id: str, bucket_id: str) -> Optional[Bucket]:
        pass

    @abstractmethod
    async def save_bucket(self, owner_id: str, bucket: Bucket) -> bool:
        """
        Create or merge a bucket (same semantics as ``save_month``).
        """
        pass

    @abstractmethod
    async def delete_bucket(self, owner_id: str, bucket_id: str) -> bool:
        pass

    @abstractmethod
    async def update_bucket_priorities(
        self,
        owner_id: str,
        ordered_ids: list[str],
    ) -> bool:
        """
        Rewrite priorities in one batch: ``ordered_ids[i]`` gets ``i + 1``.

        Raises:
            NotFoundError: If any id is unknown (nothing is written)
        """
        pass

    @abstractmethod
    async def bulk_write(
        self,
        owner_id: str,
        months: list[dict],
        buckets: list[dict],
    ) -> int:
        """
        Write raw documents in a single atomic batch.

        Each document replaces the stored record with the same ``id``
        (last write wins). Either every document is written or none is.

        Returns:
            Number of documents written
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID, in chronological order.
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class TransientStorageError(StorageError):
    """A write failed for a reason that may go away (timeout, contention).

    Flows retry writes that raise this; every other StorageError is final.
    """
    pass
