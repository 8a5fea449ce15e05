"""
Storage Services Package

Provides abstract interfaces and an in-memory implementation for the
record store and the audit log.
"""

from finflow.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    TransientStorageError,
)
from finflow.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStoreInterface",
    # Exceptions
    "NotFoundError",
    "StorageError",
    "TransientStorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
]
