"""Ledger errors and record ID generation."""

from uuid import uuid4


class LedgerError(ValueError):
    """A mutation intent was rejected (bad amount, unknown item...)."""
    pass


def new_record_id() -> str:
    """Short random ID for line items, withdrawals and new buckets."""
    return uuid4().hex[:9]
