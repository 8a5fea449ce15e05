"""
Bucket mutations.

Pure helpers returning new Bucket records. Priorities are only ever
rewritten as a whole (see ``move_bucket``) so they stay a dense 1..n
sequence across the active buckets.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from finflow.ledger.errors import LedgerError, new_record_id
from finflow.models.amounts import to_amount
from finflow.models.records import Bucket, BucketStatus, Withdrawal


DEFAULT_WITHDRAWAL_NOTE = "Withdrawal"


def active_buckets(buckets: Iterable[Bucket]) -> list[Bucket]:
    """Active buckets in priority order."""
    return sorted(
        (b for b in buckets if not b.is_completed),
        key=lambda b: b.priority,
    )


def new_bucket(
    name: str,
    target: Any,
    buckets: Iterable[Bucket],
    deadline: Optional[str] = None,
) -> Bucket:
    """Create an active bucket at the end of the active priority list."""
    return Bucket(
        id=new_record_id(),
        name=name,
        target=to_amount(target),
        priority=len(active_buckets(buckets)) + 1,
        status=BucketStatus.ACTIVE,
        deadline=deadline or None,
    )


def edit_bucket(
    bucket: Bucket,
    name: str,
    target: Any,
    deadline: Optional[str] = None,
) -> Bucket:
    """Change name, target and deadline; priority and status are kept."""
    return bucket.model_copy(update={
        "name": name,
        "target": to_amount(target),
        "deadline": deadline or None,
    })


def withdraw(
    bucket: Bucket,
    amount: Any,
    note: Optional[str] = None,
    when: Optional[datetime] = None,
) -> Bucket:
    """Record a withdrawal; the newest withdrawal comes first."""
    value = to_amount(amount)
    if value <= 0:
        raise LedgerError("Withdrawal amount must be greater than zero")

    moment = when or datetime.now(timezone.utc)
    record = Withdrawal(
        id=new_record_id(),
        amount=value,
        note=note or DEFAULT_WITHDRAWAL_NOTE,
        date=moment.isoformat(),
    )
    return bucket.model_copy(update={"transactions": [record, *bucket.transactions]})


def toggle_completed(bucket: Bucket) -> Bucket:
    status = BucketStatus.ACTIVE if bucket.is_completed else BucketStatus.COMPLETED
    return bucket.model_copy(update={"status": status})


def move_bucket(
    buckets: Iterable[Bucket],
    bucket_id: str,
    direction: int,
) -> Optional[list[str]]:
    """
    Move an active bucket one step up (-1) or down (+1).

    Returns:
        The new order of active bucket IDs, or None when the move would
        leave the list.

    Raises:
        LedgerError: If the bucket is not an active bucket
    """
    order = [b.id for b in active_buckets(buckets)]
    if bucket_id not in order:
        raise LedgerError(f"Active bucket not found: {bucket_id}")

    index = order.index(bucket_id)
    new_index = index + direction
    if new_index < 0 or new_index >= len(order):
        return None

    order.pop(index)
    order.insert(new_index, bucket_id)
    return order
