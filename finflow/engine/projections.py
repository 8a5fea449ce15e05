"""
Projections over a computed FinancialState.

These back the dashboard's net worth breakdown and goal timeline. Like the
calculator they are pure: they only read a FinancialState.
"""

import math
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from finflow.engine.periods import current_month_key, shift_month_key
from finflow.models.amounts import ZERO, Amount
from finflow.models.state import FinancialState, ProcessedBucket


class _Projection(BaseModel):
    model_config = ConfigDict(frozen=True)


class BucketHolding(_Projection):
    bucket_id: str
    name: str
    balance: Amount


class NetWorthBreakdown(_Projection):
    """Where the net worth sits: liquid cash (split by bucket) and investments."""

    net_worth: Amount
    liquid_cash: Amount
    holdings: list[BucketHolding] = Field(default_factory=list)
    total_in_buckets: Amount = ZERO
    unallocated_real: Amount = ZERO
    sip: Amount = ZERO
    liquid_funds: Amount = ZERO
    investments_by_name: dict[str, Amount] = Field(default_factory=dict)
    total_investments: Amount = ZERO


class TimelineEntry(_Projection):
    """
    Estimated completion of one active bucket.

    ``months_to_goal`` and ``estimated_month`` are None when the average
    monthly surplus is not positive (the goal is never reached at the
    current pace).
    """

    bucket_id: str
    name: str
    remaining: Amount
    months_to_goal: Optional[Decimal] = None
    cumulative_months: Optional[Decimal] = None
    estimated_month: Optional[str] = None


def net_worth_breakdown(state: FinancialState) -> NetWorthBreakdown:
    """
    Split liquid cash into bucket balances and unallocated cash.

    Only buckets with a positive balance hold cash; overdrawn buckets are
    already reflected in ``real_balance``.
    """
    holdings = [
        BucketHolding(bucket_id=b.id, name=b.name, balance=b.current_balance)
        for b in state.processed_buckets
        if b.current_balance > 0
    ]
    total_in_buckets = sum((h.balance for h in holdings), ZERO)
    investments = state.accumulated_investments

    return NetWorthBreakdown(
        net_worth=state.net_worth,
        liquid_cash=state.real_balance,
        holdings=holdings,
        total_in_buckets=total_in_buckets,
        unallocated_real=state.real_balance - total_in_buckets,
        sip=investments.sip,
        liquid_funds=investments.liquid,
        investments_by_name=investments.by_name,
        total_investments=investments.total,
    )


def goal_timeline(
    state: FinancialState,
    as_of: Optional[date] = None,
) -> list[TimelineEntry]:
    """
    Estimate when each active bucket fills at the average monthly surplus.

    Buckets are filled one after another in priority order, so the months
    needed accumulate down the list.
    """
    surplus = state.monthly_avgs.surplus
    start_key = current_month_key(as_of)
    entries = []
    cumulative = ZERO

    for bucket in state.processed_buckets:
        if bucket.is_completed:
            continue

        need = bucket.target - bucket.current_balance
        if surplus <= 0:
            entries.append(TimelineEntry(
                bucket_id=bucket.id,
                name=bucket.name,
                remaining=need,
            ))
            continue

        months = max(ZERO, need / surplus)
        cumulative += months
        entries.append(TimelineEntry(
            bucket_id=bucket.id,
            name=bucket.name,
            remaining=need,
            months_to_goal=months,
            cumulative_months=cumulative,
            estimated_month=shift_month_key(start_key, math.ceil(cumulative)),
        ))

    return entries


def bucket_progress(bucket: ProcessedBucket) -> Decimal:
    """Funded percentage of a bucket's target, clamped to 0-100."""
    if bucket.target <= 0:
        return ZERO
    percent = bucket.current_balance / bucket.target * 100
    return min(Decimal(100), max(ZERO, percent))
