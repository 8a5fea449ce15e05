"""
Financial State Calculator

DESIGN DECISION: This is a single deterministic transform:

    (MonthRecord[], Bucket[]) -> FinancialState

It is pure. No I/O, no shared state, inputs are never mutated, and the
result depends only on the records and the invocation date. The rest of
the system re-runs it after every change instead of updating anything
incrementally.

Three steps:
1. Chronological accumulation - a left fold over the months sorted by key
2. Waterfall allocation - greedy funding of buckets in priority order
3. Final aggregates - real balance, net worth, unallocated cash

The engine is total. Every amount was coerced to a Decimal when the
records were validated, so there is no error path for data content.
"""

from datetime import date
from decimal import Decimal
from functools import partial, reduce
from typing import Iterable, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from finflow.engine.periods import current_month_key
from finflow.models.amounts import ZERO
from finflow.models.records import (
    GENERAL_SIP_NAME,
    UNNAMED_SIP_NAME,
    Bucket,
    MonthRecord,
)
from finflow.models.state import (
    AccumulatedInvestments,
    FinancialState,
    MonthlyAverages,
    ProcessedBucket,
)


logger = structlog.get_logger(__name__)

MonthInput = Union[MonthRecord, Mapping]
BucketInput = Union[Bucket, Mapping]

# Written by the waterfall; never taken from a stored bucket
ALLOCATION_KEYS = frozenset({
    "grossAllocated", "gross_allocated",
    "currentBalance", "current_balance",
    "totalSpent", "total_spent",
})


class MonthlyTotals(BaseModel):
    """
    Immutable accumulator of the chronological fold.

    Each step returns a new instance; ``by_name`` is copied, never
    updated in place.
    """
    model_config = ConfigDict(frozen=True)

    # Up to and including the current month only
    gross_pool: Decimal = ZERO
    sip: Decimal = ZERO
    liquid: Decimal = ZERO

    # Every month, future ones included
    by_name: dict[str, Decimal] = Field(default_factory=dict)

    # Months with positive income only
    income: Decimal = ZERO
    fixed: Decimal = ZERO
    variable: Decimal = ZERO
    stat_sip: Decimal = ZERO
    stat_liquid: Decimal = ZERO
    count: int = 0


class Allocation(BaseModel):
    """Result of the waterfall."""
    model_config = ConfigDict(frozen=True)

    buckets: list[ProcessedBucket] = Field(default_factory=list)
    remaining: Decimal = ZERO
    total_withdrawals: Decimal = ZERO


# =============================================================================
# STEP 1 - CHRONOLOGICAL ACCUMULATION
# =============================================================================

def _add_sip_names(by_name: dict[str, Decimal], month: MonthRecord) -> dict[str, Decimal]:
    updated = dict(by_name)
    if month.legacy_sip > 0:
        updated[GENERAL_SIP_NAME] = updated.get(GENERAL_SIP_NAME, ZERO) + month.legacy_sip
    for entry in month.sip_entries:
        name = entry.name or UNNAMED_SIP_NAME
        updated[name] = updated.get(name, ZERO) + entry.amount
    return updated


def accumulate_month(
    totals: MonthlyTotals,
    month: MonthRecord,
    current_key: str,
) -> MonthlyTotals:
    """
    Fold one month into the running totals.

    Future months (key > current_key) only count towards ``by_name``.
    Months without positive income are left out of the averages.
    """
    total_sip = month.total_sip
    update: dict = {"by_name": _add_sip_names(totals.by_name, month)}

    if month.id <= current_key:
        update["gross_pool"] = totals.gross_pool + month.surplus
        update["sip"] = totals.sip + total_sip
        update["liquid"] = totals.liquid + month.liquid_funds

    if month.income > 0:
        update["income"] = totals.income + month.income
        update["fixed"] = totals.fixed + month.fixed_expenses
        update["variable"] = totals.variable + month.variable_expenses
        update["stat_sip"] = totals.stat_sip + total_sip
        update["stat_liquid"] = totals.stat_liquid + month.liquid_funds
        update["count"] = totals.count + 1

    return totals.model_copy(update=update)


def accumulate_months(
    months: Iterable[MonthRecord],
    current_key: str,
) -> MonthlyTotals:
    """Sort months by key and fold them, oldest first."""
    ordered = sorted(months, key=lambda m: m.id)
    step = partial(accumulate_month, current_key=current_key)
    return reduce(step, ordered, MonthlyTotals())


def monthly_averages(totals: MonthlyTotals) -> MonthlyAverages:
    """Average surplus, spending and investing per income month."""
    if totals.count == 0:
        return MonthlyAverages()

    count = Decimal(totals.count)
    spending = totals.fixed + totals.variable
    investing = totals.stat_sip + totals.stat_liquid
    return MonthlyAverages(
        surplus=(totals.income - (spending + investing)) / count,
        spending=spending / count,
        investing=investing / count,
    )


# =============================================================================
# STEP 2 - WATERFALL ALLOCATION
# =============================================================================

def _bucket_document(bucket: Bucket) -> dict:
    return {
        key: value
        for key, value in bucket.model_dump(by_alias=True).items()
        if key not in ALLOCATION_KEYS
    }


def allocate_buckets(buckets: Iterable[Bucket], pool: Decimal) -> Allocation:
    """
    Fund buckets greedily in ascending priority order.

    Priority 1 is filled to its full target before priority 2 receives
    anything. Once the pool is exhausted every later bucket gets exactly
    0; there is no fair-share redistribution. Ties keep input order.

    Status does not matter here: completed buckets keep their slot.
    """
    remaining = pool
    total_withdrawals = ZERO
    processed = []

    for bucket in sorted(buckets, key=lambda b: b.priority):
        withdrawals = bucket.total_withdrawn
        total_withdrawals += withdrawals

        if remaining >= bucket.target:
            allocated = bucket.target
            remaining -= bucket.target
        elif remaining > 0:
            allocated = remaining
            remaining = ZERO
        else:
            allocated = ZERO

        processed.append(
            ProcessedBucket.model_validate({
                **_bucket_document(bucket),
                "grossAllocated": allocated,
                # Not clamped: an overdrawn bucket shows a negative balance
                "currentBalance": allocated - withdrawals,
                "totalSpent": withdrawals,
            })
        )

    return Allocation(
        buckets=processed,
        remaining=remaining,
        total_withdrawals=total_withdrawals,
    )


# =============================================================================
# ENTRY POINT
# =============================================================================

def _as_months(months: Iterable[MonthInput]) -> list[MonthRecord]:
    return [
        m if isinstance(m, MonthRecord) else MonthRecord.model_validate(m)
        for m in months
    ]


def _as_buckets(buckets: Iterable[BucketInput]) -> list[Bucket]:
    return [
        b if isinstance(b, Bucket) else Bucket.model_validate(b)
        for b in buckets
    ]


def compute(
    months: Iterable[MonthInput],
    buckets: Iterable[BucketInput],
    as_of: Optional[date] = None,
) -> FinancialState:
    """
    Compute the financial state from the full record history.

    Args:
        months: MonthRecord models or raw month documents, any order
        buckets: Bucket models or raw bucket documents, any order
        as_of: Invocation date deciding the current month (default: today)

    A document without an ``id`` is read with an empty one; an empty month
    key sorts before every real month.

    Returns:
        A freshly built FinancialState
    """
    month_records = _as_months(months)
    bucket_records = _as_buckets(buckets)
    current_key = current_month_key(as_of)

    # Step 1
    totals = accumulate_months(month_records, current_key)

    # Step 2
    allocation = allocate_buckets(bucket_records, totals.gross_pool)

    # Step 3
    real_balance = totals.gross_pool - allocation.total_withdrawals
    investments = AccumulatedInvestments(
        sip=totals.sip,
        liquid=totals.liquid,
        by_name=totals.by_name,
    )

    logger.debug(
        "financial_state_computed",
        month_count=len(month_records),
        bucket_count=len(bucket_records),
        current_month=current_key,
    )

    return FinancialState(
        real_balance=real_balance,
        net_worth=real_balance + investments.total,
        accumulated_investments=investments,
        unallocated_cash=allocation.remaining,
        processed_buckets=allocation.buckets,
        monthly_avgs=monthly_averages(totals),
        gross_pool=totals.gross_pool,
        current_month=current_key,
    )
