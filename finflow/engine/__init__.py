"""Allocation and aggregation engine."""

from finflow.engine.calculator import (
    accumulate_month,
    accumulate_months,
    allocate_buckets,
    compute,
    monthly_averages,
)
from finflow.engine.periods import (
    current_month_key,
    is_month_key,
    month_key,
    shift_month_key,
)
from finflow.engine.projections import (
    NetWorthBreakdown,
    TimelineEntry,
    bucket_progress,
    goal_timeline,
    net_worth_breakdown,
)

__all__ = [
    "accumulate_month",
    "accumulate_months",
    "allocate_buckets",
    "compute",
    "monthly_averages",
    "current_month_key",
    "is_month_key",
    "month_key",
    "shift_month_key",
    "NetWorthBreakdown",
    "TimelineEntry",
    "bucket_progress",
    "goal_timeline",
    "net_worth_breakdown",
]
