"""
Derived Financial State

CRITICAL: Nothing in this module is ever persisted.
FinancialState is a projection recomputed from scratch from the current
MonthRecord and Bucket collections on every change.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from finflow.models.amounts import ZERO, Amount
from finflow.models.records import Bucket


class _Output(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class AccumulatedInvestments(_Output):
    """
    Lifetime investment totals.

    ``sip`` and ``liquid`` only include months up to the current month.
    ``by_name`` includes every month, future ones too, in first-seen
    name order.
    """

    sip: Amount = ZERO
    liquid: Amount = ZERO
    by_name: dict[str, Amount] = Field(default_factory=dict, alias="byName")

    @property
    def total(self) -> Decimal:
        return self.sip + self.liquid


class MonthlyAverages(_Output):
    """Averages over months with positive income only."""

    surplus: Amount = ZERO
    spending: Amount = ZERO
    investing: Amount = ZERO


class ProcessedBucket(Bucket):
    """A bucket annotated with its waterfall allocation."""

    gross_allocated: Amount = Field(default=ZERO, alias="grossAllocated")
    current_balance: Amount = Field(
        default=ZERO,
        alias="currentBalance",
        description="Allocated minus withdrawn; negative when overdrawn"
    )
    total_spent: Amount = Field(default=ZERO, alias="totalSpent")

    @property
    def is_overdrawn(self) -> bool:
        return self.current_balance < 0


class FinancialState(_Output):
    """
    Output of the Financial State Calculator.

    real_balance: liquid cash = lifetime surplus - lifetime withdrawals
    net_worth: real_balance + accumulated SIP + accumulated liquid funds
    unallocated_cash: pool left after the waterfall (negative on deficit)
    """

    real_balance: Amount = Field(default=ZERO, alias="realBalance")
    net_worth: Amount = Field(default=ZERO, alias="netWorth")
    accumulated_investments: AccumulatedInvestments = Field(
        default_factory=AccumulatedInvestments,
        alias="accumulatedInvestments",
    )
    unallocated_cash: Amount = Field(default=ZERO, alias="unallocatedCash")
    processed_buckets: list[ProcessedBucket] = Field(
        default_factory=list,
        alias="processedBuckets",
    )
    monthly_avgs: MonthlyAverages = Field(
        default_factory=MonthlyAverages,
        alias="monthlyAvgs",
    )

    # Inspection helpers, not part of the presentation contract
    gross_pool: Amount = Field(default=ZERO, alias="grossPool")
    current_month: str = Field(default="", alias="currentMonth")

    def bucket(self, bucket_id: str) -> ProcessedBucket:
        """Get a processed bucket by ID (KeyError if absent)."""
        for bucket in self.processed_buckets:
            if bucket.id == bucket_id:
                return bucket
        raise KeyError(bucket_id)

    def to_document(self) -> dict:
        """Dump with camelCase keys for the presentation layer."""
        return self.model_dump(by_alias=True, mode="json")
