"""
Record Models for FinFlow

These models describe the two kinds of documents the record store keeps
per owner:
1. MonthRecord - one per calendar month (id ``YYYY-MM``)
2. Bucket - one per prioritized savings goal

DESIGN DECISION: Unlike a strict intake schema, these models are LENIENT.
Documents are written by many app versions and restored from hand-edited
backups, so every amount is coerced with ``to_amount`` and malformed list
items are dropped instead of failing validation. Unknown document fields
are kept (``extra="allow"``) so a record survives a backup round-trip.

Stored documents use camelCase keys; models expose snake_case attributes
with camelCase aliases.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
)

from finflow.models.amounts import ZERO, Amount, Priority


GENERAL_SIP_NAME = "General SIP"
UNNAMED_SIP_NAME = "Unnamed SIP"


def _as_items(value: Any) -> list:
    """Read a document list field: non-lists are empty, non-mappings dropped."""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, (dict, BaseModel))]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


Text = Annotated[str, BeforeValidator(_as_text)]
OptionalText = Annotated[Optional[str], BeforeValidator(_as_optional_text)]


class _Document(BaseModel):
    """Base for stored documents."""
    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
    )

    def to_document(self) -> dict:
        """Dump to the stored (camelCase, JSON-safe) representation."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# ENUMS
# =============================================================================

class BucketStatus(str, Enum):
    """
    Bucket lifecycle status.

    NOTE: Status is presentation only. Completed buckets are funded by the
    waterfall exactly like active ones.
    """
    ACTIVE = "active"
    COMPLETED = "completed"


# =============================================================================
# MONTH RECORD
# =============================================================================

class SipEntry(_Document):
    """A named investment contribution for one month."""

    id: OptionalText = None
    name: Text = ""
    amount: Amount = ZERO


class ExpenseItem(_Document):
    """
    An ad-hoc variable expense line item.

    Informational only: ``MonthRecord.variable_expenses`` is the
    authoritative aggregate.
    """

    id: OptionalText = None
    desc: Text = ""
    amount: Amount = ZERO


class MonthRecord(_Document):
    """
    Income, expenses and investments of one calendar month.

    The ``id`` is the month key ``YYYY-MM``; lexical order of keys is
    chronological order.
    """

    id: Text = Field(
        default="",
        description="Month key (YYYY-MM); missing reads as empty"
    )
    income: Amount = ZERO
    fixed_expenses: Amount = Field(default=ZERO, alias="fixedExpenses")
    variable_expenses: Amount = Field(default=ZERO, alias="variableExpenses")
    liquid_funds: Amount = Field(default=ZERO, alias="liquidFunds")
    legacy_sip: Amount = Field(
        default=ZERO,
        alias="sip",
        description="Single scalar SIP amount kept for older documents"
    )
    sip_entries: list[SipEntry] = Field(default_factory=list, alias="sipEntries")
    transactions: list[ExpenseItem] = Field(default_factory=list)

    @field_validator("sip_entries", "transactions", mode="before")
    @classmethod
    def drop_malformed_items(cls, v: Any) -> list:
        return _as_items(v)

    @property
    def named_sip_total(self) -> Decimal:
        return sum((entry.amount for entry in self.sip_entries), ZERO)

    @property
    def total_sip(self) -> Decimal:
        """Legacy SIP plus all named SIP entries."""
        return self.legacy_sip + self.named_sip_total

    @property
    def outflow(self) -> Decimal:
        """Everything that left the account this month."""
        return (
            self.fixed_expenses
            + self.variable_expenses
            + self.total_sip
            + self.liquid_funds
        )

    @property
    def surplus(self) -> Decimal:
        """Income minus outflow (may be negative)."""
        return self.income - self.outflow


# =============================================================================
# BUCKET
# =============================================================================

class Withdrawal(_Document):
    """Money taken out of a bucket."""

    id: OptionalText = None
    amount: Amount = ZERO
    note: Text = ""
    date: OptionalText = Field(
        default=None,
        description="ISO-8601 timestamp of the withdrawal"
    )


class Bucket(_Document):
    """
    A prioritized savings goal.

    Buckets are funded from the liquid pool in ascending ``priority``
    order. ``deadline`` is advisory and never used in allocation math.
    """

    id: Text = Field(
        default="",
        description="Unique bucket ID; missing reads as empty"
    )
    name: Text = ""
    target: Amount = ZERO
    priority: Priority = 0
    status: BucketStatus = BucketStatus.ACTIVE
    deadline: OptionalText = None
    transactions: list[Withdrawal] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def unknown_status_is_active(cls, v: Any) -> BucketStatus:
        if v == BucketStatus.COMPLETED or v == BucketStatus.COMPLETED.value:
            return BucketStatus.COMPLETED
        return BucketStatus.ACTIVE

    @field_validator("transactions", mode="before")
    @classmethod
    def drop_malformed_items(cls, v: Any) -> list:
        return _as_items(v)

    @property
    def total_withdrawn(self) -> Decimal:
        return sum((t.amount for t in self.transactions), ZERO)

    @property
    def is_completed(self) -> bool:
        return self.status == BucketStatus.COMPLETED
