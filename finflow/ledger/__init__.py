"""Pure record mutation helpers used by the flows."""

from finflow.ledger.errors import LedgerError, new_record_id
from finflow.ledger.months import (
    DEFAULT_SIP_NAME,
    add_expense,
    add_sip,
    draft_month,
    month_net,
    remove_expense,
    remove_sip,
    set_month_field,
)
from finflow.ledger.buckets import (
    DEFAULT_WITHDRAWAL_NOTE,
    active_buckets,
    edit_bucket,
    move_bucket,
    new_bucket,
    toggle_completed,
    withdraw,
)

__all__ = [
    "LedgerError",
    "new_record_id",
    "DEFAULT_SIP_NAME",
    "add_expense",
    "add_sip",
    "draft_month",
    "month_net",
    "remove_expense",
    "remove_sip",
    "set_month_field",
    "DEFAULT_WITHDRAWAL_NOTE",
    "active_buckets",
    "edit_bucket",
    "move_bucket",
    "new_bucket",
    "toggle_completed",
    "withdraw",
]
