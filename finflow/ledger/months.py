"""
Month record mutations.

Every helper returns a NEW MonthRecord; the input is never modified.
``variable_expenses`` is the authoritative aggregate and is kept in step
with the line items here, never derived by the engine.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional

from finflow.ledger.errors import LedgerError, new_record_id
from finflow.models.amounts import to_amount
from finflow.models.records import ExpenseItem, MonthRecord, SipEntry


DEFAULT_SIP_NAME = "SIP"

# Document keys the month editor may set directly
EDITABLE_FIELDS = {
    "income": "income",
    "fixedExpenses": "fixed_expenses",
    "variableExpenses": "variable_expenses",
    "liquidFunds": "liquid_funds",
}


def draft_month(months: Iterable[MonthRecord], key: str) -> MonthRecord:
    """
    Get the record for ``key``, or a new one carried forward.

    A new month copies income, fixed expenses, SIP entries and liquid funds
    from the latest earlier month. Legacy SIP, variable expenses and
    transactions start empty.
    """
    history = list(months)
    for month in history:
        if month.id == key:
            return month

    earlier = [m for m in history if m.id < key]
    if not earlier:
        return MonthRecord(id=key)

    last = max(earlier, key=lambda m: m.id)
    return MonthRecord(
        id=key,
        income=last.income,
        fixed_expenses=last.fixed_expenses,
        sip_entries=[entry.model_copy() for entry in last.sip_entries],
        liquid_funds=last.liquid_funds,
    )


def set_month_field(record: MonthRecord, field: str, value: Any) -> MonthRecord:
    """Set one editable amount (document key or attribute name)."""
    attribute = EDITABLE_FIELDS.get(field)
    if attribute is None and field in EDITABLE_FIELDS.values():
        attribute = field
    if attribute is None:
        raise LedgerError(f"Field is not editable: {field}")
    return record.model_copy(update={attribute: to_amount(value)})


def _positive(amount: Any, what: str) -> Decimal:
    value = to_amount(amount)
    if value <= 0:
        raise LedgerError(f"{what} amount must be greater than zero")
    return value


def add_expense(record: MonthRecord, desc: str, amount: Any) -> MonthRecord:
    """Append a variable expense and add it to the month's aggregate."""
    value = _positive(amount, "Expense")
    item = ExpenseItem(id=new_record_id(), desc=desc or "", amount=value)
    return record.model_copy(update={
        "variable_expenses": record.variable_expenses + value,
        "transactions": [*record.transactions, item],
    })


def remove_expense(record: MonthRecord, item_id: str) -> MonthRecord:
    """Remove a variable expense and subtract it from the aggregate."""
    item = _find(record.transactions, item_id, "Expense")
    return record.model_copy(update={
        "variable_expenses": record.variable_expenses - item.amount,
        "transactions": [t for t in record.transactions if t.id != item_id],
    })


def add_sip(
    record: MonthRecord,
    name: Optional[str],
    amount: Any,
) -> MonthRecord:
    value = _positive(amount, "SIP")
    entry = SipEntry(id=new_record_id(), name=name or DEFAULT_SIP_NAME, amount=value)
    return record.model_copy(update={"sip_entries": [*record.sip_entries, entry]})


def remove_sip(record: MonthRecord, entry_id: str) -> MonthRecord:
    _find(record.sip_entries, entry_id, "SIP entry")
    return record.model_copy(update={
        "sip_entries": [s for s in record.sip_entries if s.id != entry_id],
    })


def month_net(record: MonthRecord) -> Decimal:
    """Income left after all of the month's outflows."""
    return record.surplus


def _find(items: list, item_id: str, what: str):
    for item in items:
        if item.id == item_id:
            return item
    raise LedgerError(f"{what} not found: {item_id}")
