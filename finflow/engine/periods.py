"""Month key helpers (``YYYY-MM``)."""

import re
from datetime import date
from typing import Optional


MONTH_KEY_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def current_month_key(today: Optional[date] = None) -> str:
    """Month key of ``today`` (defaults to the local current date)."""
    return month_key(today or date.today())


def is_month_key(value: str) -> bool:
    return bool(MONTH_KEY_PATTERN.match(value or ""))


def shift_month_key(key: str, delta: int) -> str:
    """
    Move a month key by ``delta`` months, rolling over years.

    >>> shift_month_key("2024-12", 1)
    '2025-01'
    """
    if not is_month_key(key):
        raise ValueError(f"Not a month key: {key!r}")
    year, month = (int(part) for part in key.split("-"))
    index = year * 12 + (month - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"
