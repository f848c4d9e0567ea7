"""
Record Normalization

Turns raw import records ({date or month, amount, description, type}) into
CashFlowEntry values with a non-negative amount and an explicit kind.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from app.calculations.entries import CashFlowEntry, EntryKind, new_entry_id

# Month 1 of the month-index scheme used by older imports
BASELINE_MONTH = date(2024, 1, 1)

# ISO 8601 date-times, including fractional seconds and zone designators
ISO_DATETIME = "iso8601"

# Tried in order; the first format that parses wins
DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    ISO_DATETIME,
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%d.%m.%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b-%Y",
    "%B-%Y",
    "%Y-%m",
]

# Leading currency marker, optionally after a minus sign
CURRENCY_PREFIX = re.compile(r"^(-?)\s*(?:₹|rs\.?|inr)\s*", re.IGNORECASE)
AMOUNT_PATTERN = re.compile(r"-?\d+(\.\d+)?")

KIND_ALIASES = {
    "payment": EntryKind.payment,
    "expense": EntryKind.payment,
    "return": EntryKind.return_,
    "income": EntryKind.return_,
    "interest": EntryKind.interest,
}

DATE_KEYS = ("date", "Date")
MONTH_KEYS = ("month", "Month", "period", "Period")
AMOUNT_KEYS = ("amount", "Amount", "value", "Value")
DESCRIPTION_KEYS = ("description", "Description", "notes", "Notes")
TYPE_KEYS = ("type", "Type")


class DateParseError(ValueError):
    """Raised when a date string matches none of the supported formats."""


class RecordError(ValueError):
    """Raised when a raw record cannot be turned into an entry."""

    def __init__(self, index: int, message: str):
        self.index = index
        super().__init__(f"Record {index}: {message}")


def parse_flexible_date(value: str) -> date:
    """
    Parse a date string using DATE_FORMATS in priority order.

    Month-only formats resolve to the first day of the month.

    Raises:
        DateParseError: If no format matches
    """
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            if fmt == ISO_DATETIME:
                return isoparse(text).date()
            return datetime.strptime(text, fmt).date()
        except (ValueError, OverflowError):
            continue
    raise DateParseError(f"Unrecognized date: {value!r}")


def parse_currency_amount(value: Any) -> float:
    """
    Parse an amount such as "₹1,00,000.50", "Rs. 5,000" or "-2,500".

    Raises:
        ValueError: If the value is not a plain finite number
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        amount = float(value)
        if not math.isfinite(amount):
            raise ValueError(f"Invalid amount: {value!r}")
        return amount

    cleaned = CURRENCY_PREFIX.sub(r"\1", str(value).strip())
    cleaned = re.sub(r"[,\s]", "", cleaned)
    if not AMOUNT_PATTERN.fullmatch(cleaned):
        raise ValueError(f"Invalid amount: {value!r}")
    return float(cleaned)


def month_to_date(month: int) -> date:
    """First day of a 1-based month index (1 = January 2024)."""
    return BASELINE_MONTH + relativedelta(months=month - 1)


def _first(record: Dict[str, Any], keys) -> Optional[Any]:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def _resolve_date(record: Dict[str, Any]) -> date:
    raw_date = _first(record, DATE_KEYS)
    if isinstance(raw_date, datetime):
        return raw_date.date()
    if isinstance(raw_date, date):
        return raw_date
    if raw_date is not None:
        return parse_flexible_date(str(raw_date))

    raw_month = _first(record, MONTH_KEYS)
    if raw_month is None:
        raise ValueError("missing date or month")
    if isinstance(raw_month, str) and not raw_month.strip().isdigit():
        return parse_flexible_date(raw_month)
    try:
        return month_to_date(int(raw_month))
    except (TypeError, ValueError):
        raise ValueError(f"invalid month {raw_month!r}") from None


def normalize_record(record: Dict[str, Any], index: int = 0) -> CashFlowEntry:
    """
    Normalize one raw record.

    When the record has no type, the sign of the amount decides it:
    negative is a payment, anything else a return.

    Raises:
        RecordError: If the record has no usable date, amount or type
    """
    try:
        entry_date = _resolve_date(record)

        raw_amount = _first(record, AMOUNT_KEYS)
        if raw_amount is None:
            raise ValueError("missing amount")
        amount = parse_currency_amount(raw_amount)

        type_text = str(_first(record, TYPE_KEYS) or "").strip().lower()
        if type_text:
            kind = KIND_ALIASES.get(type_text)
            if kind is None:
                raise ValueError(f"unknown type {type_text!r}")
        else:
            kind = EntryKind.payment if amount < 0 else EntryKind.return_
    except ValueError as e:
        raise RecordError(index, str(e)) from e

    description = _first(record, DESCRIPTION_KEYS)

    return CashFlowEntry(
        id=str(record.get("id") or new_entry_id()),
        date=entry_date,
        amount=abs(amount),
        kind=kind,
        description=str(description).strip() if description is not None else "",
    )


def normalize_records(records: Iterable[Dict[str, Any]]) -> List[CashFlowEntry]:
    """Normalize a batch of raw records, failing on the first bad one."""
    return [normalize_record(record, index) for index, record in enumerate(records)]
