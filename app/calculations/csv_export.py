"""
CSV Export

Writes cash flow entries in the stable export layout:

    Date,Type,Amount,Currency,Description

Dates are yyyy-MM-dd, amounts are signed with two decimals (payments and
interest negative, returns positive).
"""

import csv
import io
from datetime import date
from typing import Iterable, List

from app.calculations.entries import CashFlowEntry, EntryKind, new_entry_id

CSV_HEADERS = ["Date", "Type", "Amount", "Currency", "Description"]
DEFAULT_CURRENCY = "INR"

_KINDS_BY_LABEL = {kind.label: kind for kind in EntryKind}


def export_to_csv(
    entries: Iterable[CashFlowEntry], currency: str = DEFAULT_CURRENCY
) -> str:
    """
    Render entries as CSV text.

    Rows are separated by "\\n" with no trailing newline. Descriptions that
    contain a comma, quote or newline are quoted with inner quotes doubled.
    """
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADERS)

    for entry in entries:
        writer.writerow(
            [
                entry.date.strftime("%Y-%m-%d"),
                entry.kind.label,
                f"{entry.signed_amount:.2f}",
                currency,
                (entry.description or "").strip(),
            ]
        )

    return output.getvalue()[:-1]


def read_csv_export(text: str) -> List[CashFlowEntry]:
    """
    Parse CSV text produced by export_to_csv back into entries.

    Raises:
        ValueError: If the header, a type, a date or an amount is invalid
    """
    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames != CSV_HEADERS:
        raise ValueError(f"Unexpected CSV header: {reader.fieldnames}")

    entries = []
    for line_number, row in enumerate(reader, start=2):
        kind = _KINDS_BY_LABEL.get(row["Type"])
        if kind is None:
            raise ValueError(f"Line {line_number}: unknown type {row['Type']!r}")

        try:
            entry_date = date.fromisoformat(row["Date"])
            amount = float(row["Amount"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"Line {line_number}: {e}") from e

        entries.append(
            CashFlowEntry(
                id=new_entry_id(),
                date=entry_date,
                amount=abs(amount),
                kind=kind,
                description=row["Description"] or "",
            )
        )

    return entries
