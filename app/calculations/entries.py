"""
Cash Flow Entries

The shared data shape for dated payments, returns and interest accruals.
Amounts are always stored as non-negative magnitudes; direction comes from
the entry kind and is applied only when a calculation needs it.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List


class EntryKind(str, enum.Enum):
    """Kind of cash flow entry."""

    payment = "payment"  # Draw-down / outflow, increases the balance
    return_ = "return"  # Inflow, decreases the balance
    interest = "interest"  # Generated by the interest engine

    @property
    def label(self) -> str:
        """Capitalized name used in exports ("Payment", "Return", "Interest")."""
        return self.value.capitalize()


@dataclass(frozen=True)
class CashFlowEntry:
    """A single dated cash flow."""

    id: str
    date: date
    amount: float
    kind: EntryKind
    description: str = ""

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError(
                f"Entry {self.id} has negative amount {self.amount}; "
                "store the magnitude and use the kind for direction"
            )

    @property
    def is_principal(self) -> bool:
        """Payments and returns change the outstanding balance."""
        return self.kind != EntryKind.interest

    @property
    def signed_amount(self) -> float:
        """Amount as seen from the investor's cash position."""
        if self.kind == EntryKind.return_:
            return self.amount
        return -self.amount


def new_entry_id() -> str:
    return str(uuid.uuid4())


def principal_entries(entries: Iterable[CashFlowEntry]) -> List[CashFlowEntry]:
    """Drop generated interest entries."""
    return [e for e in entries if e.is_principal]


def sort_entries(entries: Iterable[CashFlowEntry]) -> List[CashFlowEntry]:
    """
    Sort entries chronologically.

    On the same date, principal entries come before interest entries.
    """
    return sorted(entries, key=lambda e: (e.date, not e.is_principal))
