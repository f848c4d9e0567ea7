"""
Interest Accrual Calculations

Accrues monthly compounding interest on the outstanding balance funded by
payments. Payments draw the balance up, returns pay it down, and each
month's interest is added back into the balance.

Conventions:
- The balance open at the start of a month is charged a full month at
  annual_rate / 12.
- A payment made during the month is charged daily interest
  (annual_rate / 365) from its disbursement day to month end, inclusive.
  A payment dated on the 1st is outstanding all month and is charged the
  full monthly rate instead.
- Returns are not pro-rated.
- After the last entry, interest keeps compounding into the future up to the
  project end date (or a fixed number of months when none is given).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from app.calculations.cashflow import (
    calculate_days_in_month,
    end_of_month,
    iterate_months,
    start_of_month,
)
from app.calculations.entries import (
    CashFlowEntry,
    EntryKind,
    principal_entries,
    sort_entries,
)

logger = logging.getLogger(__name__)

DEFAULT_PROJECTION_MONTHS = 3
NO_PRINCIPAL_ERROR = "No principal entries found to accrue interest on."


@dataclass
class InterestResult:
    """Output of an interest run."""

    new_interest_entries: List[CashFlowEntry] = field(default_factory=list)
    final_balance: float = 0.0
    error: Optional[str] = None


def format_indian_amount(value: float) -> str:
    """
    Format a whole amount with Indian digit grouping.

    Examples: 100000 -> "1,00,000", 4381383 -> "43,81,383"
    """
    rounded = int(round(value))
    sign = "-" if rounded < 0 else ""
    digits = str(abs(rounded))
    if len(digits) <= 3:
        return sign + digits

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ",".join(groups + [tail])


def _interest_for_month(
    opening_balance: float,
    month_entries: List[CashFlowEntry],
    month_start: date,
    annual_rate: float,
) -> Tuple[float, Optional[CashFlowEntry]]:
    """
    Calculate one month's interest.

    Returns:
        (unrounded interest, interest entry or None when nothing accrued)
    """
    daily_rate = annual_rate / 100 / 365
    monthly_rate = annual_rate / 100 / 12
    month_end = end_of_month(month_start)

    interest = 0.0
    basis = []

    if opening_balance > 0:
        interest += opening_balance * monthly_rate
        basis.append(f"{format_indian_amount(opening_balance)} (full month)")

    for entry in month_entries:
        if entry.kind != EntryKind.payment or entry.amount <= 0:
            continue
        if entry.date.day == 1:
            # Outstanding for the whole month, same as the opening balance
            interest += entry.amount * monthly_rate
            basis.append(f"{format_indian_amount(entry.amount)} (full month)")
            continue
        days_remaining = calculate_days_in_month(month_start) - entry.date.day + 1
        interest += entry.amount * daily_rate * days_remaining
        basis.append(f"{format_indian_amount(entry.amount)} ({days_remaining} days)")

    if interest <= 0:
        return interest, None

    entry = CashFlowEntry(
        id=f"interest-{month_start:%Y-%m}",
        date=month_end,
        amount=round(interest, 2),
        kind=EntryKind.interest,
        description=(
            f"Interest @ {annual_rate:g}% "
            f"(Basis: {' + '.join(basis) or 'N/A'})"
        ),
    )
    return interest, entry


def calculate_monthly_interest(
    entries: Iterable[CashFlowEntry],
    annual_rate: float,
    project_end_date: Optional[date] = None,
    projection_months: int = DEFAULT_PROJECTION_MONTHS,
) -> InterestResult:
    """
    Regenerate all interest entries for a set of cash flows.

    Any interest entries in the input are ignored; the result replaces them.

    Args:
        entries: Cash flow entries (payments, returns, old interest)
        annual_rate: Annual interest rate in percent (e.g., 12 for 12%)
        project_end_date: Last date to project interest to
        projection_months: Months to project when project_end_date is None

    Returns:
        InterestResult with the new interest entries and the final balance
    """
    principal = sort_entries(principal_entries(entries))

    if not principal:
        if annual_rate > 0:
            return InterestResult(error=NO_PRINCIPAL_ERROR)
        return InterestResult()

    by_month = defaultdict(list)
    for entry in principal:
        by_month[start_of_month(entry.date)].append(entry)

    new_entries: List[CashFlowEntry] = []
    balance = 0.0
    last_month = start_of_month(principal[-1].date)

    for month_start in iterate_months(principal[0].date, last_month):
        month_entries = by_month.get(month_start, [])
        opening_balance = balance

        for entry in month_entries:
            if entry.kind == EntryKind.payment:
                balance += entry.amount
            else:
                balance -= entry.amount

        if annual_rate <= 0:
            continue

        interest, interest_entry = _interest_for_month(
            opening_balance, month_entries, month_start, annual_rate
        )
        if interest_entry is not None:
            new_entries.append(interest_entry)
            balance += interest  # Compounds into next month's opening balance

        logger.debug(
            "Month %s: opening %.2f, closing %.2f", month_start, opening_balance, balance
        )

    if balance > 0 and annual_rate > 0:
        month_start = last_month + relativedelta(months=1)
        projected = 0

        while True:
            if project_end_date is not None and month_start > project_end_date:
                break
            if project_end_date is None and projected >= projection_months:
                break

            interest, interest_entry = _interest_for_month(
                balance, [], month_start, annual_rate
            )
            if interest_entry is None:
                break

            new_entries.append(interest_entry)
            balance += interest
            month_start += relativedelta(months=1)
            projected += 1

    logger.info(
        "Generated %d interest entries at %s%%, final balance %.2f",
        len(new_entries),
        annual_rate,
        balance,
    )
    return InterestResult(new_interest_entries=new_entries, final_balance=balance)


def combine_entries(
    entries: Iterable[CashFlowEntry], interest_entries: Iterable[CashFlowEntry]
) -> List[CashFlowEntry]:
    """Merge principal entries with freshly generated interest entries."""
    return sort_entries(principal_entries(entries) + list(interest_entries))


def derive_project_end_date(entries: Iterable[CashFlowEntry]) -> Optional[date]:
    """End of the month of the latest entry, or None when there are no entries."""
    dates = [e.date for e in entries]
    if not dates:
        return None
    return end_of_month(max(dates))
