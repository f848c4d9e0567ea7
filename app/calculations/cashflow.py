"""
Cash Flow Calculations

Calendar-month helpers and monthly cash flow rows built from dated entries.
"""

from typing import Dict, Iterable, Iterator, List
from datetime import date
from dateutil.relativedelta import relativedelta

from app.calculations.entries import CashFlowEntry, EntryKind


def start_of_month(period_date: date) -> date:
    return period_date.replace(day=1)


def end_of_month(period_date: date) -> date:
    """Last calendar day of the month containing period_date."""
    return start_of_month(period_date) + relativedelta(months=1, days=-1)


def calculate_days_in_month(period_date: date) -> int:
    """Calculate the number of days in a given month."""
    month_start = start_of_month(period_date)
    next_month = month_start + relativedelta(months=1)
    return (next_month - month_start).days


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start's month to end's month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def iterate_months(first: date, last: date) -> Iterator[date]:
    """Yield the first day of every month from first's month to last's month."""
    current = start_of_month(first)
    stop = start_of_month(last)
    while current <= stop:
        yield current
        current += relativedelta(months=1)


def generate_monthly_cash_flows(entries: Iterable[CashFlowEntry]) -> List[Dict]:
    """
    Bucket entries into calendar-month periods.

    Period 0 is the month of the earliest entry; every month up to the
    latest entry gets a row, including months without activity.

    Returns:
        List of rows with payments, interest, returns, net and cumulative
        cash flow per period (outflows negative)
    """
    entries = list(entries)
    if not entries:
        return []

    first = min(e.date for e in entries)
    last = max(e.date for e in entries)
    months = list(iterate_months(first, last))

    totals = [{"payments": 0.0, "interest": 0.0, "returns": 0.0} for _ in months]
    for entry in entries:
        bucket = totals[months_between(first, entry.date)]
        if entry.kind == EntryKind.payment:
            bucket["payments"] -= entry.amount
        elif entry.kind == EntryKind.interest:
            bucket["interest"] -= entry.amount
        else:
            bucket["returns"] += entry.amount

    rows = []
    cumulative = 0.0
    for period, (month_start, bucket) in enumerate(zip(months, totals)):
        net = bucket["payments"] + bucket["interest"] + bucket["returns"]
        cumulative += net
        rows.append(
            {
                "period": period,
                "date": month_start.isoformat(),
                "payments": round(bucket["payments"], 2),
                "interest": round(bucket["interest"], 2),
                "returns": round(bucket["returns"], 2),
                "net_cash_flow": round(net, 2),
                "cumulative_cash_flow": round(cumulative, 2),
            }
        )

    return rows
