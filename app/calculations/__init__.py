"""
Financial Calculation Engine

Interest accrual, rate solving and metric aggregation for dated cash flows.
"""

from app.calculations import (
    cashflow,
    csv_export,
    entries,
    interest,
    irr,
    metrics,
    normalize,
)

__all__ = [
    "cashflow",
    "csv_export",
    "entries",
    "interest",
    "irr",
    "metrics",
    "normalize",
]
