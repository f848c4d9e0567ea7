"""
Financial Metrics

Aggregates accrued cash flows (payments, returns and generated interest)
into the headline investment metrics.

Total investment counts principal payments only; accrued interest is
reported separately as total_interest_paid and deducted in net_profit.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from app.calculations import irr
from app.calculations.cashflow import generate_monthly_cash_flows
from app.calculations.entries import CashFlowEntry, EntryKind


@dataclass
class FinancialMetrics:
    """Calculated metrics for one set of cash flows."""

    total_investment: float = 0.0
    total_returns: float = 0.0
    total_interest_paid: float = 0.0
    net_profit: float = 0.0
    roi: float = 0.0  # Percent
    npv: float = 0.0
    irr: float = 0.0  # Annualized percent
    irr_converged: bool = False
    xirr: float = 0.0  # Percent
    xirr_converged: bool = False
    payback_period: Optional[int] = None  # None = no payback within horizon
    holding_period_months: int = 0
    periodic_cash_flows: List[Dict] = field(default_factory=list)
    last_calculated: Optional[datetime] = None


def sum_by_kind(entries: Iterable[CashFlowEntry], kind: EntryKind) -> float:
    return sum(e.amount for e in entries if e.kind == kind)


def calculate_payback_period(cash_flows: List[float]) -> Optional[int]:
    """
    First period at which cumulative net cash flow is non-negative.

    Returns:
        Period index, or None if cumulative cash flow never recovers
    """
    cumulative = 0.0
    for period, cf in enumerate(cash_flows):
        cumulative += cf
        if cumulative >= 0:
            return period
    return None


def calculate_roi(total_returns: float, total_investment: float) -> float:
    """Gross return on investment in percent."""
    if total_investment <= 0:
        return 0.0
    return (total_returns - total_investment) / total_investment * 100


def calculate_metrics(
    entries: Iterable[CashFlowEntry],
    discount_rate: float,
    guess: float = irr.DEFAULT_GUESS,
    max_iterations: int = irr.MAX_ITERATIONS,
    tolerance: float = irr.TOLERANCE,
    calculated_at: Optional[datetime] = None,
) -> FinancialMetrics:
    """
    Calculate investment metrics.

    Args:
        entries: Principal and interest entries
        discount_rate: Annual discount rate in percent for NPV (e.g., 10 for 10%)
        guess: Initial guess for the IRR solvers
        max_iterations: Iteration cap for the IRR solvers
        tolerance: Convergence tolerance for the IRR solvers
        calculated_at: Timestamp to stamp on the result (display only)

    Returns:
        FinancialMetrics
    """
    entries = list(entries)

    total_investment = sum_by_kind(entries, EntryKind.payment)
    total_returns = sum_by_kind(entries, EntryKind.return_)
    total_interest = sum_by_kind(entries, EntryKind.interest)

    rows = generate_monthly_cash_flows(entries)
    cash_flows = irr.periodic_cash_flows(rows)

    irr_result = irr.solve_irr(
        cash_flows, guess=guess, max_iterations=max_iterations, tolerance=tolerance
    )

    dated = sorted(entries, key=lambda e: e.date)
    xirr_result = irr.solve_xirr(
        [e.signed_amount for e in dated],
        [e.date for e in dated],
        guess=guess,
        max_iterations=max_iterations,
        tolerance=tolerance,
    )

    return FinancialMetrics(
        total_investment=round(total_investment, 2),
        total_returns=round(total_returns, 2),
        total_interest_paid=round(total_interest, 2),
        net_profit=round(total_returns - total_investment - total_interest, 2),
        roi=calculate_roi(total_returns, total_investment),
        npv=irr.calculate_npv(cash_flows, irr.monthly_discount_rate(discount_rate)),
        irr=irr.annualize_monthly_rate(irr_result.rate) * 100,
        irr_converged=irr_result.converged,
        xirr=xirr_result.rate * 100,
        xirr_converged=xirr_result.converged,
        payback_period=calculate_payback_period(cash_flows),
        holding_period_months=len(rows),
        periodic_cash_flows=rows,
        last_calculated=calculated_at,
    )
