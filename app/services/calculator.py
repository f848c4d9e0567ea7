"""
Calculation service.

Runs one explicit "calculate" request: regenerate interest, merge it with
the principal entries and derive the metrics. The caller's entries are
treated as a snapshot and never mutated.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from app.calculations.entries import CashFlowEntry, principal_entries, sort_entries
from app.calculations.interest import (
    InterestResult,
    calculate_monthly_interest,
    combine_entries,
)
from app.calculations.metrics import FinancialMetrics, calculate_metrics
from app.config import Settings, get_settings
from app.services.recorder import CALCULATION_FAILED, INTEREST_CALCULATED, Recorder

logger = logging.getLogger(__name__)


@dataclass
class CalculationOutcome:
    """Complete replacement result of one calculation run."""

    interest: InterestResult
    entries: List[CashFlowEntry] = field(default_factory=list)
    metrics: Optional[FinancialMetrics] = None
    error: Optional[str] = None


def metrics_to_dict(metrics: FinancialMetrics, include_periods: bool = False) -> Dict[str, Any]:
    """JSON-safe dict of metrics for caching and event payloads."""
    data = asdict(metrics)
    if not include_periods:
        data.pop("periodic_cash_flows")
    if metrics.last_calculated is not None:
        data["last_calculated"] = metrics.last_calculated.isoformat()
    return data


def run_calculation(
    entries: Iterable[CashFlowEntry],
    annual_interest_rate: float,
    discount_rate: float,
    project_end_date: Optional[date] = None,
    recorder: Optional[Recorder] = None,
    settings: Optional[Settings] = None,
) -> CalculationOutcome:
    """
    Recalculate interest and metrics for a set of entries.

    Existing interest entries in the input are discarded and regenerated.
    Numeric failures are logged and returned as outcome.error rather than
    raised.
    """
    settings = settings or get_settings()
    snapshot = list(entries)

    try:
        interest = calculate_monthly_interest(
            snapshot,
            annual_interest_rate,
            project_end_date=project_end_date,
            projection_months=settings.projection_months,
        )
        combined = combine_entries(snapshot, interest.new_interest_entries)
        metrics = calculate_metrics(
            combined,
            discount_rate,
            guess=settings.solver_guess,
            max_iterations=settings.solver_max_iterations,
            tolerance=settings.solver_tolerance,
            calculated_at=datetime.utcnow(),
        )
    except (ValueError, ArithmeticError) as e:
        logger.exception("Calculation failed")
        if recorder is not None:
            recorder.record(CALCULATION_FAILED, {"error": str(e)})
        return CalculationOutcome(
            interest=InterestResult(error=str(e)),
            entries=sort_entries(principal_entries(snapshot)),
            error=str(e),
        )

    if interest.error:
        logger.warning("Interest calculation: %s", interest.error)

    if not metrics.irr_converged or not metrics.xirr_converged:
        logger.info(
            "Rate solver did not converge (irr=%s, xirr=%s); rates are approximate",
            metrics.irr_converged,
            metrics.xirr_converged,
        )

    if recorder is not None:
        recorder.record(
            INTEREST_CALCULATED,
            {
                "annual_interest_rate": annual_interest_rate,
                "discount_rate": discount_rate,
                "project_end_date": project_end_date.isoformat() if project_end_date else None,
                "interest_entries": len(interest.new_interest_entries),
                "final_balance": round(interest.final_balance, 2),
                "error": interest.error,
                "metrics": metrics_to_dict(metrics),
            },
        )

    return CalculationOutcome(
        interest=interest,
        entries=combined,
        metrics=metrics,
        error=interest.error,
    )
