"""
IRR and NPV Calculations

Implements IRR and XIRR using the Newton-Raphson method. Neither solver
raises on numeric trouble: a SolverResult reports whether the rate
converged, and callers should treat unconverged rates as approximate.
"""

from dataclasses import dataclass
from typing import Callable, List, Sequence
from datetime import date
import numpy as np

MAX_ITERATIONS = 100
TOLERANCE = 1e-6
DERIVATIVE_EPSILON = 1e-10
DEFAULT_GUESS = 0.1

# Solver statuses
CONVERGED = "converged"
MAX_ITERATIONS_REACHED = "max_iterations"
ZERO_DERIVATIVE = "zero_derivative"
DIVERGED = "diverged"
DEGENERATE = "degenerate"
NO_SIGN_CHANGE = "no_sign_change"


@dataclass
class SolverResult:
    """Outcome of a root-finding run."""

    rate: float
    converged: bool
    iterations: int
    status: str


def newton_raphson(
    f: Callable[[float], float],
    df: Callable[[float], float],
    guess: float = DEFAULT_GUESS,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = TOLERANCE,
) -> SolverResult:
    """
    Find a root of f starting from guess.

    Stops when successive iterates differ by less than tolerance. If the
    derivative vanishes, an iterate is not finite, or the iteration cap is
    hit, the last finite estimate is returned with converged=False.
    """
    rate = guess

    for iteration in range(1, max_iterations + 1):
        value = f(rate)
        slope = df(rate)

        if not (np.isfinite(value) and np.isfinite(slope)):
            return SolverResult(rate, False, iteration, DIVERGED)

        if abs(slope) < DERIVATIVE_EPSILON:
            return SolverResult(rate, False, iteration, ZERO_DERIVATIVE)

        new_rate = rate - value / slope

        if not np.isfinite(new_rate):
            return SolverResult(rate, False, iteration, DIVERGED)

        if abs(new_rate - rate) < tolerance:
            return SolverResult(float(new_rate), True, iteration, CONVERGED)

        rate = float(new_rate)

    return SolverResult(rate, False, max_iterations, MAX_ITERATIONS_REACHED)


def _has_sign_change(cash_flows: Sequence[float]) -> bool:
    has_positive = any(cf > 0 for cf in cash_flows)
    has_negative = any(cf < 0 for cf in cash_flows)
    return has_positive and has_negative


def _discount(rate: float, exponents: np.ndarray) -> np.ndarray:
    """(1 + rate) ** -exponents, nan where the base is not positive."""
    base = 1.0 + rate
    if base <= 0:
        return np.full(exponents.shape, np.nan)
    return np.power(base, -exponents)


def calculate_npv(cash_flows: Sequence[float], discount_rate: float) -> float:
    """
    Calculate NPV (Net Present Value) of cash flows.

    Args:
        cash_flows: Array of periodic cash flows (negative = outflow, positive = inflow)
        discount_rate: Discount rate per period (e.g., 0.01 for 1% a month)

    Returns:
        NPV value
    """
    flows = np.asarray(cash_flows, dtype=float)
    periods = np.arange(len(flows), dtype=float)
    return float(np.sum(flows * _discount(discount_rate, periods)))


def _npv_derivative(cash_flows: Sequence[float], rate: float) -> float:
    """Calculate derivative of NPV with respect to rate (for Newton-Raphson)."""
    flows = np.asarray(cash_flows, dtype=float)
    periods = np.arange(len(flows), dtype=float)
    return float(np.sum(-periods * flows * _discount(rate, periods + 1)))


def solve_irr(
    cash_flows: Sequence[float],
    guess: float = DEFAULT_GUESS,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = TOLERANCE,
) -> SolverResult:
    """
    Solve for the periodic IRR of equally spaced cash flows.

    With monthly cash flows the result is a monthly rate.
    """
    if len(cash_flows) < 2:
        return SolverResult(0.0, False, 0, DEGENERATE)

    if not _has_sign_change(cash_flows):
        return SolverResult(0.0, False, 0, NO_SIGN_CHANGE)

    return newton_raphson(
        lambda r: calculate_npv(cash_flows, r),
        lambda r: _npv_derivative(cash_flows, r),
        guess=guess,
        max_iterations=max_iterations,
        tolerance=tolerance,
    )


def calculate_irr(cash_flows: Sequence[float], guess: float = DEFAULT_GUESS) -> float:
    """
    Calculate IRR (Internal Rate of Return) using Newton-Raphson method.

    Args:
        cash_flows: Array of periodic cash flows
        guess: Initial guess for rate (default 0.1 = 10%)

    Returns:
        Periodic IRR as decimal, best effort if the solver did not converge
    """
    return solve_irr(cash_flows, guess).rate


def _year_fractions(dates: Sequence[date]) -> np.ndarray:
    """Years elapsed since the earliest date, on an actual/365 basis."""
    base_date = min(dates)
    return np.array([(d - base_date).days / 365.0 for d in dates], dtype=float)


def calculate_xnpv(
    cash_flows: Sequence[float], dates: Sequence[date], discount_rate: float
) -> float:
    """Calculate XNPV (NPV with specific dates)."""
    if len(cash_flows) != len(dates):
        raise ValueError("Cash flows and dates arrays must have same length")
    if not cash_flows:
        return 0.0

    flows = np.asarray(cash_flows, dtype=float)
    years = _year_fractions(dates)
    return float(np.sum(flows * _discount(discount_rate, years)))


def _xnpv_derivative(
    cash_flows: Sequence[float], dates: Sequence[date], rate: float
) -> float:
    """Calculate derivative of XNPV with respect to rate."""
    flows = np.asarray(cash_flows, dtype=float)
    years = _year_fractions(dates)
    return float(np.sum(-years * flows * _discount(rate, years + 1)))


def solve_xirr(
    cash_flows: Sequence[float],
    dates: Sequence[date],
    guess: float = DEFAULT_GUESS,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = TOLERANCE,
) -> SolverResult:
    """Solve for the annual rate that zeroes the XNPV of dated cash flows."""
    if len(cash_flows) != len(dates):
        raise ValueError("Cash flows and dates arrays must have same length")

    if len(cash_flows) < 2:
        return SolverResult(0.0, False, 0, DEGENERATE)

    if not _has_sign_change(cash_flows):
        return SolverResult(0.0, False, 0, NO_SIGN_CHANGE)

    return newton_raphson(
        lambda r: calculate_xnpv(cash_flows, dates, r),
        lambda r: _xnpv_derivative(cash_flows, dates, r),
        guess=guess,
        max_iterations=max_iterations,
        tolerance=tolerance,
    )


def calculate_xirr(
    cash_flows: Sequence[float], dates: Sequence[date], guess: float = DEFAULT_GUESS
) -> float:
    """
    Calculate XIRR (IRR with specific dates).

    Args:
        cash_flows: Array of cash flows
        dates: Array of dates corresponding to each cash flow
        guess: Initial guess for rate (default 0.1 = 10%)

    Returns:
        Annual rate as decimal; 0 when fewer than two cash flows are given
    """
    return solve_xirr(cash_flows, dates, guess).rate


def calculate_profit(cash_flows: Sequence[float]) -> float:
    """Calculate profit (total inflows minus total outflows)."""
    return float(sum(cash_flows))


def annualize_monthly_rate(monthly_rate: float) -> float:
    """Nominal annual rate for a monthly rate (monthly x 12)."""
    return monthly_rate * 12


def monthly_discount_rate(annual_rate_percent: float) -> float:
    """Monthly decimal rate for an annual percentage (10 -> 0.00833...)."""
    return annual_rate_percent / 100 / 12


def periodic_cash_flows(rows: List[dict]) -> List[float]:
    """Extract the net cash flow column from monthly cash flow rows."""
    return [row["net_cash_flow"] for row in rows]
