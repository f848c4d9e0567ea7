"""
Financial calculation API endpoints.

These endpoints accept inputs and return calculated results without
touching stored projects.
"""

from dataclasses import asdict
from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import date, datetime

from app.calculations import csv_export, irr, metrics, normalize
from app.calculations.entries import CashFlowEntry, EntryKind, new_entry_id
from app.calculations.interest import calculate_monthly_interest
from app.config import get_settings
from app.services.calculator import run_calculation
from app.services.recorder import LoggingRecorder

router = APIRouter()
settings = get_settings()


class EntrySchema(BaseModel):
    """A cash flow entry as exchanged with clients."""

    id: Optional[str] = None
    date: date
    amount: float = Field(ge=0)
    kind: EntryKind
    description: str = ""

    def to_entry(self) -> CashFlowEntry:
        return CashFlowEntry(
            id=self.id or new_entry_id(),
            date=self.date,
            amount=self.amount,
            kind=self.kind,
            description=self.description,
        )

    @classmethod
    def from_entry(cls, entry: CashFlowEntry) -> "EntrySchema":
        return cls(
            id=entry.id,
            date=entry.date,
            amount=entry.amount,
            kind=entry.kind,
            description=entry.description,
        )


class MetricsResponse(BaseModel):
    """Calculated investment metrics."""

    total_investment: float
    total_returns: float
    total_interest_paid: float
    net_profit: float
    roi: float
    npv: float
    irr: float
    irr_converged: bool
    xirr: float
    xirr_converged: bool
    payback_period: Optional[int] = None
    holding_period_months: int
    periodic_cash_flows: List[dict]
    last_calculated: Optional[datetime] = None

    @classmethod
    def from_metrics(cls, result: metrics.FinancialMetrics) -> "MetricsResponse":
        return cls(**asdict(result))


class InterestInput(BaseModel):
    """Input for interest calculation."""

    entries: List[EntrySchema]
    annual_interest_rate: float = settings.default_interest_rate
    project_end_date: Optional[date] = None


class InterestResponse(BaseModel):
    """Generated interest entries and the resulting balance."""

    new_interest_entries: List[EntrySchema]
    final_balance: float
    error: Optional[str] = None


@router.post("/interest", response_model=InterestResponse)
async def calculate_interest(inputs: InterestInput):
    """Regenerate monthly interest entries for the given cash flows."""
    result = calculate_monthly_interest(
        [e.to_entry() for e in inputs.entries],
        inputs.annual_interest_rate,
        project_end_date=inputs.project_end_date,
        projection_months=settings.projection_months,
    )

    return InterestResponse(
        new_interest_entries=[EntrySchema.from_entry(e) for e in result.new_interest_entries],
        final_balance=round(result.final_balance, 2),
        error=result.error,
    )


class MetricsInput(BaseModel):
    """Input for metrics over an already accrued set of entries."""

    entries: List[EntrySchema]
    discount_rate: float = settings.default_discount_rate


@router.post("/metrics", response_model=MetricsResponse)
async def calculate_metrics(inputs: MetricsInput):
    """Calculate totals, NPV, IRR, XIRR and payback period."""
    result = metrics.calculate_metrics(
        [e.to_entry() for e in inputs.entries],
        inputs.discount_rate,
        guess=settings.solver_guess,
        max_iterations=settings.solver_max_iterations,
        tolerance=settings.solver_tolerance,
        calculated_at=datetime.utcnow(),
    )
    return MetricsResponse.from_metrics(result)


class CalculateInput(BaseModel):
    """Input for a full calculation run."""

    entries: List[EntrySchema]
    annual_interest_rate: float = settings.default_interest_rate
    discount_rate: float = settings.default_discount_rate
    project_end_date: Optional[date] = None


class CalculateResponse(BaseModel):
    """Combined entries, interest and metrics."""

    entries: List[EntrySchema]
    new_interest_entries: List[EntrySchema]
    final_balance: float
    metrics: Optional[MetricsResponse] = None
    error: Optional[str] = None


@router.post("/run", response_model=CalculateResponse)
async def calculate_all(inputs: CalculateInput):
    """Accrue interest, then derive metrics from the combined entries."""
    outcome = run_calculation(
        [e.to_entry() for e in inputs.entries],
        inputs.annual_interest_rate,
        inputs.discount_rate,
        project_end_date=inputs.project_end_date,
        recorder=LoggingRecorder(),
    )

    return CalculateResponse(
        entries=[EntrySchema.from_entry(e) for e in outcome.entries],
        new_interest_entries=[
            EntrySchema.from_entry(e) for e in outcome.interest.new_interest_entries
        ],
        final_balance=round(outcome.interest.final_balance, 2),
        metrics=MetricsResponse.from_metrics(outcome.metrics) if outcome.metrics else None,
        error=outcome.error,
    )


class IRRInput(BaseModel):
    """Input for IRR calculation."""

    cash_flows: List[float]
    guess: float = irr.DEFAULT_GUESS


class XIRRInput(BaseModel):
    """Input for XIRR calculation."""

    cash_flows: List[float]
    dates: List[date]
    guess: float = irr.DEFAULT_GUESS


class RateResponse(BaseModel):
    """Solved rate with convergence details."""

    rate: float
    converged: bool
    iterations: int
    status: str
    profit: float
    npv_at_10_percent: float


@router.post("/irr", response_model=RateResponse)
async def calculate_irr_endpoint(inputs: IRRInput):
    """Calculate periodic IRR for equally spaced cash flows."""
    result = irr.solve_irr(
        inputs.cash_flows,
        guess=inputs.guess,
        max_iterations=settings.solver_max_iterations,
        tolerance=settings.solver_tolerance,
    )

    return RateResponse(
        rate=result.rate,
        converged=result.converged,
        iterations=result.iterations,
        status=result.status,
        profit=irr.calculate_profit(inputs.cash_flows),
        npv_at_10_percent=irr.calculate_npv(inputs.cash_flows, 0.10),
    )


@router.post("/xirr", response_model=RateResponse)
async def calculate_xirr_endpoint(inputs: XIRRInput):
    """Calculate annual XIRR for dated cash flows."""
    try:
        result = irr.solve_xirr(
            inputs.cash_flows,
            inputs.dates,
            guess=inputs.guess,
            max_iterations=settings.solver_max_iterations,
            tolerance=settings.solver_tolerance,
        )
        npv = irr.calculate_xnpv(inputs.cash_flows, inputs.dates, 0.10)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return RateResponse(
        rate=result.rate,
        converged=result.converged,
        iterations=result.iterations,
        status=result.status,
        profit=irr.calculate_profit(inputs.cash_flows),
        npv_at_10_percent=npv,
    )


class NormalizeInput(BaseModel):
    """Raw records from an importer."""

    records: List[Dict[str, Any]]


class NormalizeResponse(BaseModel):
    entries: List[EntrySchema]


@router.post("/normalize", response_model=NormalizeResponse)
async def normalize_records(inputs: NormalizeInput):
    """Convert raw import records into typed entries."""
    try:
        entries = normalize.normalize_records(inputs.records)
    except normalize.RecordError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return NormalizeResponse(entries=[EntrySchema.from_entry(e) for e in entries])


class ImportInput(BaseModel):
    """CSV text in the export layout."""

    text: str


@router.post("/import-csv", response_model=NormalizeResponse)
async def import_csv(inputs: ImportInput):
    """Read entries back from a CSV export."""
    try:
        entries = csv_export.read_csv_export(inputs.text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return NormalizeResponse(entries=[EntrySchema.from_entry(e) for e in entries])


class ExportInput(BaseModel):
    entries: List[EntrySchema]
    currency: str = Field(default=settings.currency, min_length=3, max_length=3)


@router.post("/export-csv")
async def export_csv(inputs: ExportInput):
    """Export entries in the standard CSV layout."""
    text = csv_export.export_to_csv(
        [e.to_entry() for e in inputs.entries], currency=inputs.currency
    )
    return Response(content=text, media_type="text/csv")
