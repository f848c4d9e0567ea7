"""
Project management API endpoints.

A project stores a cash flow schedule and its rates. Interest entries are
only regenerated when a calculation is explicitly requested.
"""

from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import Response
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from sqlalchemy.orm import Session

from app.api.calculations import EntrySchema, MetricsResponse
from app.calculations.csv_export import export_to_csv
from app.calculations.entries import EntryKind, sort_entries
from app.calculations.interest import derive_project_end_date
from app.config import get_settings
from app.db.database import get_db
from app.db.models import CalculationEvent, Project, ProjectEntry
from app.services.calculator import metrics_to_dict, run_calculation
from app.services.recorder import (
    DatabaseRecorder,
    ENTRIES_REPLACED,
    PROJECT_CREATED,
    PROJECT_UPDATED,
)

router = APIRouter()
settings = get_settings()


class ProjectCreate(BaseModel):
    """Schema for creating a project."""

    name: str
    description: Optional[str] = None
    annual_interest_rate: float = settings.default_interest_rate
    discount_rate: float = settings.default_discount_rate
    project_end_date: Optional[date] = None
    currency: str = Field(default=settings.currency, min_length=3, max_length=3)
    entries: List[EntrySchema] = []


class ProjectUpdate(BaseModel):
    """Schema for updating a project."""

    name: Optional[str] = None
    description: Optional[str] = None
    annual_interest_rate: Optional[float] = None
    discount_rate: Optional[float] = None
    project_end_date: Optional[date] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class ProjectResponse(BaseModel):
    """Schema for project response."""

    id: str
    name: str
    description: Optional[str]
    annual_interest_rate: float
    discount_rate: float
    project_end_date: Optional[date]
    currency: str
    final_balance: Optional[float] = None
    return_metrics: dict = {}
    last_calculated_at: Optional[datetime] = None
    entries: List[EntrySchema] = []
    schedule_end_date: Optional[date] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProjectListResponse(BaseModel):
    """Response for listing projects."""

    projects: List[ProjectResponse]
    total: int


class EntriesReplace(BaseModel):
    """Replacement set of principal entries."""

    entries: List[EntrySchema]


class ProjectCalculateResponse(BaseModel):
    """Result of recalculating a stored project."""

    project: ProjectResponse
    new_interest_entries: List[EntrySchema]
    final_balance: float
    metrics: Optional[MetricsResponse] = None
    error: Optional[str] = None


def _stored_entries(project: Project) -> List[ProjectEntry]:
    return project.entries.filter_by(is_deleted=False).all()


def project_to_response(project: Project, include_entries: bool = True) -> ProjectResponse:
    """Convert Project model to response schema."""
    entries = []
    schedule_end_date = None
    if include_entries:
        stored = sort_entries(row.to_entry() for row in _stored_entries(project))
        entries = [EntrySchema.from_entry(e) for e in stored]
        schedule_end_date = derive_project_end_date(stored)

    return ProjectResponse(
        id=project.id,
        name=project.name,
        description=project.description,
        annual_interest_rate=project.annual_interest_rate,
        discount_rate=project.discount_rate,
        project_end_date=project.project_end_date,
        currency=project.currency,
        final_balance=project.final_balance,
        return_metrics=project.return_metrics or {},
        last_calculated_at=project.last_calculated_at,
        entries=entries,
        schedule_end_date=schedule_end_date,
        created_at=project.created_at.isoformat() if project.created_at else None,
        updated_at=project.updated_at.isoformat() if project.updated_at else None,
    )


def get_project_or_404(db: Session, project_id: str) -> Project:
    project = (
        db.query(Project)
        .filter(Project.id == project_id, Project.is_deleted == False)
        .first()
    )

    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    return project


@router.get("/", response_model=ProjectListResponse)
async def list_projects(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    """List all projects."""
    query = db.query(Project).filter(Project.is_deleted == False)

    total = query.count()
    projects = query.order_by(Project.name).offset(skip).limit(limit).all()

    return ProjectListResponse(
        projects=[project_to_response(p, include_entries=False) for p in projects],
        total=total,
    )


@router.post("/", response_model=ProjectResponse, status_code=201)
async def create_project(
    project_data: ProjectCreate,
    db: Session = Depends(get_db),
):
    """Create a new project with its initial principal entries."""
    db_project = Project(
        name=project_data.name,
        description=project_data.description,
        annual_interest_rate=project_data.annual_interest_rate,
        discount_rate=project_data.discount_rate,
        project_end_date=project_data.project_end_date,
        currency=project_data.currency,
    )
    db.add(db_project)
    db.flush()

    for schema in project_data.entries:
        if schema.kind != EntryKind.interest:
            db.add(ProjectEntry.from_entry(db_project.id, schema.to_entry()))

    DatabaseRecorder(db, db_project.id).record(
        PROJECT_CREATED,
        {"name": db_project.name, "entries": len(project_data.entries)},
    )
    db.commit()
    db.refresh(db_project)

    return project_to_response(db_project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    db: Session = Depends(get_db),
):
    """Get a project by ID with its entries."""
    return project_to_response(get_project_or_404(db, project_id))


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    project_data: ProjectUpdate,
    db: Session = Depends(get_db),
):
    """Update project settings. Cached results are kept until the next calculation."""
    db_project = get_project_or_404(db, project_id)

    # Update only provided fields
    update_data = project_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_project, field, value)

    DatabaseRecorder(db, project_id).record(
        PROJECT_UPDATED,
        {field: str(value) for field, value in update_data.items()},
    )
    db.commit()
    db.refresh(db_project)

    return project_to_response(db_project)


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    db: Session = Depends(get_db),
):
    """Soft delete a project."""
    db_project = get_project_or_404(db, project_id)

    db_project.is_deleted = True
    db.commit()

    return {"deleted": True, "id": project_id}


@router.put("/{project_id}/entries", response_model=ProjectResponse)
async def replace_entries(
    project_id: str,
    payload: EntriesReplace,
    db: Session = Depends(get_db),
):
    """
    Replace the project's principal entries.

    Stored interest entries are dropped as well, since they no longer match
    the schedule; run a calculation to regenerate them.
    """
    db_project = get_project_or_404(db, project_id)

    for row in _stored_entries(db_project):
        db.delete(row)

    principal = [s for s in payload.entries if s.kind != EntryKind.interest]
    for schema in principal:
        db.add(ProjectEntry.from_entry(project_id, schema.to_entry()))

    db_project.final_balance = None
    db_project.return_metrics = {}

    DatabaseRecorder(db, project_id).record(
        ENTRIES_REPLACED,
        {"entries": len(principal), "ignored_interest": len(payload.entries) - len(principal)},
    )
    db.commit()
    db.refresh(db_project)

    return project_to_response(db_project)


@router.post("/{project_id}/calculate", response_model=ProjectCalculateResponse)
async def calculate_project(
    project_id: str,
    db: Session = Depends(get_db),
):
    """Regenerate interest entries and metrics for a stored project."""
    db_project = get_project_or_404(db, project_id)
    stored = _stored_entries(db_project)

    outcome = run_calculation(
        [row.to_entry() for row in stored],
        db_project.annual_interest_rate,
        db_project.discount_rate,
        project_end_date=db_project.project_end_date,
        recorder=DatabaseRecorder(db, project_id),
    )

    if outcome.metrics is not None:
        for row in stored:
            if row.kind == EntryKind.interest:
                db.delete(row)
        for entry in outcome.interest.new_interest_entries:
            db.add(ProjectEntry.from_entry(project_id, entry))

        db_project.final_balance = round(outcome.interest.final_balance, 2)
        db_project.return_metrics = metrics_to_dict(outcome.metrics)
        db_project.last_calculated_at = outcome.metrics.last_calculated

    db.commit()
    db.refresh(db_project)

    return ProjectCalculateResponse(
        project=project_to_response(db_project),
        new_interest_entries=[
            EntrySchema.from_entry(e) for e in outcome.interest.new_interest_entries
        ],
        final_balance=round(outcome.interest.final_balance, 2),
        metrics=MetricsResponse.from_metrics(outcome.metrics) if outcome.metrics else None,
        error=outcome.error,
    )


@router.get("/{project_id}/export.csv")
async def export_project_csv(
    project_id: str,
    db: Session = Depends(get_db),
):
    """Export the project's entries (including calculated interest) as CSV."""
    db_project = get_project_or_404(db, project_id)
    entries = sort_entries(row.to_entry() for row in _stored_entries(db_project))

    return Response(
        content=export_to_csv(entries, currency=db_project.currency),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{project_id}.csv"'},
    )


@router.get("/{project_id}/events")
async def list_project_events(
    project_id: str,
    db: Session = Depends(get_db),
):
    """List recorded events for a project, oldest first."""
    get_project_or_404(db, project_id)

    events = (
        db.query(CalculationEvent)
        .filter(CalculationEvent.project_id == project_id)
        .order_by(CalculationEvent.created_at)
        .all()
    )

    return {
        "project_id": project_id,
        "events": [
            {
                "id": e.id,
                "event_kind": e.event_kind,
                "payload": e.payload,
                "created_at": e.created_at.isoformat() if e.created_at else None,
            }
            for e in events
        ],
        "total": len(events),
    }
