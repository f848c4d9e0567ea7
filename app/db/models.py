"""
SQLAlchemy ORM models for projects and their cash flows.
"""

from datetime import datetime
from sqlalchemy import (
    Column,
    String,
    Float,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import declarative_base, relationship
import uuid

from app.calculations.entries import CashFlowEntry, EntryKind

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


class AuditMixin:
    """Mixin for audit fields on all models."""

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
    created_by = Column(String(255), nullable=True)
    updated_by = Column(String(255), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)


class Project(AuditMixin, Base):
    """A named investment project with its cash flow schedule."""

    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text)

    # Rates (annual, percent)
    annual_interest_rate = Column(Float, default=12.0, nullable=False)
    discount_rate = Column(Float, default=10.0, nullable=False)

    # Interest projection horizon; None = default number of months
    project_end_date = Column(Date, nullable=True)
    currency = Column(String(3), default="INR", nullable=False)

    # Results of the last explicit calculation (cached)
    return_metrics = Column(JSON, default=dict)
    final_balance = Column(Float, nullable=True)
    last_calculated_at = Column(DateTime, nullable=True)

    # Relationships
    entries = relationship(
        "ProjectEntry",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )
    events = relationship(
        "CalculationEvent",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )


class ProjectEntry(AuditMixin, Base):
    """A stored cash flow entry (payment, return or generated interest)."""

    __tablename__ = "project_entries"

    id = Column(String, primary_key=True, default=generate_uuid)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)

    entry_date = Column(Date, nullable=False)
    amount = Column(Float, nullable=False)  # Always a non-negative magnitude
    kind = Column(SQLEnum(EntryKind), nullable=False)
    description = Column(Text, default="")

    # Relationships
    project = relationship("Project", back_populates="entries")

    def to_entry(self) -> CashFlowEntry:
        return CashFlowEntry(
            id=self.id,
            date=self.entry_date,
            amount=self.amount,
            kind=self.kind,
            description=self.description or "",
        )

    @classmethod
    def from_entry(cls, project_id: str, entry: CashFlowEntry) -> "ProjectEntry":
        return cls(
            project_id=project_id,
            entry_date=entry.date,
            amount=entry.amount,
            kind=entry.kind,
            description=entry.description,
        )


class CalculationEvent(AuditMixin, Base):
    """Append-only log of recorded operations."""

    __tablename__ = "calculation_events"

    id = Column(String, primary_key=True, default=generate_uuid)
    project_id = Column(String, ForeignKey("projects.id"), nullable=True, index=True)
    event_kind = Column(String(50), nullable=False, index=True)
    payload = Column(JSON, default=dict)

    # Relationships
    project = relationship("Project", back_populates="events")
