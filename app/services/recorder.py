"""
Event recorders.

The orchestration layer reports what it did (calculations run, entries
replaced, projects created) to an injected recorder. Calculation modules
never record anything themselves.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from app.db.models import CalculationEvent

logger = logging.getLogger(__name__)

# Event kinds
PROJECT_CREATED = "project_created"
PROJECT_UPDATED = "project_updated"
ENTRIES_REPLACED = "entries_replaced"
INTEREST_CALCULATED = "interest_calculated"
CALCULATION_FAILED = "calculation_failed"


class Recorder(Protocol):
    """Anything that can receive recorded events."""

    def record(self, event_kind: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingRecorder:
    """Writes events to the application log."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def record(self, event_kind: str, payload: Dict[str, Any]) -> None:
        logger.log(self.level, "Event %s: %s", event_kind, payload)


class DatabaseRecorder:
    """
    Appends events to the calculation_events table.

    The row is added to the given session; committing is left to the caller
    so the event lands in the same transaction as the change it describes.
    """

    def __init__(self, db: Session, project_id: Optional[str] = None):
        self.db = db
        self.project_id = project_id

    def record(self, event_kind: str, payload: Dict[str, Any]) -> None:
        self.db.add(
            CalculationEvent(
                project_id=self.project_id,
                event_kind=event_kind,
                payload=payload,
            )
        )
        logger.debug("Recorded %s for project %s", event_kind, self.project_id)
