"""
Seed the database with a demo apartment project and run its first calculation.
"""
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.calculations.entries import EntryKind
from app.db.database import get_db_context, init_db
from app.db.models import Project, ProjectEntry
from app.services.calculator import metrics_to_dict, run_calculation
from app.services.recorder import DatabaseRecorder, PROJECT_CREATED

DEMO_NAME = "Demo Apartment"

DEMO_ENTRIES = [
    (date(2025, 1, 10), 2500000, EntryKind.payment, "Booking amount"),
    (date(2025, 3, 1), 1500000, EntryKind.payment, "Agreement instalment"),
    (date(2025, 7, 15), 1000000, EntryKind.payment, "Construction-linked instalment"),
    (date(2025, 12, 1), 381383, EntryKind.payment, "Possession charges"),
    (date(2026, 6, 30), 7200000, EntryKind.return_, "Sale proceeds"),
]


def seed_demo_project():
    init_db()

    with get_db_context() as db:
        existing = db.query(Project).filter(Project.name == DEMO_NAME).first()
        if existing:
            print(f"Project '{DEMO_NAME}' already exists (ID: {existing.id})")
            return

        project = Project(
            name=DEMO_NAME,
            description="Under-construction flat funded by a 12% loan",
            annual_interest_rate=12.0,
            discount_rate=10.0,
            currency="INR",
        )
        db.add(project)
        db.flush()
        print(f"Created project: {project.name} (ID: {project.id})")

        recorder = DatabaseRecorder(db, project.id)
        for entry_date, amount, kind, description in DEMO_ENTRIES:
            db.add(
                ProjectEntry(
                    project_id=project.id,
                    entry_date=entry_date,
                    amount=amount,
                    kind=kind,
                    description=description,
                )
            )
        recorder.record(PROJECT_CREATED, {"name": DEMO_NAME, "entries": len(DEMO_ENTRIES)})
        db.flush()

        outcome = run_calculation(
            [row.to_entry() for row in project.entries.all()],
            project.annual_interest_rate,
            project.discount_rate,
            recorder=recorder,
        )
        for entry in outcome.interest.new_interest_entries:
            db.add(ProjectEntry.from_entry(project.id, entry))

        project.final_balance = round(outcome.interest.final_balance, 2)
        if outcome.metrics is not None:
            project.return_metrics = metrics_to_dict(outcome.metrics)
            project.last_calculated_at = outcome.metrics.last_calculated

        print(f"Generated {len(outcome.interest.new_interest_entries)} interest entries")
        print(f"Final balance: {project.final_balance:,.2f}")
        if outcome.metrics is not None:
            print(f"Net profit: {outcome.metrics.net_profit:,.2f}")


if __name__ == "__main__":
    seed_demo_project()
