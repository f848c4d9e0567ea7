"""
Tests for projects and calculations API endpoints.
"""

import pytest
from datetime import date
from fastapi.testclient import TestClient

from app import main
from app.main import app
from app.calculations.entries import EntryKind
from app.db.models import Project, ProjectEntry

# Database setup is handled by conftest.py


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def test_project(db_session):
    """Create a test project with two principal entries."""
    project = Project(
        name="Test Flat",
        annual_interest_rate=12.0,
        discount_rate=10.0,
        currency="INR",
    )
    db_session.add(project)
    db_session.flush()

    db_session.add_all(
        [
            ProjectEntry(
                project_id=project.id,
                entry_date=date(2025, 6, 1),
                amount=4381383,
                kind=EntryKind.payment,
                description="Instalment",
            ),
            ProjectEntry(
                project_id=project.id,
                entry_date=date(2025, 9, 10),
                amount=5000000,
                kind=EntryKind.return_,
                description="Sale",
            ),
        ]
    )
    db_session.commit()
    db_session.refresh(project)
    return project


# ============================================================================
# PROJECT API TESTS
# ============================================================================

class TestProjectAPI:
    """Test project endpoints."""

    def test_list_projects(self, client, test_project):
        """Test listing projects."""
        response = client.get("/api/projects/")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["projects"][0]["name"] == "Test Flat"
        assert data["projects"][0]["entries"] == []

    def test_create_project(self, client):
        """Test creating a project with entries."""
        response = client.post(
            "/api/projects/",
            json={
                "name": "New Flat",
                "annual_interest_rate": 11.5,
                "entries": [
                    {"date": "2025-01-10", "amount": 100000, "kind": "payment"},
                    {"date": "2025-01-31", "amount": 500, "kind": "interest"},
                ],
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "New Flat"
        assert data["annual_interest_rate"] == 11.5
        assert data["discount_rate"] == 10.0
        assert data["currency"] == "INR"
        # Interest is only ever generated by a calculation
        assert [e["kind"] for e in data["entries"]] == ["payment"]

    def test_create_project_rejects_negative_amount(self, client):
        response = client.post(
            "/api/projects/",
            json={
                "name": "Bad",
                "entries": [{"date": "2025-01-10", "amount": -5, "kind": "payment"}],
            },
        )
        assert response.status_code == 422

    def test_get_project(self, client, test_project):
        """Test getting a single project."""
        response = client.get(f"/api/projects/{test_project.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == test_project.id
        assert [e["kind"] for e in data["entries"]] == ["payment", "return"]
        assert data["schedule_end_date"] == "2025-09-30"

    def test_get_nonexistent_project(self, client):
        """Test getting a project that doesn't exist."""
        response = client.get("/api/projects/nonexistent-id")
        assert response.status_code == 404

    def test_update_project(self, client, test_project):
        """Test updating a project."""
        response = client.put(
            f"/api/projects/{test_project.id}",
            json={"name": "Renamed", "project_end_date": "2025-12-31"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Renamed"
        assert data["project_end_date"] == "2025-12-31"
        assert data["annual_interest_rate"] == 12.0

    def test_delete_project(self, client, test_project):
        """Test deleting a project."""
        response = client.delete(f"/api/projects/{test_project.id}")
        assert response.status_code == 200

        # Verify it's gone (soft delete)
        response = client.get(f"/api/projects/{test_project.id}")
        assert response.status_code == 404

    def test_replace_entries(self, client, test_project):
        response = client.put(
            f"/api/projects/{test_project.id}/entries",
            json={
                "entries": [
                    {"date": "2025-02-15", "amount": 250000, "kind": "payment", "description": "Token"},
                ]
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["entries"]) == 1
        assert data["entries"][0]["description"] == "Token"
        assert data["final_balance"] is None


class TestProjectCalculation:
    """Test explicit recalculation of stored projects."""

    def test_calculate(self, client, test_project):
        response = client.post(f"/api/projects/{test_project.id}/calculate")
        assert response.status_code == 200
        data = response.json()

        assert data["error"] is None
        assert len(data["new_interest_entries"]) == 4
        assert data["new_interest_entries"][0]["amount"] == pytest.approx(43813.83, abs=0.01)
        assert data["metrics"]["total_investment"] == 4381383
        assert data["project"]["return_metrics"]["total_investment"] == 4381383
        assert data["project"]["last_calculated_at"] is not None
        assert len(data["project"]["entries"]) == 6

    def test_calculate_twice_is_stable(self, client, test_project):
        first = client.post(f"/api/projects/{test_project.id}/calculate").json()
        second = client.post(f"/api/projects/{test_project.id}/calculate").json()

        assert len(second["project"]["entries"]) == len(first["project"]["entries"])
        assert second["metrics"]["net_profit"] == first["metrics"]["net_profit"]
        assert second["final_balance"] == first["final_balance"]

    def test_calculate_uses_project_end_date(self, client, test_project):
        client.put(
            f"/api/projects/{test_project.id}/entries",
            json={"entries": [{"date": "2025-06-01", "amount": 100000, "kind": "payment"}]},
        )
        client.put(f"/api/projects/{test_project.id}", json={"project_end_date": "2025-12-31"})

        data = client.post(f"/api/projects/{test_project.id}/calculate").json()
        assert len(data["new_interest_entries"]) == 7
        assert data["new_interest_entries"][-1]["date"] == "2025-12-31"

    def test_export_csv(self, client, test_project):
        client.post(f"/api/projects/{test_project.id}/calculate")

        response = client.get(f"/api/projects/{test_project.id}/export.csv")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")

        lines = response.text.split("\n")
        assert lines[0] == "Date,Type,Amount,Currency,Description"
        assert lines[1] == "2025-06-01,Payment,-4381383.00,INR,Instalment"
        assert lines[2].startswith("2025-06-30,Interest,-43813.83,INR,")
        assert len(lines) == 7

    def test_events(self, client, test_project):
        client.put(f"/api/projects/{test_project.id}", json={"discount_rate": 8})
        client.post(f"/api/projects/{test_project.id}/calculate")

        response = client.get(f"/api/projects/{test_project.id}/events")
        assert response.status_code == 200
        data = response.json()
        assert [e["event_kind"] for e in data["events"]] == [
            "project_updated",
            "interest_calculated",
        ]
        assert data["events"][1]["payload"]["interest_entries"] == 4


# ============================================================================
# CALCULATION API TESTS
# ============================================================================

ENTRIES = [
    {"date": "2025-07-15", "amount": 100000, "kind": "payment", "description": "Booking"},
]


class TestCalculationsAPI:
    """Test calculation endpoints."""

    def test_calculate_interest(self, client):
        """Test interest accrual endpoint."""
        response = client.post(
            "/api/calculate/interest",
            json={"entries": ENTRIES, "annual_interest_rate": 12},
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["new_interest_entries"]) == 4
        first = data["new_interest_entries"][0]
        assert first["id"] == "interest-2025-07"
        assert first["date"] == "2025-07-31"
        assert first["amount"] == pytest.approx(558.90, abs=0.01)
        assert "1,00,000 (17 days)" in first["description"]

    def test_calculate_interest_without_principal(self, client):
        response = client.post("/api/calculate/interest", json={"entries": []})
        assert response.status_code == 200
        assert response.json()["error"]

    def test_negative_amount_rejected(self, client):
        response = client.post(
            "/api/calculate/interest",
            json={"entries": [{"date": "2025-07-15", "amount": -1, "kind": "payment"}]},
        )
        assert response.status_code == 422

    def test_calculate_metrics(self, client):
        """Test metrics endpoint."""
        response = client.post(
            "/api/calculate/metrics",
            json={
                "entries": [
                    {"date": "2025-01-01", "amount": 100000, "kind": "payment"},
                    {"date": "2025-01-31", "amount": 1000, "kind": "interest"},
                    {"date": "2025-03-15", "amount": 150000, "kind": "return"},
                ],
                "discount_rate": 0,
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["net_profit"] == 49000
        assert data["npv"] == pytest.approx(49000)
        assert data["payback_period"] == 2
        assert len(data["periodic_cash_flows"]) == 3

    def test_run(self, client):
        """Test full calculation endpoint."""
        response = client.post(
            "/api/calculate/run",
            json={"entries": ENTRIES, "project_end_date": "2025-09-30"},
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["new_interest_entries"]) == 3
        assert len(data["entries"]) == 4
        assert data["metrics"]["total_interest_paid"] == pytest.approx(
            sum(e["amount"] for e in data["new_interest_entries"]), abs=0.01
        )

    def test_calculate_irr(self, client):
        """Test IRR calculation endpoint."""
        response = client.post("/api/calculate/irr", json={"cash_flows": [-100, 110]})
        assert response.status_code == 200
        data = response.json()
        assert data["rate"] == pytest.approx(0.10, abs=1e-4)
        assert data["converged"] is True
        assert data["profit"] == 10

    def test_calculate_irr_without_sign_change(self, client):
        """Solver problems are reported, not raised."""
        response = client.post("/api/calculate/irr", json={"cash_flows": [100, 100, 100]})
        assert response.status_code == 200
        data = response.json()
        assert data["converged"] is False
        assert data["status"] == "no_sign_change"

    def test_calculate_xirr(self, client):
        response = client.post(
            "/api/calculate/xirr",
            json={"cash_flows": [-100, 110], "dates": ["2025-01-01", "2026-01-01"]},
        )
        assert response.status_code == 200
        assert response.json()["rate"] == pytest.approx(0.10, abs=1e-4)

    def test_calculate_xirr_length_mismatch(self, client):
        response = client.post(
            "/api/calculate/xirr",
            json={"cash_flows": [-100, 110], "dates": ["2025-01-01"]},
        )
        assert response.status_code == 400

    def test_normalize(self, client):
        response = client.post(
            "/api/calculate/normalize",
            json={
                "records": [
                    {"date": "15/07/2025", "amount": "-₹1,00,000", "description": "Booking"},
                    {"month": 20, "amount": 5000},
                ]
            },
        )
        assert response.status_code == 200
        entries = response.json()["entries"]
        assert entries[0]["kind"] == "payment"
        assert entries[0]["amount"] == 100000
        assert entries[0]["date"] == "2025-07-15"
        assert entries[1]["kind"] == "return"
        assert entries[1]["date"] == "2025-08-01"

    def test_normalize_bad_record(self, client):
        response = client.post(
            "/api/calculate/normalize",
            json={"records": [{"date": "2025-01-01"}]},
        )
        assert response.status_code == 400
        assert "Record 0" in response.json()["detail"]

    def test_import_csv(self, client):
        response = client.post(
            "/api/calculate/import-csv",
            json={
                "text": "Date,Type,Amount,Currency,Description\n"
                "2025-07-15,Payment,-100000.00,INR,Booking\n"
                "2025-07-31,Interest,-558.90,INR,\"Interest, July\""
            },
        )
        assert response.status_code == 200
        entries = response.json()["entries"]
        assert [e["kind"] for e in entries] == ["payment", "interest"]
        assert entries[1]["amount"] == 558.90
        assert entries[1]["description"] == "Interest, July"

    def test_import_csv_bad_type(self, client):
        response = client.post(
            "/api/calculate/import-csv",
            json={"text": "Date,Type,Amount,Currency,Description\n2025-07-15,Fee,-1.00,INR,"},
        )
        assert response.status_code == 400

    def test_export_csv(self, client):
        response = client.post(
            "/api/calculate/export-csv",
            json={"entries": ENTRIES, "currency": "USD"},
        )
        assert response.status_code == 200
        assert response.text == (
            "Date,Type,Amount,Currency,Description\n"
            "2025-07-15,Payment,-100000.00,USD,Booking"
        )


# ============================================================================
# HEALTH CHECK TESTS
# ============================================================================

class TestHealthCheck:
    """Test health check endpoint."""

    def test_health_check(self, client):
        """Test health check returns healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_startup_initializes_database(self, monkeypatch):
        """Tables are created when the application starts."""
        calls = []
        monkeypatch.setattr(main, "init_db", lambda: calls.append(True))

        with TestClient(app) as started:
            assert started.get("/health").status_code == 200
        assert calls == [True]
