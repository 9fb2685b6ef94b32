"""
Tests for health server

Exercises the Flask liveness, readiness and detailed health endpoints
against a real ledger database.
"""

from pathlib import Path

import pytest

from site_ledger import health_server
from site_ledger.health_server import app, initialize_health_server
from site_ledger.ledger import Ledger
from tests.helpers import budget_payload


@pytest.fixture
def client():
    """Flask test client"""
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


@pytest.fixture(autouse=True)
def reset_health_server():
    yield
    health_server._db_path = None
    health_server._ledger = None


@pytest.fixture
def populated_db(temp_db: Path) -> Path:
    ledger = Ledger(temp_db)
    ledger.create_budget(budget_payload("B-H-1"), "alice")
    ledger.create_budget(budget_payload("B-H-2"), "alice")
    return temp_db


class TestLiveness:
    def test_liveness_always_alive(self, client) -> None:
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json == {"status": "alive", "service": "site-ledger"}


class TestReadiness:
    def test_not_initialized(self, client) -> None:
        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json["reason"] == "database_path_not_initialized"

    def test_missing_database(self, client, tmp_path: Path) -> None:
        initialize_health_server(tmp_path / "missing.db")

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json["reason"] == "database_file_not_found"

    def test_ready_reports_event_count(self, client, populated_db: Path) -> None:
        initialize_health_server(populated_db)

        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json["status"] == "ready"
        # Each budget is a reservation event plus a creation event
        assert response.json["event_count"] == 4

    def test_database_without_events_table(self, client, tmp_path: Path) -> None:
        empty = tmp_path / "empty.db"
        empty.write_bytes(b"")
        initialize_health_server(empty)

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json["reason"] == "database_error"


class TestDetailedHealth:
    def test_degraded_when_not_initialized(self, client) -> None:
        response = client.get("/health")

        assert response.status_code == 503
        assert response.json["status"] == "degraded"
        assert response.json["database"] == {"status": "not_initialized"}

    def test_healthy_with_database_stats(self, client, populated_db: Path) -> None:
        initialize_health_server(populated_db)

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json
        assert data["status"] == "healthy"
        assert data["service"] == "site-ledger"
        assert data["database"]["event_count"] == 4
        assert data["database"]["stream_count"] == 4
        assert "ledger" not in data

    def test_includes_ledger_summary(self, client, populated_db: Path) -> None:
        initialize_health_server(populated_db, Ledger(populated_db))

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json["ledger"]["budgets"] == 2
        assert response.json["ledger"]["approved_budgets"] == 0
