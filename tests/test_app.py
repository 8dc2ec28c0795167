"""
Tests for the FastAPI web application.
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from read_daily.app import app, get_engine
from read_daily.errors import StorageError
from read_daily.storage import ReadingStorage
from read_daily.streak_engine import StreakEngine


@pytest.fixture
def engine():
    """Engine on a temporary database, fixed at noon UTC on 2026-01-20."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = ReadingStorage(Path(tmpdir) / "reading.db")
        yield StreakEngine(
            storage,
            clock=lambda: datetime(2026, 1, 20, 12, 0, tzinfo=timezone.utc),
            default_threshold=10,
            default_time_zone="UTC",
        )


@pytest.fixture
def client(engine):
    """Create a test client whose routes use the temporary engine."""
    with patch("read_daily.app.get_engine", return_value=engine):
        yield TestClient(app)


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestGetStreak:
    """Tests for GET /api/streak."""

    def test_fresh_owner(self, client):
        response = client.get("/api/streak")

        assert response.status_code == 200
        data = response.json()
        assert data["current_streak"] == 0
        assert data["longest_streak"] == 0
        assert data["daily_threshold"] == 10
        assert data["time_zone"] == "UTC"
        assert data["streak_enabled"] is True
        assert data["last_checked_day"] == "2026-01-20"
        assert data["hours_remaining_today"] == 12
        assert "owner_id" not in data

    def test_expires_missed_streak(self, client, engine):
        engine.log_reading("local", 10, day="2026-01-17")
        engine.log_reading("local", 10, day="2026-01-18")

        data = client.get("/api/streak").json()

        assert data["current_streak"] == 0
        assert data["longest_streak"] == 2

    def test_disabled_returns_settings_only(self, client, engine):
        engine.set_streak_enabled("local", False)

        data = client.get("/api/streak").json()

        assert data == {"streak_enabled": False, "daily_threshold": 10, "time_zone": "UTC"}


class TestLogProgress:
    """Tests for POST /api/progress."""

    def test_log_pages(self, client):
        response = client.post("/api/progress", json={"pages_read": 12})

        assert response.status_code == 200
        data = response.json()
        assert data["current_streak"] == 1
        assert data["last_activity_day"] == "2026-01-20"

    def test_backdated_day(self, client):
        client.post("/api/progress", json={"pages_read": 12})
        data = client.post(
            "/api/progress", json={"pages_read": 12, "day": "2026-01-19"}
        ).json()

        assert data["current_streak"] == 2
        assert data["streak_start_day"] == "2026-01-19"

    def test_future_day_rejected(self, client):
        response = client.post("/api/progress", json={"pages_read": 12, "day": "2026-01-21"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_parameter"

    def test_negative_pages_rejected(self, client):
        response = client.post("/api/progress", json={"pages_read": -1})
        assert response.status_code == 422

    def test_storage_failure_maps_to_503(self, client, engine):
        with patch.object(engine.storage, "add_record", side_effect=StorageError("disk full")):
            response = client.post("/api/progress", json={"pages_read": 12})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "storage_unavailable"


class TestUpdateStreak:
    """Tests for PATCH /api/streak."""

    def test_raise_threshold_takes_back_today(self, client):
        client.post("/api/progress", json={"pages_read": 10})

        data = client.patch("/api/streak", json={"daily_threshold": 15}).json()

        assert data["daily_threshold"] == 15
        assert data["current_streak"] == 0

    @pytest.mark.parametrize("threshold", [0, 10000])
    def test_threshold_out_of_range(self, client, threshold):
        response = client.patch("/api/streak", json={"daily_threshold": threshold})
        assert response.status_code == 422

    def test_empty_update_rejected(self, client):
        response = client.patch("/api/streak", json={})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_parameter"

    def test_invalid_time_zone(self, client):
        response = client.patch("/api/streak", json={"time_zone": "Mars/Olympus_Mons"})

        assert response.status_code == 400
        assert "Mars/Olympus_Mons" in response.json()["detail"]

    def test_set_time_zone(self, client):
        data = client.patch("/api/streak", json={"time_zone": "Asia/Tokyo"}).json()

        assert data["time_zone"] == "Asia/Tokyo"
        # Noon UTC is 21:00 in Tokyo
        assert data["hours_remaining_today"] == 3

    def test_disable_keeps_threshold(self, client):
        client.patch("/api/streak", json={"daily_threshold": 20})

        data = client.patch("/api/streak", json={"streak_enabled": False}).json()

        assert data == {"streak_enabled": False, "daily_threshold": 20, "time_zone": "UTC"}

    def test_disable_ignores_threshold(self, client):
        data = client.patch(
            "/api/streak", json={"streak_enabled": False, "daily_threshold": 40}
        ).json()

        assert data == {"streak_enabled": False, "daily_threshold": 10, "time_zone": "UTC"}

    def test_enable_rebuilds_from_history(self, client, engine):
        client.patch("/api/streak", json={"streak_enabled": False})
        engine.storage.add_record("local", "2026-01-19", 5)
        engine.storage.add_record("local", "2026-01-20", 5)

        data = client.patch(
            "/api/streak", json={"streak_enabled": True, "daily_threshold": 5}
        ).json()

        assert data["streak_enabled"] is True
        assert data["current_streak"] == 2


class TestRebuild:
    """Tests for POST /api/streak/rebuild."""

    def test_rebuild_without_body(self, client, engine):
        engine.storage.add_record("local", "2026-01-19", 10)
        engine.storage.add_record("local", "2026-01-20", 10)

        response = client.post("/api/streak/rebuild")

        assert response.status_code == 200
        assert response.json()["current_streak"] == 2

    def test_rebuild_as_of(self, client, engine):
        engine.storage.add_record("local", "2026-01-01", 10)

        data = client.post("/api/streak/rebuild", json={"as_of": "2026-01-02"}).json()

        assert data["current_streak"] == 1
        assert data["last_checked_day"] == "2026-01-02"

    def test_invariant_violation_maps_to_500(self, client):
        broken = {
            "current_streak": 3,
            "longest_streak": 1,
            "total_days_active": 3,
            "streak_start_day": "2026-01-18",
            "last_activity_day": "2026-01-20",
        }
        with patch("read_daily.streak_engine.calculate_streak", return_value=broken):
            response = client.post("/api/streak/rebuild")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_error"


class TestCalendar:
    """Tests for GET /api/streak/calendar."""

    def test_month(self, client, engine):
        engine.log_reading("local", 7, day="2026-01-05")

        response = client.get("/api/streak/calendar", params={"year": 2026, "month": 1})

        assert response.status_code == 200
        data = response.json()
        assert data["year"] == 2026
        assert data["month"] == 1
        assert len(data["days"]) == 31
        assert data["days"][4] == {"day": "2026-01-05", "quantity": 7}

    def test_year(self, client):
        data = client.get("/api/streak/calendar", params={"year": 2024}).json()

        assert data["month"] is None
        assert len(data["days"]) == 366

    def test_invalid_month(self, client):
        response = client.get("/api/streak/calendar", params={"year": 2026, "month": 13})
        assert response.status_code == 422

    def test_year_required(self, client):
        assert client.get("/api/streak/calendar").status_code == 422


class TestAnalytics:
    """Tests for GET /api/streak/analytics."""

    def test_default_period(self, client, engine):
        engine.log_reading("local", 12, day="2026-01-18")

        data = client.get("/api/streak/analytics").json()

        assert data["streak"]["daily_threshold"] == 10
        assert [d["day"] for d in data["daily_history"]] == [
            "2026-01-18",
            "2026-01-19",
            "2026-01-20",
        ]
        assert data["daily_history"][0]["threshold_met"] is True
        assert data["daily_history"][0]["level"] == 2

    def test_this_year(self, client):
        client.get("/api/streak")

        response = client.get("/api/streak/analytics", params={"days": "this-year"})

        assert response.status_code == 200
        assert response.json()["daily_history"] == []

    def test_missing_streak_record(self, client):
        response = client.get("/api/streak/analytics")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    @pytest.mark.parametrize("days", ["0", "3651", "forever"])
    def test_invalid_period(self, client, days):
        client.get("/api/streak")

        response = client.get("/api/streak/analytics", params={"days": days})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_parameter"


class TestRequestEngines:
    """Tests for engines built per request."""

    def test_request_engines_share_owner_lock(self, engine):
        with patch("read_daily.app.ReadingStorage", return_value=engine.storage):
            first = get_engine()
            second = get_engine()

        assert first is not second
        assert first.storage is engine.storage
        assert first._owner_lock("local") is second._owner_lock("local")
