"""
Tests for CLI display functions and the command line entry point.
"""

import io
import os
import tempfile
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

import pytest

from read_daily.cli import (
    display_calendar,
    display_streak,
    format_day_total,
    get_milestone_message,
)
from read_daily.main import main
from read_daily.models import DayTotal, StreakState


def make_state(**changes) -> StreakState:
    base = StreakState(
        owner_id="local",
        current_streak=5,
        longest_streak=9,
        last_activity_day="2026-01-20",
        streak_start_day="2026-01-16",
        total_days_active=40,
        daily_threshold=10,
    )
    return base.evolve(**changes)


def capture(func, *args, **kwargs) -> str:
    output = io.StringIO()
    with redirect_stdout(output):
        func(*args, **kwargs)
    return output.getvalue()


class TestGetMilestoneMessage:
    """Tests for milestone messages."""

    def test_7_day_milestone(self):
        assert get_milestone_message(7) == "One week of reading!"

    def test_30_day_milestone(self):
        assert get_milestone_message(30) == "One month bookworm!"

    def test_365_day_milestone(self):
        assert get_milestone_message(365) == "A full year of reading!"

    def test_no_milestone(self):
        assert get_milestone_message(5) is None
        assert get_milestone_message(8) is None
        assert get_milestone_message(99) is None


class TestDisplayStreak:
    """Tests for streak display."""

    def test_no_active_streak(self):
        result = capture(display_streak, make_state(current_streak=0, streak_start_day=None))
        assert "No active streak" in result
        assert "Longest: 9" in result

    def test_single_day_streak(self):
        result = capture(display_streak, make_state(current_streak=1), today="2026-01-20")
        assert "1 day" in result
        assert "1 days" not in result
        assert "2026-01-20" in result

    def test_multi_day_streak(self):
        result = capture(display_streak, make_state(), today="2026-01-20")
        assert "5 days" in result
        assert "Active days: 40" in result

    def test_milestone(self):
        result = capture(display_streak, make_state(current_streak=7), today="2026-01-20")
        assert "7 days" in result
        assert "One week of reading!" in result

    def test_not_read_today_prompts_to_read(self):
        result = capture(display_streak, make_state(), today="2026-01-21")
        assert "read 10 pages today to continue" in result

    def test_milestone_takes_priority_over_prompt(self):
        result = capture(display_streak, make_state(current_streak=7), today="2026-01-21")
        assert "One week of reading!" in result
        assert "today to continue" not in result

    def test_disabled(self):
        result = capture(display_streak, make_state(streak_enabled=False))
        assert "disabled" in result
        assert "Current Streak" not in result


class TestDisplayCalendar:
    """Tests for the reading calendar display."""

    def test_empty(self):
        assert capture(display_calendar, [], 10) == ""

    def test_marks(self):
        days = [
            DayTotal("2026-01-19", 12),
            DayTotal("2026-01-20", 3),
            DayTotal("2026-01-21", 0),
        ]
        result = capture(display_calendar, days, 10)

        assert "Reading Activity 2026-01-19 to 2026-01-21:" in result
        assert result.count("[*]") == 1
        assert result.count("[.]") == 1
        assert result.count("[ ]") == 1

    def test_shows_day_headers(self):
        result = capture(display_calendar, [DayTotal("2026-01-20", 0)], 1)
        for name in ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]:
            assert name in result

    def test_week_rows(self):
        # 2026-01-05 is a Monday
        days = [DayTotal(f"2026-01-{d:02d}", 0) for d in range(5, 19)]
        result = capture(display_calendar, days, 1)

        rows = [line for line in result.splitlines() if "[" in line]
        assert len(rows) == 2
        assert result.count("[ ]") == 14


class TestFormatDayTotal:
    """Tests for per-day formatting."""

    def test_qualifying_day(self):
        result = format_day_total(DayTotal("2026-01-20", 12), 10)
        assert "2026-01-20" in result
        assert "12 pages" in result
        assert result.endswith("✓")

    def test_single_page(self):
        result = format_day_total(DayTotal("2026-01-20", 1), 10)
        assert "1 page" in result
        assert "pages" not in result
        assert "✓" not in result


class TestMain:
    """Tests for the command line entry point."""

    @pytest.fixture(autouse=True)
    def isolated_db(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = str(Path(tmpdir) / "reading.db")
            with patch.dict(os.environ, {"READ_DAILY_DB_PATH": db_path}), \
                    patch("read_daily.main.configure_logging"), \
                    patch("read_daily.streak_engine.get_default_threshold", return_value=10):
                yield db_path

    def run(self, argv) -> tuple[int, str]:
        output = io.StringIO()
        with redirect_stdout(output):
            code = main(argv)
        return code, output.getvalue()

    def test_status_is_default(self):
        code, result = self.run([])

        assert code == 0
        assert "No active streak" in result

    def test_log_then_status(self, isolated_db):
        code, result = self.run(["log", "12"])
        assert code == 0
        assert "Logged 12 pages." in result
        assert "Current Streak: 1 day" in result

        code, result = self.run(["status"])
        assert "Current Streak: 1 day" in result
        assert Path(isolated_db).exists()

    def test_threshold(self):
        self.run(["log", "12"])

        code, result = self.run(["threshold", "20"])

        assert code == 0
        assert "Daily threshold set to 20 pages." in result
        assert "No active streak" in result

    def test_invalid_threshold(self):
        code, result = self.run(["threshold", "0"])

        assert code == 1
        assert "Error:" in result

    def test_invalid_date(self):
        code, result = self.run(["log", "5", "--date", "January 5th"])

        assert code == 1
        assert "Error:" in result

    def test_rebuild(self):
        self.run(["log", "12", "--date", "2026-01-01"])
        self.run(["log", "12", "--date", "2026-01-02"])

        code, result = self.run(["rebuild", "--as-of", "2026-01-02"])

        assert code == 0
        assert "Streak recalculated from history." in result
        assert "Current Streak: 2 days" in result

    def test_calendar(self):
        self.run(["log", "12", "--date", "2024-02-10"])

        code, result = self.run(["calendar", "--year", "2024", "--month", "2"])

        assert code == 0
        assert "Reading Activity 2024-02-01 to 2024-02-29:" in result
        assert "2024-02-10    12 pages" in result

    def test_owner_option(self):
        self.run(["--owner", "alice", "log", "12"])

        code, result = self.run(["--owner", "bob"])

        assert "No active streak" in result

    def test_invalid_configuration(self):
        with patch("read_daily.config.DEFAULT_TIMEZONE", "Not/AZone"):
            code, result = self.run([])

        assert code == 1
        assert "Configuration Error" in result
