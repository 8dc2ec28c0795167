"""
SQLite-based storage for reading activity and streak state.

Activity records are append-only. Streak state is one row per owner,
always written whole in a single transaction.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import structlog

from read_daily.config import get_db_path
from read_daily.errors import StorageError
from read_daily.models import ActivityRecord, DayTotal, StreakState

logger = structlog.get_logger(__name__)


class ReadingStorage:
    """SQLite-backed record store and streak state store."""

    def __init__(self, db_path: str | Path | None = None):
        """
        Initialize the storage.

        Args:
            db_path: Path to the SQLite database file.
                     Defaults to ~/.read-daily/reading.db
        """
        if db_path is None:
            db_path = get_db_path()
        self.db_path = Path(db_path)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Open a connection and run one transaction on it.

        Commits on success, rolls back on error. Any sqlite3 error is
        re-raised as StorageError.
        """
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            logger.error("storage_connect_failed", db_path=str(self.db_path), error=str(e))
            raise StorageError(f"Could not open database {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            logger.error("storage_query_failed", db_path=str(self.db_path), error=str(e))
            raise StorageError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Could not create {self.db_path.parent}: {e}") from e

        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS activity_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    day_key TEXT NOT NULL,
                    quantity INTEGER NOT NULL CHECK (quantity >= 0),
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_activity_owner_day
                ON activity_records(owner_id, day_key)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS streaks (
                    owner_id TEXT PRIMARY KEY,
                    current_streak INTEGER NOT NULL DEFAULT 0 CHECK (current_streak >= 0),
                    longest_streak INTEGER NOT NULL DEFAULT 0 CHECK (longest_streak >= 0),
                    last_activity_day TEXT,
                    streak_start_day TEXT,
                    total_days_active INTEGER NOT NULL DEFAULT 0 CHECK (total_days_active >= 0),
                    daily_threshold INTEGER NOT NULL DEFAULT 1 CHECK (daily_threshold > 0),
                    streak_enabled INTEGER NOT NULL DEFAULT 1,
                    time_zone TEXT NOT NULL,
                    last_checked_day TEXT,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)

    # Activity records

    def add_record(self, owner_id: str, day_key: str, quantity: int) -> ActivityRecord:
        """
        Append an activity record.

        Args:
            owner_id: Owner the reading belongs to
            day_key: Calendar day (YYYY-MM-DD) in the owner's zone
            quantity: Pages read, non-negative

        Returns:
            The stored record with its id
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO activity_records (owner_id, day_key, quantity)
                VALUES (?, ?, ?)
                """,
                (owner_id, day_key, quantity),
            )
            row = conn.execute(
                "SELECT * FROM activity_records WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
        return _record_from_row(row)

    def get_records(
        self,
        owner_id: str,
        start: str | None = None,
        end: str | None = None,
    ) -> list[ActivityRecord]:
        """
        Enumerate raw records for an owner, optionally within a day range.

        Args:
            owner_id: Owner to read
            start: First day key (inclusive), or None for no lower bound
            end: Last day key (inclusive), or None for no upper bound

        Returns:
            Records sorted by day, then insertion order
        """
        query = "SELECT * FROM activity_records WHERE owner_id = ?"
        params: list = [owner_id]
        if start:
            query += " AND day_key >= ?"
            params.append(start)
        if end:
            query += " AND day_key <= ?"
            params.append(end)
        query += " ORDER BY day_key, id"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_record_from_row(row) for row in rows]

    def sum_for_day(self, owner_id: str, day_key: str) -> int:
        """Total quantity recorded for one day, 0 if none."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT COALESCE(SUM(quantity), 0)
                FROM activity_records
                WHERE owner_id = ? AND day_key = ?
                """,
                (owner_id, day_key),
            ).fetchone()
        return int(row[0])

    def aggregate_range(self, owner_id: str, start: str, end: str) -> list[DayTotal]:
        """
        Per-day totals for days that have at least one record.

        Args:
            owner_id: Owner to read
            start: First day key (inclusive)
            end: Last day key (inclusive)

        Returns:
            Sparse list of DayTotal sorted ascending by day
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT day_key, SUM(quantity) AS total
                FROM activity_records
                WHERE owner_id = ? AND day_key >= ? AND day_key <= ?
                GROUP BY day_key
                ORDER BY day_key
                """,
                (owner_id, start, end),
            ).fetchall()
        return [DayTotal(day=row["day_key"], quantity=int(row["total"])) for row in rows]

    def qualifying_days(
        self, owner_id: str, threshold: int, until: str | None = None
    ) -> list[str]:
        """
        Distinct days whose total meets the threshold.

        Args:
            owner_id: Owner to read
            threshold: Minimum daily total
            until: Last day key to consider (inclusive), or None

        Returns:
            Day keys sorted ascending
        """
        query = "SELECT day_key FROM activity_records WHERE owner_id = ?"
        params: list = [owner_id]
        if until:
            query += " AND day_key <= ?"
            params.append(until)
        query += " GROUP BY day_key HAVING SUM(quantity) >= ? ORDER BY day_key"
        params.append(threshold)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [row[0] for row in rows]

    def get_earliest_day(self, owner_id: str) -> str | None:
        """Earliest day with any record for the owner."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT MIN(day_key) FROM activity_records WHERE owner_id = ?",
                (owner_id,),
            ).fetchone()
        return row[0] if row else None

    # Streak state

    def get_state(self, owner_id: str) -> StreakState | None:
        """
        Read the streak row for an owner.

        Returns:
            The state, or None if the owner has no row yet
        """
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM streaks WHERE owner_id = ?",
                (owner_id,),
            ).fetchone()
        if row is None:
            return None
        return StreakState(
            owner_id=row["owner_id"],
            current_streak=row["current_streak"],
            longest_streak=row["longest_streak"],
            last_activity_day=row["last_activity_day"],
            streak_start_day=row["streak_start_day"],
            total_days_active=row["total_days_active"],
            daily_threshold=row["daily_threshold"],
            streak_enabled=bool(row["streak_enabled"]),
            time_zone=row["time_zone"],
            last_checked_day=row["last_checked_day"],
        )

    def save_state(self, state: StreakState) -> StreakState:
        """
        Write every field of the streak row (upserts).

        The write is a single statement in its own transaction, so a
        failure leaves the previous row untouched.

        Args:
            state: Full state to persist

        Returns:
            The state that was written
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO streaks (
                    owner_id, current_streak, longest_streak, last_activity_day,
                    streak_start_day, total_days_active, daily_threshold,
                    streak_enabled, time_zone, last_checked_day, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(owner_id) DO UPDATE SET
                    current_streak = excluded.current_streak,
                    longest_streak = excluded.longest_streak,
                    last_activity_day = excluded.last_activity_day,
                    streak_start_day = excluded.streak_start_day,
                    total_days_active = excluded.total_days_active,
                    daily_threshold = excluded.daily_threshold,
                    streak_enabled = excluded.streak_enabled,
                    time_zone = excluded.time_zone,
                    last_checked_day = excluded.last_checked_day,
                    updated_at = excluded.updated_at
                """,
                (
                    state.owner_id,
                    state.current_streak,
                    state.longest_streak,
                    state.last_activity_day,
                    state.streak_start_day,
                    state.total_days_active,
                    state.daily_threshold,
                    int(state.streak_enabled),
                    state.time_zone,
                    state.last_checked_day,
                ),
            )
        return state

def _record_from_row(row: sqlite3.Row) -> ActivityRecord:
    return ActivityRecord(
        owner_id=row["owner_id"],
        day_key=row["day_key"],
        quantity=row["quantity"],
        id=row["id"],
        created_at=row["created_at"],
    )
