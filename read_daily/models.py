"""
Data types shared by the storage layer and the streak engine.
"""

from dataclasses import asdict, dataclass, replace


@dataclass(frozen=True)
class ActivityRecord:
    """One logged reading event. Several may share a day."""

    owner_id: str
    day_key: str
    quantity: int
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class DayTotal:
    """Summed reading quantity for one calendar day."""

    day: str
    quantity: int

    def to_dict(self) -> dict:
        return {"day": self.day, "quantity": self.quantity}


@dataclass(frozen=True)
class StreakState:
    """The persisted streak row for one owner."""

    owner_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_day: str | None = None
    streak_start_day: str | None = None
    total_days_active: int = 0
    daily_threshold: int = 1
    streak_enabled: bool = True
    time_zone: str = "America/New_York"
    last_checked_day: str | None = None

    def evolve(self, **changes) -> "StreakState":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a reset check."""

    changed: bool
    state: StreakState

    def to_dict(self) -> dict:
        return {"changed": self.changed, "state": self.state.to_dict()}
