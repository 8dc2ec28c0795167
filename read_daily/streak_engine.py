"""
Reading streak engine.

Turns per-day reading totals into streak state for one owner at a time.
Two entry points drive transitions: record_activity() after new reading
is logged, and check_and_reset_if_needed() as time passes. rebuild()
recomputes everything from history and is used whenever an incremental
patch cannot be trusted (backdated reading, a time zone change). A day
that stops qualifying is taken back by rebuilding only the current run.
"""

import threading
from datetime import datetime, timezone
from typing import Callable

import structlog

from read_daily import calendar_days
from read_daily.aggregator import ActivityAggregator, densify, fill_calendar
from read_daily.config import (
    DEFAULT_OWNER_ID,
    DEFAULT_TIMEZONE,
    get_default_threshold,
    validate_threshold,
)
from read_daily.errors import ConfigurationError, InvariantViolation, NotFoundError
from read_daily.models import CheckResult, DayTotal, StreakState
from read_daily.storage import ReadingStorage
from read_daily.streak_calculator import calculate_streak

logger = structlog.get_logger(__name__)

MAX_HISTORY_DAYS = 3650
DEFAULT_HISTORY_PERIOD = "365"

# Shared by every engine in the process
_owner_locks: dict[str, threading.Lock] = {}
_owner_locks_guard = threading.Lock()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StreakEngine:
    """Streak state machine over a record store and a state store."""

    def __init__(
        self,
        storage: ReadingStorage | None = None,
        clock: Callable[[], datetime] | None = None,
        default_threshold: int | None = None,
        default_time_zone: str | None = None,
    ):
        """
        Initialize the engine.

        Args:
            storage: Record and state store. Creates the default if not provided.
            clock: Returns the current instant. Defaults to the system UTC clock.
            default_threshold: Threshold for newly created owners
            default_time_zone: Zone for newly created owners

        Raises:
            ConfigurationError: If the defaults are invalid
        """
        self.storage = storage if storage is not None else ReadingStorage()
        self.aggregator = ActivityAggregator(self.storage)
        self.clock = clock or _utc_now

        if default_threshold is None:
            default_threshold = get_default_threshold()
        self.default_threshold = validate_threshold(default_threshold)

        self.default_time_zone = default_time_zone or DEFAULT_TIMEZONE
        calendar_days.resolve_zone(self.default_time_zone)

    # Read accessors

    def get_state(self, owner_id: str = DEFAULT_OWNER_ID) -> StreakState:
        """Get the owner's streak state, creating the zero state on first access."""
        with self._owner_lock(owner_id):
            state, persisted = self._load(owner_id)
            if not persisted:
                state = self._write(state, self._today(state))
            return state

    def require_state(self, owner_id: str = DEFAULT_OWNER_ID) -> StreakState:
        """
        Get the owner's streak state without creating it.

        Raises:
            NotFoundError: If the owner has no streak record
        """
        state = self.storage.get_state(owner_id)
        if state is None:
            raise NotFoundError(f"No streak record for owner {owner_id!r}")
        return state

    def today(self, owner_id: str = DEFAULT_OWNER_ID) -> str:
        """Today's day key in the owner's zone."""
        with self._owner_lock(owner_id):
            state, _ = self._load(owner_id)
        return self._today(state)

    # Transitions

    def log_reading(
        self,
        owner_id: str,
        quantity: int,
        day: str | None = None,
        at: datetime | None = None,
    ) -> StreakState:
        """
        Write an activity record and update the streak for its day.

        Args:
            owner_id: Owner who read
            quantity: Pages read (non-negative)
            day: Explicit day key; takes precedence over ``at``
            at: Instant of the reading; defaults to now. Resolved to a day
                in the owner's zone.

        Returns:
            The updated streak state

        Raises:
            ConfigurationError: On a negative quantity, a malformed day or a
                day after today
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ConfigurationError("Quantity must be a non-negative integer")

        with self._owner_lock(owner_id):
            state, persisted = self._load(owner_id)
            if day is None:
                day = calendar_days.day_key_of(at or self.clock(), state.time_zone)
            else:
                _check_day(day)
            _check_not_future(day, self._today(state))

            self.storage.add_record(owner_id, day, quantity)
            logger.info("reading_logged", owner_id=owner_id, day=day, quantity=quantity)
            return self._record_activity_locked(state, persisted, day, quantity)

    def record_activity(
        self, owner_id: str, day: str, quantity_delta: int = 0
    ) -> StreakState:
        """
        Update the streak after activity was recorded for a day.

        The day's total is re-summed from the record store, so calling this
        again for the same day is safe and never counts the day twice.

        Args:
            owner_id: Owner whose record was written
            day: Day key the record was written for (may be backdated)
            quantity_delta: Quantity just added, for logging only

        Returns:
            The updated streak state
        """
        _check_day(day)
        with self._owner_lock(owner_id):
            state, persisted = self._load(owner_id)
            _check_not_future(day, self._today(state))
            return self._record_activity_locked(state, persisted, day, quantity_delta)

    def check_and_reset_if_needed(
        self, owner_id: str = DEFAULT_OWNER_ID, now: datetime | None = None
    ) -> CheckResult:
        """
        Expire the current streak once a full day has passed without reading.

        Runs at most once per local day per owner; further calls that day
        return unchanged without writing.

        Args:
            owner_id: Owner to check
            now: Instant to check against; defaults to the engine clock

        Returns:
            CheckResult with changed=True only if the streak was reset
        """
        with self._owner_lock(owner_id):
            state, persisted = self._load(owner_id)
            now = now or self.clock()
            today = calendar_days.today(state.time_zone, now)

            if persisted and state.last_checked_day == today:
                return CheckResult(changed=False, state=state)

            last = state.last_activity_day
            if (
                last is None
                or last >= calendar_days.yesterday(state.time_zone, now)
                or state.current_streak == 0
            ):
                state = self._write(state.evolve(last_checked_day=today), today)
                logger.debug("streak_check_no_change", owner_id=owner_id, today=today)
                return CheckResult(changed=False, state=state)

            previous = state.current_streak
            state = self._write(
                state.evolve(current_streak=0, streak_start_day=None, last_checked_day=today),
                today,
            )
            logger.info(
                "streak_reset",
                owner_id=owner_id,
                today=today,
                last_activity_day=last,
                previous_streak=previous,
            )
            return CheckResult(changed=True, state=state)

    def rebuild(
        self,
        owner_id: str = DEFAULT_OWNER_ID,
        as_of: str | None = None,
        threshold_override: int | None = None,
        enable_override: bool | None = None,
    ) -> StreakState:
        """
        Recompute the whole streak state from activity history.

        Deterministic: the same history and arguments always produce the
        same state. The result replaces every stored field in one write.

        Args:
            owner_id: Owner to rebuild
            as_of: Day to evaluate the current streak against (default: today)
            threshold_override: New daily threshold to apply and store
            enable_override: New enabled flag to store

        Returns:
            The rebuilt state

        Raises:
            ConfigurationError: On an invalid threshold or day
            InvariantViolation: If the result is inconsistent (nothing is written)
        """
        if threshold_override is not None:
            validate_threshold(threshold_override)
        if as_of is not None:
            _check_day(as_of)

        with self._owner_lock(owner_id):
            state, _ = self._load(owner_id)
            as_of = as_of or self._today(state)
            rebuilt = self._compute_rebuild(state, as_of, threshold_override, enable_override)
            return self._write(rebuilt, as_of)

    # Settings

    def update_threshold(self, owner_id: str, threshold: int) -> StreakState:
        """
        Change the daily threshold and re-evaluate today against it.

        Raising the threshold above today's total takes back today's
        contribution; lowering it can make today count. Days before today
        keep the qualification they were counted under.
        """
        validate_threshold(threshold)
        with self._owner_lock(owner_id):
            state, _ = self._load(owner_id)
            logger.info(
                "threshold_updated",
                owner_id=owner_id,
                old_threshold=state.daily_threshold,
                new_threshold=threshold,
            )
            counted_threshold = state.daily_threshold
            state = state.evolve(daily_threshold=threshold)
            return self._record_activity_locked(
                state, False, self._today(state), 0, counted_threshold=counted_threshold
            )

    def set_time_zone(self, owner_id: str, time_zone: str) -> StreakState:
        """Change the owner's zone and rebuild against today in the new zone."""
        calendar_days.resolve_zone(time_zone)
        with self._owner_lock(owner_id):
            state, _ = self._load(owner_id)
            state = state.evolve(time_zone=time_zone)
            as_of = self._today(state)
            logger.info("time_zone_updated", owner_id=owner_id, time_zone=time_zone)
            return self._write(self._compute_rebuild(state, as_of, None, None), as_of)

    def set_streak_enabled(
        self, owner_id: str, enabled: bool, threshold: int | None = None
    ) -> StreakState:
        """
        Turn streak tracking on or off.

        Enabling rebuilds from history so the streak reflects reading done
        while tracking was off. Disabling keeps every other field, and any
        threshold passed along with it is ignored.
        """
        if enabled and threshold is not None:
            validate_threshold(threshold)

        with self._owner_lock(owner_id):
            state, _ = self._load(owner_id)
            if enabled:
                as_of = self._today(state)
                state = self._compute_rebuild(state, as_of, threshold, True)
                return self._write(state, as_of)

            return self._write(state.evolve(streak_enabled=False), self._today(state))

    # Views

    def get_activity_calendar(
        self, owner_id: str, year: int, month: int | None = None
    ) -> list[DayTotal]:
        """
        Dense per-day totals for a month, or a whole year if month is None.

        Every day of the period appears once, ascending, with 0 for days
        without reading.
        """
        with self._owner_lock(owner_id):
            state, _ = self._load(owner_id)
        start, end = calendar_days.month_bounds(state.time_zone, year, month)
        totals = self.aggregator.aggregate_range(owner_id, start, end)
        return densify(totals, start, end)

    def get_analytics(self, owner_id: str, period: str | int = DEFAULT_HISTORY_PERIOD) -> dict:
        """
        Streak summary plus a dense daily reading history.

        Args:
            owner_id: Owner to report on
            period: Number of days back (1-3650), "this-year" or "all-time"

        Returns:
            Dictionary with:
            - streak: current/longest streak, threshold, total days active
            - daily_history: {day, quantity, level, threshold_met} from the later
              of the window start and the first recorded day, through today

        Raises:
            NotFoundError: If the owner has no streak record
            ConfigurationError: On an invalid period
        """
        with self._owner_lock(owner_id):
            state = self.require_state(owner_id)
        today = self._today(state)
        start = _history_start(period, today)

        earliest = self.storage.get_earliest_day(owner_id)
        if earliest is None:
            history = []
        else:
            if earliest > start:
                start = earliest
            totals = self.aggregator.aggregate_range(owner_id, start, today)
            history = fill_calendar(totals, start, today, threshold=state.daily_threshold)

        return {
            "streak": {
                "current_streak": state.current_streak,
                "longest_streak": state.longest_streak,
                "daily_threshold": state.daily_threshold,
                "total_days_active": state.total_days_active,
            },
            "daily_history": history,
        }

    # Internals

    def _owner_lock(self, owner_id: str) -> threading.Lock:
        with _owner_locks_guard:
            lock = _owner_locks.get(owner_id)
            if lock is None:
                lock = _owner_locks[owner_id] = threading.Lock()
            return lock

    def _load(self, owner_id: str) -> tuple[StreakState, bool]:
        """Stored state and True, or a fresh zero state and False."""
        state = self.storage.get_state(owner_id)
        if state is not None:
            return state, True
        return (
            StreakState(
                owner_id=owner_id,
                daily_threshold=self.default_threshold,
                time_zone=self.default_time_zone,
            ),
            False,
        )

    def _today(self, state: StreakState) -> str:
        return calendar_days.today(state.time_zone, self.clock())

    def _record_activity_locked(
        self,
        state: StreakState,
        persisted: bool,
        day: str,
        quantity_delta: int,
        counted_threshold: int | None = None,
    ) -> StreakState:
        owner_id = state.owner_id
        today = self._today(state)
        total = self.aggregator.sum_for_day(owner_id, day)
        qualifies = total >= state.daily_threshold
        last = state.last_activity_day

        log = logger.bind(
            owner_id=owner_id,
            day=day,
            day_total=total,
            quantity_delta=quantity_delta,
            threshold=state.daily_threshold,
        )

        if last is not None and day < last:
            log.info("streak_rebuild_backdated", last_activity_day=last)
            return self._write(self._compute_rebuild(state, today, None, None), today)

        if day == last:
            if qualifies:
                # Already counted when it became last_activity_day
                return self._write(state, today) if not persisted else state
            log.info("streak_day_disqualified")
            if counted_threshold is None:
                counted_threshold = state.daily_threshold
            return self._write(self._rollback_day(state, day, today, counted_threshold), today)

        if not qualifies:
            log.debug("streak_below_threshold")
            return self._write(state, today) if not persisted else state

        if last is None:
            current = 1
            start = day
        else:
            gap = calendar_days.days_between(last, day)
            if gap == 1 and state.current_streak > 0:
                current = state.current_streak + 1
                start = state.streak_start_day or day
            elif gap == 1:
                # The run through `last` was expired; its length lives in history
                log.info("streak_rebuild_expired_run", last_activity_day=last)
                return self._write(self._compute_rebuild(state, today, None, None), today)
            else:
                current = 1
                start = day

        state = state.evolve(
            current_streak=current,
            longest_streak=max(state.longest_streak, current),
            last_activity_day=day,
            streak_start_day=start,
            total_days_active=state.total_days_active + 1,
        )
        log.info("streak_extended" if current > 1 else "streak_started", current_streak=current)
        return self._write(_expire_if_stale(state, today), today)

    def _rollback_day(
        self, state: StreakState, day: str, today: str, counted_threshold: int
    ) -> StreakState:
        """
        Take back a last_activity_day that no longer qualifies.

        Rebuilds only the current run: days before ``day`` are re-read from
        history under the threshold they were counted with, so their
        qualification and their share of total_days_active stay as they were.
        """
        previous_day = calendar_days.add_days(day, -1)
        counted = self.aggregator.qualifying_days(
            state.owner_id, counted_threshold, until=previous_day
        )
        run_start = state.streak_start_day or day
        run = calculate_streak([d for d in counted if d >= run_start], today)
        current = run["current_streak"]

        longest = state.longest_streak
        if longest <= state.current_streak:
            # The run being shortened may have set the record
            longest = max(calculate_streak(counted, previous_day)["longest_streak"], current)

        rolled_back = state.evolve(
            current_streak=current,
            longest_streak=longest,
            last_activity_day=counted[-1] if counted else None,
            streak_start_day=run["streak_start_day"] if current else None,
            total_days_active=max(state.total_days_active - 1, 0),
        )
        logger.info(
            "streak_day_rolled_back",
            owner_id=state.owner_id,
            day=day,
            counted_threshold=counted_threshold,
            current_streak=current,
            last_activity_day=rolled_back.last_activity_day,
        )
        return rolled_back

    def _compute_rebuild(
        self,
        state: StreakState,
        as_of: str,
        threshold_override: int | None,
        enable_override: bool | None,
    ) -> StreakState:
        threshold = threshold_override if threshold_override is not None else state.daily_threshold
        enabled = enable_override if enable_override is not None else state.streak_enabled

        days = self.aggregator.qualifying_days(state.owner_id, threshold, until=as_of)
        result = calculate_streak(days, as_of)

        rebuilt = StreakState(
            owner_id=state.owner_id,
            current_streak=result["current_streak"],
            longest_streak=result["longest_streak"],
            last_activity_day=result["last_activity_day"],
            streak_start_day=result["streak_start_day"],
            total_days_active=result["total_days_active"],
            daily_threshold=threshold,
            streak_enabled=enabled,
            time_zone=state.time_zone,
            last_checked_day=as_of,
        )
        logger.info(
            "streak_rebuilt",
            owner_id=state.owner_id,
            as_of=as_of,
            qualifying_days=len(days),
            current_streak=rebuilt.current_streak,
            longest_streak=rebuilt.longest_streak,
            total_days_active=rebuilt.total_days_active,
        )
        return rebuilt

    def _write(self, state: StreakState, reference_day: str) -> StreakState:
        _check_invariants(state, reference_day)
        return self.storage.save_state(state)


def _check_day(day: str) -> None:
    try:
        calendar_days.parse_day(day)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid day {day!r}, expected YYYY-MM-DD")


def _check_not_future(day: str, today: str) -> None:
    if day > today:
        raise ConfigurationError(f"Day {day} is after today ({today})")


def _expire_if_stale(state: StreakState, today: str) -> StreakState:
    last = state.last_activity_day
    if state.current_streak > 0 and last and calendar_days.days_between(last, today) > 1:
        return state.evolve(current_streak=0, streak_start_day=None)
    return state


def _check_invariants(state: StreakState, reference_day: str) -> None:
    """
    Refuse to persist an inconsistent state.

    Raises:
        InvariantViolation: Logged with the full state before raising
    """
    problem = None
    if state.current_streak > state.longest_streak:
        problem = "current_streak exceeds longest_streak"
    elif state.total_days_active < state.current_streak:
        problem = "total_days_active is less than current_streak"
    elif state.current_streak > 0 and state.last_activity_day is None:
        problem = "current_streak set without last_activity_day"
    elif (
        state.current_streak > 0
        and calendar_days.days_between(state.last_activity_day, reference_day) > 1
    ):
        problem = "current_streak alive past the grace period"

    if problem:
        logger.error(
            "streak_invariant_violation",
            problem=problem,
            reference_day=reference_day,
            **state.to_dict(),
        )
        raise InvariantViolation(problem, state.to_dict())


def _history_start(period: str | int, today: str) -> str:
    if period == "this-year":
        return today[:4] + "-01-01"
    if period == "all-time":
        days = MAX_HISTORY_DAYS
    else:
        try:
            days = int(period)
        except (TypeError, ValueError):
            days = 0
        if not 1 <= days <= MAX_HISTORY_DAYS:
            raise ConfigurationError(
                f"days must be between 1 and {MAX_HISTORY_DAYS}, "
                f"or 'this-year', or 'all-time'"
            )
    return calendar_days.add_days(today, -days)
