"""
FastAPI web application for read-daily.

Provides REST API endpoints over the reading streak engine.
"""

from contextlib import asynccontextmanager
from datetime import date

import structlog
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from read_daily.calendar_days import hours_remaining_today
from read_daily.config import (
    DEFAULT_OWNER_ID,
    LOG_LEVEL,
    MAX_THRESHOLD,
    MIN_THRESHOLD,
    validate_config,
)
from read_daily.errors import (
    ConfigurationError,
    InvariantViolation,
    NotFoundError,
    StorageError,
    StreakError,
)
from read_daily.logging import configure_logging
from read_daily.storage import ReadingStorage
from read_daily.streak_engine import DEFAULT_HISTORY_PERIOD, StreakEngine

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(LOG_LEVEL)
    validate_config()
    logger.info("app_started", log_level=LOG_LEVEL)
    yield


app = FastAPI(
    title="read-daily",
    description="A reading streak tracker",
    version="0.1.0",
    lifespan=lifespan,
)

ERROR_STATUS = {
    ConfigurationError: (400, "invalid_parameter"),
    NotFoundError: (404, "not_found"),
    InvariantViolation: (500, "internal_error"),
    StorageError: (503, "storage_unavailable"),
}


class StreakUpdate(BaseModel):
    """Request model for updating streak settings."""

    daily_threshold: int | None = Field(
        None, ge=MIN_THRESHOLD, le=MAX_THRESHOLD, description="Pages per day (1-9999)"
    )
    streak_enabled: bool | None = Field(None, description="Turn streak tracking on or off")
    time_zone: str | None = Field(None, min_length=1, description="IANA time zone")


class ProgressCreate(BaseModel):
    """Request model for logging reading progress."""

    pages_read: int = Field(..., ge=0, description="Pages read")
    day: date | None = Field(None, description="Day of reading (default: today)")


class RebuildRequest(BaseModel):
    """Request model for a streak rebuild."""

    as_of: date | None = Field(None, description="Evaluate the streak as of this day")


@app.exception_handler(StreakError)
async def streak_error_handler(request: Request, exc: StreakError):
    """Map engine errors to HTTP responses."""
    status_code, code = 500, "internal_error"
    for error_class, mapping in ERROR_STATUS.items():
        if isinstance(exc, error_class):
            status_code, code = mapping
            break

    log = logger.error if status_code >= 500 else logger.warning
    log("api_error", path=request.url.path, code=code, message=str(exc))
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": {"code": code, "message": str(exc)}},
    )


def get_engine() -> StreakEngine:
    """Create an engine over the configured storage."""
    return StreakEngine(ReadingStorage())


def _streak_payload(engine: StreakEngine, state) -> dict:
    if not state.streak_enabled:
        return {
            "streak_enabled": False,
            "daily_threshold": state.daily_threshold,
            "time_zone": state.time_zone,
        }

    data = state.to_dict()
    data.pop("owner_id", None)
    data["hours_remaining_today"] = hours_remaining_today(state.time_zone, engine.clock())
    return data


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/api/streak")
def get_streak():
    """
    Get the current streak, expiring it first if a day was missed.

    Returns:
        JSON with streak fields and hours_remaining_today, or only the
        settings when tracking is disabled
    """
    engine = get_engine()
    result = engine.check_and_reset_if_needed(DEFAULT_OWNER_ID)
    return _streak_payload(engine, result.state)


@app.patch("/api/streak")
def update_streak(update: StreakUpdate):
    """
    Update streak settings.

    Args:
        update: Any of daily_threshold, streak_enabled, time_zone

    Returns:
        JSON with the updated streak
    """
    if update.daily_threshold is None and update.streak_enabled is None and update.time_zone is None:
        raise ConfigurationError("Provide at least one of daily_threshold, streak_enabled, time_zone")

    engine = get_engine()
    state = None

    if update.time_zone is not None:
        state = engine.set_time_zone(DEFAULT_OWNER_ID, update.time_zone)

    if update.streak_enabled is not None:
        state = engine.set_streak_enabled(
            DEFAULT_OWNER_ID, update.streak_enabled, threshold=update.daily_threshold
        )
    elif update.daily_threshold is not None:
        state = engine.update_threshold(DEFAULT_OWNER_ID, update.daily_threshold)

    return _streak_payload(engine, state)


@app.post("/api/streak/rebuild")
def rebuild_streak(request: RebuildRequest | None = None):
    """
    Recalculate the streak from all reading history.

    Returns:
        JSON with the rebuilt streak
    """
    engine = get_engine()
    as_of = request.as_of.isoformat() if request and request.as_of else None
    state = engine.rebuild(DEFAULT_OWNER_ID, as_of=as_of)
    return _streak_payload(engine, state)


@app.post("/api/progress")
def log_progress(progress: ProgressCreate):
    """
    Log pages read and update the streak.

    Returns:
        JSON with the updated streak
    """
    engine = get_engine()
    day = progress.day.isoformat() if progress.day else None
    state = engine.log_reading(DEFAULT_OWNER_ID, progress.pages_read, day=day)
    return _streak_payload(engine, state)


@app.get("/api/streak/calendar")
def get_calendar(
    year: int = Query(..., ge=1, le=9999),
    month: int | None = Query(None, ge=1, le=12),
):
    """
    Get pages read per day for a month, or a whole year.

    Returns:
        JSON with one entry per day, zero-filled
    """
    engine = get_engine()
    days = engine.get_activity_calendar(DEFAULT_OWNER_ID, year, month)
    return {"year": year, "month": month, "days": [day.to_dict() for day in days]}


@app.get("/api/streak/analytics")
def get_analytics(days: str = DEFAULT_HISTORY_PERIOD):
    """
    Get the streak summary and daily reading history.

    Args:
        days: Number of days (1-3650), "this-year" or "all-time"

    Returns:
        JSON with streak summary and daily_history
    """
    engine = get_engine()
    return engine.get_analytics(DEFAULT_OWNER_ID, days)
