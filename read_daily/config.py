"""
Configuration management for read-daily.

Loads storage location, default time zone and daily threshold from
environment variables.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from read_daily.calendar_days import resolve_zone
from read_daily.errors import ConfigurationError

# Load .env file from project root
load_dotenv()

MIN_THRESHOLD = 1
MAX_THRESHOLD = 9999

DEFAULT_OWNER_ID = "local"

DEFAULT_TIMEZONE = os.getenv("READ_DAILY_TIMEZONE", "America/New_York")
DEFAULT_DAILY_THRESHOLD = os.getenv("READ_DAILY_THRESHOLD", "1")
LOG_LEVEL = os.getenv("READ_DAILY_LOG_LEVEL", "INFO")


def get_db_path() -> Path:
    """Get the database path, honoring READ_DAILY_DB_PATH at call time."""
    env_path = os.environ.get("READ_DAILY_DB_PATH")
    if env_path:
        return Path(env_path)
    return Path.home() / ".read-daily" / "reading.db"


def get_default_threshold() -> int:
    """Parse the configured default daily threshold."""
    try:
        return validate_threshold(int(DEFAULT_DAILY_THRESHOLD))
    except ValueError:
        raise ConfigurationError(
            f"READ_DAILY_THRESHOLD must be an integer between "
            f"{MIN_THRESHOLD} and {MAX_THRESHOLD}, got {DEFAULT_DAILY_THRESHOLD!r}"
        )


def validate_threshold(threshold: int) -> int:
    """
    Check a daily threshold value.

    Args:
        threshold: Minimum pages per day for the day to count

    Returns:
        The threshold, unchanged

    Raises:
        ConfigurationError: If the value is not an integer in range
    """
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise ConfigurationError("Daily threshold must be an integer")
    if threshold < MIN_THRESHOLD or threshold > MAX_THRESHOLD:
        raise ConfigurationError(
            f"Daily threshold must be between {MIN_THRESHOLD} and {MAX_THRESHOLD}"
        )
    return threshold


def validate_config():
    """Validate that the configured defaults are usable."""
    problems = []

    try:
        resolve_zone(DEFAULT_TIMEZONE)
    except ConfigurationError as e:
        problems.append(f"READ_DAILY_TIMEZONE: {e}")

    try:
        get_default_threshold()
    except ConfigurationError as e:
        problems.append(f"READ_DAILY_THRESHOLD: {e}")

    if problems:
        raise ConfigurationError(
            "Invalid configuration:\n"
            + "\n".join(problems)
            + "\nPlease check your .env file."
        )
