"""
Exceptions raised by the reading streak engine.
"""


class StreakError(Exception):
    """Base exception for streak engine errors."""

    pass


class ConfigurationError(StreakError, ValueError):
    """Raised for an invalid time zone, threshold, or other setting."""

    pass


class NotFoundError(StreakError):
    """Raised when an owner has no streak record and one is required."""

    pass


class StorageError(StreakError):
    """Raised when the underlying store fails. Wraps the original error."""

    pass


class InvariantViolation(StreakError):
    """Raised when a computed state fails an internal consistency check."""

    def __init__(self, message: str, state: dict | None = None):
        super().__init__(message)
        self.state = state or {}
