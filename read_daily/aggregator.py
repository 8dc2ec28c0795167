"""
Per-day aggregation of reading activity.

Sums the records of each calendar day and fills sparse per-day totals
into dense calendars for heatmap display.
"""

from read_daily.calendar_days import iter_days
from read_daily.models import DayTotal
from read_daily.storage import ReadingStorage


class ActivityAggregator:
    """Read-only view of the record store, grouped by calendar day."""

    def __init__(self, storage: ReadingStorage):
        self.storage = storage

    def sum_for_day(self, owner_id: str, day: str) -> int:
        """Total pages recorded for the owner on that day (0 if none)."""
        return self.storage.sum_for_day(owner_id, day)

    def aggregate_range(self, owner_id: str, start: str, end: str) -> list[DayTotal]:
        """
        Totals for each day in the range that has at least one record.

        Days without records are omitted. Use fill_calendar() for a dense
        sequence.
        """
        if end < start:
            return []
        return self.storage.aggregate_range(owner_id, start, end)

    def qualifying_days(
        self, owner_id: str, threshold: int, until: str | None = None
    ) -> list[str]:
        """Ascending day keys whose total meets the threshold."""
        return self.storage.qualifying_days(owner_id, threshold, until=until)


def densify(totals: list[DayTotal], start: str, end: str) -> list[DayTotal]:
    """Zero-fill sparse totals so every day from start to end appears once, ascending."""
    by_day: dict[str, int] = {}
    for total in totals:
        by_day[total.day] = by_day.get(total.day, 0) + total.quantity
    return [DayTotal(day=day, quantity=by_day.get(day, 0)) for day in iter_days(start, end)]


def fill_calendar(
    totals: list[DayTotal],
    start: str,
    end: str,
    threshold: int | None = None,
) -> list[dict]:
    """
    Build a dense day-by-day calendar from sparse totals.

    Args:
        totals: Sparse per-day totals (any order)
        start: First day key (inclusive)
        end: Last day key (inclusive)
        threshold: If given, each entry also carries "threshold_met"

    Returns:
        List of {day, quantity, level[, threshold_met]} for every day in range,
        ascending
    """
    days = []
    for total in densify(totals, start, end):
        entry = {
            "day": total.day,
            "quantity": total.quantity,
            "level": activity_level(total.quantity),
        }
        if threshold is not None:
            entry["threshold_met"] = total.quantity >= threshold
        days.append(entry)

    return days


def activity_level(quantity: int) -> int:
    """
    Calculate intensity level for heatmap coloring.

    Args:
        quantity: Pages read that day

    Returns:
        Level from 0-4:
            0: Nothing read
            1: 1-9 pages
            2: 10-24 pages
            3: 25-49 pages
            4: 50+ pages
    """
    if quantity <= 0:
        return 0
    elif quantity < 10:
        return 1
    elif quantity < 25:
        return 2
    elif quantity < 50:
        return 3
    else:
        return 4
