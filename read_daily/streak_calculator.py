"""
Calculate reading streaks from qualifying days.

Pure functions over day keys. The streak engine persists the result;
nothing here touches storage or the clock.
"""

from read_daily.calendar_days import days_between


def calculate_streak(qualifying_days: list[str], as_of: str) -> dict:
    """
    Calculate streak information from the days that met the threshold.

    Args:
        qualifying_days: Day keys (YYYY-MM-DD) whose total met the daily
            threshold. Order and duplicates do not matter.
        as_of: Day the streak is evaluated against, in the owner's zone

    Returns:
        Dictionary with streak statistics:
        - current_streak: Length of the run ending on as_of or the day before
        - longest_streak: Longest run found in the data
        - total_days_active: Number of distinct qualifying days
        - streak_start_day: First day of the current run (or None)
        - last_activity_day: Most recent qualifying day (or None)
    """
    # Days after as_of have not happened yet from as_of's point of view
    days = sorted(set(day for day in qualifying_days if day and day <= as_of))

    if not days:
        return {
            "current_streak": 0,
            "longest_streak": 0,
            "total_days_active": 0,
            "streak_start_day": None,
            "last_activity_day": None,
        }

    runs = find_runs(days)
    longest_streak = max(length for _, _, length in runs)

    # Only the most recent run can still be alive
    start, end, length = runs[-1]
    if days_between(end, as_of) <= 1:
        current_streak = length
        streak_start_day = start
    else:
        current_streak = 0
        streak_start_day = None

    return {
        "current_streak": current_streak,
        "longest_streak": longest_streak,
        "total_days_active": len(days),
        "streak_start_day": streak_start_day,
        "last_activity_day": days[-1],
    }


def find_runs(days: list[str]) -> list[tuple[str, str, int]]:
    """
    Group sorted, distinct day keys into maximal runs of consecutive days.

    Args:
        days: Day keys sorted ascending, without duplicates

    Returns:
        List of (first day, last day, length) tuples in chronological order
    """
    if not days:
        return []

    runs = []
    run_start = days[0]
    run_length = 1

    for i in range(1, len(days)):
        if days_between(days[i - 1], days[i]) == 1:
            run_length += 1
        else:
            runs.append((run_start, days[i - 1], run_length))
            run_start = days[i]
            run_length = 1

    runs.append((run_start, days[-1], run_length))
    return runs
