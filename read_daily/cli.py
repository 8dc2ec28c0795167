"""
CLI display functions for read-daily.
"""

from read_daily.calendar_days import parse_day
from read_daily.models import DayTotal, StreakState


def get_milestone_message(streak_days: int) -> str | None:
    """
    Get milestone message for a given streak length.

    Args:
        streak_days: Current streak in days

    Returns:
        Milestone message string or None if no milestone
    """
    milestones = {
        7: "One week of reading!",
        14: "Two weeks between the pages!",
        30: "One month bookworm!",
        60: "Two months unstoppable!",
        100: "100 days - legendary reader!",
        365: "A full year of reading!",
    }
    return milestones.get(streak_days)


def display_streak(state: StreakState, today: str | None = None) -> None:
    """
    Display streak information to the console with milestone messages.

    Args:
        state: Streak state to show
        today: Today's day key; used to nudge when today has not counted yet
    """
    if not state.streak_enabled:
        print("Streak tracking is disabled")
        print()
        return

    current = state.current_streak
    last_day = state.last_activity_day
    active = today is not None and last_day == today

    if current == 0:
        status = "No active streak"
    else:
        day_word = "day" if current == 1 else "days"
        status = f"Current Streak: {current} {day_word}"

        milestone = get_milestone_message(current)
        if milestone:
            status = f"{status} - {milestone}"
        elif not active:
            status = f"{status} (read {state.daily_threshold} pages today to continue!)"

    print(f"📚 {status}")
    print(f"   Longest: {state.longest_streak}  Active days: {state.total_days_active}")
    if last_day:
        print(f"   Last reading day: {last_day}")
    print()


def display_calendar(days: list[DayTotal], threshold: int) -> None:
    """
    Display a text-based reading calendar, one row per week.

    Args:
        days: Dense, ascending per-day totals
        threshold: Daily threshold; qualifying days are marked [*],
            days with some reading [.], empty days [ ]
    """
    if not days:
        return

    day_abbrevs = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

    weeks = []
    current_week = [None] * 7

    for total in days:
        weekday = parse_day(total.day).weekday()  # 0=Monday, 6=Sunday

        # Monday starts a new row
        if weekday == 0 and any(cell is not None for cell in current_week):
            weeks.append(current_week)
            current_week = [None] * 7

        if total.quantity >= threshold:
            current_week[weekday] = "[*]"
        elif total.quantity > 0:
            current_week[weekday] = "[.]"
        else:
            current_week[weekday] = "[ ]"

    if any(cell is not None for cell in current_week):
        weeks.append(current_week)

    print(f"Reading Activity {days[0].day} to {days[-1].day}:")
    print("  " + " ".join(day_abbrevs))

    for week in weeks:
        row = "  "
        for cell in week:
            if cell is None:
                row += "    "  # 4 spaces to match "[*] " width
            else:
                row += cell + " "
        print(row.rstrip())

    print()


def format_day_total(total: DayTotal, threshold: int) -> str:
    """
    Format one day's total for display.

    Returns:
        Line such as "  2026-01-20   12 pages  ✓"
    """
    plural = "page" if total.quantity == 1 else "pages"
    mark = "✓" if total.quantity >= threshold else ""
    return f"  {total.day}  {total.quantity:>4} {plural:<6} {mark}".rstrip()
