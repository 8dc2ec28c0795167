"""
read-daily: A reading streak tracker

Entry point for the command line.
"""

import argparse

from read_daily.cli import display_calendar, display_streak, format_day_total
from read_daily.config import DEFAULT_OWNER_ID, LOG_LEVEL, validate_config
from read_daily.errors import StreakError
from read_daily.logging import configure_logging
from read_daily.streak_engine import StreakEngine


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="read-daily", description="Track your reading streak")
    parser.add_argument("--owner", default=DEFAULT_OWNER_ID, help="Owner id (default: single user)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("status", help="Show the current streak")

    log_parser = subparsers.add_parser("log", help="Log pages read")
    log_parser.add_argument("pages", type=int)
    log_parser.add_argument("--date", help="Day of reading, YYYY-MM-DD (default: today)")

    rebuild_parser = subparsers.add_parser("rebuild", help="Recalculate the streak from history")
    rebuild_parser.add_argument("--as-of", help="Evaluate as of this day, YYYY-MM-DD")

    calendar_parser = subparsers.add_parser("calendar", help="Show a reading calendar")
    calendar_parser.add_argument("--year", type=int)
    calendar_parser.add_argument("--month", type=int)

    threshold_parser = subparsers.add_parser("threshold", help="Set the daily page threshold")
    threshold_parser.add_argument("pages", type=int)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(LOG_LEVEL, json_output=False)

    print("read-daily - Track your reading streak!")
    print("-" * 50)

    try:
        validate_config()
    except StreakError as e:
        print(f"\nConfiguration Error:\n{e}")
        return 1

    try:
        engine = StreakEngine()
        owner = args.owner
        command = args.command or "status"

        if command == "log":
            state = engine.log_reading(owner, args.pages, day=args.date)
            print(f"Logged {args.pages} pages.\n")
        elif command == "rebuild":
            state = engine.rebuild(owner, as_of=args.as_of)
            print("Streak recalculated from history.\n")
        elif command == "threshold":
            state = engine.update_threshold(owner, args.pages)
            print(f"Daily threshold set to {args.pages} pages.\n")
        elif command == "calendar":
            state = engine.check_and_reset_if_needed(owner).state
            today = engine.today(owner)
            year = args.year or int(today[:4])
            month = args.month if args.month or args.year else int(today[5:7])
            days = engine.get_activity_calendar(owner, year, month)
            display_calendar(days, state.daily_threshold)
            for total in days:
                if total.quantity:
                    print(format_day_total(total, state.daily_threshold))
            print()
        else:
            state = engine.check_and_reset_if_needed(owner).state

        display_streak(state, today=engine.today(owner))

    except StreakError as e:
        print(f"\nError: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
