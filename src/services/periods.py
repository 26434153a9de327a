"""
Calendar helpers shared by the aggregation engine and the reminder scanner.

Stored dates may be timezone-aware (backups carry "...Z" timestamps) while
the wall clock is usually naive local time. Everything is compared as
naive local time.
"""

import math
from calendar import monthrange
from datetime import date, datetime, timedelta


def to_local(value: datetime) -> datetime:
    """Return `value` as naive local time."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def in_same_month(value: datetime, now: datetime) -> bool:
    """True when `value` falls in the calendar month of `now`."""
    local = to_local(value)
    current = to_local(now)
    return local.year == current.year and local.month == current.month


def month_key(value: date) -> str:
    """Year-month key, e.g. '2024-03'."""
    return f"{value.year:04d}-{value.month:02d}"


def clamped_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping `day` to the length of the month."""
    return date(year, month, min(day, monthrange(year, month)[1]))


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    total = year * 12 + (month - 1) + months
    return total // 12, total % 12 + 1


def due_date_in_cycle(day_of_month: int, now: datetime, grace_days: int = 1) -> date:
    """
    Next due date of a monthly obligation.

    Starts from this month's occurrence. If that is earlier than
    now minus the grace window, the due date rolls to next month.
    """
    current = to_local(now)
    due = clamped_date(current.year, current.month, day_of_month)
    if due < (current - timedelta(days=grace_days)).date():
        year, month = add_months(current.year, current.month, 1)
        due = clamped_date(year, month, day_of_month)
    return due


def days_until(target: date | datetime, now: datetime) -> int:
    """
    Whole days from `now` until `target`, rounded up.

    A bare date counts from its midnight, so something due today
    yields 0 for any time of the day.
    """
    if isinstance(target, datetime):
        moment = to_local(target)
    else:
        moment = datetime(target.year, target.month, target.day)
    delta = moment - to_local(now)
    return math.ceil(delta.total_seconds() / 86400)
