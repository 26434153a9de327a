"""
Reminder Scanner

Scans the ledger for payments due within the next few days:
- Monthly expenses (on their day of month)
- Planned one-time expenses (on their stored date)
- Installment debts (on the day of month they were taken out)

DESIGN DECISION: Notification ids are built from (kind, source id, due
month). Re-scanning the same ledger always produces the same ids, so
deduplication is a set-membership check and survives restarts.
"""

from datetime import date, datetime
from typing import Iterable, Optional

import structlog

from src.models.ledger import (
    Debt,
    ExpenseFrequency,
    Ledger,
    Notification,
    NotificationType,
)
from src.services.periods import (
    days_until,
    due_date_in_cycle,
    month_key,
    to_local,
)

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_DAYS = 3
DEFAULT_GRACE_DAYS = 1


def reminder_id(
    source_id: str,
    kind: NotificationType,
    due: date,
) -> str:
    """
    Deterministic notification id.

    Example: "expense-42-2024-03"
    """
    return f"{NotificationType(kind).value}-{source_id}-{month_key(due)}"


def _describe_when(days: int, due: date) -> str:
    if days == 0:
        when = "today"
    elif days == 1:
        when = "tomorrow"
    else:
        when = f"in {days} days"
    return f"{when} ({due.strftime('%d %b')})"


def _expense_due(expense, now: datetime, grace_days: int):
    """Due moment of an expense in the current cycle, or None."""
    frequency = ExpenseFrequency(expense.frequency)
    if frequency is ExpenseFrequency.MONTHLY:
        return due_date_in_cycle(expense.day_of_month, now, grace_days)
    if frequency is ExpenseFrequency.ONE_TIME and expense.is_paid is False:
        return to_local(expense.date)
    return None


def _debt_due(debt: Debt, now: datetime, grace_days: int) -> Optional[date]:
    if not debt.is_active_installment:
        return None
    return due_date_in_cycle(debt.due_day, now, grace_days)


def _as_date(moment) -> date:
    return moment.date() if isinstance(moment, datetime) else moment


def scan_reminders(
    ledger: Ledger,
    now: datetime,
    window_days: int = DEFAULT_WINDOW_DAYS,
    grace_days: int = DEFAULT_GRACE_DAYS,
    existing_ids: Optional[Iterable[str]] = None,
) -> list[Notification]:
    """
    Build the reminders that are due and not yet issued.

    A reminder fires when its due date is between today and
    `window_days` days out. Past-due and far-off dates never fire.

    Args:
        ledger: Ledger snapshot
        now: Wall-clock time of the scan
        window_days: How far ahead to look
        grace_days: Days a passed monthly due date still counts as current
        existing_ids: Ids already issued (defaults to the ledger's list)

    Returns:
        New notifications, in ledger order
    """
    seen = set(existing_ids) if existing_ids is not None else ledger.notification_ids()
    fresh: list[Notification] = []

    def consider(
        source_id: str,
        kind: NotificationType,
        due_moment,
        title: str,
        message: str,
    ) -> None:
        days = days_until(due_moment, now)
        if not 0 <= days <= window_days:
            return
        due = _as_date(due_moment)
        notification_id = reminder_id(source_id, kind, due)
        if notification_id in seen:
            return
        seen.add(notification_id)
        fresh.append(
            Notification(
                id=notification_id,
                title=title,
                message=f"{message} {_describe_when(days, due)}",
                date=now,
                type=kind,
                source_id=source_id,
                due_date=due,
            )
        )

    for expense in ledger.expenses:
        due_moment = _expense_due(expense, now, grace_days)
        if due_moment is None:
            continue
        consider(
            expense.id,
            NotificationType.EXPENSE,
            due_moment,
            f"Upcoming payment: {expense.title}",
            f"{expense.amount:,.2f} {expense.currency.value} due",
        )

    for debt in ledger.debts:
        due_moment = _debt_due(debt, now, grace_days)
        if due_moment is None:
            continue
        consider(
            debt.id,
            NotificationType.DEBT,
            due_moment,
            f"Installment due: {debt.title}",
            f"{debt.installment_payment:,.2f} {debt.currency.value} to {debt.source} due",
        )

    if fresh:
        logger.info("reminders_found", count=len(fresh))
    return fresh


__all__ = [
    "DEFAULT_GRACE_DAYS",
    "DEFAULT_WINDOW_DAYS",
    "reminder_id",
    "scan_reminders",
]
