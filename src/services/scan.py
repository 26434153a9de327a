"""
Periodic ledger scan: auto-credit first, then reminders.

Crediting runs first so that an asset credited in this pass is already
seen as received by everything after it.

The scan is idempotent: scanning its own output again at the same time
changes nothing and issues no notification.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from src.models.ledger import Asset, Ledger, Notification
from src.services.auto_credit import resolve_auto_credits
from src.services.reminders import (
    DEFAULT_GRACE_DAYS,
    DEFAULT_WINDOW_DAYS,
    scan_reminders,
)


class ScanResult(BaseModel):
    """Outcome of one scan."""

    ledger: Ledger
    new_notifications: list[Notification] = Field(default_factory=list)
    credited_assets: list[Asset] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.new_notifications or self.credited_assets)


def scan_for_updates(
    ledger: Ledger,
    now: datetime,
    window_days: int = DEFAULT_WINDOW_DAYS,
    grace_days: int = DEFAULT_GRACE_DAYS,
) -> ScanResult:
    """
    Run the auto-credit resolver and the reminder scanner.

    New notifications are appended to the ledger in one batch.
    """
    credited_ledger, credited = resolve_auto_credits(ledger, now)
    fresh = scan_reminders(
        credited_ledger,
        now,
        window_days=window_days,
        grace_days=grace_days,
    )
    updated = credited_ledger
    if fresh:
        updated = credited_ledger.model_copy(
            update={"notifications": [*credited_ledger.notifications, *fresh]}
        )
    return ScanResult(
        ledger=updated,
        new_notifications=fresh,
        credited_assets=credited,
    )
