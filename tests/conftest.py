"""Shared fixtures for the finance tracker tests."""

from datetime import datetime

import pytest

from src.config import AppSettings
from src.models.ledger import DEFAULT_RATES


@pytest.fixture
def now() -> datetime:
    """A fixed mid-month wall clock: 10 March 2024, 09:00."""
    return datetime(2024, 3, 10, 9, 0)


@pytest.fixture
def rates() -> dict[str, float]:
    return dict(DEFAULT_RATES)


@pytest.fixture
def app_settings() -> AppSettings:
    """App settings with a short debounce so scheduler tests stay fast."""
    return AppSettings(
        display_currency="USD",
        reminder_window_days=3,
        reminder_grace_days=1,
        scan_debounce_seconds=0.01,
    )
