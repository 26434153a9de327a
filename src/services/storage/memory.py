"""
In-memory storage for tests and runs without a data directory.

Documents are kept in their serialized backup form, so a save followed by
a load goes through the same parsing as the file backend.
"""

from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.models.ledger import AppPreferences, Ledger
from src.services.currency import normalize_rates
from src.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):

    def __init__(
        self,
        ledger: Optional[Ledger] = None,
        preferences: Optional[AppPreferences] = None,
    ):
        self._ledger_doc: Optional[dict] = ledger.to_backup() if ledger else None
        self._preferences_doc: Optional[dict] = (
            preferences.model_dump(mode="json", by_alias=True) if preferences else None
        )
        self.save_count = 0

    async def load_ledger(self) -> Ledger:
        if self._ledger_doc is None:
            return Ledger()
        return self.import_backup(self._ledger_doc)

    async def save_ledger(self, ledger: Ledger) -> bool:
        self._ledger_doc = self.export_backup(ledger)
        self.save_count += 1
        return True

    async def load_preferences(self) -> AppPreferences:
        if self._preferences_doc is None:
            return AppPreferences()
        preferences = AppPreferences.model_validate(self._preferences_doc)
        return preferences.model_copy(
            update={"exchange_rates": normalize_rates(preferences.exchange_rates)}
        )

    async def save_preferences(self, preferences: AppPreferences) -> bool:
        self._preferences_doc = preferences.model_dump(mode="json", by_alias=True)
        return True


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
