"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger in a JSON file today and swap the backend later
2. Use in-memory storage for testing
3. Keep the finance engine decoupled from where the data lives

The whole ledger is loaded and saved as one document, the same shape as
a backup file. A personal ledger is small, there is no query layer.
"""

import json
from abc import ABC, abstractmethod
from typing import Union
from uuid import UUID

from pydantic import ValidationError

from src.models.audit import AuditEvent
from src.models.ledger import AppPreferences, Ledger

# A backup without these keys is rejected.
REQUIRED_BACKUP_KEYS = ("debts", "expenses", "assets", "goals")


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation (JSON file, database, browser storage
    bridge...) must implement these methods.
    """

    @abstractmethod
    async def load_ledger(self) -> Ledger:
        """
        Load the persisted ledger.

        Returns:
            The stored ledger, or an empty one when nothing was saved yet

        Raises:
            CorruptLedgerError: If stored data exists but cannot be parsed
        """
        pass

    @abstractmethod
    async def save_ledger(self, ledger: Ledger) -> bool:
        """
        Persist the whole ledger.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def load_preferences(self) -> AppPreferences:
        """
        Load display currency and exchange rates.

        Returns:
            Stored preferences, defaults when missing or unreadable
        """
        pass

    @abstractmethod
    async def save_preferences(self, preferences: AppPreferences) -> bool:
        """
        Persist display currency and exchange rates.

        Raises:
            StorageError: If save fails
        """
        pass

    def export_backup(self, ledger: Ledger) -> dict:
        """
        Build the backup document for a ledger.

        Field names are camelCase so backups stay readable by older
        versions of the app.
        """
        return ledger.to_backup()

    def import_backup(self, payload: Union[dict, str, bytes]) -> Ledger:
        """
        Parse a backup document.

        Args:
            payload: Parsed JSON dict or raw JSON text

        Returns:
            The restored ledger

        Raises:
            CorruptLedgerError: If the payload is not a valid backup
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise CorruptLedgerError(f"Backup is not valid JSON: {e}")

        if not isinstance(payload, dict):
            raise CorruptLedgerError("Backup must be a JSON object")

        missing = [key for key in REQUIRED_BACKUP_KEYS if key not in payload]
        if missing:
            raise CorruptLedgerError(
                f"Backup is missing required sections: {', '.join(missing)}"
            )

        try:
            return Ledger.from_backup(payload)
        except ValidationError as e:
            raise CorruptLedgerError(f"Backup does not match the ledger schema: {e}")


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one scan or one chat turn).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptLedgerError(StorageError):
    """Stored or imported ledger data cannot be parsed."""
    pass
