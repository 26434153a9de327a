"""
JSON File Storage Implementation

DESIGN DECISION: The ledger lives in one JSON file, in the same camelCase
shape as a backup. The user can open it, copy it, or restore it through
the import flow.

Writes go to a temp file in the same directory and are moved over the old
file with os.replace, so a crash mid-write never leaves half a ledger.

The audit trail is a separate JSON Lines file: one event per line,
append only.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import get_settings
from src.models.audit import AuditEvent
from src.models.ledger import AppPreferences, Ledger
from src.services.currency import normalize_rates
from src.services.storage.interface import (
    AuditStorageInterface,
    CorruptLedgerError,
    LedgerStorageInterface,
    StorageError,
)

logger = structlog.get_logger(__name__)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    retry=retry_if_exception_type(OSError),
    reraise=True,
)
def _write_atomic(path: Path, document: dict) -> None:
    """Write JSON to `path` through a temp file and an atomic replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(document, handle, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class JsonFileLedgerStorage(LedgerStorageInterface):
    """
    Ledger and preferences stored as two JSON files.
    """

    def __init__(
        self,
        ledger_path: Optional[Union[str, Path]] = None,
        settings_path: Optional[Union[str, Path]] = None,
    ):
        if ledger_path is None or settings_path is None:
            storage_settings = get_settings().storage
            ledger_path = ledger_path or storage_settings.ledger_path
            settings_path = settings_path or storage_settings.settings_path
        self.ledger_path = Path(ledger_path)
        self.settings_path = Path(settings_path)

    async def load_ledger(self) -> Ledger:
        """Load the ledger; a missing file is an empty ledger."""
        if not self.ledger_path.exists():
            logger.info("ledger_file_missing", path=str(self.ledger_path))
            return Ledger()

        try:
            raw = self.ledger_path.read_text(encoding="utf-8")
        except OSError as e:
            raise CorruptLedgerError(f"Failed to read {self.ledger_path}: {e}")

        if not raw.strip():
            return Ledger()

        ledger = self.import_backup(raw)
        logger.info(
            "ledger_loaded",
            path=str(self.ledger_path),
            debts=len(ledger.debts),
            expenses=len(ledger.expenses),
            assets=len(ledger.assets),
            goals=len(ledger.goals),
        )
        return ledger

    async def save_ledger(self, ledger: Ledger) -> bool:
        """Write the ledger atomically."""
        try:
            _write_atomic(self.ledger_path, self.export_backup(ledger))
        except OSError as e:
            raise StorageError(f"Failed to save ledger: {e}")
        return True

    async def load_preferences(self) -> AppPreferences:
        """Load preferences, falling back to defaults."""
        if not self.settings_path.exists():
            return AppPreferences()
        try:
            payload = json.loads(self.settings_path.read_text(encoding="utf-8"))
            preferences = AppPreferences.model_validate(payload)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "preferences_unreadable",
                path=str(self.settings_path),
                error=str(e),
            )
            return AppPreferences()
        return preferences.model_copy(
            update={"exchange_rates": normalize_rates(preferences.exchange_rates)}
        )

    async def save_preferences(self, preferences: AppPreferences) -> bool:
        try:
            _write_atomic(
                self.settings_path,
                preferences.model_dump(mode="json", by_alias=True),
            )
        except OSError as e:
            raise StorageError(f"Failed to save preferences: {e}")
        return True


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    JSON Lines implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or get_settings().storage.audit_path)

    def _read_events(self) -> list[AuditEvent]:
        if not self.path.exists():
            return []
        events = []
        with self.path.open(encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    events.append(AuditEvent.model_validate_json(line))
                except ValidationError:
                    logger.warning(
                        "audit_line_unreadable",
                        path=str(self.path),
                        line=line_number,
                    )
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _append_line(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append_line(event.model_dump_json())
            return True
        except OSError as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_write_failed",
                path=str(self.path),
                event_type=event.event_type.value,
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [
                e for e in self._read_events()
                if e.correlation_id == correlation_id
            ]
        except OSError as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except OSError as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
