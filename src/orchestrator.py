"""
Main Orchestrator for the Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger mutations (form or assistant → validate → apply → audit → save → rescan)
2. Periodic scan (auto-credit → reminders → deliver → audit → save)
3. Assistant chat (message → tool calls → mutations → reply)

DESIGN DECISION: The orchestrator owns the only mutable copy of the
ledger. Every component below it is a pure function from one ledger to
the next, and the new ledger is assigned before any await, so an
interleaved scan and mutation can never overwrite each other.

Every change is audited and persisted; a failed save is audited and
logged but the in-memory ledger stays authoritative.
"""

from datetime import datetime
from typing import Any, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel

from src.agents import (
    AssistantAction,
    AssistantReply,
    FinanceAssistant,
    action_to_record,
    build_financial_context,
)
from src.audit import AuditLogger, create_correlation_id
from src.config import AppSettings, get_settings, validate_all_settings
from src.models.audit import AuditEvent
from src.models.ledger import (
    AppPreferences,
    Currency,
    Ledger,
    MutationOperation,
    RecordKind,
)
from src.models.metrics import FinancialMetrics, LineItem, MetricKind
from src.services import aggregation, mutations
from src.services.currency import normalize_currency, normalize_rates
from src.services.mutations import InvalidRecordError
from src.services.notifier import LoggingNotificationSink, NotificationSink
from src.services.scan import ScanResult, scan_for_updates
from src.services.scheduler import DebouncedScheduler
from src.services.storage import (
    CorruptLedgerError,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    JsonLinesAuditStorage,
    LedgerStorageInterface,
    StorageError,
)
from src.validation import RecordValidator

logger = structlog.get_logger(__name__)

ASSISTANT_ACTION_RESULT = "Success: Data added to database."


class FinanceTracker:
    """
    Owns the ledger and the user's preferences.

    Flow of a mutation:
    1. Validate and apply → new Ledger (rejections raise, nothing changes)
    2. Audit the change
    3. Persist
    4. Re-arm the debounced scan

    Usage:
        tracker = FinanceTracker(storage=JsonFileLedgerStorage())
        await tracker.load()
        await tracker.apply_mutation({...}, "add", "expense")
        metrics = tracker.compute_metrics()
    """

    def __init__(
        self,
        storage: Optional[LedgerStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[NotificationSink] = None,
        validator: Optional[RecordValidator] = None,
        app_settings: Optional[AppSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._settings = app_settings or get_settings().app
        self._storage = storage or InMemoryLedgerStorage()
        self._audit_logger = audit_logger or AuditLogger()
        self._notifier = notifier or LoggingNotificationSink()
        self._validator = validator or RecordValidator()
        self._clock = clock
        self._scheduler = DebouncedScheduler(
            self._settings.scan_debounce_seconds,
            self.run_scan,
        )

        self.ledger = Ledger()
        self.preferences = AppPreferences(
            display_currency=self._settings.display_currency,
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    @property
    def rates(self) -> dict[str, float]:
        return self.preferences.exchange_rates

    @property
    def display_currency(self) -> Currency:
        return self.preferences.display_currency

    @property
    def scheduler(self) -> DebouncedScheduler:
        return self._scheduler

    async def load(self, scan: bool = True) -> Ledger:
        """
        Load preferences and ledger from storage.

        An unreadable ledger is replaced by an empty one; the failure is
        audited, never raised. Runs one scan afterwards unless `scan` is False.
        """
        self.preferences = await self._storage.load_preferences()
        try:
            self.ledger = await self._storage.load_ledger()
        except CorruptLedgerError as e:
            logger.error("ledger_load_failed", error=str(e))
            await self._audit_logger.log_ledger_load_failed(
                source=type(self._storage).__name__,
                error_message=str(e),
            )
            self.ledger = Ledger()

        if scan:
            await self.run_scan()
        return self.ledger

    async def _persist(self, correlation_id: Optional[UUID] = None) -> bool:
        try:
            return await self._storage.save_ledger(self.ledger)
        except StorageError as e:
            logger.error("ledger_save_failed", error=str(e))
            await self._audit_logger.log_save_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return False

    async def _persist_preferences(self) -> bool:
        try:
            return await self._storage.save_preferences(self.preferences)
        except StorageError as e:
            logger.error("preferences_save_failed", error=str(e))
            await self._audit_logger.log_save_failed(error_message=str(e))
            return False

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def apply_mutation(
        self,
        record: Union[dict, BaseModel, str],
        operation: Union[MutationOperation, str],
        kind: Union[RecordKind, str],
        origin: str = "user",
        correlation_id: Optional[UUID] = None,
    ) -> Ledger:
        """
        Validate and apply one mutation, then audit, persist and re-arm the scan.

        Raises:
            InvalidRecordError: Validation failed (audited as rejected)
            RecordNotFoundError: Update/delete of an unknown id
            DuplicateRecordError: Add with an id already in use
        """
        operation = MutationOperation(operation)
        kind = RecordKind(kind)
        correlation_id = correlation_id or create_correlation_id()

        try:
            updated = mutations.apply_mutation(
                self.ledger, record, operation, kind, self._validator
            )
        except InvalidRecordError as e:
            await self._audit_logger.log_mutation_rejected(
                kind=kind.value,
                operation=operation.value,
                issues=e.result.issues_as_dicts(),
                correlation_id=correlation_id,
            )
            raise

        self.ledger = updated

        if operation is MutationOperation.DELETE:
            await self._audit_logger.log_record_deleted(
                kind=kind.value,
                record_id=mutations.record_id_of(record),
                origin=origin,
                correlation_id=correlation_id,
            )
        elif operation is MutationOperation.ADD:
            added = updated.records(kind)[0]
            await self._audit_logger.log_record_added(
                kind=kind.value,
                record_id=added.id,
                title=added.title,
                origin=origin,
                correlation_id=correlation_id,
            )
        else:
            changed = updated.find(kind, mutations.record_id_of(record))
            await self._audit_logger.log_record_updated(
                kind=kind.value,
                record_id=changed.id,
                title=changed.title,
                origin=origin,
                correlation_id=correlation_id,
            )

        await self._persist(correlation_id)
        self._scheduler.arm()
        return self.ledger

    def describe_rejection(self, error: InvalidRecordError) -> str:
        """Readable summary of why a record was not saved."""
        return self._validator.get_user_friendly_summary(error.result)

    async def audit_trail(
        self,
        correlation_id: Optional[UUID] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Events of one action, or the most recent events."""
        return await self._audit_logger.get_events(correlation_id, limit=limit)

    async def acknowledge_notification(self, notification_id: str) -> bool:
        """
        Remove a notification.

        Returns:
            False when no notification had that id
        """
        updated = mutations.acknowledge_notification(self.ledger, notification_id)
        if updated is self.ledger:
            return False
        self.ledger = updated
        await self._audit_logger.log_notification_acknowledged(notification_id)
        await self._persist()
        return True

    async def clear(self) -> Ledger:
        """Delete every record and notification."""
        self.ledger = mutations.clear_ledger()
        self._scheduler.cancel()
        await self._audit_logger.log_ledger_reset(reason="cleared by user")
        await self._persist()
        return self.ledger

    async def reset_to_sample(self) -> Ledger:
        """Replace the ledger with the demo data."""
        self.ledger = mutations.sample_ledger(self.now())
        await self._audit_logger.log_ledger_reset(reason="sample data loaded")
        await self._persist()
        self._scheduler.arm()
        return self.ledger

    async def import_backup(self, payload: Union[dict, str, bytes]) -> Ledger:
        """
        Replace the ledger with a backup.

        Raises:
            CorruptLedgerError: If the payload is not a valid backup; the
                current ledger is kept
        """
        restored = self._storage.import_backup(payload)
        self.ledger = restored
        await self._audit_logger.log_ledger_imported(
            counts={
                "debts": len(restored.debts),
                "expenses": len(restored.expenses),
                "assets": len(restored.assets),
                "goals": len(restored.goals),
            }
        )
        await self._persist()
        self._scheduler.arm()
        return self.ledger

    def export_backup(self) -> dict:
        return self._storage.export_backup(self.ledger)

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    async def update_rates(self, rates: dict[str, Any]) -> dict[str, float]:
        """
        Replace the exchange-rate table.

        Invalid entries are dropped; the anchor stays at 1.
        """
        cleaned = normalize_rates(rates)
        self.preferences = self.preferences.model_copy(
            update={"exchange_rates": cleaned}
        )
        await self._audit_logger.log_rates_updated(
            rates=cleaned,
            display_currency=self.display_currency.value,
        )
        await self._persist_preferences()
        return cleaned

    async def set_display_currency(self, currency: Union[Currency, str]) -> Currency:
        """
        Raises:
            ValueError: If the currency is not supported
        """
        chosen = Currency(normalize_currency(currency))
        self.preferences = self.preferences.model_copy(
            update={"display_currency": chosen}
        )
        await self._audit_logger.log_rates_updated(
            rates=self.rates,
            display_currency=chosen.value,
        )
        await self._persist_preferences()
        return chosen

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def compute_metrics(self, now: Optional[datetime] = None) -> FinancialMetrics:
        return aggregation.compute_metrics(
            self.ledger,
            self.rates,
            self.display_currency,
            now or self.now(),
            default_category=self._settings.default_expense_category,
        )

    def drill_down(
        self,
        metric: Union[MetricKind, str],
        now: Optional[datetime] = None,
    ) -> list[LineItem]:
        """Line items behind one headline metric."""
        return aggregation.drill_down(
            self.ledger,
            MetricKind(metric),
            self.rates,
            self.display_currency,
            now or self.now(),
        )

    def financial_context(self) -> str:
        return build_financial_context(
            self.ledger, self.rates, self.display_currency, self.now()
        )

    # -------------------------------------------------------------------------
    # Scan
    # -------------------------------------------------------------------------

    async def run_scan(self, now: Optional[datetime] = None) -> ScanResult:
        """
        Auto-credit due assets and issue reminders.

        New notifications are delivered to the sink after the ledger is
        updated; a failing sink does not undo the scan.
        """
        correlation_id = create_correlation_id()
        result = scan_for_updates(
            self.ledger,
            now or self.now(),
            window_days=self._settings.reminder_window_days,
            grace_days=self._settings.reminder_grace_days,
        )

        if result.changed:
            self.ledger = result.ledger

            for asset in result.credited_assets:
                await self._audit_logger.log_asset_auto_credited(
                    asset_id=asset.id,
                    title=asset.title,
                    amount=asset.amount,
                    currency=asset.currency.value,
                    correlation_id=correlation_id,
                )

            for notification in result.new_notifications:
                await self._audit_logger.log_notification_issued(
                    notification_id=notification.id,
                    title=notification.title,
                    notification_type=notification.type.value,
                    correlation_id=correlation_id,
                )
                try:
                    self._notifier(notification.title, notification.message)
                except Exception as e:
                    logger.warning(
                        "notification_delivery_failed",
                        notification_id=notification.id,
                        error=str(e),
                    )
                    await self._audit_logger.log_error(
                        error_type="notification_delivery",
                        error_message=str(e),
                        details={"notification_id": notification.id},
                        correlation_id=correlation_id,
                    )

            await self._persist(correlation_id)

        await self._audit_logger.log_scan_completed(
            credited=len(result.credited_assets),
            issued=len(result.new_notifications),
            correlation_id=correlation_id,
        )
        return result

    def shutdown(self) -> None:
        """Cancel any pending scan."""
        self._scheduler.cancel()


class AssistantFlow:
    """
    Routes a chat turn through the assistant.

    The assistant's tool calls are applied through
    FinanceTracker.apply_mutation, exactly like a form submission, and the
    outcome is sent back to the model.
    """

    def __init__(
        self,
        tracker: FinanceTracker,
        assistant: Optional[FinanceAssistant] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._tracker = tracker
        self._assistant = assistant or FinanceAssistant()
        self._audit_logger = audit_logger or AuditLogger()

    def new_conversation(self) -> None:
        """Forget the chat; the next message starts from a fresh snapshot."""
        self._assistant.reset_session()

    async def send_message(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> AssistantReply:
        correlation_id = correlation_id or create_correlation_id()
        if not self._assistant.has_session:
            self._assistant.start_session(self._tracker.financial_context())

        async def apply_action(action: AssistantAction) -> str:
            kind, payload = action_to_record(action, self._tracker.now())
            try:
                ledger = await self._tracker.apply_mutation(
                    payload,
                    MutationOperation.ADD,
                    kind,
                    origin="assistant",
                    correlation_id=correlation_id,
                )
            except InvalidRecordError as e:
                raise InvalidRecordError(
                    e.result, self._tracker.describe_rejection(e)
                ) from e
            await self._audit_logger.log_assistant_action_applied(
                action_name=action.name,
                kind=kind.value,
                record_id=ledger.records(kind)[0].id,
                correlation_id=correlation_id,
            )
            return ASSISTANT_ACTION_RESULT

        reply = await self._assistant.send_message(text, apply_action)
        if reply.failed:
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=reply.text,
                correlation_id=correlation_id,
            )
        return reply

    async def analyze(self) -> str:
        """Full written analysis of the current ledger."""
        return await self._assistant.analyze_finances(
            self._tracker.ledger,
            self._tracker.rates,
            self._tracker.display_currency,
            self._tracker.now(),
        )


def create_app_components(
    use_storage: bool = True,
    use_assistant: bool = True,
) -> tuple[FinanceTracker, Optional[AssistantFlow]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist to the JSON files from settings.
                    Set to False for an in-memory ledger.
        use_assistant: Whether to set up the Gemini assistant.

    Returns:
        (tracker, assistant_flow). The flow is None when the assistant is
        disabled or not configured.
    """
    audit_logger = AuditLogger()  # Local-only logging
    storage: Optional[LedgerStorageInterface] = None

    if use_storage:
        storage = JsonFileLedgerStorage()
        audit_logger = AuditLogger(JsonLinesAuditStorage())

    tracker = FinanceTracker(storage=storage, audit_logger=audit_logger)

    assistant_flow = None
    if use_assistant:
        status = validate_all_settings()
        if status["gemini"]:
            assistant_flow = AssistantFlow(
                tracker,
                FinanceAssistant(),
                audit_logger=audit_logger,
            )
        else:
            # Assistant not configured - continue without it
            logger.warning(
                "assistant_not_configured",
                error=status.get("gemini_error"),
            )

    return tracker, assistant_flow
