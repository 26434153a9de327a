"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. Traceability of every mutation, from the UI or the assistant
2. Debugging capability when a total looks wrong
3. A record of what the periodic scan did on the user's behalf

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def get_events(
        self,
        correlation_id: Optional[UUID] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Read back the trail.

        With a correlation ID, every event of that action oldest first;
        otherwise the most recent events, newest first. Without storage
        there is nothing to read.
        """
        if not self._storage:
            return []
        if correlation_id is not None:
            return await self._storage.get_events_by_correlation_id(correlation_id)
        return await self._storage.get_recent_events(limit=limit)

    async def log_record_added(
        self,
        kind: str,
        record_id: str,
        title: str,
        origin: str = "user",
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_added(
            kind=kind,
            record_id=record_id,
            title=title,
            origin=origin,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_updated(
        self,
        kind: str,
        record_id: str,
        title: str,
        origin: str = "user",
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_updated(
            kind=kind,
            record_id=record_id,
            title=title,
            origin=origin,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_deleted(
        self,
        kind: str,
        record_id: str,
        origin: str = "user",
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_deleted(
            kind=kind,
            record_id=record_id,
            origin=origin,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_mutation_rejected(
        self,
        kind: str,
        operation: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a mutation blocked by validation."""
        event = AuditEventBuilder.mutation_rejected(
            kind=kind,
            operation=operation,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_reset(
        self,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.ledger_reset(
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_imported(
        self,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.ledger_imported(
            counts=counts,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_asset_auto_credited(
        self,
        asset_id: str,
        title: str,
        amount: float,
        currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an asset flipped to received by the scan."""
        event = AuditEventBuilder.asset_auto_credited(
            asset_id=asset_id,
            title=title,
            amount=amount,
            currency=currency,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_notification_issued(
        self,
        notification_id: str,
        title: str,
        notification_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.notification_issued(
            notification_id=notification_id,
            title=title,
            notification_type=notification_type,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_notification_acknowledged(
        self,
        notification_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.notification_acknowledged(
            notification_id=notification_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_scan_completed(
        self,
        credited: int,
        issued: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.scan_completed(
            credited=credited,
            issued=issued,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_assistant_action_applied(
        self,
        action_name: str,
        kind: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a record created from an assistant action."""
        event = AuditEventBuilder.assistant_action_applied(
            action_name=action_name,
            kind=kind,
            record_id=record_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_load_failed(
        self,
        source: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.ledger_load_failed(
            source=source,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.save_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rates_updated(
        self,
        rates: dict[str, float],
        display_currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.rates_updated(
            rates=rates,
            display_currency=display_currency,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one chat turn or
    one scan). Pass it through all subsequent operations.
    """
    return uuid4()
