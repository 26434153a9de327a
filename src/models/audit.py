"""
Audit Models for the Finance Tracker

Every change to the ledger is logged for audit purposes.
This provides:
1. Traceability of every mutation, whoever made it (user or assistant)
2. Debugging information when totals look wrong
3. A history of what the periodic scan did (credits, reminders)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Ledger mutations
    RECORD_ADDED = "record_added"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    MUTATION_REJECTED = "mutation_rejected"
    LEDGER_RESET = "ledger_reset"
    LEDGER_IMPORTED = "ledger_imported"

    # Periodic scan
    ASSET_AUTO_CREDITED = "asset_auto_credited"
    NOTIFICATION_ISSUED = "notification_issued"
    NOTIFICATION_ACKNOWLEDGED = "notification_acknowledged"
    SCAN_COMPLETED = "scan_completed"

    # Assistant
    ASSISTANT_ACTION_APPLIED = "assistant_action_applied"

    # Persistence
    LEDGER_LOAD_FAILED = "ledger_load_failed"
    SAVE_FAILED = "save_failed"

    # Settings
    RATES_UPDATED = "rates_updated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'debt', 'expense', 'notification')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one scan or one chat turn)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_added("expense", expense_id, "Rent")
        event = AuditEventBuilder.notification_issued(notification_id, title)
    """

    @staticmethod
    def record_added(
        kind: str,
        record_id: str,
        title: str,
        origin: str = "user",
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_ADDED,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Added {kind}: {title}",
            details={"origin": origin},
            is_user_action=True,
        )

    @staticmethod
    def record_updated(
        kind: str,
        record_id: str,
        title: str,
        origin: str = "user",
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Updated {kind}: {title}",
            details={"origin": origin},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        kind: str,
        record_id: str,
        origin: str = "user",
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Deleted {kind} {record_id}",
            details={"origin": origin},
            is_user_action=True,
        )

    @staticmethod
    def mutation_rejected(
        kind: str,
        operation: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            correlation_id=correlation_id,
            description=f"Rejected {operation} of {kind}: {len(issues)} issue(s)",
            details={"operation": operation, "issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def ledger_reset(
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger replaced: {reason}",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def ledger_imported(
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_IMPORTED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Ledger restored from backup",
            details=counts,
            is_user_action=True,
        )

    @staticmethod
    def asset_auto_credited(
        asset_id: str,
        title: str,
        amount: float,
        currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_AUTO_CREDITED,
            entity_type="asset",
            entity_id=asset_id,
            correlation_id=correlation_id,
            description=f"Auto-credited {title}",
            details={"amount": amount, "currency": currency},
        )

    @staticmethod
    def notification_issued(
        notification_id: str,
        title: str,
        notification_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_ISSUED,
            entity_type="notification",
            entity_id=notification_id,
            correlation_id=correlation_id,
            description=f"Reminder issued: {title}",
            details={"type": notification_type},
        )

    @staticmethod
    def notification_acknowledged(
        notification_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_ACKNOWLEDGED,
            entity_type="notification",
            entity_id=notification_id,
            correlation_id=correlation_id,
            description=f"Reminder acknowledged: {notification_id}",
            is_user_action=True,
        )

    @staticmethod
    def scan_completed(
        credited: int,
        issued: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCAN_COMPLETED,
            severity=AuditSeverity.DEBUG,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Scan completed: {credited} credited, {issued} reminders",
            details={"credited": credited, "issued": issued},
        )

    @staticmethod
    def assistant_action_applied(
        action_name: str,
        kind: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSISTANT_ACTION_APPLIED,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Assistant ran {action_name}",
            details={"action": action_name},
        )

    @staticmethod
    def ledger_load_failed(
        source: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Stored ledger unreadable, started with an empty ledger",
            details={"source": source},
            error_message=error_message,
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Saving the ledger failed",
            error_message=error_message,
        )

    @staticmethod
    def rates_updated(
        rates: dict[str, float],
        display_currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_UPDATED,
            entity_type="preferences",
            correlation_id=correlation_id,
            description=f"Exchange rates updated (display {display_currency})",
            details={"rates": rates, "display_currency": display_currency},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"External service error: {service}",
            details={"service": service},
            error_message=error_message,
        )
