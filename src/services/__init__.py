"""Services package."""

from src.services.aggregation import (
    compute_category_breakdown,
    compute_currency_totals,
    compute_metric,
    compute_metrics,
    drill_down,
)
from src.services.auto_credit import resolve_auto_credits
from src.services.currency import convert, normalize_currency, normalize_rates
from src.services.mutations import (
    DuplicateRecordError,
    InvalidRecordError,
    MutationError,
    RecordNotFoundError,
    acknowledge_notification,
    apply_mutation,
    clear_ledger,
    sample_ledger,
)
from src.services.notifier import LoggingNotificationSink, NotificationSink
from src.services.reminders import scan_reminders
from src.services.scan import ScanResult, scan_for_updates
from src.services.scheduler import DebouncedScheduler
from src.services.storage import (
    AuditStorageInterface,
    CorruptLedgerError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    JsonLinesAuditStorage,
    LedgerStorageInterface,
    StorageError,
)

__all__ = [
    # Currency
    "convert",
    "normalize_currency",
    "normalize_rates",
    # Aggregation
    "compute_category_breakdown",
    "compute_currency_totals",
    "compute_metric",
    "compute_metrics",
    "drill_down",
    # Scan
    "ScanResult",
    "resolve_auto_credits",
    "scan_for_updates",
    "scan_reminders",
    # Mutations
    "DuplicateRecordError",
    "InvalidRecordError",
    "MutationError",
    "RecordNotFoundError",
    "acknowledge_notification",
    "apply_mutation",
    "clear_ledger",
    "sample_ledger",
    # Delivery and scheduling
    "DebouncedScheduler",
    "LoggingNotificationSink",
    "NotificationSink",
    # Storage services
    "AuditStorageInterface",
    "CorruptLedgerError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
    "JsonLinesAuditStorage",
    "LedgerStorageInterface",
    "StorageError",
]
