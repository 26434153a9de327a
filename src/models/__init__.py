"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from src.models.ledger import (
    ANCHOR_CURRENCY,
    DEFAULT_RATES,
    AppPreferences,
    Asset,
    AssetType,
    Currency,
    Debt,
    Expense,
    ExpenseAdapter,
    ExpenseFrequency,
    Goal,
    Ledger,
    MonthlyExpense,
    MutationOperation,
    Notification,
    NotificationType,
    OneTimeExpense,
    RecordKind,
    WeeklyExpense,
    YearlyExpense,
    new_record_id,
)
from src.models.metrics import (
    CategoryAmount,
    FinancialMetrics,
    LineItem,
    LineItemSign,
    MetricKind,
)
from src.models.validation import ValidationIssue, ValidationResult
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ANCHOR_CURRENCY",
    "DEFAULT_RATES",
    "AppPreferences",
    "Asset",
    "AssetType",
    "Currency",
    "Debt",
    "Expense",
    "ExpenseAdapter",
    "ExpenseFrequency",
    "Goal",
    "Ledger",
    "MonthlyExpense",
    "MutationOperation",
    "Notification",
    "NotificationType",
    "OneTimeExpense",
    "RecordKind",
    "WeeklyExpense",
    "YearlyExpense",
    "new_record_id",
    # Metric models
    "CategoryAmount",
    "FinancialMetrics",
    "LineItem",
    "LineItemSign",
    "MetricKind",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
