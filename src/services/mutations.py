"""
Ledger Mutations

The only way records enter, change or leave the ledger. UI forms and the
assistant's structured actions both go through `apply_mutation`, so they
get the same defaults and the same validation.

Each call returns a NEW ledger; the input ledger is never modified.
A rejected mutation raises before anything is built.
"""

from datetime import datetime
from typing import Optional, Union

import structlog
from pydantic import BaseModel

from src.models.ledger import (
    Asset,
    AssetType,
    Currency,
    Debt,
    Goal,
    Ledger,
    MonthlyExpense,
    MutationOperation,
    RecordKind,
    YearlyExpense,
)
from src.models.validation import ValidationResult
from src.validation.validator import RecordValidator

logger = structlog.get_logger(__name__)


class MutationError(Exception):
    """Base exception for ledger mutations."""
    pass


class InvalidRecordError(MutationError):
    """The record failed validation; the ledger was not changed."""

    def __init__(self, result: ValidationResult, message: Optional[str] = None):
        self.result = result
        super().__init__(
            message
            or f"Invalid {result.kind}: "
            + "; ".join(i.message for i in result.issues if i.severity == "error")
        )


class RecordNotFoundError(MutationError):
    """No record with the given id in the ledger."""
    pass


class DuplicateRecordError(MutationError):
    """A record with the same id already exists."""
    pass


RecordPayload = Union[dict, BaseModel, str]


def record_id_of(record: RecordPayload) -> Optional[str]:
    if isinstance(record, str):
        return record
    if isinstance(record, dict):
        value = record.get("id")
        return str(value) if value is not None else None
    return getattr(record, "id", None)


def apply_mutation(
    ledger: Ledger,
    record: RecordPayload,
    operation: MutationOperation,
    kind: RecordKind,
    validator: Optional[RecordValidator] = None,
) -> Ledger:
    """
    Apply one add/update/delete to a ledger.

    Args:
        ledger: Current ledger (not modified)
        record: Record model or raw dict; for delete, a bare id also works
        operation: add, update or delete
        kind: Which collection the record belongs to
        validator: Validator to use (a default one when omitted)

    Returns:
        The new ledger

    Raises:
        InvalidRecordError: If add/update input fails validation
        RecordNotFoundError: If update/delete targets an unknown id
        DuplicateRecordError: If add reuses an existing id
    """
    operation = MutationOperation(operation)
    kind = RecordKind(kind)
    records = ledger.records(kind)

    if operation is MutationOperation.DELETE:
        record_id = record_id_of(record)
        if record_id is None or ledger.find(kind, record_id) is None:
            raise RecordNotFoundError(f"No {kind.value} with id {record_id!r}")
        logger.info("record_deleted", kind=kind.value, record_id=record_id)
        return ledger.with_records(
            kind, [r for r in records if r.id != record_id]
        )

    if isinstance(record, str):
        raise MutationError(f"{operation.value} needs a full {kind.value} record")

    validator = validator or RecordValidator()
    parsed, result = validator.validate(kind, record)
    if parsed is None:
        logger.warning(
            "mutation_rejected",
            kind=kind.value,
            operation=operation.value,
            issues=result.issues_as_dicts(),
        )
        raise InvalidRecordError(result)
    for warning in result.warnings:
        logger.warning(
            "record_warning",
            kind=kind.value,
            record_id=parsed.id,
            field=warning.field,
            message=warning.message,
        )

    if operation is MutationOperation.ADD:
        if ledger.find(kind, parsed.id) is not None:
            raise DuplicateRecordError(f"{kind.value} {parsed.id} already exists")
        logger.info("record_added", kind=kind.value, record_id=parsed.id)
        return ledger.with_records(kind, [parsed, *records])

    if ledger.find(kind, parsed.id) is None:
        raise RecordNotFoundError(f"No {kind.value} with id {parsed.id!r}")
    logger.info("record_updated", kind=kind.value, record_id=parsed.id)
    return ledger.with_records(
        kind, [parsed if r.id == parsed.id else r for r in records]
    )


def acknowledge_notification(ledger: Ledger, notification_id: str) -> Ledger:
    """
    Remove a notification.

    Acknowledging an unknown id leaves the ledger as it is.
    """
    remaining = [n for n in ledger.notifications if n.id != notification_id]
    if len(remaining) == len(ledger.notifications):
        return ledger
    return ledger.model_copy(update={"notifications": remaining})


def clear_ledger() -> Ledger:
    """An empty ledger."""
    return Ledger()


def sample_ledger(now: Optional[datetime] = None) -> Ledger:
    """
    Demo data for a fresh install.
    """
    now = now or datetime.now()
    return Ledger(
        debts=[
            Debt(
                id="1",
                title="iPhone 15 Pro",
                source="ReStore",
                total_amount=1500,
                remaining_amount=1000,
                currency=Currency.USD,
                is_installment=True,
                total_installments=12,
                paid_installments=4,
                monthly_payment=125,
                date=datetime(2023, 11, 15, 10, 0),
            ),
            Debt(
                id="2",
                title="Mortgage",
                source="Sberbank",
                total_amount=5_000_000,
                remaining_amount=4_200_000,
                currency=Currency.RUB,
                date=datetime(2020, 5, 20, 10, 0),
            ),
        ],
        expenses=[
            MonthlyExpense(
                id="1",
                title="Apartment rent",
                amount=45_000,
                currency=Currency.RUB,
                category="Housing",
                date=datetime(2024, 2, 1, 10, 0),
            ),
            MonthlyExpense(
                id="2",
                title="Streaming subscription",
                amount=299,
                currency=Currency.RUB,
                category="Entertainment",
                date=datetime(2024, 2, 5, 10, 0),
            ),
            YearlyExpense(
                id="3",
                title="Gym membership",
                amount=25_000,
                currency=Currency.RUB,
                category="Health",
                date=datetime(2024, 1, 10, 10, 0),
            ),
        ],
        assets=[
            Asset(
                id="1",
                title="Main job",
                amount=120_000,
                currency=Currency.RUB,
                type=AssetType.INCOME,
                date=now.replace(day=10, hour=10, minute=0, second=0, microsecond=0),
            ),
            Asset(
                id="2",
                title="Savings account",
                amount=350_000,
                currency=Currency.RUB,
                type=AssetType.BALANCE,
                date=datetime(2023, 12, 1, 10, 0),
            ),
            Asset(
                id="3",
                title="Cash (USD)",
                amount=2000,
                currency=Currency.USD,
                type=AssetType.BALANCE,
                date=datetime(2024, 2, 15, 10, 0),
            ),
        ],
        goals=[
            Goal(
                id="1",
                title="Emergency fund",
                target_amount=500_000,
                current_amount=350_000,
                currency=Currency.RUB,
                date=datetime(2023, 9, 1, 10, 0),
            ),
            Goal(
                id="2",
                title="Pay off the credit card",
                target_amount=100_000,
                current_amount=20_000,
                currency=Currency.RUB,
                date=datetime(2024, 1, 15, 10, 0),
            ),
        ],
    )


__all__ = [
    "DuplicateRecordError",
    "InvalidRecordError",
    "MutationError",
    "RecordNotFoundError",
    "acknowledge_notification",
    "apply_mutation",
    "clear_ledger",
    "record_id_of",
    "sample_ledger",
]
