"""
Tests for the Finance Tracker

Test strategy:
1. Unit tests for individual components (models, engines, validators)
2. Integration tests for flows (with in-memory storage and mocked Gemini)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from pydantic import ValidationError

from src.models.ledger import (
    AppPreferences,
    Asset,
    AssetType,
    Currency,
    Debt,
    ExpenseAdapter,
    Goal,
    Ledger,
    MonthlyExpense,
    OneTimeExpense,
    RecordKind,
    WeeklyExpense,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.models.metrics import FinancialMetrics, MetricKind
from src.models.validation import ValidationIssue, ValidationResult


class TestDebtModel:
    """Tests for the Debt model."""

    def test_remaining_defaults_to_total(self):
        """A new debt is owed in full."""
        debt = Debt(title="Car loan", total_amount=5000, currency=Currency.USD)
        assert debt.remaining_amount == 5000
        assert debt.source == "Unknown"
        assert debt.is_installment is False

    def test_installment_payment_derived_from_count(self):
        """Without an explicit payment, total / installments is used."""
        debt = Debt(
            title="Phone",
            total_amount=1200,
            currency=Currency.USD,
            is_installment=True,
            total_installments=12,
        )
        assert debt.installment_payment == pytest.approx(100.0)

    def test_explicit_monthly_payment_wins(self):
        """monthly_payment overrides the derived value."""
        debt = Debt(
            title="Phone",
            total_amount=1200,
            currency=Currency.USD,
            is_installment=True,
            total_installments=12,
            monthly_payment=130,
        )
        assert debt.installment_payment == 130

    def test_installment_payment_zero_when_count_missing(self):
        """A missing installment count never divides by zero."""
        debt = Debt(
            title="Phone",
            total_amount=1200,
            currency=Currency.USD,
            is_installment=True,
            total_installments=0,
        )
        assert debt.installment_payment == 0.0

    def test_due_day_is_creation_day(self):
        """Installments fall due on the day of month the debt was taken."""
        debt = Debt(
            title="Laptop",
            total_amount=900,
            currency=Currency.EUR,
            date=datetime(2023, 11, 15, 10, 0),
        )
        assert debt.due_day == 15

    def test_due_day_uses_local_time(self):
        """An aware timestamp is read on the local calendar."""
        stamp = datetime(2024, 1, 15, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        debt = Debt(title="Laptop", total_amount=900, currency=Currency.EUR, date=stamp)
        assert debt.due_day == stamp.astimezone().day

    def test_negative_remaining_loads(self):
        """An overpaid debt from a backup still loads."""
        debt = Debt.model_validate({
            "title": "Phone", "totalAmount": 1200, "remainingAmount": -100,
            "currency": "USD", "isInstallment": True,
            "totalInstallments": 12, "paidInstallments": 13,
        })
        assert debt.remaining_amount == -100
        assert debt.is_active_installment is False

    def test_negative_amount_rejected(self):
        """Amounts cannot be negative."""
        with pytest.raises(ValidationError):
            Debt(title="Bad", total_amount=-1, currency=Currency.USD)

    def test_camel_case_aliases(self):
        """Backups use camelCase field names."""
        debt = Debt.model_validate({
            "id": "d1",
            "title": "Mortgage",
            "source": "Bank",
            "totalAmount": 1000,
            "remainingAmount": 800,
            "currency": "RUB",
            "isInstallment": False,
            "date": "2024-01-01T10:00:00",
        })
        assert debt.remaining_amount == 800
        dumped = debt.model_dump(by_alias=True)
        assert "remainingAmount" in dumped
        assert "isInstallment" in dumped


class TestExpenseModels:
    """Tests for the expense tagged union."""

    def test_monthly_day_defaults_to_date_day(self):
        """dayOfMonth comes from the date when not given."""
        expense = MonthlyExpense(
            title="Rent",
            amount=500,
            currency=Currency.USD,
            date=datetime(2024, 2, 28, 12, 0),
        )
        assert expense.day_of_month == 28

    def test_adapter_picks_variant_by_frequency(self):
        """The frequency field selects the model."""
        expense = ExpenseAdapter.validate_python({
            "title": "Groceries",
            "amount": 30,
            "currency": "EUR",
            "frequency": "Weekly",
            "date": "2024-03-01T10:00:00",
        })
        assert isinstance(expense, WeeklyExpense)

    def test_day_of_month_rejected_on_weekly(self):
        """Only Monthly expenses may carry a due day."""
        with pytest.raises(ValidationError):
            ExpenseAdapter.validate_python({
                "title": "Groceries",
                "amount": 30,
                "currency": "EUR",
                "frequency": "Weekly",
                "dayOfMonth": 5,
            })

    def test_null_day_of_month_accepted_on_one_time(self):
        """A null dayOfMonth from an old backup is simply dropped."""
        expense = ExpenseAdapter.validate_python({
            "title": "Concert",
            "amount": 80,
            "currency": "USD",
            "frequency": "One-time",
            "dayOfMonth": None,
        })
        assert isinstance(expense, OneTimeExpense)

    def test_day_of_month_bounds(self):
        """Day of month must be 1..31."""
        with pytest.raises(ValidationError):
            MonthlyExpense(title="Rent", amount=1, currency=Currency.USD, day_of_month=32)

    def test_unknown_frequency_rejected(self):
        """Unknown frequencies do not parse."""
        with pytest.raises(ValidationError):
            ExpenseAdapter.validate_python({
                "title": "Gym",
                "amount": 30,
                "currency": "USD",
                "frequency": "Daily",
            })


class TestAssetAndGoalModels:
    """Tests for Asset and Goal."""

    def test_asset_defaults(self):
        """Assets are received Income unless stated otherwise."""
        asset = Asset(title="Salary", amount=3000, currency=Currency.USD)
        assert asset.type == AssetType.INCOME
        assert asset.is_received is True
        assert asset.auto_credit is False

    def test_goal_progress(self):
        """Progress is current / target."""
        goal = Goal(title="Car", target_amount=10000, current_amount=2500, currency=Currency.USD)
        assert goal.progress == pytest.approx(0.25)

    def test_goal_progress_zero_target(self):
        """A zero target reports no progress instead of dividing by zero."""
        goal = Goal(title="Nothing", target_amount=0, currency=Currency.USD)
        assert goal.progress == 0.0

    @pytest.mark.parametrize("deadline", ["", "   "])
    def test_blank_deadline_is_none(self, deadline):
        """Backups store a missing deadline as an empty string."""
        goal = Goal.model_validate({
            "title": "Car", "targetAmount": 10000, "currency": "USD", "deadline": deadline,
        })
        assert goal.deadline is None

    def test_deadline_parsed(self):
        goal = Goal.model_validate({
            "title": "Car", "targetAmount": 10000, "currency": "USD", "deadline": "2025-06-30",
        })
        assert goal.deadline == date(2025, 6, 30)


class TestLedger:
    """Tests for the Ledger container."""

    def test_find_and_records(self):
        """Records are looked up by kind and id."""
        debt = Debt(id="d1", title="Loan", total_amount=100, currency=Currency.USD)
        ledger = Ledger(debts=[debt])
        assert ledger.records(RecordKind.DEBT) == [debt]
        assert ledger.find(RecordKind.DEBT, "d1") is debt
        assert ledger.find(RecordKind.DEBT, "missing") is None

    def test_with_records_does_not_mutate(self):
        """with_records returns a new ledger."""
        ledger = Ledger()
        goal = Goal(title="Trip", target_amount=1000, currency=Currency.EUR)
        updated = ledger.with_records(RecordKind.GOAL, [goal])
        assert ledger.goals == []
        assert updated.goals == [goal]

    def test_backup_shape(self):
        """Backups serialize with camelCase keys and no nulls."""
        ledger = Ledger(
            expenses=[
                MonthlyExpense(
                    id="e1",
                    title="Rent",
                    amount=500,
                    currency=Currency.USD,
                    date=datetime(2024, 3, 1, 10, 0),
                )
            ]
        )
        backup = ledger.to_backup()
        assert set(backup) == {"debts", "expenses", "assets", "goals", "notifications"}
        assert backup["expenses"][0]["dayOfMonth"] == 1
        assert backup["expenses"][0]["isPaid"] is True
        restored = Ledger.from_backup(backup)
        assert restored.expenses[0].day_of_month == 1


class TestPreferences:
    """Tests for AppPreferences."""

    def test_anchor_rate_pinned(self):
        """The anchor currency's rate is always 1."""
        prefs = AppPreferences(exchange_rates={"USD": 5.0, "EUR": 0.9})
        assert prefs.exchange_rates["USD"] == 1.0


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_ADDED,
            description="Added expense",
        )
        assert event.event_type == AuditEventType.RECORD_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.ASSET_AUTO_CREDITED,
            description="Auto-credited salary",
            details={"amount": 3000, "currency": "USD"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "asset_auto_credited"
        assert log_dict["details"]["currency"] == "USD"

    def test_audit_event_builder_record_added(self):
        """Test AuditEventBuilder.record_added."""
        correlation_id = uuid4()
        event = AuditEventBuilder.record_added(
            kind="expense",
            record_id="e1",
            title="Rent",
            origin="assistant",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.RECORD_ADDED
        assert event.entity_id == "e1"
        assert event.correlation_id == correlation_id
        assert event.details["origin"] == "assistant"
        assert event.is_user_action is True

    def test_audit_event_builder_load_failed_is_error(self):
        """A corrupt ledger is an error-level event."""
        event = AuditEventBuilder.ledger_load_failed(
            source="JsonFileLedgerStorage",
            error_message="bad json",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "bad json"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            kind="debt",
            schema_valid=False,
            semantic_valid=False,
            issues=[
                ValidationIssue(
                    field="totalAmount",
                    issue_type="missing",
                    message="Total amount required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.is_valid is False

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            kind="debt",
            schema_valid=True,
            semantic_valid=True,
            issues=[
                ValidationIssue(
                    field="remainingAmount",
                    issue_type="suspicious_value",
                    message="Remaining above total",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert len(result.warnings) == 1


class TestFinancialMetrics:
    """Tests for the metrics result model."""

    def test_value_of(self):
        """value_of returns the metric by kind."""
        metrics = FinancialMetrics(
            currency=Currency.USD,
            net_worth=1.0,
            total_debt=2.0,
            projected_balance=3.0,
            monthly_result=4.0,
        )
        assert metrics.value_of(MetricKind.TOTAL_DEBT) == 2.0
        assert metrics.value_of("monthly_result") == 4.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
