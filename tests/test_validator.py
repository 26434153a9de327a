"""Tests for the two-stage record validator."""

import pytest

from src.models.ledger import Debt, MonthlyExpense, RecordKind
from src.validation.validator import RecordValidator


@pytest.fixture
def validator() -> RecordValidator:
    return RecordValidator()


class TestSchemaStage:
    """Stage 1: types and required fields."""

    @pytest.mark.parametrize("amount", ["abc", float("nan"), float("inf"), True])
    def test_bad_amounts_rejected(self, validator, amount):
        """Non-numeric, NaN and infinite amounts are errors."""
        record, result = validator.validate(RecordKind.ASSET, {
            "title": "Salary", "amount": amount, "currency": "USD",
        })
        assert record is None
        assert result.schema_valid is False
        assert result.issues[0].field == "amount"

    def test_numeric_string_is_accepted(self, validator):
        """Digits typed into a form parse as a number."""
        record, result = validator.validate(RecordKind.ASSET, {
            "title": "Salary", "amount": "1500.50", "currency": "USD",
        })
        assert record.amount == 1500.5
        assert result.is_valid

    @pytest.mark.parametrize("count", [0, -2, 1.5, "x"])
    def test_installment_count_must_be_positive(self, validator, count):
        """An installment debt needs a whole number of payments."""
        record, result = validator.validate(RecordKind.DEBT, {
            "title": "Phone", "totalAmount": 1200, "currency": "USD",
            "isInstallment": True, "totalInstallments": count,
        })
        assert record is None
        assert result.issues[0].field == "totalInstallments"

    def test_installment_count_missing(self, validator):
        """Missing count on an installment debt is an error."""
        record, result = validator.validate(RecordKind.DEBT, {
            "title": "Phone", "totalAmount": 1200, "currency": "USD",
            "isInstallment": True,
        })
        assert record is None
        assert result.issues[0].issue_type == "missing"

    def test_unknown_currency(self, validator):
        """Pydantic errors surface as issues."""
        record, result = validator.validate(RecordKind.GOAL, {
            "title": "Car", "targetAmount": 100, "currency": "XYZ",
        })
        assert record is None
        assert result.error_count >= 1

    def test_weekly_expense_with_day_of_month(self, validator):
        """Only Monthly expenses take a due day."""
        record, _ = validator.validate(RecordKind.EXPENSE, {
            "title": "Groceries", "amount": 50, "currency": "USD",
            "frequency": "Weekly", "dayOfMonth": 5,
        })
        assert record is None

    def test_model_input(self, validator):
        """Built models go through the same pipeline."""
        expense = MonthlyExpense(title="Rent", amount=900, currency="USD")
        record, result = validator.validate(RecordKind.EXPENSE, expense)
        assert record == expense
        assert result.record_id == expense.id


class TestSemanticStage:
    """Stage 2: relationships between fields."""

    def test_remaining_above_total_warns(self, validator):
        """A suspicious remaining amount is let through with a warning."""
        debt = Debt(title="Loan", total_amount=100, remaining_amount=150, currency="USD")
        record, result = validator.validate(RecordKind.DEBT, debt)
        assert record is not None
        assert [w.field for w in result.warnings] == ["remainingAmount"]

    def test_negative_remaining_rejected(self, validator):
        """New input cannot record a negative outstanding amount."""
        record, result = validator.validate(RecordKind.DEBT, {
            "title": "Loan", "totalAmount": 100, "remainingAmount": -5, "currency": "USD",
        })
        assert record is None
        assert result.schema_valid is True
        assert result.semantic_valid is False
        assert result.issues[0].field == "remainingAmount"

    def test_goal_target_zero(self, validator):
        """A goal with nothing to save towards is rejected."""
        record, result = validator.validate(RecordKind.GOAL, {
            "title": "Nothing", "targetAmount": 0, "currency": "USD",
        })
        assert record is None
        assert result.schema_valid is True
        assert result.semantic_valid is False

    def test_zero_expense_warns(self, validator):
        """A zero expense is odd but allowed."""
        record, result = validator.validate(RecordKind.EXPENSE, {
            "title": "Free trial", "amount": 0, "currency": "USD", "frequency": "One-time",
        })
        assert record is not None
        assert len(result.warnings) == 1


class TestSummary:

    def test_clean_record(self, validator):
        """No issues, short answer."""
        _, result = validator.validate(RecordKind.ASSET, {
            "title": "Salary", "amount": 10, "currency": "USD",
        })
        assert validator.get_user_friendly_summary(result) == "Looks good."

    def test_errors_listed_with_fix(self, validator):
        """Errors come with their suggested fix."""
        _, result = validator.validate(RecordKind.ASSET, {
            "title": "Salary", "amount": "ten", "currency": "USD",
        })
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("Could not save the asset (1 error):")
        assert "Enter the amount using digits only" in summary

    def test_warnings_listed(self, validator):
        """A record saved with warnings says so, info notes are left out."""
        debt = Debt(title="Loan", total_amount=100, remaining_amount=150, currency="USD")
        _, result = validator.validate(RecordKind.DEBT, debt)
        summary = validator.get_user_friendly_summary(result)
        assert summary.splitlines() == [
            "Saved the debt with notes:",
            "- Remaining amount is larger than the total amount (Check both amounts)",
        ]
