"""
Two-Stage Record Validation

DESIGN DECISION: Every record is validated in two distinct stages before
it may touch the ledger:

STAGE 1 - SCHEMA VALIDATION:
- Type checking (non-numeric amounts, NaN, infinity)
- Required field presence
- Installment count must be a positive integer
- This catches bad form input and malformed assistant actions

STAGE 2 - SEMANTIC VALIDATION:
- Relationships between fields
- Remaining amount above the total
- More paid installments than installments
- Goals with nothing to save towards

IMPORTANT: Validation NEVER silently fixes issues.
Errors reject the mutation, warnings are reported and let it through.
"""

import math
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError

from src.models.ledger import (
    Asset,
    Debt,
    ExpenseAdapter,
    Goal,
    RecordKind,
)
from src.models.validation import ValidationIssue, ValidationResult

_NUMERIC_FIELDS = {
    RecordKind.DEBT: ("totalAmount", "remainingAmount", "monthlyPayment"),
    RecordKind.EXPENSE: ("amount",),
    RecordKind.ASSET: ("amount",),
    RecordKind.GOAL: ("targetAmount", "currentAmount"),
}

_MODELS = {
    RecordKind.DEBT: Debt,
    RecordKind.ASSET: Asset,
    RecordKind.GOAL: Goal,
}


def _lookup(payload: dict, camel_name: str) -> tuple[bool, Any]:
    """Find a field by its camelCase or snake_case name."""
    if camel_name in payload:
        return True, payload[camel_name]
    snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in camel_name)
    if snake in payload:
        return True, payload[snake]
    return False, None


class RecordValidator:
    """
    Validates a record payload through a two-stage pipeline.

    Accepts either a raw dict (form or assistant input, camelCase or
    snake_case keys) or an already built record model.
    """

    def _validate_schema(
        self,
        kind: RecordKind,
        payload: dict,
    ) -> tuple[Optional[BaseModel], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_record_or_None, list_of_issues)
        """
        issues = []

        for field_name in _NUMERIC_FIELDS[kind]:
            present, value = _lookup(payload, field_name)
            if not present or value is None:
                continue
            if isinstance(value, bool):
                number = None
            else:
                try:
                    number = float(value)
                except (TypeError, ValueError):
                    number = None
            if number is None or not math.isfinite(number):
                issues.append(ValidationIssue(
                    field=field_name,
                    issue_type="invalid_value",
                    message=f"{field_name} must be a number, got {value!r}",
                    severity="error",
                    suggested_fix="Enter the amount using digits only",
                ))

        if kind is RecordKind.DEBT:
            _, is_installment = _lookup(payload, "isInstallment")
            present, count = _lookup(payload, "totalInstallments")
            if is_installment and (not present or count is None):
                issues.append(ValidationIssue(
                    field="totalInstallments",
                    issue_type="missing",
                    message="Installment debts need the number of installments",
                    severity="error",
                    suggested_fix="Enter how many monthly payments the debt has",
                ))
            elif is_installment and not self._is_positive_int(count):
                issues.append(ValidationIssue(
                    field="totalInstallments",
                    issue_type="invalid_value",
                    message=f"Installment count must be a positive whole number, got {count!r}",
                    severity="error",
                ))

        if issues:
            return None, issues

        try:
            record = self._parse(kind, payload)
        except ValidationError as e:
            for error in e.errors():
                issues.append(ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or kind.value,
                    issue_type=error["type"],
                    message=error["msg"],
                    severity="error",
                ))
            return None, issues

        return record, issues

    def _validate_semantic(
        self,
        kind: RecordKind,
        record: BaseModel,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation on a parsed record.
        """
        issues = []

        if kind is RecordKind.DEBT:
            if record.remaining_amount < 0:
                issues.append(ValidationIssue(
                    field="remainingAmount",
                    issue_type="invalid_value",
                    message="Remaining amount cannot be negative",
                    severity="error",
                    suggested_fix="Enter 0 for a debt that is paid off",
                ))
            elif record.remaining_amount > record.total_amount:
                issues.append(ValidationIssue(
                    field="remainingAmount",
                    issue_type="suspicious_value",
                    message="Remaining amount is larger than the total amount",
                    severity="warning",
                    suggested_fix="Check both amounts",
                ))
            if (
                record.is_installment
                and record.total_installments
                and (record.paid_installments or 0) > record.total_installments
            ):
                issues.append(ValidationIssue(
                    field="paidInstallments",
                    issue_type="suspicious_value",
                    message="More installments paid than the debt has",
                    severity="warning",
                ))
            if not record.is_installment and record.total_installments:
                issues.append(ValidationIssue(
                    field="totalInstallments",
                    issue_type="ignored",
                    message="Installment count is ignored for non-installment debts",
                    severity="info",
                ))

        elif kind is RecordKind.EXPENSE:
            if record.amount == 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message="Expense amount is zero",
                    severity="warning",
                ))

        elif kind is RecordKind.ASSET:
            if record.auto_credit and record.is_received:
                issues.append(ValidationIssue(
                    field="autoCredit",
                    issue_type="ignored",
                    message="Auto-credit has no effect on an asset already received",
                    severity="info",
                ))

        elif kind is RecordKind.GOAL:
            if record.target_amount <= 0:
                issues.append(ValidationIssue(
                    field="targetAmount",
                    issue_type="invalid_value",
                    message="Goal target must be greater than zero",
                    severity="error",
                ))
            elif record.current_amount > record.target_amount:
                issues.append(ValidationIssue(
                    field="currentAmount",
                    issue_type="goal_reached",
                    message="Goal already reached",
                    severity="info",
                ))

        return issues

    def validate(
        self,
        kind: RecordKind,
        payload: Union[dict, BaseModel],
    ) -> tuple[Optional[BaseModel], ValidationResult]:
        """
        Run both stages.

        Stage 2 only runs when stage 1 produced a record.

        Returns:
            (record_or_None, validation_result). The record is None
            whenever the result has errors.
        """
        kind = RecordKind(kind)
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        record, schema_issues = self._validate_schema(kind, payload)

        schema_valid = record is not None
        semantic_issues = self._validate_semantic(kind, record) if schema_valid else []
        semantic_valid = not any(i.severity == "error" for i in semantic_issues)

        result = ValidationResult(
            kind=kind.value,
            record_id=getattr(record, "id", None) or payload.get("id"),
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=schema_issues + semantic_issues,
        )
        if result.has_errors:
            return None, result
        return record, result

    @staticmethod
    def _parse(kind: RecordKind, payload: dict) -> BaseModel:
        if kind is RecordKind.EXPENSE:
            return ExpenseAdapter.validate_python(payload)
        return _MODELS[kind].model_validate(payload)

    @staticmethod
    def _is_positive_int(value: Any) -> bool:
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return value >= 1
        if isinstance(value, float):
            return value.is_integer() and value >= 1
        if isinstance(value, str):
            return value.strip().isdigit() and int(value) >= 1
        return False

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        One short message for the UI or the assistant.
        """
        if not result.issues:
            return "Looks good."
        if result.has_errors:
            noun = "error" if result.error_count == 1 else "errors"
            lines = [f"Could not save the {result.kind} ({result.error_count} {noun}):"]
        else:
            lines = [f"Saved the {result.kind} with notes:"]
        for issue in result.issues:
            if issue.severity == "info":
                continue
            line = f"- {issue.message}"
            if issue.suggested_fix:
                line += f" ({issue.suggested_fix})"
            lines.append(line)
        return "\n".join(lines)


__all__ = ["RecordValidator"]
