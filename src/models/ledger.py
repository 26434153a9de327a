"""
Core Ledger Models for the Finance Tracker

These models define the strict schemas for every record the user keeps:
debts, expenses, assets (income and balances), savings goals and the
pending notification list.

DESIGN DECISION: Field names are snake_case in Python but serialize to the
camelCase names used by the JSON backups (remainingAmount, isInstallment,
dayOfMonth, autoCredit...). Old backup files load without any migration.

DESIGN DECISION: Amounts are plain floats. Aggregation never rounds;
rounding is a display concern only.

DESIGN DECISION: Expenses are a tagged union on `frequency`.
Only a Monthly expense carries `day_of_month`, so a Weekly expense with a
due day simply cannot be constructed.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

# Field named `date` shadows the type inside class bodies.
CalendarDate = date


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """Supported currencies."""
    USD = "USD"
    EUR = "EUR"
    RUB = "RUB"
    UAH = "UAH"
    GBP = "GBP"


class ExpenseFrequency(str, Enum):
    """How often an expense repeats."""
    ONE_TIME = "One-time"
    MONTHLY = "Monthly"
    WEEKLY = "Weekly"
    YEARLY = "Yearly"


class AssetType(str, Enum):
    """
    Asset kinds.

    INCOME is a recurring earnings event (salary, bonus).
    BALANCE is a point-in-time balance snapshot or adjustment.
    """
    INCOME = "Income"
    BALANCE = "Balance"


class NotificationType(str, Enum):
    """What kind of obligation a reminder is about."""
    EXPENSE = "expense"
    DEBT = "debt"


class RecordKind(str, Enum):
    """The four record collections of the ledger."""
    DEBT = "debt"
    EXPENSE = "expense"
    ASSET = "asset"
    GOAL = "goal"


class MutationOperation(str, Enum):
    """Ledger mutation operations."""
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


# Rates are "units of currency per 1 unit of the anchor currency".
ANCHOR_CURRENCY = Currency.USD

DEFAULT_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.92,
    "GBP": 0.79,
    "RUB": 92.5,
    "UAH": 41.5,
}


def new_record_id() -> str:
    """Generate an identity for a new record."""
    return uuid4().hex


# =============================================================================
# RECORD MODELS
# =============================================================================

class LedgerModel(BaseModel):
    """Base for everything serialized into a backup file."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class Debt(LedgerModel):
    """
    A debt or loan.

    The creation `date` doubles as the recurring due-day anchor for
    installment payments: due day = day of month of `date`.

    `remaining_amount` is updated by the user when payments are recorded;
    nothing in the engine decrements it. Backups may hold a negative value
    after an overpayment, so the schema accepts one; new mutations are
    held to a non-negative amount by the record validator.
    """

    id: str = Field(default_factory=new_record_id)
    title: str = Field(..., min_length=1, max_length=200)
    source: str = Field(
        default="Unknown",
        max_length=200,
        description="Lender or source (bank name, person name)"
    )
    total_amount: float = Field(..., ge=0, allow_inf_nan=False)
    remaining_amount: Optional[float] = Field(
        default=None,
        allow_inf_nan=False,
        description="Outstanding amount, defaults to total_amount"
    )
    currency: Currency
    is_installment: bool = False
    total_installments: Optional[int] = Field(default=None, ge=0)
    paid_installments: Optional[int] = Field(default=None, ge=0)
    monthly_payment: Optional[float] = Field(
        default=None,
        ge=0,
        allow_inf_nan=False,
        description="Explicit installment payment, derived when missing"
    )
    date: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def default_remaining(self) -> "Debt":
        """A new debt is owed in full."""
        if self.remaining_amount is None:
            self.remaining_amount = self.total_amount
        return self

    @property
    def installment_payment(self) -> float:
        """
        Monthly payment of an installment debt.

        Returns 0.0 for lump debts and when the installment count is
        missing or zero.
        """
        if not self.is_installment:
            return 0.0
        if self.monthly_payment is not None:
            return self.monthly_payment
        if not self.total_installments:
            return 0.0
        return self.total_amount / self.total_installments

    @property
    def due_day(self) -> int:
        """Day of month the installment payment is due, in local time."""
        local = self.date.astimezone() if self.date.tzinfo is not None else self.date
        return local.day

    @property
    def is_active_installment(self) -> bool:
        return self.is_installment and (self.remaining_amount or 0.0) > 0


class _ExpenseBase(LedgerModel):
    """Fields shared by every expense variant."""

    id: str = Field(default_factory=new_record_id)
    title: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    currency: Currency
    category: str = Field(default="", max_length=100)
    date: datetime = Field(default_factory=datetime.now)
    is_paid: bool = Field(
        default=True,
        description="False means planned, not yet money out"
    )


class _NonMonthlyExpense(_ExpenseBase):

    @model_validator(mode="before")
    @classmethod
    def reject_day_of_month(cls, data: Any) -> Any:
        """Only Monthly expenses have a due day."""
        if not isinstance(data, dict):
            return data
        for key in ("dayOfMonth", "day_of_month"):
            if key in data:
                if data[key] is not None:
                    raise ValueError(
                        f"day_of_month is only allowed for Monthly expenses, "
                        f"not {data.get('frequency')}"
                    )
                data = {k: v for k, v in data.items() if k != key}
        return data


class OneTimeExpense(_NonMonthlyExpense):
    """A single occurrence on `date`."""

    frequency: Literal["One-time"] = "One-time"


class WeeklyExpense(_NonMonthlyExpense):
    frequency: Literal["Weekly"] = "Weekly"


class YearlyExpense(_NonMonthlyExpense):
    frequency: Literal["Yearly"] = "Yearly"


class MonthlyExpense(_ExpenseBase):
    """
    A monthly recurring expense.

    Only the day-of-month matters for scheduling. It defaults to the day
    component of `date`.
    """

    frequency: Literal["Monthly"] = "Monthly"
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)

    @model_validator(mode="after")
    def default_day_of_month(self) -> "MonthlyExpense":
        if self.day_of_month is None:
            self.day_of_month = self.date.day
        return self


Expense = Annotated[
    Union[OneTimeExpense, MonthlyExpense, WeeklyExpense, YearlyExpense],
    Field(discriminator="frequency"),
]

ExpenseAdapter: TypeAdapter = TypeAdapter(Expense)


class Asset(LedgerModel):
    """
    Income event or balance snapshot.

    An asset with `is_received=False` is projected money. When
    `auto_credit` is set it flips to received once its date arrives.
    """

    id: str = Field(default_factory=new_record_id)
    title: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    currency: Currency
    type: AssetType = AssetType.INCOME
    is_received: bool = True
    auto_credit: bool = False
    date: datetime = Field(default_factory=datetime.now)


class Goal(LedgerModel):
    """A savings goal. No aggregation touches goals."""

    id: str = Field(default_factory=new_record_id)
    title: str = Field(..., min_length=1, max_length=200)
    target_amount: float = Field(..., ge=0, allow_inf_nan=False)
    current_amount: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    currency: Currency
    deadline: Optional[CalendarDate] = None
    date: datetime = Field(default_factory=datetime.now)

    @field_validator("deadline", mode="before")
    @classmethod
    def blank_deadline(cls, v: Any) -> Any:
        """An empty deadline string means no deadline."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def progress(self) -> float:
        """Fraction of the target reached, for display."""
        if self.target_amount <= 0:
            return 0.0
        return self.current_amount / self.target_amount


class Notification(LedgerModel):
    """
    A reminder about an upcoming payment.

    The id is derived from (source record, kind, due month), never random,
    so the same due date can never produce two notifications.
    Acknowledging a notification removes it from the ledger.
    """

    id: str
    title: str
    message: str
    date: datetime
    is_read: bool = False
    type: NotificationType
    source_id: Optional[str] = None
    due_date: Optional[CalendarDate] = None


# =============================================================================
# LEDGER
# =============================================================================

class Ledger(LedgerModel):
    """
    The whole financial state of one user.

    Plain data: every component takes a Ledger and returns a new one.
    """

    debts: list[Debt] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    assets: list[Asset] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)

    def records(self, kind: RecordKind) -> list:
        """Return the record list for a kind."""
        return getattr(self, _COLLECTIONS[RecordKind(kind)])

    def find(self, kind: RecordKind, record_id: str):
        """Find a record by id, or None."""
        for record in self.records(kind):
            if record.id == record_id:
                return record
        return None

    def notification_ids(self) -> set[str]:
        return {n.id for n in self.notifications}

    def with_records(self, kind: RecordKind, records: list) -> "Ledger":
        """Return a copy with one collection replaced."""
        return self.model_copy(
            update={_COLLECTIONS[RecordKind(kind)]: list(records)}
        )

    def to_backup(self) -> dict:
        """Convert to the JSON-shaped backup dict (camelCase names)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_backup(cls, payload: dict) -> "Ledger":
        """
        Build a ledger from a backup dict.

        Raises:
            pydantic.ValidationError: If the payload does not match the schema
        """
        return cls.model_validate(payload)


_COLLECTIONS = {
    RecordKind.DEBT: "debts",
    RecordKind.EXPENSE: "expenses",
    RecordKind.ASSET: "assets",
    RecordKind.GOAL: "goals",
}


class AppPreferences(LedgerModel):
    """
    User preferences stored next to the ledger.

    The anchor currency's rate is always 1.
    """

    display_currency: Currency = Currency.USD
    exchange_rates: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_RATES)
    )

    @model_validator(mode="after")
    def pin_anchor_rate(self) -> "AppPreferences":
        self.exchange_rates[ANCHOR_CURRENCY.value] = 1.0
        return self
