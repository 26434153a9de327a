"""
Aggregation Engine

Turns the heterogeneous, multi-currency ledger into single-currency
headline metrics and a per-category spending breakdown.

DESIGN DECISION: Each metric is defined by ONE line-item builder.
The metric is the sum of its builder's items and the drill-down is the
builder's list, so the two can never disagree.

All money arithmetic is float with no intermediate rounding.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Optional

import structlog

from src.models.ledger import (
    AssetType,
    Currency,
    Debt,
    ExpenseFrequency,
    Ledger,
    RecordKind,
)
from src.models.metrics import (
    CategoryAmount,
    FinancialMetrics,
    LineItem,
    LineItemSign,
    MetricKind,
)
from src.services.currency import CurrencyLike, RateTable, convert, normalize_currency
from src.services.periods import in_same_month, to_local

logger = structlog.get_logger(__name__)

UNCATEGORIZED = "Uncategorized"

WEEKS_PER_MONTH = 4
MONTHS_PER_YEAR = 12

Converter = Callable[[float, Currency], float]


def _converter(rates: RateTable, display_currency: CurrencyLike) -> Converter:
    target = normalize_currency(display_currency)

    def _convert(amount: float, currency: Currency) -> float:
        return convert(amount, currency, target, rates)

    return _convert


def _sign_of(value: float) -> LineItemSign:
    if value > 0:
        return LineItemSign.CREDIT
    if value < 0:
        return LineItemSign.DEBIT
    return LineItemSign.NEUTRAL


def _item(
    record,
    kind: RecordKind,
    amount: float,
    value: float,
    sign: Optional[LineItemSign] = None,
    note: Optional[str] = None,
) -> LineItem:
    return LineItem(
        label=record.title,
        kind=kind,
        record_id=record.id,
        amount=amount,
        currency=record.currency,
        value=value,
        sign=sign or _sign_of(value),
        date=record.date,
        note=note,
    )


def _total(items: list[LineItem]) -> float:
    return sum((item.value for item in items), 0.0)


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_monthly_amount(expense, now: datetime) -> float:
    """
    Monthly-equivalent amount of an expense, in its own currency.

    Monthly counts as is, Weekly x4, Yearly /12. A One-time expense
    counts only in the month it happens.
    """
    frequency = ExpenseFrequency(expense.frequency)
    if frequency is ExpenseFrequency.MONTHLY:
        return expense.amount
    if frequency is ExpenseFrequency.WEEKLY:
        return expense.amount * WEEKS_PER_MONTH
    if frequency is ExpenseFrequency.YEARLY:
        return expense.amount / MONTHS_PER_YEAR
    if in_same_month(expense.date, now):
        return expense.amount
    return 0.0


_NORMALIZATION_NOTES = {
    ExpenseFrequency.MONTHLY: "monthly",
    ExpenseFrequency.WEEKLY: "weekly x4",
    ExpenseFrequency.YEARLY: "yearly /12",
    ExpenseFrequency.ONE_TIME: "one-time, this month",
}


def installment_due_this_month(debt: Debt, now: datetime) -> bool:
    """
    True while this month's installment is still ahead.

    Once the due day has passed, the payment is assumed to be
    reflected in current balances already.
    """
    return to_local(now).day <= debt.due_day


# =============================================================================
# LINE-ITEM BUILDERS (single filtering implementation per metric)
# =============================================================================

def _received_asset_items(ledger: Ledger, conv: Converter) -> list[LineItem]:
    return [
        _item(asset, RecordKind.ASSET, asset.amount, conv(asset.amount, asset.currency))
        for asset in ledger.assets
        if asset.is_received is not False
    ]


def _debt_items(ledger: Ledger, conv: Converter, *, as_liability: bool) -> list[LineItem]:
    items = []
    for debt in ledger.debts:
        converted = conv(debt.remaining_amount, debt.currency)
        value = -converted if as_liability else converted
        sign = LineItemSign.DEBIT if converted else LineItemSign.NEUTRAL
        items.append(
            _item(debt, RecordKind.DEBT, debt.remaining_amount, value, sign=sign)
        )
    return items


def net_worth_items(ledger: Ledger, conv: Converter, now: datetime) -> list[LineItem]:
    """Received assets minus every debt's remaining amount."""
    return _received_asset_items(ledger, conv) + _debt_items(
        ledger, conv, as_liability=True
    )


def total_debt_items(ledger: Ledger, conv: Converter, now: datetime) -> list[LineItem]:
    """Remaining amount of every debt, installment or not."""
    return _debt_items(ledger, conv, as_liability=False)


def projected_balance_items(
    ledger: Ledger,
    conv: Converter,
    now: datetime,
) -> list[LineItem]:
    """
    End-of-month cash forecast.

    Received assets, plus pending assets dated this month, minus unpaid
    expenses still due this month, minus installment payments whose due
    day has not passed yet.
    """
    items = _received_asset_items(ledger, conv)

    for asset in ledger.assets:
        if asset.is_received is False and in_same_month(asset.date, now):
            items.append(
                _item(
                    asset,
                    RecordKind.ASSET,
                    asset.amount,
                    conv(asset.amount, asset.currency),
                    note="pending, expected this month",
                )
            )

    for expense in ledger.expenses:
        if expense.is_paid is not False:
            continue
        frequency = ExpenseFrequency(expense.frequency)
        if frequency is ExpenseFrequency.MONTHLY:
            note = f"planned, due on {expense.day_of_month}"
        elif frequency is ExpenseFrequency.ONE_TIME and in_same_month(expense.date, now):
            note = "planned, this month"
        else:
            continue
        items.append(
            _item(
                expense,
                RecordKind.EXPENSE,
                expense.amount,
                -conv(expense.amount, expense.currency),
                note=note,
            )
        )

    for debt in ledger.debts:
        if not debt.is_active_installment:
            continue
        if not installment_due_this_month(debt, now):
            continue
        payment = debt.installment_payment
        items.append(
            _item(
                debt,
                RecordKind.DEBT,
                payment,
                -conv(payment, debt.currency),
                note=f"installment due on {debt.due_day}",
            )
        )

    return items


def monthly_result_items(
    ledger: Ledger,
    conv: Converter,
    now: datetime,
) -> list[LineItem]:
    """
    Income of this month minus monthly-normalized expenses minus
    every installment payment.

    Unlike the projected balance, installment payments count regardless
    of the due day.
    """
    items = [
        _item(asset, RecordKind.ASSET, asset.amount, conv(asset.amount, asset.currency))
        for asset in ledger.assets
        if AssetType(asset.type) is AssetType.INCOME and in_same_month(asset.date, now)
    ]

    for expense in ledger.expenses:
        monthly = normalize_monthly_amount(expense, now)
        if not monthly:
            continue
        items.append(
            _item(
                expense,
                RecordKind.EXPENSE,
                expense.amount,
                -conv(monthly, expense.currency),
                note=_NORMALIZATION_NOTES[ExpenseFrequency(expense.frequency)],
            )
        )

    for debt in ledger.debts:
        if not debt.is_installment:
            continue
        payment = debt.installment_payment
        items.append(
            _item(
                debt,
                RecordKind.DEBT,
                payment,
                -conv(payment, debt.currency),
                note="installment",
            )
        )

    return items


_BUILDERS = {
    MetricKind.NET_WORTH: net_worth_items,
    MetricKind.TOTAL_DEBT: total_debt_items,
    MetricKind.PROJECTED_BALANCE: projected_balance_items,
    MetricKind.MONTHLY_RESULT: monthly_result_items,
}


# =============================================================================
# PUBLIC API
# =============================================================================

def drill_down(
    ledger: Ledger,
    metric: MetricKind,
    rates: RateTable,
    display_currency: CurrencyLike,
    now: Optional[datetime] = None,
) -> list[LineItem]:
    """
    List the line items that make up a headline metric.

    Args:
        ledger: Ledger snapshot
        metric: Which metric to explain
        rates: Exchange-rate table
        display_currency: Currency of the item values
        now: Reference time (defaults to the wall clock)

    Returns:
        Ordered line items; their values sum to the metric
    """
    builder = _BUILDERS[MetricKind(metric)]
    return builder(ledger, _converter(rates, display_currency), now or datetime.now())


def compute_metric(
    ledger: Ledger,
    metric: MetricKind,
    rates: RateTable,
    display_currency: CurrencyLike,
    now: Optional[datetime] = None,
) -> float:
    """Compute one headline metric."""
    return _total(drill_down(ledger, metric, rates, display_currency, now))


def compute_net_worth(ledger, rates, display_currency, now=None) -> float:
    return compute_metric(ledger, MetricKind.NET_WORTH, rates, display_currency, now)


def compute_total_debt(ledger, rates, display_currency, now=None) -> float:
    return compute_metric(ledger, MetricKind.TOTAL_DEBT, rates, display_currency, now)


def compute_projected_balance(ledger, rates, display_currency, now=None) -> float:
    return compute_metric(
        ledger, MetricKind.PROJECTED_BALANCE, rates, display_currency, now
    )


def compute_monthly_result(ledger, rates, display_currency, now=None) -> float:
    return compute_metric(
        ledger, MetricKind.MONTHLY_RESULT, rates, display_currency, now
    )


def compute_category_breakdown(
    ledger: Ledger,
    rates: RateTable,
    display_currency: CurrencyLike,
    now: Optional[datetime] = None,
    *,
    default_category: str = UNCATEGORIZED,
) -> list[CategoryAmount]:
    """
    Current-month spending grouped by category.

    Only expenses dated in the current calendar month count, whatever
    their frequency or payment state. Debts never count.

    Returns:
        Categories sorted by amount, largest first
    """
    now = now or datetime.now()
    conv = _converter(rates, display_currency)
    totals: dict[str, float] = {}
    for expense in ledger.expenses:
        if not in_same_month(expense.date, now):
            continue
        category = expense.category.strip() or default_category
        totals[category] = totals.get(category, 0.0) + conv(
            expense.amount, expense.currency
        )

    return [
        CategoryAmount(category=category, amount=amount)
        for category, amount in sorted(
            totals.items(), key=lambda entry: (-entry[1], entry[0])
        )
    ]


def compute_metrics(
    ledger: Ledger,
    rates: RateTable,
    display_currency: CurrencyLike,
    now: Optional[datetime] = None,
    *,
    default_category: str = UNCATEGORIZED,
) -> FinancialMetrics:
    """
    Compute every headline metric and the category breakdown.

    Args:
        ledger: Ledger snapshot
        rates: Exchange-rate table (units per 1 unit of the anchor)
        display_currency: Currency of every output value
        now: Reference time (defaults to the wall clock)
        default_category: Label for expenses without a category

    Returns:
        FinancialMetrics in the display currency
    """
    now = now or datetime.now()
    currency = Currency(normalize_currency(display_currency))
    values = {
        metric: compute_metric(ledger, metric, rates, currency, now)
        for metric in MetricKind
    }
    metrics = FinancialMetrics(
        currency=currency,
        net_worth=values[MetricKind.NET_WORTH],
        total_debt=values[MetricKind.TOTAL_DEBT],
        projected_balance=values[MetricKind.PROJECTED_BALANCE],
        monthly_result=values[MetricKind.MONTHLY_RESULT],
        category_breakdown=compute_category_breakdown(
            ledger, rates, currency, now, default_category=default_category
        ),
    )
    logger.debug(
        "metrics_computed",
        currency=currency.value,
        net_worth=metrics.net_worth,
        total_debt=metrics.total_debt,
    )
    return metrics


def compute_currency_totals(ledger: Ledger) -> dict[str, dict[str, float]]:
    """
    Unconverted totals grouped by currency.

    Debts by remaining amount, balances and income by amount, and
    expenses at their rough monthly rate (Weekly x4, Yearly /12).
    Used as context for the assistant, never for the headline metrics.
    """
    totals: dict[str, dict[str, float]] = {}

    def bucket(currency: Currency) -> dict[str, float]:
        return totals.setdefault(
            Currency(currency).value,
            {"debt": 0.0, "balance": 0.0, "income": 0.0, "expense": 0.0},
        )

    for debt in ledger.debts:
        bucket(debt.currency)["debt"] += debt.remaining_amount
    for asset in ledger.assets:
        key = "balance" if AssetType(asset.type) is AssetType.BALANCE else "income"
        bucket(asset.currency)[key] += asset.amount
    for expense in ledger.expenses:
        frequency = ExpenseFrequency(expense.frequency)
        amount = expense.amount
        if frequency is ExpenseFrequency.YEARLY:
            amount = amount / MONTHS_PER_YEAR
        elif frequency is ExpenseFrequency.WEEKLY:
            amount = amount * WEEKS_PER_MONTH
        bucket(expense.currency)["expense"] += amount
    return totals


__all__ = [
    "UNCATEGORIZED",
    "compute_category_breakdown",
    "compute_currency_totals",
    "compute_metric",
    "compute_metrics",
    "compute_monthly_result",
    "compute_net_worth",
    "compute_projected_balance",
    "compute_total_debt",
    "drill_down",
    "installment_due_this_month",
    "normalize_monthly_amount",
]
