"""
Tests for the aggregation engine.

All scenarios use a fixed clock (10 March 2024) and the USD display
currency unless stated otherwise.
"""

import pytest
from datetime import datetime

from src.models.ledger import (
    Asset,
    AssetType,
    Currency,
    Debt,
    Ledger,
    MonthlyExpense,
    OneTimeExpense,
    WeeklyExpense,
    YearlyExpense,
)
from src.models.metrics import LineItemSign, MetricKind
from src.services.aggregation import (
    compute_category_breakdown,
    compute_currency_totals,
    compute_metric,
    compute_metrics,
    compute_monthly_result,
    compute_net_worth,
    compute_projected_balance,
    compute_total_debt,
    drill_down,
    normalize_monthly_amount,
)

USD_ONLY = {"USD": 1.0}


def _debt(**overrides) -> Debt:
    fields = {
        "title": "Loan",
        "total_amount": 1000,
        "currency": Currency.USD,
        "date": datetime(2024, 1, 5, 10, 0),
    }
    fields.update(overrides)
    return Debt(**fields)


def _asset(**overrides) -> Asset:
    fields = {
        "title": "Savings",
        "amount": 1000,
        "currency": Currency.USD,
        "type": AssetType.BALANCE,
        "date": datetime(2024, 1, 1, 10, 0),
    }
    fields.update(overrides)
    return Asset(**fields)


@pytest.fixture
def mixed_ledger() -> Ledger:
    """A ledger touching every branch of every metric."""
    return Ledger(
        debts=[
            _debt(id="d1", title="Phone", total_amount=1200, remaining_amount=800,
                  is_installment=True, total_installments=12,
                  date=datetime(2023, 11, 15, 10, 0)),
            _debt(id="d2", title="Mortgage", total_amount=5_000_000,
                  remaining_amount=4_625_000, currency=Currency.RUB),
            _debt(id="d3", title="Old card", total_amount=600, remaining_amount=300,
                  is_installment=True, total_installments=6,
                  date=datetime(2023, 12, 5, 10, 0)),
        ],
        expenses=[
            MonthlyExpense(id="e1", title="Rent", amount=900, currency=Currency.USD,
                           category="Housing", date=datetime(2024, 3, 1, 10, 0)),
            MonthlyExpense(id="e2", title="Utilities", amount=100, currency=Currency.USD,
                           category="Housing", date=datetime(2024, 1, 20, 10, 0),
                           is_paid=False),
            WeeklyExpense(id="e3", title="Groceries", amount=50, currency=Currency.USD,
                          category="Food", date=datetime(2024, 3, 2, 10, 0)),
            YearlyExpense(id="e4", title="Insurance", amount=1200, currency=Currency.USD,
                          category="", date=datetime(2024, 3, 3, 10, 0)),
            OneTimeExpense(id="e5", title="Concert", amount=80, currency=Currency.USD,
                           category="Fun", date=datetime(2024, 3, 25, 20, 0),
                           is_paid=False),
            OneTimeExpense(id="e6", title="Old trip", amount=999, currency=Currency.USD,
                           category="Fun", date=datetime(2024, 2, 14, 10, 0)),
        ],
        assets=[
            _asset(id="a1", title="Cash", amount=2000),
            _asset(id="a2", title="Salary", amount=3000, type=AssetType.INCOME,
                   date=datetime(2024, 3, 5, 10, 0)),
            _asset(id="a3", title="Bonus", amount=500, type=AssetType.INCOME,
                   is_received=False, date=datetime(2024, 3, 28, 10, 0)),
            _asset(id="a4", title="Next salary", amount=3000, type=AssetType.INCOME,
                   is_received=False, date=datetime(2024, 4, 5, 10, 0)),
            _asset(id="a5", title="Feb salary", amount=3000, type=AssetType.INCOME,
                   date=datetime(2024, 2, 5, 10, 0)),
        ],
    )


class TestNetWorthAndDebt:
    """Net worth and total debt."""

    def test_net_worth_scenario(self, now):
        """1000 USD received balance and a 400 USD debt give 600."""
        ledger = Ledger(
            assets=[_asset(amount=1000)],
            debts=[_debt(total_amount=400)],
        )
        assert compute_net_worth(ledger, {"USD": 1, "EUR": 123}, "USD", now) == pytest.approx(600)

    def test_pending_assets_excluded_from_net_worth(self, now):
        """Only received assets count."""
        ledger = Ledger(assets=[_asset(amount=1000, is_received=False)])
        assert compute_net_worth(ledger, USD_ONLY, "USD", now) == 0

    def test_lump_and_installment_debts_both_count(self, now):
        """Total debt sums remaining amounts of every debt."""
        ledger = Ledger(debts=[
            _debt(total_amount=400),
            _debt(total_amount=1200, remaining_amount=600,
                  is_installment=True, total_installments=12),
        ])
        assert compute_total_debt(ledger, USD_ONLY, "USD", now) == pytest.approx(1000)

    def test_multi_currency_net_worth(self, now, rates):
        """Assets and debts are converted before summing."""
        ledger = Ledger(
            assets=[_asset(amount=9250, currency=Currency.RUB)],
            debts=[_debt(total_amount=46, currency=Currency.EUR, remaining_amount=46)],
        )
        expected = 9250 / 92.5 - 46 / 0.92
        assert compute_net_worth(ledger, rates, "USD", now) == pytest.approx(expected)

    def test_display_currency_changes_scale(self, now, rates):
        """The same ledger shown in RUB is scaled by the RUB rate."""
        ledger = Ledger(assets=[_asset(amount=100)])
        assert compute_net_worth(ledger, rates, "RUB", now) == pytest.approx(9250)

    def test_empty_ledger(self, now):
        """Every metric of an empty ledger is zero."""
        metrics = compute_metrics(Ledger(), USD_ONLY, "USD", now)
        assert metrics.net_worth == 0
        assert metrics.total_debt == 0
        assert metrics.projected_balance == 0
        assert metrics.monthly_result == 0
        assert metrics.category_breakdown == []


class TestProjectedBalance:
    """End-of-month cash forecast."""

    def test_past_due_installment_not_subtracted(self, now):
        """An installment due on the 5th is not subtracted on the 10th."""
        ledger = Ledger(
            assets=[_asset(amount=1000)],
            debts=[_debt(total_amount=600, is_installment=True,
                         total_installments=6, date=datetime(2023, 12, 5, 10, 0))],
        )
        assert compute_projected_balance(ledger, USD_ONLY, "USD", now) == pytest.approx(1000)

    def test_upcoming_installment_subtracted(self, now):
        """An installment due on the 15th is subtracted on the 10th."""
        ledger = Ledger(
            assets=[_asset(amount=1000)],
            debts=[_debt(total_amount=600, is_installment=True,
                         total_installments=6, date=datetime(2023, 12, 15, 10, 0))],
        )
        assert compute_projected_balance(ledger, USD_ONLY, "USD", now) == pytest.approx(900)

    def test_installment_due_today_subtracted(self, now):
        """Due day equal to today still counts as ahead."""
        ledger = Ledger(
            debts=[_debt(total_amount=600, is_installment=True,
                         total_installments=6, date=datetime(2023, 12, 10, 10, 0))],
        )
        assert compute_projected_balance(ledger, USD_ONLY, "USD", now) == pytest.approx(-100)

    def test_paid_off_installment_ignored(self, now):
        """A debt with nothing left to pay has no upcoming payment."""
        ledger = Ledger(
            debts=[_debt(total_amount=600, remaining_amount=0, is_installment=True,
                         total_installments=6, date=datetime(2023, 12, 20, 10, 0))],
        )
        assert compute_projected_balance(ledger, USD_ONLY, "USD", now) == 0

    def test_full_ledger(self, now, mixed_ledger):
        """Received assets + pending this month - planned - upcoming installments."""
        # received: 2000 + 3000 + 3000 (Feb salary is still received money)
        # pending this month: +500 (April salary excluded)
        # planned monthly utilities: -100; planned concert this month: -80
        # phone installment due on 15th: -100; old card due on 5th: skipped
        expected = 8000 + 500 - 100 - 80 - 100
        assert compute_projected_balance(mixed_ledger, USD_ONLY, "USD", now) == pytest.approx(expected)

    def test_unpaid_expenses_outside_this_month_ignored(self, now, mixed_ledger):
        """Planned Weekly, Yearly and last month's One-time expenses do not move the forecast."""
        base = compute_projected_balance(mixed_ledger, USD_ONLY, "USD", now)
        planned = [
            WeeklyExpense(title="Groceries", amount=50, currency=Currency.USD,
                          is_paid=False, date=datetime(2024, 3, 4, 10, 0)),
            YearlyExpense(title="Insurance", amount=1200, currency=Currency.USD,
                          is_paid=False, date=datetime(2024, 3, 1, 10, 0)),
            OneTimeExpense(title="Repair", amount=300, currency=Currency.USD,
                           is_paid=False, date=datetime(2024, 2, 20, 10, 0)),
        ]
        ledger = mixed_ledger.model_copy(
            update={"expenses": [*mixed_ledger.expenses, *planned]}
        )
        assert compute_projected_balance(ledger, USD_ONLY, "USD", now) == pytest.approx(base)


class TestMonthlyResult:
    """Income minus normalized expenses minus installments."""

    def test_normalization(self, now):
        """Monthly as is, Weekly x4, Yearly /12, One-time only this month."""
        assert normalize_monthly_amount(
            MonthlyExpense(title="R", amount=900, currency=Currency.USD), now
        ) == 900
        assert normalize_monthly_amount(
            WeeklyExpense(title="G", amount=50, currency=Currency.USD), now
        ) == 200
        assert normalize_monthly_amount(
            YearlyExpense(title="I", amount=1200, currency=Currency.USD), now
        ) == pytest.approx(100)
        assert normalize_monthly_amount(
            OneTimeExpense(title="T", amount=80, currency=Currency.USD,
                           date=datetime(2024, 2, 28, 10, 0)), now
        ) == 0

    def test_full_ledger(self, now, mixed_ledger):
        """Every installment counts, whatever its due day."""
        # March salary plus the pending March bonus; Income dated this
        # month counts whether or not it has been received
        income = 3000 + 500
        # rent, utilities, groceries x4, insurance /12, concert; the trip is February
        expenses = 900 + 100 + 200 + 100 + 80
        installments = 100 + 100
        expected = income - expenses - installments
        assert compute_monthly_result(mixed_ledger, USD_ONLY, "USD", now) == pytest.approx(expected)

    def test_balance_assets_not_income(self, now):
        """Balance snapshots dated this month are not income."""
        ledger = Ledger(assets=[_asset(amount=1000, date=datetime(2024, 3, 1, 10, 0))])
        assert compute_monthly_result(ledger, USD_ONLY, "USD", now) == 0


class TestCategoryBreakdown:
    """Current-month spending by category."""

    def test_other_months_excluded(self, now):
        """A February Food expense does not leak into March."""
        ledger = Ledger(expenses=[
            OneTimeExpense(title="Lunch", amount=50, currency=Currency.USD,
                           category="Food", date=datetime(2024, 3, 2, 12, 0)),
            OneTimeExpense(title="Feast", amount=999, currency=Currency.USD,
                           category="Food", date=datetime(2024, 2, 2, 12, 0)),
        ])
        breakdown = compute_category_breakdown(ledger, USD_ONLY, "USD", now)
        assert len(breakdown) == 1
        assert breakdown[0].category == "Food"
        assert breakdown[0].amount == pytest.approx(50)

    def test_sorted_and_defaulted(self, now, mixed_ledger):
        """Largest first; empty category falls back to the default label."""
        breakdown = compute_category_breakdown(
            mixed_ledger, USD_ONLY, "USD", now, default_category="Misc"
        )
        assert [c.category for c in breakdown] == ["Misc", "Housing", "Fun", "Food"]
        assert breakdown[0].amount == pytest.approx(1200)
        assert breakdown[1].amount == pytest.approx(900)

    def test_converted_to_display_currency(self, now, rates):
        """Amounts in other currencies are converted before grouping."""
        ledger = Ledger(expenses=[
            OneTimeExpense(title="Taxi", amount=925, currency=Currency.RUB,
                           category="Transport", date=datetime(2024, 3, 3, 12, 0)),
            OneTimeExpense(title="Bus", amount=5, currency=Currency.USD,
                           category="Transport", date=datetime(2024, 3, 4, 12, 0)),
        ])
        breakdown = compute_category_breakdown(ledger, rates, "USD", now)
        assert breakdown[0].amount == pytest.approx(15)


class TestDrillDown:
    """Line items behind each metric."""

    @pytest.mark.parametrize("metric", list(MetricKind))
    def test_drill_down_sums_to_metric(self, now, rates, mixed_ledger, metric):
        """The line items always add up to the headline number."""
        items = drill_down(mixed_ledger, metric, rates, "EUR", now)
        total = sum(item.value for item in items)
        assert total == pytest.approx(compute_metric(mixed_ledger, metric, rates, "EUR", now))

    def test_total_debt_items_are_positive_debits(self, now, mixed_ledger):
        """Debt line items carry positive values and a debit sign."""
        items = drill_down(mixed_ledger, MetricKind.TOTAL_DEBT, USD_ONLY, "USD", now)
        assert len(items) == 3
        assert all(item.value > 0 for item in items)
        assert all(item.sign == LineItemSign.DEBIT for item in items)

    def test_projected_items_explain_inclusion(self, now, mixed_ledger):
        """Projected balance lists the upcoming installment with its due day."""
        items = drill_down(mixed_ledger, MetricKind.PROJECTED_BALANCE, USD_ONLY, "USD", now)
        installment = [i for i in items if i.record_id == "d1"]
        assert len(installment) == 1
        assert installment[0].value == pytest.approx(-100)
        assert "15" in installment[0].note
        assert not [i for i in items if i.record_id == "d3"]

    def test_zero_one_time_items_excluded(self, now, mixed_ledger):
        """Out-of-month one-time expenses do not appear at all."""
        items = drill_down(mixed_ledger, MetricKind.MONTHLY_RESULT, USD_ONLY, "USD", now)
        assert "e6" not in {i.record_id for i in items}

    def test_metrics_match_individual_functions(self, now, rates, mixed_ledger):
        """compute_metrics agrees with each single-metric function."""
        metrics = compute_metrics(mixed_ledger, rates, "GBP", now)
        assert metrics.currency == Currency.GBP
        assert metrics.net_worth == pytest.approx(compute_net_worth(mixed_ledger, rates, "GBP", now))
        assert metrics.total_debt == pytest.approx(compute_total_debt(mixed_ledger, rates, "GBP", now))


class TestCurrencyTotals:
    """Unconverted per-currency totals."""

    def test_grouped_by_currency(self, mixed_ledger):
        """Debts, balances, income and expenses are bucketed per currency."""
        totals = compute_currency_totals(mixed_ledger)
        assert totals["RUB"]["debt"] == pytest.approx(4_625_000)
        assert totals["USD"]["debt"] == pytest.approx(1100)
        assert totals["USD"]["balance"] == pytest.approx(2000)
        assert totals["USD"]["income"] == pytest.approx(9500)
