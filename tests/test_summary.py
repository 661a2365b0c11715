"""Tests for the monthly summary aggregator."""

import asyncio
from decimal import Decimal

import pytest

from ledger.models.finance import (
    Category,
    Expense,
    ExpenseType,
    IncomeUpsert,
    MonthlyIncome,
    NewCategory,
    NewExpense,
)
from ledger.queries import MonthlySummaryAggregator, build_summary
from ledger.services.storage import InMemoryLedgerStorage, StorageError


def expense(id, category_id, amount, type=ExpenseType.VARIABLE, year=2024, month=5):
    return Expense(
        id=id,
        user_id=1,
        category_id=category_id,
        year=year,
        month=month,
        type=type,
        amount=Decimal(amount),
    )


CATEGORIES = [
    Category(id=1, user_id=1, name="Rent", icon="home", color="#111111"),
    Category(id=2, user_id=1, name="Food"),
    Category(id=3, user_id=1, name="Travel"),
]


class TestBuildSummary:
    """Tests for the pure fold."""

    def test_empty_period(self):
        summary = build_summary(2024, 5, None, [], CATEGORIES)
        assert summary.total_income == 0.0
        assert summary.total_expenses == 0.0
        assert summary.balance == 0.0
        assert summary.by_category == []
        assert summary.expenses_count == 0

    def test_income_without_expenses(self):
        income = MonthlyIncome(id=1, user_id=1, year=2024, month=5, amount=Decimal("3000"))
        summary = build_summary(2024, 5, income, [], CATEGORIES)
        assert summary.total_income == 3000.0
        assert summary.balance == 3000.0

    def test_totals_identity(self):
        expenses = [
            expense(1, 1, "1000.10", ExpenseType.FIXED),
            expense(2, 2, "250.20"),
            expense(3, 2, "49.70"),
        ]
        income = MonthlyIncome(id=1, user_id=1, year=2024, month=5, amount=Decimal("2000"))
        summary = build_summary(2024, 5, income, expenses, CATEGORIES)

        assert summary.fixed_expenses == pytest.approx(1000.10)
        assert summary.variable_expenses == pytest.approx(299.90)
        assert summary.fixed_expenses + summary.variable_expenses == summary.total_expenses
        assert summary.balance == summary.total_income - summary.total_expenses
        assert summary.expenses_count == 3

    def test_breakdown_follows_category_order_and_skips_empty(self):
        expenses = [
            expense(1, 2, "30"),
            expense(2, 1, "70", ExpenseType.FIXED),
        ]
        summary = build_summary(2024, 5, None, expenses, CATEGORIES)

        assert [item.category_id for item in summary.by_category] == [1, 2]
        rent, food = summary.by_category
        assert rent.category_name == "Rent"
        assert rent.category_icon == "home"
        assert rent.percentage == pytest.approx(70.0)
        assert food.percentage == pytest.approx(30.0)
        assert food.count == 1

    def test_percentages_sum_to_100(self):
        expenses = [expense(i, (i % 3) + 1, "33.33") for i in range(1, 10)]
        summary = build_summary(2024, 5, None, expenses, CATEGORIES)
        total = sum(item.percentage for item in summary.by_category)
        assert total == pytest.approx(100.0)
        assert all(item.percentage <= 100.0 for item in summary.by_category)

    def test_orphan_expense_counts_toward_totals_only(self):
        expenses = [expense(1, 1, "50"), expense(2, 99, "50")]
        summary = build_summary(2024, 5, None, expenses, CATEGORIES)

        assert summary.total_expenses == 100.0
        assert len(summary.by_category) == 1
        assert summary.by_category[0].percentage == pytest.approx(50.0)

    def test_zero_amount_expenses(self):
        summary = build_summary(2024, 5, None, [expense(1, 1, "0")], CATEGORIES)
        assert summary.total_expenses == 0.0
        assert summary.by_category[0].percentage == 0.0
        assert summary.by_category[0].count == 1

    def test_negative_balance(self):
        income = MonthlyIncome(id=1, user_id=1, year=2024, month=5, amount=Decimal("100"))
        summary = build_summary(2024, 5, income, [expense(1, 1, "150")], CATEGORIES)
        assert summary.balance == -50.0


class FailingStorage(InMemoryLedgerStorage):
    async def list_expenses(self, user_id, year, month, category_id=None):
        raise RuntimeError("disk on fire")


class TestMonthlySummaryAggregator:
    """Tests for the store-backed aggregator."""

    def _seed(self, storage):
        async def seed():
            rent = await storage.create_category(NewCategory(user_id=1, name="Rent"))
            await storage.upsert_monthly_income(
                IncomeUpsert(user_id=1, year=2024, month=5, amount=Decimal("5000"))
            )
            await storage.create_expense(NewExpense(
                user_id=1, category_id=rent.id, year=2024, month=5,
                type=ExpenseType.FIXED, amount=Decimal("1200"),
            ))
            # another user and another month stay out of the summary
            await storage.create_expense(NewExpense(
                user_id=2, category_id=rent.id, year=2024, month=5,
                type=ExpenseType.FIXED, amount=Decimal("999"),
            ))
            await storage.create_expense(NewExpense(
                user_id=1, category_id=rent.id, year=2024, month=6,
                type=ExpenseType.FIXED, amount=Decimal("1200"),
            ))
        asyncio.run(seed())

    def test_summarize_scopes_to_user_and_period(self):
        storage = InMemoryLedgerStorage()
        self._seed(storage)
        summary = asyncio.run(MonthlySummaryAggregator(storage).summarize(1, 2024, 5))

        assert summary.total_income == 5000.0
        assert summary.fixed_expenses == 1200.0
        assert summary.balance == 3800.0
        assert summary.expenses_count == 1

    def test_summarize_is_deterministic(self):
        storage = InMemoryLedgerStorage()
        self._seed(storage)
        aggregator = MonthlySummaryAggregator(storage)
        first = asyncio.run(aggregator.summarize(1, 2024, 5))
        second = asyncio.run(aggregator.summarize(1, 2024, 5))
        assert first == second

    def test_out_of_range_month_matches_nothing(self):
        storage = InMemoryLedgerStorage()
        self._seed(storage)
        summary = asyncio.run(MonthlySummaryAggregator(storage).summarize(1, 2024, 13))
        assert summary.total_expenses == 0.0
        assert summary.month == 13

    def test_dashboard_payload(self):
        storage = InMemoryLedgerStorage()
        self._seed(storage)
        payload = asyncio.run(MonthlySummaryAggregator(storage).dashboard(1, 2024, 5))

        assert payload.summary.total_expenses == 1200.0
        assert len(payload.expenses) == 1
        assert [c.name for c in payload.categories] == ["Rent"]

    def test_read_failure_fails_whole_summary(self):
        aggregator = MonthlySummaryAggregator(FailingStorage())
        with pytest.raises(StorageError, match="Failed to compute monthly summary"):
            asyncio.run(aggregator.summarize(1, 2024, 5))
