"""
Monthly Summary Aggregation

DESIGN DECISION: The summary is DERIVED, never stored.
Every call re-reads the income row, the expenses of the period and the
user's categories, then folds them into one MonthlySummary.

GUARANTEES:
- Deterministic for the same store contents
- No side effects and no caching
- fixed_expenses + variable_expenses == total_expenses
- balance == total_income - total_expenses
- A failure in any of the three reads fails the whole summary
"""

import asyncio
from decimal import Decimal
from typing import Optional

import structlog

from ledger.models.finance import (
    Category,
    CategoryBreakdown,
    DashboardPayload,
    Expense,
    ExpenseType,
    MonthlyIncome,
    MonthlySummary,
)
from ledger.services.storage import (
    LedgerStorageInterface,
    StorageError,
    wrap_storage_error,
)


logger = structlog.get_logger(__name__)


def build_summary(
    year: int,
    month: int,
    income: Optional[MonthlyIncome],
    expenses: list[Expense],
    categories: list[Category],
) -> MonthlySummary:
    """
    Fold the rows of one period into a summary.

    Sums are taken over Decimal amounts and converted to float once per
    figure; total_expenses is the float sum of the two typed totals so
    the identity holds exactly.

    Breakdown entries follow category order and only cover categories
    with at least one expense in the period. Expenses pointing at a
    missing category count toward the totals but not the breakdown.
    """
    total_income = float(income.amount) if income is not None else 0.0

    fixed = sum(
        (e.amount for e in expenses if e.type == ExpenseType.FIXED),
        Decimal("0"),
    )
    variable = sum(
        (e.amount for e in expenses if e.type == ExpenseType.VARIABLE),
        Decimal("0"),
    )
    fixed_expenses = float(fixed)
    variable_expenses = float(variable)
    total_expenses = fixed_expenses + variable_expenses

    by_category = []
    for category in categories:
        matching = [e for e in expenses if e.category_id == category.id]
        if not matching:
            continue
        total = float(sum((e.amount for e in matching), Decimal("0")))
        if total_expenses > 0:
            # float rounding can push a full share a hair past 100
            percentage = min(100.0, 100 * total / total_expenses)
        else:
            percentage = 0.0
        by_category.append(CategoryBreakdown(
            category_id=category.id,
            category_name=category.name,
            category_icon=category.icon,
            category_color=category.color,
            total=total,
            count=len(matching),
            percentage=percentage,
        ))

    return MonthlySummary(
        year=year,
        month=month,
        total_income=total_income,
        fixed_expenses=fixed_expenses,
        variable_expenses=variable_expenses,
        total_expenses=total_expenses,
        balance=total_income - total_expenses,
        by_category=by_category,
        expenses_count=len(expenses),
    )


class MonthlySummaryAggregator:
    """
    Computes monthly summaries and the dashboard payload from storage.

    Year and month are passed through to the store unchecked; a month
    outside 1..12 simply matches no rows.
    """

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def summarize(self, user_id: int, year: int, month: int) -> MonthlySummary:
        """Read the three inputs concurrently and fold them."""
        try:
            income, expenses, categories = await asyncio.gather(
                self._storage.get_monthly_income(user_id, year, month),
                self._storage.list_expenses(user_id, year, month),
                self._storage.list_categories(user_id),
            )
        except StorageError:
            raise
        except Exception as e:
            raise wrap_storage_error("compute monthly summary", e) from e

        summary = build_summary(year, month, income, expenses, categories)
        logger.debug(
            "summary_computed",
            user_id=user_id,
            year=year,
            month=month,
            expenses_count=summary.expenses_count,
        )
        return summary

    async def dashboard(self, user_id: int, year: int, month: int) -> DashboardPayload:
        """Summary, expenses and categories of a period in one payload."""
        try:
            summary, expenses, categories = await asyncio.gather(
                self.summarize(user_id, year, month),
                self._storage.list_expenses(user_id, year, month),
                self._storage.list_categories(user_id),
            )
        except StorageError:
            raise
        except Exception as e:
            raise wrap_storage_error("load dashboard", e) from e

        return DashboardPayload(
            summary=summary,
            expenses=expenses,
            categories=categories,
        )
