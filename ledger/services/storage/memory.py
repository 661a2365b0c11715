"""
In-Memory Storage Implementation

Holds every row in plain dicts keyed by id. Used by the test suite and
for throwaway demo sessions of the dashboard.

Plans and income batches are applied against a snapshot that is
restored when any operation fails, so they stay all-or-nothing like the
SQL store.
"""

import copy
from contextlib import contextmanager
from itertools import count
from typing import Iterator, Optional

from ledger.models.finance import (
    Category,
    Expense,
    ExpenseUpdate,
    IncomeUpsert,
    MonthlyIncome,
    NewCategory,
    NewExpense,
    NewReport,
    Report,
    utcnow,
)
from ledger.models.series import SeriesPlan, SeriesResult
from ledger.services.storage.interface import (
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage with the same semantics as SqlLedgerStorage."""

    def __init__(self):
        self._categories: dict[int, Category] = {}
        self._incomes: dict[int, MonthlyIncome] = {}
        self._expenses: dict[int, Expense] = {}
        self._reports: dict[int, Report] = {}
        self._ids = count(1)

    def _next_id(self) -> int:
        return next(self._ids)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        snapshot = copy.deepcopy(
            (self._categories, self._incomes, self._expenses, self._reports)
        )
        try:
            yield
        except Exception:
            self._categories, self._incomes, self._expenses, self._reports = snapshot
            raise

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def list_categories(self, user_id: int) -> list[Category]:
        rows = [c for c in self._categories.values() if c.user_id == user_id]
        return sorted(rows, key=lambda c: (c.created_at, c.id))

    async def create_category(self, category: NewCategory) -> Category:
        row = Category(id=self._next_id(), created_at=utcnow(), **category.model_dump())
        self._categories[row.id] = row
        return row

    async def delete_category(self, user_id: int, category_id: int) -> bool:
        row = self._categories.get(category_id)
        if row is None or row.user_id != user_id:
            return False
        del self._categories[category_id]
        return True

    # ------------------------------------------------------------------
    # Monthly income
    # ------------------------------------------------------------------

    def _find_income(self, user_id: int, year: int, month: int) -> Optional[MonthlyIncome]:
        for row in self._incomes.values():
            if (row.user_id, row.year, row.month) == (user_id, year, month):
                return row
        return None

    async def get_monthly_income(
        self,
        user_id: int,
        year: int,
        month: int,
    ) -> Optional[MonthlyIncome]:
        return self._find_income(user_id, year, month)

    def _upsert_income(self, income: IncomeUpsert) -> MonthlyIncome:
        now = utcnow()
        existing = self._find_income(income.user_id, income.year, income.month)
        if existing is not None:
            row = existing.model_copy(update={
                "amount": income.amount,
                "description": income.description,
                "updated_at": now,
            })
        else:
            row = MonthlyIncome(
                id=self._next_id(),
                created_at=now,
                updated_at=now,
                **income.model_dump(),
            )
        self._incomes[row.id] = row
        return row

    async def upsert_monthly_income(self, income: IncomeUpsert) -> MonthlyIncome:
        return self._upsert_income(income)

    async def upsert_monthly_incomes(
        self,
        incomes: list[IncomeUpsert],
    ) -> list[MonthlyIncome]:
        with self._transaction():
            return [self._upsert_income(income) for income in incomes]

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def list_expenses(
        self,
        user_id: int,
        year: int,
        month: int,
        category_id: Optional[int] = None,
    ) -> list[Expense]:
        rows = [
            e for e in self._expenses.values()
            if (e.user_id, e.year, e.month) == (user_id, year, month)
            and (category_id is None or e.category_id == category_id)
        ]
        return sorted(rows, key=lambda e: (e.created_at, e.id), reverse=True)

    async def list_expenses_by_group(
        self,
        user_id: int,
        group_id: str,
    ) -> list[Expense]:
        rows = [
            e for e in self._expenses.values()
            if e.user_id == user_id and e.group_id == group_id
        ]
        return sorted(rows, key=lambda e: (e.year, e.month, e.id))

    async def get_expense(self, user_id: int, expense_id: int) -> Optional[Expense]:
        row = self._expenses.get(expense_id)
        if row is None or row.user_id != user_id:
            return None
        return row

    def _insert_expense(self, expense: NewExpense) -> Expense:
        now = utcnow()
        row = Expense(id=self._next_id(), created_at=now, updated_at=now, **expense.model_dump())
        self._expenses[row.id] = row
        return row

    def _require_expense(self, user_id: int, expense_id: int) -> Expense:
        row = self._expenses.get(expense_id)
        if row is None or row.user_id != user_id:
            raise NotFoundError(f"Expense {expense_id} not found")
        return row

    def _update_expense(self, user_id: int, expense_id: int, changes: ExpenseUpdate) -> Expense:
        row = self._require_expense(user_id, expense_id)
        updated = row.model_copy(update={**changes.changes(), "updated_at": utcnow()})
        self._expenses[expense_id] = updated
        return updated

    async def create_expense(self, expense: NewExpense) -> Expense:
        return self._insert_expense(expense)

    async def update_expense(
        self,
        user_id: int,
        expense_id: int,
        changes: ExpenseUpdate,
    ) -> Expense:
        return self._update_expense(user_id, expense_id, changes)

    async def delete_expense(self, user_id: int, expense_id: int) -> bool:
        if await self.get_expense(user_id, expense_id) is None:
            return False
        del self._expenses[expense_id]
        return True

    async def set_expenses_paid(
        self,
        user_id: int,
        expense_ids: list[int],
        paid: bool,
    ) -> int:
        now = utcnow()
        updated = 0
        for expense_id in set(expense_ids):
            row = self._expenses.get(expense_id)
            if row is None or row.user_id != user_id:
                continue
            self._expenses[expense_id] = row.model_copy(update={"paid": paid, "updated_at": now})
            updated += 1
        return updated

    async def apply_expense_plan(self, user_id: int, plan: SeriesPlan) -> SeriesResult:
        with self._transaction():
            for delete in plan.deletes:
                self._require_expense(user_id, delete.expense_id)
                del self._expenses[delete.expense_id]

            for planned in plan.updates:
                self._update_expense(user_id, planned.expense_id, planned.changes)

            created = [
                self._insert_expense(create.to_new_expense(user_id))
                for create in plan.creates
            ]

        return SeriesResult(
            group_id=plan.group_id,
            created=created,
            updated=plan.update_count,
            deleted=plan.delete_count,
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def list_reports(self, user_id: int) -> list[Report]:
        rows = [r for r in self._reports.values() if r.user_id == user_id]
        return sorted(rows, key=lambda r: (r.year, r.month, r.id), reverse=True)

    async def get_report(self, user_id: int, year: int, month: int) -> Optional[Report]:
        rows = [
            r for r in self._reports.values()
            if (r.user_id, r.year, r.month) == (user_id, year, month)
        ]
        if not rows:
            return None
        return max(rows, key=lambda r: (r.created_at, r.id))

    async def create_report(self, report: NewReport) -> Report:
        row = Report(id=self._next_id(), created_at=utcnow(), **report.model_dump())
        self._reports[row.id] = row
        return row

    async def delete_report(self, user_id: int, report_id: int) -> bool:
        row = self._reports.get(report_id)
        if row is None or row.user_id != user_id:
            return False
        del self._reports[report_id]
        return True
