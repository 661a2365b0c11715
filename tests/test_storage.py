"""
Storage tests.

Every test runs against both the in-memory store and the SQLAlchemy
store on an in-memory SQLite database, so the two stay interchangeable.
"""

import asyncio
from decimal import Decimal

import pytest

from ledger.models.finance import (
    ExpenseType,
    ExpenseUpdate,
    IncomeUpsert,
    NewCategory,
    NewExpense,
    NewReport,
)
from ledger.models.series import (
    PlannedCreate,
    PlannedDelete,
    PlannedUpdate,
    SeriesPlan,
)
from ledger.services.storage import (
    InMemoryLedgerStorage,
    NotFoundError,
    SqlLedgerStorage,
    StorageError,
)


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    if request.param == "memory":
        yield InMemoryLedgerStorage()
        return
    store = SqlLedgerStorage("sqlite://")
    store.create_schema()
    yield store
    store.dispose()


def run(coro):
    return asyncio.run(coro)


def new_expense(month=1, amount="10", group_id=None, user_id=1, category_id=1, **extra):
    return NewExpense(
        user_id=user_id,
        category_id=category_id,
        year=2024,
        month=month,
        group_id=group_id,
        type=extra.pop("type", ExpenseType.FIXED),
        amount=Decimal(amount),
        **extra,
    )


class TestCategories:
    """Tests for category rows."""

    def test_create_and_list_in_creation_order(self, storage):
        run(storage.create_category(NewCategory(user_id=1, name="Rent")))
        run(storage.create_category(NewCategory(user_id=1, name="Food", icon="utensils")))
        run(storage.create_category(NewCategory(user_id=2, name="Other user")))

        categories = run(storage.list_categories(1))
        assert [c.name for c in categories] == ["Rent", "Food"]
        assert categories[1].icon == "utensils"

    def test_duplicate_names_are_allowed(self, storage):
        run(storage.create_category(NewCategory(user_id=1, name="Rent")))
        run(storage.create_category(NewCategory(user_id=1, name="Rent")))
        assert len(run(storage.list_categories(1))) == 2

    def test_delete_is_scoped_to_user(self, storage):
        category = run(storage.create_category(NewCategory(user_id=1, name="Rent")))
        assert run(storage.delete_category(2, category.id)) is False
        assert run(storage.delete_category(1, category.id)) is True
        assert run(storage.list_categories(1)) == []

    def test_delete_keeps_expenses(self, storage):
        category = run(storage.create_category(NewCategory(user_id=1, name="Rent")))
        run(storage.create_expense(new_expense(category_id=category.id)))
        run(storage.delete_category(1, category.id))
        assert len(run(storage.list_expenses(1, 2024, 1))) == 1


class TestIncome:
    """Tests for the income upsert."""

    def test_get_missing_income(self, storage):
        assert run(storage.get_monthly_income(1, 2024, 1)) is None

    def test_upsert_twice_leaves_one_row(self, storage):
        first = run(storage.upsert_monthly_income(
            IncomeUpsert(user_id=1, year=2024, month=1, amount="1000", description="Salary")
        ))
        second = run(storage.upsert_monthly_income(
            IncomeUpsert(user_id=1, year=2024, month=1, amount="1200")
        ))

        assert first.id == second.id
        assert second.amount == Decimal("1200.00")
        assert second.description is None
        stored = run(storage.get_monthly_income(1, 2024, 1))
        assert stored.amount == Decimal("1200.00")

    def test_batch_upsert(self, storage):
        incomes = run(storage.upsert_monthly_incomes([
            IncomeUpsert(user_id=1, year=2024, month=m, amount="500") for m in (1, 2, 3)
        ]))
        assert [i.month for i in incomes] == [1, 2, 3]
        assert run(storage.get_monthly_income(1, 2024, 3)).amount == Decimal("500.00")


class TestExpenses:
    """Tests for expense rows."""

    def test_list_filters_by_period_user_and_category(self, storage):
        run(storage.create_expense(new_expense(month=1, category_id=1)))
        run(storage.create_expense(new_expense(month=1, category_id=2)))
        run(storage.create_expense(new_expense(month=2, category_id=1)))
        run(storage.create_expense(new_expense(month=1, user_id=2)))

        assert len(run(storage.list_expenses(1, 2024, 1))) == 2
        assert len(run(storage.list_expenses(1, 2024, 1, category_id=2))) == 1
        assert run(storage.list_expenses(1, 2024, 13)) == []

    def test_list_newest_first(self, storage):
        first = run(storage.create_expense(new_expense()))
        second = run(storage.create_expense(new_expense()))
        ids = [e.id for e in run(storage.list_expenses(1, 2024, 1))]
        assert ids == [second.id, first.id]

    def test_list_by_group_in_calendar_order(self, storage):
        run(storage.create_expense(new_expense(month=3, group_id="grp_a")))
        run(storage.create_expense(new_expense(month=1, group_id="grp_a")))
        run(storage.create_expense(new_expense(month=2, group_id="grp_b")))

        rows = run(storage.list_expenses_by_group(1, "grp_a"))
        assert [r.month for r in rows] == [1, 3]

    def test_update_writes_only_provided_fields(self, storage):
        expense = run(storage.create_expense(new_expense(description="Rent", group_id="grp_a")))
        updated = run(storage.update_expense(1, expense.id, ExpenseUpdate(amount="25")))

        assert updated.amount == Decimal("25.00")
        assert updated.description == "Rent"
        assert updated.group_id == "grp_a"

    def test_update_can_clear_group_id(self, storage):
        expense = run(storage.create_expense(new_expense(group_id="grp_a")))
        updated = run(storage.update_expense(1, expense.id, ExpenseUpdate(group_id=None)))
        assert updated.group_id is None

    def test_update_missing_expense(self, storage):
        with pytest.raises(NotFoundError):
            run(storage.update_expense(1, 999, ExpenseUpdate(paid=True)))

    def test_update_other_users_expense(self, storage):
        expense = run(storage.create_expense(new_expense(user_id=2)))
        with pytest.raises(NotFoundError):
            run(storage.update_expense(1, expense.id, ExpenseUpdate(paid=True)))

    def test_delete(self, storage):
        expense = run(storage.create_expense(new_expense()))
        assert run(storage.delete_expense(1, expense.id)) is True
        assert run(storage.delete_expense(1, expense.id)) is False
        assert run(storage.get_expense(1, expense.id)) is None

    def test_set_paid_counts_updated_rows(self, storage):
        a = run(storage.create_expense(new_expense()))
        b = run(storage.create_expense(new_expense()))
        other = run(storage.create_expense(new_expense(user_id=2)))

        updated = run(storage.set_expenses_paid(1, [a.id, b.id, other.id, 999], True))
        assert updated == 2
        assert run(storage.get_expense(1, a.id)).paid is True
        assert run(storage.get_expense(2, other.id)).paid is False


class TestExpensePlans:
    """Tests for atomic plan application."""

    def test_apply_plan(self, storage):
        keep = run(storage.create_expense(new_expense(month=1, group_id="grp_a", paid=True)))
        drop = run(storage.create_expense(new_expense(month=2, group_id="grp_a")))

        plan = SeriesPlan(
            group_id="grp_a",
            updates=[PlannedUpdate(
                expense_id=keep.id, year=2024, month=1,
                changes=ExpenseUpdate(amount="50", group_id="grp_a"),
            )],
            deletes=[PlannedDelete(expense_id=drop.id, year=2024, month=2)],
            creates=[PlannedCreate(
                year=2024, month=3, group_id="grp_a", category_id=1,
                type=ExpenseType.FIXED, amount="50",
            )],
        )
        result = run(storage.apply_expense_plan(1, plan))

        assert result.updated == 1
        assert result.deleted == 1
        assert [(e.month, e.paid) for e in result.created] == [(3, False)]

        rows = run(storage.list_expenses_by_group(1, "grp_a"))
        assert [(r.month, r.amount, r.paid) for r in rows] == [
            (1, Decimal("50.00"), True),
            (3, Decimal("50.00"), False),
        ]

    def test_failed_plan_changes_nothing(self, storage):
        existing = run(storage.create_expense(new_expense(month=1, group_id="grp_a")))

        plan = SeriesPlan(
            group_id="grp_a",
            deletes=[PlannedDelete(expense_id=existing.id, year=2024, month=1)],
            updates=[PlannedUpdate(
                expense_id=999, year=2024, month=2,
                changes=ExpenseUpdate(amount="1"),
            )],
            creates=[PlannedCreate(
                year=2024, month=3, group_id="grp_a", category_id=1,
                type=ExpenseType.FIXED, amount="50",
            )],
        )
        with pytest.raises(StorageError):
            run(storage.apply_expense_plan(1, plan))

        rows = run(storage.list_expenses_by_group(1, "grp_a"))
        assert [r.id for r in rows] == [existing.id]


class TestReports:
    """Tests for report metadata rows."""

    def test_list_newest_period_first(self, storage):
        for year, month in [(2024, 1), (2024, 3), (2023, 12)]:
            run(storage.create_report(NewReport(
                user_id=1, year=year, month=month,
                file_url=f"https://files/{year}-{month}.pdf",
                file_key=f"reports/1/{year}-{month}.pdf",
            )))
        reports = run(storage.list_reports(1))
        assert [(r.year, r.month) for r in reports] == [(2024, 3), (2024, 1), (2023, 12)]

    def test_get_latest_for_period(self, storage):
        run(storage.create_report(NewReport(
            user_id=1, year=2024, month=1, file_url="https://files/a.pdf", file_key="a",
        )))
        latest = run(storage.create_report(NewReport(
            user_id=1, year=2024, month=1, file_url="https://files/b.pdf", file_key="b",
        )))
        assert run(storage.get_report(1, 2024, 1)).id == latest.id
        assert run(storage.get_report(1, 2024, 2)) is None

    def test_delete(self, storage):
        report = run(storage.create_report(NewReport(
            user_id=1, year=2024, month=1, file_url="https://files/a.pdf", file_key="a",
        )))
        assert run(storage.delete_report(2, report.id)) is False
        assert run(storage.delete_report(1, report.id)) is True
        assert run(storage.list_reports(1)) == []
