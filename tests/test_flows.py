"""
Integration tests for the orchestrator flows.

Flows run over the in-memory store with a recording audit sink and a
fake object store; no external service is contacted.
"""

import asyncio
import base64
import logging
from decimal import Decimal

import pytest

from ledger.audit import configure_logging
from ledger.models.finance import ExpenseType, ExpenseUpdate
from ledger.models.series import MonthKey
from ledger.orchestrator import create_app_components
from ledger.services.reports import ObjectStoreError
from ledger.services.storage import InMemoryLedgerStorage, NotFoundError
from ledger.validation import InvalidRangeError, LedgerValidationError


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def user(components):
    return components.default_user


class TestCategoryFlow:
    """Tests for category management."""

    def test_create_applies_defaults(self, components, user, audit_storage):
        category = run(components.categories.create(user, "  Rent  "))
        assert category.name == "Rent"
        assert category.icon == "receipt"
        assert category.color == "#6366f1"
        assert audit_storage.types() == ["category_created"]

    def test_create_rejects_blank_name(self, components, user, audit_storage):
        with pytest.raises(LedgerValidationError):
            run(components.categories.create(user, "   "))
        assert audit_storage.types() == ["validation_failed"]
        assert run(components.categories.list_for_user(user)) == []

    def test_list_unique_collapses_duplicates(self, components, user):
        run(components.categories.create(user, "Food"))
        run(components.categories.create(user, "food"))
        assert len(run(components.categories.list_for_user(user))) == 2
        assert len(run(components.categories.list_unique(user))) == 1

    def test_delete(self, components, user):
        category = run(components.categories.create(user, "Rent"))
        assert run(components.categories.delete(user, category.id)) is True
        assert run(components.categories.delete(user, category.id)) is False


class TestIncomeFlow:
    """Tests for income upserts."""

    def test_upsert_is_idempotent(self, components, user):
        run(components.income.upsert(user, 2024, 1, "1000"))
        run(components.income.upsert(user, 2024, 1, "1000"))
        income = run(components.income.get(user, 2024, 1))
        assert income.amount == Decimal("1000.00")

    def test_upsert_rejects_bad_amount(self, components, user, audit_storage):
        with pytest.raises(LedgerValidationError):
            run(components.income.upsert(user, 2024, 1, "abc"))
        assert audit_storage.types() == ["validation_failed"]

    def test_upsert_range(self, components, user, audit_storage):
        incomes = run(components.income.upsert_range(
            user, MonthKey(2024, 11), MonthKey(2025, 2), "2500", "Salary",
        ))
        assert [(i.year, i.month) for i in incomes] == [(2024, 11), (2024, 12), (2025, 1), (2025, 2)]
        assert run(components.income.get(user, 2025, 1)).description == "Salary"
        assert audit_storage.types() == ["income_range_upserted"]

    def test_upsert_range_rejects_inverted_range(self, components, user):
        with pytest.raises(InvalidRangeError):
            run(components.income.upsert_range(user, MonthKey(2024, 5), MonthKey(2024, 1), "1"))
        assert run(components.income.get(user, 2024, 1)) is None


class TestExpenseFlow:
    """Tests for single expenses and paid status."""

    def test_create_with_new_category_name(self, components, user, audit_storage):
        expense = run(components.expenses.create(
            user, 2024, 3, ExpenseType.VARIABLE, "12.50", category_name="Coffee",
        ))
        categories = run(components.categories.list_for_user(user))
        assert expense.category_id == categories[0].id
        assert categories[0].name == "Coffee"
        assert audit_storage.types() == ["category_created", "expense_created"]
        # one user action shares one correlation id
        assert len({e.correlation_id for e in audit_storage.events}) == 1

    def test_create_requires_category(self, components, user):
        with pytest.raises(LedgerValidationError, match="Category ID or name is required"):
            run(components.expenses.create(user, 2024, 3, ExpenseType.VARIABLE, "1"))

    def test_create_bad_month_leaves_no_category(self, components, user, audit_storage):
        with pytest.raises(LedgerValidationError, match="Month must be between 1 and 12"):
            run(components.expenses.create(
                user, 2025, 13, ExpenseType.VARIABLE, "5", category_name="Food",
            ))
        assert run(components.categories.list_for_user(user)) == []
        assert audit_storage.types() == ["validation_failed"]

    def test_update_and_get(self, components, user):
        expense = run(components.expenses.create(
            user, 2024, 3, ExpenseType.VARIABLE, "1", category_id=1,
        ))
        run(components.expenses.update(user, expense.id, ExpenseUpdate(description="Lunch")))
        assert run(components.expenses.get(user, expense.id)).description == "Lunch"

    def test_get_missing(self, components, user):
        with pytest.raises(NotFoundError):
            run(components.expenses.get(user, 404))

    def test_set_paid(self, components, user, audit_storage):
        a = run(components.expenses.create(user, 2024, 3, ExpenseType.FIXED, "1", category_id=1))
        b = run(components.expenses.create(user, 2024, 3, ExpenseType.FIXED, "1", category_id=1))

        updated = run(components.expenses.set_paid(user, [a.id, b.id, 999], True))
        assert updated == 2
        assert all(e.paid for e in run(components.expenses.list_for_period(user, 2024, 3)))
        assert audit_storage.types()[-1] == "paid_status_updated"

    def test_set_paid_requires_boolean(self, components, user):
        with pytest.raises(LedgerValidationError):
            run(components.expenses.set_paid(user, [1], "yes"))


class TestSeriesFlow:
    """Tests for fixed-expense series over a store."""

    def _create(self, components, user, start, end, amount="100"):
        return run(components.expenses.create_series(
            user,
            expense_type=ExpenseType.FIXED,
            amount=amount,
            start=start,
            end=end,
            category_id=1,
            description="Rent",
        ))

    def test_create_series(self, components, user, audit_storage):
        result = self._create(components, user, MonthKey(2024, 1), MonthKey(2024, 3))

        assert len(result.created) == 3
        assert result.group_id.startswith("grp_")
        group = run(components.expenses.list_group(user, result.group_id))
        assert [(e.year, e.month) for e in group] == [(2024, 1), (2024, 2), (2024, 3)]
        assert audit_storage.types() == ["series_applied"]

    def test_create_series_inverted_range_writes_nothing(self, components, user):
        with pytest.raises(InvalidRangeError):
            self._create(components, user, MonthKey(2024, 3), MonthKey(2024, 1))
        assert run(components.expenses.list_for_period(user, 2024, 1)) == []

    def test_edit_extends_and_keeps_paid(self, components, user):
        result = self._create(components, user, MonthKey(2024, 1), MonthKey(2024, 2))
        first = result.created[0]
        run(components.expenses.set_paid(user, [first.id], True))

        run(components.expenses.update_series(
            user,
            expense_id=first.id,
            category_id=1,
            expense_type=ExpenseType.FIXED,
            amount="120",
            start=MonthKey(2024, 1),
            end=MonthKey(2024, 4),
            description="Rent",
        ))

        group = run(components.expenses.list_group(user, result.group_id))
        assert [(e.month, e.amount, e.paid) for e in group] == [
            (1, Decimal("120.00"), True),
            (2, Decimal("120.00"), False),
            (3, Decimal("120.00"), False),
            (4, Decimal("120.00"), False),
        ]

    def test_edit_shrinks_series(self, components, user):
        result = self._create(components, user, MonthKey(2024, 1), MonthKey(2024, 4))
        anchor = result.created[1]

        edit = run(components.expenses.update_series(
            user,
            expense_id=anchor.id,
            category_id=1,
            expense_type=ExpenseType.FIXED,
            amount="100",
            start=MonthKey(2024, 2),
            end=MonthKey(2024, 3),
        ))
        assert edit.deleted == 2
        group = run(components.expenses.list_group(user, result.group_id))
        assert [e.month for e in group] == [2, 3]

    def test_edit_to_variable_collapses_series(self, components, user):
        result = self._create(components, user, MonthKey(2024, 1), MonthKey(2024, 3))
        anchor = result.created[0]

        run(components.expenses.update_series(
            user,
            expense_id=anchor.id,
            category_id=1,
            expense_type=ExpenseType.VARIABLE,
            amount="30",
        ))

        assert run(components.expenses.list_group(user, result.group_id)) == []
        remaining = run(components.expenses.get(user, anchor.id))
        assert remaining.group_id is None
        assert remaining.type == ExpenseType.VARIABLE
        assert run(components.expenses.list_for_period(user, 2024, 2)) == []

    def test_edit_defaults_to_anchor_month(self, components, user):
        expense = run(components.expenses.create(
            user, 2024, 6, ExpenseType.FIXED, "10", category_id=1,
        ))
        result = run(components.expenses.update_series(
            user,
            expense_id=expense.id,
            category_id=1,
            expense_type=ExpenseType.FIXED,
            amount="15",
        ))
        assert result.group_id is None
        assert result.updated == 1
        assert run(components.expenses.get(user, expense.id)).amount == Decimal("15.00")

    def test_edit_missing_expense(self, components, user):
        with pytest.raises(NotFoundError):
            run(components.expenses.update_series(
                user,
                expense_id=404,
                category_id=1,
                expense_type=ExpenseType.FIXED,
                amount="1",
            ))


class TestSummaryFlow:
    """Tests for the summary through the flows."""

    def test_summary_after_writes(self, components, user):
        rent = run(components.categories.create(user, "Rent"))
        run(components.income.upsert(user, 2024, 1, "3000"))
        run(components.expenses.create(user, 2024, 1, ExpenseType.FIXED, "1000", category_id=rent.id))
        run(components.expenses.create(user, 2024, 1, ExpenseType.VARIABLE, "200", category_name="Food"))

        summary = run(components.summary.summary(user, 2024, 1))
        assert summary.total_income == 3000.0
        assert summary.fixed_expenses == 1000.0
        assert summary.variable_expenses == 200.0
        assert summary.balance == 1800.0
        assert [b.category_name for b in summary.by_category] == ["Rent", "Food"]


class TestReportFlow:
    """Tests for report upload and metadata."""

    def _content(self, data=b"%PDF-1.4 monthly report"):
        return base64.b64encode(data).decode()

    def test_generate_uploads_and_records(self, components, user, object_store, audit_storage):
        report = run(components.reports.generate(user, 2024, 2, self._content()))

        assert report.file_key in object_store.objects
        assert report.file_key.startswith("reports/1/report-2024-02-")
        assert report.file_url.endswith(report.file_key)
        assert run(components.reports.get(user, 2024, 2)).id == report.id
        assert audit_storage.types() == ["report_generated"]

    def test_generate_rejects_bad_content(self, components, user, object_store):
        with pytest.raises(LedgerValidationError):
            run(components.reports.generate(user, 2024, 2, "%%%"))
        assert object_store.objects == {}

    def test_generate_rejects_bad_month(self, components, user):
        with pytest.raises(LedgerValidationError):
            run(components.reports.generate(user, 2024, 13, self._content()))

    def test_upload_failure_stores_no_row(self, components, user, object_store, audit_storage):
        object_store.fail = True
        with pytest.raises(ObjectStoreError):
            run(components.reports.generate(user, 2024, 2, self._content()))
        assert run(components.reports.list_for_user(user)) == []
        assert audit_storage.types() == ["external_service_error"]

    def test_delete(self, components, user):
        report = run(components.reports.generate(user, 2024, 2, self._content()))
        assert run(components.reports.delete(user, report.id)) is True
        assert run(components.reports.list_for_user(user)) == []


class TestComponentFactory:
    """Tests for create_app_components."""

    def test_log_level_comes_from_settings(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        try:
            create_app_components(storage=InMemoryLedgerStorage(), use_external_services=False)
            assert logging.getLogger().level == logging.WARNING
        finally:
            configure_logging("INFO")
