"""
Tests for Personal Ledger

Test strategy:
1. Unit tests for individual components (models, validators, planners)
2. Integration tests for flows over the in-memory and SQLite stores
3. No real external calls in tests (fakes for the object store and audit sink)
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from ledger.models.finance import (
    Category,
    CategoryBreakdown,
    Expense,
    ExpenseType,
    ExpenseUpdate,
    IncomeUpsert,
    MonthlySummary,
    NewCategory,
    NewExpense,
    UserContext,
    unique_categories,
)
from ledger.models.series import MonthKey, PlannedCreate, SeriesPlan
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def make_expense(**overrides) -> Expense:
    values = dict(
        id=1,
        user_id=1,
        category_id=1,
        year=2024,
        month=3,
        type=ExpenseType.FIXED,
        amount=Decimal("10.00"),
    )
    values.update(overrides)
    return Expense(**values)


class TestFinanceModels:
    """Tests for ledger Pydantic models."""

    def test_amount_is_quantized_to_cents(self):
        """Amounts are stored with two decimal places."""
        expense = make_expense(amount="12.345")
        assert expense.amount == Decimal("12.35")

    def test_amount_serializes_as_decimal_string(self):
        """The wire format keeps amounts exact."""
        wire = make_expense(amount="1500").to_wire()
        assert wire["amount"] == "1500.00"

    def test_wire_format_uses_camel_case(self):
        """Responses use camelCase keys."""
        wire = make_expense(group_id="grp_1").to_wire()
        assert wire["categoryId"] == 1
        assert wire["groupId"] == "grp_1"
        assert wire["userId"] == 1
        assert "category_id" not in wire

    def test_models_accept_both_spellings(self):
        """camelCase and snake_case keys are both accepted on input."""
        a = NewCategory.model_validate({"userId": 1, "name": "Rent"})
        b = NewCategory.model_validate({"user_id": 1, "name": "Rent"})
        assert a == b

    def test_new_expense_rejects_negative_amount(self):
        """Negative amounts are rejected."""
        with pytest.raises(ValueError):
            NewExpense(
                user_id=1,
                category_id=1,
                year=2024,
                month=1,
                type=ExpenseType.VARIABLE,
                amount=Decimal("-1"),
            )

    def test_amount_above_column_limit_is_rejected(self):
        """Amounts too large to store fail validation instead of crashing."""
        for amount in ("1e30", "10000000000"):
            with pytest.raises(ValueError):
                IncomeUpsert(user_id=1, year=2024, month=1, amount=amount)

    def test_unquantizable_amount_raises_value_error(self):
        """Quantizing a huge read-side amount surfaces as a validation error."""
        with pytest.raises(ValueError):
            make_expense(amount="1e30")

    def test_new_expense_month_bounds(self):
        """Months outside 1..12 are rejected."""
        with pytest.raises(ValueError):
            NewExpense(
                user_id=1,
                category_id=1,
                year=2024,
                month=13,
                type=ExpenseType.VARIABLE,
                amount=Decimal("1"),
            )

    def test_new_expense_description_defaults_to_empty(self):
        """A null description is stored as an empty string."""
        expense = NewExpense(
            user_id=1,
            category_id=1,
            year=2024,
            month=1,
            type=ExpenseType.VARIABLE,
            amount=Decimal("1"),
            description=None,
        )
        assert expense.description == ""

    def test_income_upsert_strips_whitespace(self):
        income = IncomeUpsert(user_id=1, year=2024, month=1, amount="100", description="  Salary  ")
        assert income.description == "Salary"

    def test_user_context_requires_positive_id(self):
        with pytest.raises(ValueError):
            UserContext(id=0)

    def test_summary_defaults(self):
        summary = MonthlySummary(year=2024, month=1)
        assert summary.total_expenses == 0.0
        assert summary.by_category == []
        assert summary.to_wire()["byCategory"] == []

    def test_category_totals_keep_duplicate_names_apart(self):
        """Two categories with the same name chart as two bars."""
        summary = MonthlySummary(
            year=2024,
            month=1,
            by_category=[
                CategoryBreakdown(category_id=1, category_name="Food", total=10.0, count=1, percentage=25.0),
                CategoryBreakdown(category_id=2, category_name="Food", total=30.0, count=2, percentage=75.0),
            ],
        )
        assert summary.category_totals() == {"Food (#1)": 10.0, "Food (#2)": 30.0}


class TestExpenseUpdate:
    """Tests for partial update payloads."""

    def test_only_provided_fields_are_written(self):
        update = ExpenseUpdate(amount="20")
        assert update.changes() == {"amount": Decimal("20.00")}

    def test_explicit_none_clears_group_id(self):
        """group_id=None is a real change; other None values are ignored."""
        update = ExpenseUpdate(group_id=None, description=None)
        assert update.changes() == {"group_id": None}

    def test_unset_group_id_is_not_written(self):
        update = ExpenseUpdate(paid=True)
        assert "group_id" not in update.changes()

    def test_camel_case_input(self):
        update = ExpenseUpdate.model_validate({"categoryId": 4, "groupId": "grp_x"})
        assert update.changes() == {"category_id": 4, "group_id": "grp_x"}


class TestCategoryHelpers:
    """Tests for display-time category deduplication."""

    def test_unique_categories_case_insensitive(self):
        categories = [
            Category(id=1, user_id=1, name="Food"),
            Category(id=2, user_id=1, name=" food "),
            Category(id=3, user_id=1, name="Rent"),
        ]
        result = unique_categories(categories)
        assert [c.id for c in result] == [1, 3]

    def test_unique_categories_empty(self):
        assert unique_categories([]) == []


class TestSeriesModels:
    """Tests for month keys and plans."""

    def test_month_key_ordering_is_calendar_ordering(self):
        assert MonthKey(2023, 12) < MonthKey(2024, 1)
        assert MonthKey(2024, 2) > MonthKey(2024, 1)

    def test_month_key_next_wraps_year(self):
        assert MonthKey(2024, 12).next() == MonthKey(2025, 1)
        assert MonthKey(2024, 5).next() == MonthKey(2024, 6)

    def test_month_key_formats(self):
        key = MonthKey(2024, 3)
        assert key.key == "2024-3"
        assert str(key) == "2024-03"

    def test_plan_counts(self):
        plan = SeriesPlan(creates=[PlannedCreate(
            year=2024,
            month=1,
            category_id=1,
            type=ExpenseType.FIXED,
            amount=Decimal("5"),
        )])
        assert plan.create_count == 1
        assert plan.update_count == 0
        assert not plan.is_empty
        assert SeriesPlan().is_empty

    def test_planned_create_to_new_expense(self):
        create = PlannedCreate(
            year=2024,
            month=2,
            group_id="grp_1",
            category_id=3,
            type=ExpenseType.FIXED,
            amount=Decimal("5"),
        )
        new = create.to_new_expense(user_id=7)
        assert new.user_id == 7
        assert new.group_id == "grp_1"
        assert new.paid is False


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            description="Expense created",
        )
        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.SERIES_APPLIED,
            description="Series applied",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "series_applied"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.INCOME_UPSERTED,
            description="Income set",
            user_id=1,
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "income_upserted"

    def test_builder_series_applied(self):
        event = AuditEventBuilder.series_applied(
            user_id=1,
            group_id="grp_1",
            created=2,
            updated=1,
            deleted=0,
        )
        assert event.event_type == AuditEventType.SERIES_APPLIED
        assert event.entity_id == "grp_1"
        assert event.details["created"] == 2
        assert event.is_user_action

    def test_builder_validation_failed_is_warning(self):
        event = AuditEventBuilder.validation_failed(
            operation="create expense",
            issues=[{"message": "Amount is required"}],
        )
        assert event.severity == AuditSeverity.WARNING
