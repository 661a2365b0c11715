"""
Core Data Models for Personal Ledger

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to the camelCase JSON contract the dashboard client expects
4. Support the audit trail

DESIGN DECISION: Amounts are Decimal values quantized to cents and
serialized as decimal strings. They only become floats inside the
monthly aggregation, where small precision loss is accepted.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


CENT = Decimal("0.01")
# Largest value a Numeric(12, 2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _quantize_amount(value: Decimal) -> Decimal:
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount cannot be stored: {value}")


Amount = Annotated[Decimal, AfterValidator(_quantize_amount)]
NonNegativeAmount = Annotated[Decimal, Field(ge=0, le=MAX_AMOUNT), AfterValidator(_quantize_amount)]


class LedgerModel(BaseModel):
    """
    Base for every ledger model.

    Python attributes are snake_case; the wire format is camelCase.
    Both spellings are accepted on input.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using camelCase keys and decimal strings."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# ENUMS
# =============================================================================

class ExpenseType(str, Enum):
    """
    Expense kind.

    FIXED expenses repeat every month and may span a series of rows.
    VARIABLE expenses belong to a single month.
    """
    FIXED = "fixed"
    VARIABLE = "variable"


# =============================================================================
# IDENTITY
# =============================================================================

class UserContext(LedgerModel):
    """
    The identity an operation runs as.

    Passed explicitly to every flow operation instead of reading a
    global user constant.
    """
    id: int = Field(..., ge=1)
    name: str = "Open Access"
    role: str = "user"


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(LedgerModel):
    """
    An expense category.

    Names are NOT unique per user. Duplicates are only collapsed for
    display (see unique_categories).
    """
    id: int
    user_id: int
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    created_at: Optional[datetime] = None


class NewCategory(LedgerModel):
    """Fields needed to insert a category."""
    user_id: int = Field(..., ge=1)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category display name"
    )
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)


def unique_categories(categories: list[Category]) -> list[Category]:
    """
    Drop categories whose trimmed, case-insensitive name was already seen.

    Keeps the first occurrence, preserving input order.
    """
    seen: set[str] = set()
    result = []
    for category in categories:
        key = category.name.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(category)
    return result


# =============================================================================
# MONTHLY INCOME
# =============================================================================

class MonthlyIncome(LedgerModel):
    """The income recorded for one (user, year, month)."""
    id: int
    user_id: int
    year: int
    month: int
    amount: Amount
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IncomeUpsert(LedgerModel):
    """Income values to write for one period."""
    user_id: int = Field(..., ge=1)
    year: int
    month: int = Field(..., ge=1, le=12)
    amount: NonNegativeAmount
    description: Optional[str] = Field(default=None, max_length=255)


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(LedgerModel):
    """
    One expense row for one month.

    group_id links the rows of a single logical recurring expense.
    """
    id: int
    user_id: int
    category_id: int
    year: int
    month: int
    group_id: Optional[str] = None
    paid: bool = False
    type: ExpenseType
    description: str = ""
    amount: Amount
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NewExpense(LedgerModel):
    """Fields needed to insert an expense."""
    user_id: int = Field(..., ge=1)
    category_id: int = Field(..., ge=1)
    year: int
    month: int = Field(..., ge=1, le=12)
    group_id: Optional[str] = Field(default=None, max_length=64)
    paid: bool = False
    type: ExpenseType
    description: str = Field(default="", max_length=255)
    amount: NonNegativeAmount

    @field_validator("description", mode="before")
    @classmethod
    def none_description_is_empty(cls, v):
        return "" if v is None else v


class ExpenseUpdate(LedgerModel):
    """
    Partial expense update.

    Only fields that were explicitly provided are written. group_id is
    the one field that may be explicitly cleared with None.
    """
    category_id: Optional[int] = Field(default=None, ge=1)
    group_id: Optional[str] = Field(default=None, max_length=64)
    paid: Optional[bool] = None
    type: Optional[ExpenseType] = None
    description: Optional[str] = Field(default=None, max_length=255)
    amount: Optional[NonNegativeAmount] = None

    def changes(self) -> dict[str, Any]:
        """Column values to write, keyed by attribute name."""
        provided = self.model_dump(exclude_unset=True)
        return {
            key: value
            for key, value in provided.items()
            if value is not None or key == "group_id"
        }


# =============================================================================
# REPORTS
# =============================================================================

class Report(LedgerModel):
    """Metadata of a generated PDF stored in the object store."""
    id: int
    user_id: int
    year: int
    month: int
    file_url: str
    file_key: str
    created_at: Optional[datetime] = None


class NewReport(LedgerModel):
    """Fields needed to insert a report row."""
    user_id: int = Field(..., ge=1)
    year: int
    month: int = Field(..., ge=1, le=12)
    file_url: str = Field(..., min_length=1)
    file_key: str = Field(..., min_length=1)


# =============================================================================
# SUMMARY
# =============================================================================

class CategoryBreakdown(LedgerModel):
    """Spending of one category within a month."""
    category_id: int
    category_name: str
    category_icon: Optional[str] = None
    category_color: Optional[str] = None
    total: float
    count: int = Field(ge=0)
    percentage: float = Field(ge=0.0, le=100.0)


class MonthlySummary(LedgerModel):
    """
    Derived view of one (user, year, month).

    Invariants:
    - fixed_expenses + variable_expenses == total_expenses
    - balance == total_income - total_expenses
    """
    year: int
    month: int
    total_income: float = 0.0
    fixed_expenses: float = 0.0
    variable_expenses: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0
    by_category: list[CategoryBreakdown] = Field(default_factory=list)
    expenses_count: int = 0

    def category_totals(self) -> dict[str, float]:
        """Totals per category for charting, labelled by name and id since names may repeat."""
        return {
            f"{item.category_name} (#{item.category_id})": item.total
            for item in self.by_category
        }


class DashboardPayload(LedgerModel):
    """Everything the dashboard page needs in one response."""
    summary: MonthlySummary
    expenses: list[Expense] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
