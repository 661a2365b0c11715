"""
Series Models

A "series" is the set of per-month expense rows that share a group_id
and represent one logical recurring expense. These models describe the
plan the range materializer produces and the store applies.
"""

from typing import NamedTuple, Optional

from pydantic import Field

from ledger.models.finance import (
    Expense,
    ExpenseType,
    ExpenseUpdate,
    LedgerModel,
    NewExpense,
    NonNegativeAmount,
)


class MonthKey(NamedTuple):
    """A calendar month. Tuple ordering is calendar ordering."""
    year: int
    month: int

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month}"

    def next(self) -> "MonthKey":
        if self.month >= 12:
            return MonthKey(self.year + 1, 1)
        return MonthKey(self.year, self.month + 1)

    def __str__(self) -> str:
        return f"{self.year}-{self.month:02d}"


class SeriesTemplate(LedgerModel):
    """The field values every row of a series should carry."""
    category_id: int = Field(..., ge=1)
    type: ExpenseType
    description: str = Field(default="", max_length=255)
    amount: NonNegativeAmount


class PlannedCreate(LedgerModel):
    """A row to insert for one month."""
    year: int
    month: int = Field(..., ge=1, le=12)
    group_id: Optional[str] = None
    category_id: int
    type: ExpenseType
    description: str = ""
    amount: NonNegativeAmount
    paid: bool = False

    def to_new_expense(self, user_id: int) -> NewExpense:
        return NewExpense(
            user_id=user_id,
            category_id=self.category_id,
            year=self.year,
            month=self.month,
            group_id=self.group_id,
            paid=self.paid,
            type=self.type,
            description=self.description,
            amount=self.amount,
        )


class PlannedUpdate(LedgerModel):
    """An existing row to rewrite in place (identity and paid flag kept)."""
    expense_id: int
    year: int
    month: int
    changes: ExpenseUpdate


class PlannedDelete(LedgerModel):
    """An existing row to remove."""
    expense_id: int
    year: int
    month: int


class SeriesPlan(LedgerModel):
    """
    The create/update/delete operations that bring a series in line
    with a requested month range.

    The operations are independent of each other; the store applies
    them as one atomic unit.
    """
    group_id: Optional[str] = None
    creates: list[PlannedCreate] = Field(default_factory=list)
    updates: list[PlannedUpdate] = Field(default_factory=list)
    deletes: list[PlannedDelete] = Field(default_factory=list)

    @property
    def create_count(self) -> int:
        return len(self.creates)

    @property
    def update_count(self) -> int:
        return len(self.updates)

    @property
    def delete_count(self) -> int:
        return len(self.deletes)

    @property
    def is_empty(self) -> bool:
        return not (self.creates or self.updates or self.deletes)


class SeriesResult(LedgerModel):
    """Outcome of applying a SeriesPlan."""
    group_id: Optional[str] = None
    created: list[Expense] = Field(default_factory=list)
    updated: int = 0
    deleted: int = 0
