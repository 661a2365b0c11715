"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the same flows against PostgreSQL, SQLite or plain memory
2. Keep business logic decoupled from the SQL layer
3. Put atomicity guarantees behind one method (apply_expense_plan)

Every read and write is keyed by user id. The interface is intentionally
small - just the operations the ledger needs.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from ledger.models.audit import AuditEvent
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
)
from ledger.models.series import SeriesPlan, SeriesResult


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Orderings every implementation must honor:
    - categories: created_at ascending
    - expenses of a period: created_at descending
    - expenses of a group: (year, month) ascending
    - reports: year descending, then month descending
    """

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_categories(self, user_id: int) -> list[Category]:
        """All categories of a user, oldest first."""
        pass

    @abstractmethod
    async def create_category(self, category: NewCategory) -> Category:
        """
        Insert a category.

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def delete_category(self, user_id: int, category_id: int) -> bool:
        """
        Delete a category. Expenses pointing at it are left untouched.

        Returns:
            True if a row was deleted
        """
        pass

    # ------------------------------------------------------------------
    # Monthly income
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_monthly_income(
        self,
        user_id: int,
        year: int,
        month: int,
    ) -> Optional[MonthlyIncome]:
        """The income row of a period, or None."""
        pass

    @abstractmethod
    async def upsert_monthly_income(self, income: IncomeUpsert) -> MonthlyIncome:
        """
        Insert or overwrite the income of one period atomically.

        At most one row exists per (user, year, month) afterwards.
        """
        pass

    @abstractmethod
    async def upsert_monthly_incomes(
        self,
        incomes: list[IncomeUpsert],
    ) -> list[MonthlyIncome]:
        """
        Upsert several periods in one transaction.

        Either every period is written or none is.
        """
        pass

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_expenses(
        self,
        user_id: int,
        year: int,
        month: int,
        category_id: Optional[int] = None,
    ) -> list[Expense]:
        """Expenses of a period, newest first, optionally for one category."""
        pass

    @abstractmethod
    async def list_expenses_by_group(
        self,
        user_id: int,
        group_id: str,
    ) -> list[Expense]:
        """Every row of a series, in calendar order."""
        pass

    @abstractmethod
    async def get_expense(self, user_id: int, expense_id: int) -> Optional[Expense]:
        """One expense, or None."""
        pass

    @abstractmethod
    async def create_expense(self, expense: NewExpense) -> Expense:
        """Insert a single expense row."""
        pass

    @abstractmethod
    async def update_expense(
        self,
        user_id: int,
        expense_id: int,
        changes: ExpenseUpdate,
    ) -> Expense:
        """
        Write only the fields provided in changes.

        Raises:
            NotFoundError: If the expense doesn't exist
        """
        pass

    @abstractmethod
    async def delete_expense(self, user_id: int, expense_id: int) -> bool:
        """
        Delete one expense.

        Returns:
            True if a row was deleted
        """
        pass

    @abstractmethod
    async def set_expenses_paid(
        self,
        user_id: int,
        expense_ids: list[int],
        paid: bool,
    ) -> int:
        """
        Set the paid flag on every listed expense of the user.

        Returns:
            Number of rows updated
        """
        pass

    @abstractmethod
    async def apply_expense_plan(self, user_id: int, plan: SeriesPlan) -> SeriesResult:
        """
        Apply every create, update and delete of a plan in one transaction.

        Either the whole plan commits or nothing changes.

        Raises:
            NotFoundError: If a planned update or delete targets a missing row
            StorageError: If the transaction fails
        """
        pass

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_reports(self, user_id: int) -> list[Report]:
        """Reports of a user, most recent period first."""
        pass

    @abstractmethod
    async def get_report(self, user_id: int, year: int, month: int) -> Optional[Report]:
        """The most recently created report of a period, or None."""
        pass

    @abstractmethod
    async def create_report(self, report: NewReport) -> Report:
        """Insert report metadata."""
        pass

    @abstractmethod
    async def delete_report(self, user_id: int, report_id: int) -> bool:
        """
        Delete report metadata. The stored blob is left in place.

        Returns:
            True if a row was deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one user action, in chronological order."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


def wrap_storage_error(action: str, error: Exception) -> StorageError:
    """
    Build the error raised for a failed store call.

    The message is a generic description followed by the underlying one,
    e.g. "Failed to list expenses: connection refused".
    """
    return StorageError(f"Failed to {action}: {error}")
