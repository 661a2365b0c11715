"""
Relational Storage Implementation (SQLAlchemy)

DESIGN DECISION: All ledger rows live in one relational store reached
through SQLAlchemy. Any SQLAlchemy URL works for reads and plain writes;
the atomic income upsert needs a dialect with INSERT .. ON CONFLICT,
which covers PostgreSQL and SQLite.

Guarantees on top of the plain CRUD calls:
1. One income row per (user, year, month), held by a unique constraint
2. A series plan is applied in a single transaction
3. A batch of income upserts is applied in a single transaction

TRADEOFFS:
- Calls are synchronous inside async methods. Per-user row counts are
  small, so the event loop is never blocked for long.
- Category deletes don't cascade. Orphaned expenses keep counting in
  the monthly totals.
"""

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional

import structlog
from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger.config import DatabaseSettings
from ledger.models.finance import (
    Category,
    Expense,
    ExpenseType,
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
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    wrap_storage_error,
)


logger = structlog.get_logger(__name__)


# =============================================================================
# TABLES
# =============================================================================

class Base(DeclarativeBase):
    pass


class CategoryRow(Base):
    __tablename__ = "categories"

    __table_args__ = (
        Index("idx_categories_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(50))
    color: Mapped[Optional[str]] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class IncomeRow(Base):
    __tablename__ = "monthly_income"

    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", name="uq_income_user_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class ExpenseRow(Base):
    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expenses_user_period", "user_id", "year", "month"),
        Index("idx_expenses_group", "group_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    group_id: Mapped[Optional[str]] = mapped_column(String(64))
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    type: Mapped[ExpenseType] = mapped_column(
        SAEnum(
            ExpenseType,
            native_enum=False,
            length=20,
            values_callable=lambda kinds: [kind.value for kind in kinds],
        ),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class ReportRow(Base):
    __tablename__ = "reports"

    __table_args__ = (
        Index("idx_reports_user_period", "user_id", "year", "month"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_key: Mapped[str] = mapped_column(String(512), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# =============================================================================
# STORAGE
# =============================================================================

def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for a database URL.

    SQLite connections may be used from worker threads (Streamlit, the
    FastAPI threadpool). An in-memory SQLite database is pinned to a
    single connection so every session sees the same data.
    """
    parsed = make_url(url)
    kwargs = {"echo": echo}
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


class SqlLedgerStorage(LedgerStorageInterface):
    """
    SQLAlchemy implementation of ledger storage.

    Every call opens its own session; write calls run inside
    `sessionmaker.begin()` so they commit or roll back as a unit.
    """

    def __init__(self, url: str = "sqlite://", echo: bool = False, engine: Optional[Engine] = None):
        try:
            self._engine = engine or build_engine(url, echo=echo)
        except SQLAlchemyError as e:
            raise ConnectionError(f"Failed to create database engine: {e}") from e
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "SqlLedgerStorage":
        return cls(url=settings.url, echo=settings.echo)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Create any missing tables."""
        with self._errors("create schema"):
            Base.metadata.create_all(self._engine)
        logger.info("schema_ready", dialect=self._engine.dialect.name)

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("storage_call_failed", action=action, error=str(e))
            raise wrap_storage_error(action, e) from e

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def list_categories(self, user_id: int) -> list[Category]:
        with self._errors("list categories"), self._session_factory() as session:
            rows = session.scalars(
                select(CategoryRow)
                .where(CategoryRow.user_id == user_id)
                .order_by(CategoryRow.created_at, CategoryRow.id)
            ).all()
            return [Category.model_validate(row) for row in rows]

    async def create_category(self, category: NewCategory) -> Category:
        with self._errors("create category"), self._session_factory.begin() as session:
            row = CategoryRow(**category.model_dump())
            session.add(row)
            session.flush()
            return Category.model_validate(row)

    async def delete_category(self, user_id: int, category_id: int) -> bool:
        with self._errors("delete category"), self._session_factory.begin() as session:
            row = session.scalars(
                select(CategoryRow).where(
                    CategoryRow.id == category_id,
                    CategoryRow.user_id == user_id,
                )
            ).first()
            if row is None:
                return False
            session.delete(row)
            return True

    # ------------------------------------------------------------------
    # Monthly income
    # ------------------------------------------------------------------

    async def get_monthly_income(
        self,
        user_id: int,
        year: int,
        month: int,
    ) -> Optional[MonthlyIncome]:
        with self._errors("get monthly income"), self._session_factory() as session:
            row = session.scalars(
                select(IncomeRow).where(
                    IncomeRow.user_id == user_id,
                    IncomeRow.year == year,
                    IncomeRow.month == month,
                )
            ).first()
            return MonthlyIncome.model_validate(row) if row is not None else None

    def _upsert_income(self, session: Session, income: IncomeUpsert) -> MonthlyIncome:
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            insert = pg_insert
        elif dialect == "sqlite":
            insert = sqlite_insert
        else:
            raise StorageError(f"Income upsert is not supported on {dialect}")

        now = utcnow()
        stmt = insert(IncomeRow).values(
            user_id=income.user_id,
            year=income.year,
            month=income.month,
            amount=income.amount,
            description=income.description,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "year", "month"],
            set_={
                "amount": stmt.excluded.amount,
                "description": stmt.excluded.description,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        session.execute(stmt)

        row = session.scalars(
            select(IncomeRow)
            .where(
                IncomeRow.user_id == income.user_id,
                IncomeRow.year == income.year,
                IncomeRow.month == income.month,
            )
            .execution_options(populate_existing=True)
        ).one()
        return MonthlyIncome.model_validate(row)

    async def upsert_monthly_income(self, income: IncomeUpsert) -> MonthlyIncome:
        with self._errors("upsert monthly income"), self._session_factory.begin() as session:
            return self._upsert_income(session, income)

    async def upsert_monthly_incomes(
        self,
        incomes: list[IncomeUpsert],
    ) -> list[MonthlyIncome]:
        with self._errors("upsert monthly incomes"), self._session_factory.begin() as session:
            return [self._upsert_income(session, income) for income in incomes]

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
        with self._errors("list expenses"), self._session_factory() as session:
            query = select(ExpenseRow).where(
                ExpenseRow.user_id == user_id,
                ExpenseRow.year == year,
                ExpenseRow.month == month,
            )
            if category_id is not None:
                query = query.where(ExpenseRow.category_id == category_id)
            rows = session.scalars(
                query.order_by(ExpenseRow.created_at.desc(), ExpenseRow.id.desc())
            ).all()
            return [Expense.model_validate(row) for row in rows]

    async def list_expenses_by_group(
        self,
        user_id: int,
        group_id: str,
    ) -> list[Expense]:
        with self._errors("list expenses by group"), self._session_factory() as session:
            rows = session.scalars(
                select(ExpenseRow)
                .where(
                    ExpenseRow.user_id == user_id,
                    ExpenseRow.group_id == group_id,
                )
                .order_by(ExpenseRow.year, ExpenseRow.month, ExpenseRow.id)
            ).all()
            return [Expense.model_validate(row) for row in rows]

    async def get_expense(self, user_id: int, expense_id: int) -> Optional[Expense]:
        with self._errors("get expense"), self._session_factory() as session:
            row = self._find_expense(session, user_id, expense_id)
            return Expense.model_validate(row) if row is not None else None

    async def create_expense(self, expense: NewExpense) -> Expense:
        with self._errors("create expense"), self._session_factory.begin() as session:
            row = ExpenseRow(**expense.model_dump())
            session.add(row)
            session.flush()
            return Expense.model_validate(row)

    @staticmethod
    def _find_expense(session: Session, user_id: int, expense_id: int) -> Optional[ExpenseRow]:
        return session.scalars(
            select(ExpenseRow).where(
                ExpenseRow.id == expense_id,
                ExpenseRow.user_id == user_id,
            )
        ).first()

    def _require_expense(self, session: Session, user_id: int, expense_id: int) -> ExpenseRow:
        row = self._find_expense(session, user_id, expense_id)
        if row is None:
            raise NotFoundError(f"Expense {expense_id} not found")
        return row

    @staticmethod
    def _apply_changes(row: ExpenseRow, changes: ExpenseUpdate) -> None:
        for field, value in changes.changes().items():
            setattr(row, field, value)

    async def update_expense(
        self,
        user_id: int,
        expense_id: int,
        changes: ExpenseUpdate,
    ) -> Expense:
        with self._errors("update expense"), self._session_factory.begin() as session:
            row = self._require_expense(session, user_id, expense_id)
            self._apply_changes(row, changes)
            session.flush()
            return Expense.model_validate(row)

    async def delete_expense(self, user_id: int, expense_id: int) -> bool:
        with self._errors("delete expense"), self._session_factory.begin() as session:
            row = self._find_expense(session, user_id, expense_id)
            if row is None:
                return False
            session.delete(row)
            return True

    async def set_expenses_paid(
        self,
        user_id: int,
        expense_ids: list[int],
        paid: bool,
    ) -> int:
        if not expense_ids:
            return 0
        with self._errors("update paid status"), self._session_factory.begin() as session:
            result = session.execute(
                update(ExpenseRow)
                .where(
                    ExpenseRow.user_id == user_id,
                    ExpenseRow.id.in_(expense_ids),
                )
                .values(paid=paid, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def apply_expense_plan(self, user_id: int, plan: SeriesPlan) -> SeriesResult:
        with self._errors("apply expense plan"), self._session_factory.begin() as session:
            for delete in plan.deletes:
                session.delete(self._require_expense(session, user_id, delete.expense_id))

            for planned in plan.updates:
                row = self._require_expense(session, user_id, planned.expense_id)
                self._apply_changes(row, planned.changes)

            rows = [
                ExpenseRow(**create.to_new_expense(user_id).model_dump())
                for create in plan.creates
            ]
            session.add_all(rows)
            session.flush()

            result = SeriesResult(
                group_id=plan.group_id,
                created=[Expense.model_validate(row) for row in rows],
                updated=plan.update_count,
                deleted=plan.delete_count,
            )

        logger.info(
            "expense_plan_applied",
            user_id=user_id,
            group_id=plan.group_id,
            created=plan.create_count,
            updated=plan.update_count,
            deleted=plan.delete_count,
        )
        return result

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def list_reports(self, user_id: int) -> list[Report]:
        with self._errors("list reports"), self._session_factory() as session:
            rows = session.scalars(
                select(ReportRow)
                .where(ReportRow.user_id == user_id)
                .order_by(ReportRow.year.desc(), ReportRow.month.desc(), ReportRow.id.desc())
            ).all()
            return [Report.model_validate(row) for row in rows]

    async def get_report(self, user_id: int, year: int, month: int) -> Optional[Report]:
        with self._errors("get report"), self._session_factory() as session:
            row = session.scalars(
                select(ReportRow)
                .where(
                    ReportRow.user_id == user_id,
                    ReportRow.year == year,
                    ReportRow.month == month,
                )
                .order_by(ReportRow.created_at.desc(), ReportRow.id.desc())
            ).first()
            return Report.model_validate(row) if row is not None else None

    async def create_report(self, report: NewReport) -> Report:
        with self._errors("create report"), self._session_factory.begin() as session:
            row = ReportRow(**report.model_dump())
            session.add(row)
            session.flush()
            return Report.model_validate(row)

    async def delete_report(self, user_id: int, report_id: int) -> bool:
        with self._errors("delete report"), self._session_factory.begin() as session:
            row = session.scalars(
                select(ReportRow).where(
                    ReportRow.id == report_id,
                    ReportRow.user_id == user_id,
                )
            ).first()
            if row is None:
                return False
            session.delete(row)
            return True
