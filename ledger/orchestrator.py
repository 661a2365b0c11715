"""
Main Orchestrator for Personal Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Categories (list, create, delete)
2. Income (single month and month ranges)
3. Expenses (single rows, paid status, fixed-expense series)
4. Summary and dashboard
5. Reports (upload a rendered PDF, keep its metadata)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every request is validated before the first store call
- Multi-row changes go to the store as one atomic plan
- Every mutation and every failure is audited
- Every operation runs as an explicit UserContext

The HTTP API and the dashboard both call these flows; neither talks to
storage directly.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog

from ledger.audit import AuditLogger, configure_logging, create_correlation_id
from ledger.config import AppSettings, get_settings
from ledger.models.audit import AuditEvent, AuditEventBuilder
from ledger.models.finance import (
    Category,
    DashboardPayload,
    Expense,
    ExpenseType,
    ExpenseUpdate,
    IncomeUpsert,
    MonthlyIncome,
    MonthlySummary,
    NewCategory,
    NewExpense,
    NewReport,
    Report,
    UserContext,
    unique_categories,
)
from ledger.models.series import MonthKey, SeriesPlan, SeriesResult, SeriesTemplate
from ledger.queries import MonthlySummaryAggregator
from ledger.series import (
    plan_income_range,
    plan_series_creation,
    plan_series_edit,
    validate_range,
)
from ledger.services.reports import (
    CloudinaryObjectStore,
    ObjectStoreError,
    ObjectStoreInterface,
    build_report_key,
)
from ledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    LedgerStorageInterface,
    NotFoundError,
    SqlLedgerStorage,
    StorageError,
)
from ledger.validation import LedgerValidationError, LedgerValidator


logger = structlog.get_logger(__name__)

AmountInput = Union[Decimal, str, int, float]


def default_user(settings: Optional[AppSettings] = None) -> UserContext:
    """The identity every request runs as in a single-user deployment."""
    settings = settings or get_settings().app
    return UserContext(id=settings.default_user_id, name=settings.default_user_name)


class _Flow:
    """Shared plumbing: storage, validator, settings and audit helpers."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app
        self._validator = validator or LedgerValidator(self._settings)

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def _rejected(
        self,
        operation: str,
        error: LedgerValidationError,
        user: UserContext,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                operation=operation,
                issues=error.to_dicts(),
                user_id=user.id,
                correlation_id=correlation_id,
            )

    async def _store_failed(
        self,
        operation: str,
        error: StorageError,
        user: UserContext,
        correlation_id: UUID,
    ) -> None:
        if isinstance(error, NotFoundError):
            return
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                user_id=user.id,
                correlation_id=correlation_id,
            )


class CategoryFlow(_Flow):
    """Category listing, creation and deletion."""

    async def list_for_user(self, user: UserContext) -> list[Category]:
        return await self._storage.list_categories(user.id)

    async def list_unique(self, user: UserContext) -> list[Category]:
        """Categories with case-insensitive duplicate names collapsed, for display."""
        return unique_categories(await self.list_for_user(user))

    async def create(
        self,
        user: UserContext,
        name: str,
        icon: Optional[str] = None,
        color: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """
        Create a category. Missing icon and color fall back to the
        configured defaults. Duplicate names are allowed.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            cleaned = self._validator.clean_category_name(name)
        except LedgerValidationError as e:
            await self._rejected("create category", e, user, correlation_id)
            raise

        new = NewCategory(
            user_id=user.id,
            name=cleaned,
            icon=icon or self._settings.default_category_icon,
            color=color or self._settings.default_category_color,
        )
        try:
            category = await self._storage.create_category(new)
        except StorageError as e:
            await self._store_failed("create category", e, user, correlation_id)
            raise

        await self._audit(AuditEventBuilder.category_created(
            user_id=user.id,
            category_id=category.id,
            name=category.name,
            correlation_id=correlation_id,
        ))
        return category

    async def delete(
        self,
        user: UserContext,
        category_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete a category. Its expenses are kept and become uncategorized."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            deleted = await self._storage.delete_category(user.id, category_id)
        except StorageError as e:
            await self._store_failed("delete category", e, user, correlation_id)
            raise

        if deleted:
            await self._audit(AuditEventBuilder.category_deleted(
                user_id=user.id,
                category_id=category_id,
                correlation_id=correlation_id,
            ))
        return deleted


class IncomeFlow(_Flow):
    """Monthly income reads and atomic upserts."""

    async def get(self, user: UserContext, year: int, month: int) -> Optional[MonthlyIncome]:
        return await self._storage.get_monthly_income(user.id, year, month)

    async def upsert(
        self,
        user: UserContext,
        year: int,
        month: int,
        amount: AmountInput,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyIncome:
        """Set the income of one month. Calling it twice leaves one row."""
        correlation_id = correlation_id or create_correlation_id()

        issues = self._validator.check_amount(amount)
        if issues:
            error = LedgerValidationError(issues)
            await self._rejected("upsert income", error, user, correlation_id)
            raise error

        payload = IncomeUpsert(
            user_id=user.id,
            year=year,
            month=month,
            amount=Decimal(str(amount)),
            description=description,
        )
        try:
            income = await self._storage.upsert_monthly_income(payload)
        except StorageError as e:
            await self._store_failed("upsert income", e, user, correlation_id)
            raise

        await self._audit(AuditEventBuilder.income_upserted(
            user_id=user.id,
            income_id=income.id,
            period=str(MonthKey(year, month)),
            amount=str(income.amount),
            correlation_id=correlation_id,
        ))
        return income

    async def upsert_range(
        self,
        user: UserContext,
        start: MonthKey,
        end: MonthKey,
        amount: AmountInput,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[MonthlyIncome]:
        """
        Set the same income on every month of a range.

        All months are written in one transaction.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            issues = self._validator.check_amount(amount)
            if issues:
                raise LedgerValidationError(issues)
            months = plan_income_range(start, end)
        except LedgerValidationError as e:
            await self._rejected("upsert income range", e, user, correlation_id)
            raise

        value = Decimal(str(amount))
        payloads = [
            IncomeUpsert(
                user_id=user.id,
                year=month.year,
                month=month.month,
                amount=value,
                description=description,
            )
            for month in months
        ]
        try:
            incomes = await self._storage.upsert_monthly_incomes(payloads)
        except StorageError as e:
            await self._store_failed("upsert income range", e, user, correlation_id)
            raise

        await self._audit(AuditEventBuilder.income_range_upserted(
            user_id=user.id,
            start=str(start),
            end=str(end),
            months=len(incomes),
            amount=str(payloads[0].amount),
            correlation_id=correlation_id,
        ))
        return incomes


class ExpenseFlow(_Flow):
    """
    Expense rows and fixed-expense series.

    Series flow:
    1. Validate the range (no store call yet)
    2. Resolve the category, creating it from a name if needed
    3. Read the current rows of the series
    4. Plan creates, updates and deletes (pure)
    5. Apply the plan in one transaction
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        categories: CategoryFlow,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[AppSettings] = None,
    ):
        super().__init__(storage, audit_logger, validator, settings)
        self._categories = categories

    async def list_for_period(
        self,
        user: UserContext,
        year: int,
        month: int,
        category_id: Optional[int] = None,
    ) -> list[Expense]:
        return await self._storage.list_expenses(user.id, year, month, category_id)

    async def list_group(self, user: UserContext, group_id: str) -> list[Expense]:
        return await self._storage.list_expenses_by_group(user.id, group_id)

    async def get(self, user: UserContext, expense_id: int) -> Expense:
        expense = await self._storage.get_expense(user.id, expense_id)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found")
        return expense

    async def _resolve_category(
        self,
        user: UserContext,
        category_id: Optional[int],
        category_name: Optional[str],
        correlation_id: UUID,
    ) -> int:
        """An explicit id wins; otherwise a name creates a new category."""
        if category_id:
            return category_id
        if category_name and category_name.strip():
            category = await self._categories.create(
                user, category_name, correlation_id=correlation_id
            )
            return category.id
        raise LedgerValidationError.single(
            "categoryId", "missing", "Category ID or name is required",
        )

    async def create(
        self,
        user: UserContext,
        year: int,
        month: int,
        expense_type: ExpenseType,
        amount: AmountInput,
        category_id: Optional[int] = None,
        category_name: Optional[str] = None,
        description: Optional[str] = None,
        group_id: Optional[str] = None,
        paid: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """Create one expense row."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            # period and amount are checked before a category can be created
            issues = self._validator.check_month_key(MonthKey(year, month), "month")
            issues += self._validator.check_amount(amount)
            if issues:
                raise LedgerValidationError(issues)
            resolved = await self._resolve_category(user, category_id, category_name, correlation_id)
        except LedgerValidationError as e:
            await self._rejected("create expense", e, user, correlation_id)
            raise

        new = NewExpense(
            user_id=user.id,
            category_id=resolved,
            year=year,
            month=month,
            group_id=group_id,
            paid=paid,
            type=expense_type,
            description=description,
            amount=Decimal(str(amount)),
        )
        try:
            expense = await self._storage.create_expense(new)
        except StorageError as e:
            await self._store_failed("create expense", e, user, correlation_id)
            raise

        await self._audit(AuditEventBuilder.expense_created(
            user_id=user.id,
            expense_id=expense.id,
            period=str(MonthKey(expense.year, expense.month)),
            amount=str(expense.amount),
            correlation_id=correlation_id,
        ))
        return expense

    async def update(
        self,
        user: UserContext,
        expense_id: int,
        changes: ExpenseUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """Write only the provided fields of one expense."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            expense = await self._storage.update_expense(user.id, expense_id, changes)
        except StorageError as e:
            await self._store_failed("update expense", e, user, correlation_id)
            raise

        await self._audit(AuditEventBuilder.expense_updated(
            user_id=user.id,
            expense_id=expense_id,
            fields=sorted(changes.changes()),
            correlation_id=correlation_id,
        ))
        return expense

    async def delete(
        self,
        user: UserContext,
        expense_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        try:
            deleted = await self._storage.delete_expense(user.id, expense_id)
        except StorageError as e:
            await self._store_failed("delete expense", e, user, correlation_id)
            raise

        if deleted:
            await self._audit(AuditEventBuilder.expense_deleted(
                user_id=user.id,
                expense_id=expense_id,
                correlation_id=correlation_id,
            ))
        return deleted

    async def set_paid(
        self,
        user: UserContext,
        expense_ids: list,
        paid: bool,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Mark expenses paid or unpaid.

        Returns:
            Number of rows the store actually updated
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            ids = self._validator.parse_expense_ids(expense_ids)
            if not isinstance(paid, bool):
                raise LedgerValidationError.single(
                    "paid", "missing", "Expense ids and paid status are required",
                )
        except LedgerValidationError as e:
            await self._rejected("update paid status", e, user, correlation_id)
            raise

        try:
            updated = await self._storage.set_expenses_paid(user.id, ids, paid)
        except StorageError as e:
            await self._store_failed("update paid status", e, user, correlation_id)
            raise

        await self._audit(AuditEventBuilder.paid_status_updated(
            user_id=user.id,
            expense_ids=ids,
            paid=paid,
            updated=updated,
            correlation_id=correlation_id,
        ))
        return updated

    async def _apply(
        self,
        user: UserContext,
        operation: str,
        plan: SeriesPlan,
        correlation_id: UUID,
    ) -> SeriesResult:
        try:
            result = await self._storage.apply_expense_plan(user.id, plan)
        except StorageError as e:
            await self._store_failed(operation, e, user, correlation_id)
            raise

        await self._audit(AuditEventBuilder.series_applied(
            user_id=user.id,
            group_id=plan.group_id,
            created=plan.create_count,
            updated=plan.update_count,
            deleted=plan.delete_count,
            correlation_id=correlation_id,
        ))
        return result

    async def create_series(
        self,
        user: UserContext,
        expense_type: ExpenseType,
        amount: AmountInput,
        start: MonthKey,
        end: MonthKey,
        category_id: Optional[int] = None,
        category_name: Optional[str] = None,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SeriesResult:
        """
        Create a new expense over a month range.

        Fixed: one row per month sharing a group id.
        Variable: a single row in the start month.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            issues = self._validator.check_amount(amount)
            if issues:
                raise LedgerValidationError(issues)
            validate_range(start, end)
            resolved = await self._resolve_category(user, category_id, category_name, correlation_id)
        except LedgerValidationError as e:
            await self._rejected("create expense series", e, user, correlation_id)
            raise

        template = SeriesTemplate(
            category_id=resolved,
            type=expense_type,
            description=description or "",
            amount=Decimal(str(amount)),
        )
        plan = plan_series_creation(template, start, end)
        return await self._apply(user, "create expense series", plan, correlation_id)

    async def update_series(
        self,
        user: UserContext,
        expense_id: int,
        category_id: int,
        expense_type: ExpenseType,
        amount: AmountInput,
        start: Optional[MonthKey] = None,
        end: Optional[MonthKey] = None,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SeriesResult:
        """
        Edit an expense and reconcile its series against a new range.

        A missing start or end defaults to the expense's own month.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            issues = self._validator.check_amount(amount)
            if issues:
                raise LedgerValidationError(issues)
            if expense_type == ExpenseType.FIXED and start is not None and end is not None:
                validate_range(start, end)
        except LedgerValidationError as e:
            await self._rejected("update expense series", e, user, correlation_id)
            raise

        anchor = await self.get(user, expense_id)
        anchor_month = MonthKey(anchor.year, anchor.month)
        start = start or anchor_month
        end = end or start

        group_rows = []
        if anchor.group_id:
            group_rows = await self._storage.list_expenses_by_group(user.id, anchor.group_id)

        template = SeriesTemplate(
            category_id=category_id,
            type=expense_type,
            description=description or "",
            amount=Decimal(str(amount)),
        )
        try:
            plan = plan_series_edit(anchor, template, start, end, group_rows)
        except LedgerValidationError as e:
            await self._rejected("update expense series", e, user, correlation_id)
            raise
        return await self._apply(user, "update expense series", plan, correlation_id)


class SummaryFlow(_Flow):
    """Monthly summary and dashboard payload."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[AppSettings] = None,
    ):
        super().__init__(storage, audit_logger, validator, settings)
        self._aggregator = MonthlySummaryAggregator(storage)

    async def summary(self, user: UserContext, year: int, month: int) -> MonthlySummary:
        return await self._aggregator.summarize(user.id, year, month)

    async def dashboard(self, user: UserContext, year: int, month: int) -> DashboardPayload:
        return await self._aggregator.dashboard(user.id, year, month)


class ReportFlow(_Flow):
    """
    Report storage.

    Flow:
    1. Decode the base64 PDF rendered by the client
    2. Upload it to the object store under a generated key
    3. Store a Report row pointing at the uploaded file
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        object_store: Optional[ObjectStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[AppSettings] = None,
    ):
        super().__init__(storage, audit_logger, validator, settings)
        self._object_store = object_store

    async def list_for_user(self, user: UserContext) -> list[Report]:
        return await self._storage.list_reports(user.id)

    async def get(self, user: UserContext, year: int, month: int) -> Optional[Report]:
        return await self._storage.get_report(user.id, year, month)

    async def generate(
        self,
        user: UserContext,
        year: int,
        month: int,
        pdf_content: str,
        correlation_id: Optional[UUID] = None,
    ) -> Report:
        correlation_id = correlation_id or create_correlation_id()

        try:
            issues = self._validator.check_month_key(MonthKey(year, month), "month")
            if issues:
                raise LedgerValidationError(issues)
            data = self._validator.decode_report_content(pdf_content)
        except LedgerValidationError as e:
            await self._rejected("generate report", e, user, correlation_id)
            raise

        if self._object_store is None:
            raise ObjectStoreError("Failed to upload report: object store is not configured")

        key = build_report_key(user.id, year, month, self._settings.report_slug)
        try:
            url = await self._object_store.put(key, data, "application/pdf")
        except ObjectStoreError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="object_store",
                    error_message=str(e),
                    user_id=user.id,
                    correlation_id=correlation_id,
                )
            raise

        try:
            report = await self._storage.create_report(NewReport(
                user_id=user.id,
                year=year,
                month=month,
                file_url=url,
                file_key=key,
            ))
        except StorageError as e:
            await self._store_failed("create report", e, user, correlation_id)
            raise

        await self._audit(AuditEventBuilder.report_generated(
            user_id=user.id,
            report_id=report.id,
            file_key=key,
            correlation_id=correlation_id,
        ))
        return report

    async def delete(
        self,
        user: UserContext,
        report_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        try:
            deleted = await self._storage.delete_report(user.id, report_id)
        except StorageError as e:
            await self._store_failed("delete report", e, user, correlation_id)
            raise

        if deleted:
            await self._audit(AuditEventBuilder.report_deleted(
                user_id=user.id,
                report_id=report_id,
                correlation_id=correlation_id,
            ))
        return deleted


@dataclass
class AppComponents:
    """Everything the API and the dashboard need, built once."""
    storage: LedgerStorageInterface
    audit_logger: AuditLogger
    categories: CategoryFlow
    income: IncomeFlow
    expenses: ExpenseFlow
    summary: SummaryFlow
    reports: ReportFlow
    validator: LedgerValidator
    default_user: UserContext


def create_app_components(
    storage: Optional[LedgerStorageInterface] = None,
    object_store: Optional[ObjectStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    use_external_services: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        storage: Ledger storage to use. Defaults to the SQL store built
                from DATABASE_* settings (tables are created if missing).
        object_store: Report blob store. Defaults to Cloudinary when
                configured.
        audit_storage: Where audit events are persisted. Defaults to the
                Google Sheets audit trail when configured.
        use_external_services: Set to False to skip Cloudinary and the
                Google Sheets audit trail (tests, offline demos).
    """
    settings = get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    if storage is None:
        sql_storage = SqlLedgerStorage.from_settings(settings.database)
        sql_storage.create_schema()
        storage = sql_storage

    if audit_storage is None and use_external_services:
        try:
            audit_storage = GoogleSheetsAuditStorage(GoogleSheetsClient())
        except Exception as e:
            logger.warning("audit_sheet_not_configured", error=str(e))
    audit_logger = AuditLogger(audit_storage)  # local-only when None

    if object_store is None and use_external_services:
        try:
            object_store = CloudinaryObjectStore()
        except Exception as e:
            logger.warning("object_store_not_configured", error=str(e))

    validator = LedgerValidator(app_settings)
    common = dict(audit_logger=audit_logger, validator=validator, settings=app_settings)

    categories = CategoryFlow(storage, **common)
    return AppComponents(
        storage=storage,
        audit_logger=audit_logger,
        categories=categories,
        income=IncomeFlow(storage, **common),
        expenses=ExpenseFlow(storage, categories, **common),
        summary=SummaryFlow(storage, **common),
        reports=ReportFlow(storage, object_store, **common),
        validator=validator,
        default_user=default_user(app_settings),
    )
