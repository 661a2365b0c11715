"""
REST Surface (/api)

Resource-style endpoints for the dashboard client. Handlers stay thin:
check presence of the required fields, call a flow, serialize the result.
Errors raised by the flows are turned into {"error": message} bodies by
the app-wide exception handlers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ledger.api.dependencies import get_components, get_user
from ledger.api.schemas import (
    BulkPaidBody,
    CategoryBody,
    ExpenseBody,
    ExpenseUpdateBody,
    IncomeBody,
    IncomeRangeBody,
    ReportBody,
    SeriesBody,
    to_json,
)
from ledger.models.finance import UserContext
from ledger.orchestrator import AppComponents
from ledger.validation import LedgerValidationError, LedgerValidator


router = APIRouter(prefix="/api", tags=["rest"])


def _missing(message: str = "Required fields are missing") -> LedgerValidationError:
    return LedgerValidationError.single("body", "missing", message)


@router.get("/health")
async def health():
    return {"status": "ok"}


# =============================================================================
# CATEGORIES
# =============================================================================

@router.get("/categories")
async def list_categories(
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    return to_json(await components.categories.list_for_user(user))


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    body: Optional[CategoryBody] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    body = body or CategoryBody()
    category = await components.categories.create(
        user, body.name, icon=body.icon, color=body.color
    )
    return to_json(category)


@router.delete("/categories")
async def delete_category(
    id: Optional[str] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    await components.categories.delete(user, LedgerValidator.parse_id(id))
    return {"success": True}


# =============================================================================
# INCOME
# =============================================================================

@router.get("/income")
async def get_income(
    year: Optional[str] = None,
    month: Optional[str] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    year_value, month_value = components.validator.require_period(year, month)
    return to_json(await components.income.get(user, year_value, month_value))


@router.api_route("/income", methods=["POST", "PUT"])
async def upsert_income(
    body: Optional[IncomeBody] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    if body is None or not body.year or not body.month or body.amount is None:
        raise _missing()
    income = await components.income.upsert(
        user, body.year, body.month, body.amount, body.description
    )
    return to_json(income)


@router.put("/income/range")
async def upsert_income_range(
    body: Optional[IncomeRangeBody] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    if body is None or body.start is None or body.end is None or body.amount is None:
        raise _missing()
    incomes = await components.income.upsert_range(
        user, body.start, body.end, body.amount, body.description
    )
    return to_json(incomes)


# =============================================================================
# EXPENSES
# =============================================================================

@router.get("/expenses")
async def list_expenses(
    year: Optional[str] = None,
    month: Optional[str] = None,
    category_id: Optional[str] = Query(default=None, alias="categoryId"),
    group_id: Optional[str] = Query(default=None, alias="groupId"),
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    if group_id:
        return to_json(await components.expenses.list_group(user, group_id))

    year_value, month_value = components.validator.require_period(year, month)
    category = LedgerValidator.parse_id(category_id, "categoryId") if category_id else None
    expenses = await components.expenses.list_for_period(
        user, year_value, month_value, category
    )
    return to_json(expenses)


@router.post("/expenses", status_code=status.HTTP_201_CREATED)
async def create_expense(
    body: Optional[ExpenseBody] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    if body is None:
        raise _missing("Invalid payload")
    if not body.year or not body.month or body.type is None or body.amount in (None, ""):
        raise _missing()
    if not body.category_id and not (body.category_name or "").strip():
        raise _missing()

    expense = await components.expenses.create(
        user,
        year=body.year,
        month=body.month,
        expense_type=body.type,
        amount=body.amount,
        category_id=body.category_id,
        category_name=body.category_name,
        description=body.description,
        group_id=body.group_id,
        paid=bool(body.paid),
    )
    return to_json(expense)


@router.put("/expenses")
async def update_expense(
    body: Optional[ExpenseUpdateBody] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    if body is None or not body.id:
        raise _missing("ID is required")
    await components.expenses.update(user, body.id, body.to_update())
    return {"success": True}


@router.delete("/expenses")
async def delete_expense(
    id: Optional[str] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    await components.expenses.delete(user, LedgerValidator.parse_id(id))
    return {"success": True}


@router.put("/expenses-bulk")
async def set_expenses_paid(
    body: Optional[BulkPaidBody] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    if body is None or body.ids is None or not isinstance(body.paid, bool):
        raise _missing("Expense ids and paid status are required")
    updated = await components.expenses.set_paid(user, body.ids, body.paid)
    return {"success": True, "updated": updated}


@router.post("/expenses/series", status_code=status.HTTP_201_CREATED)
async def create_expense_series(
    body: Optional[SeriesBody] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    if body is None or body.type is None or body.amount in (None, ""):
        raise _missing()
    if body.start is None:
        raise _missing("Start period is required")

    result = await components.expenses.create_series(
        user,
        expense_type=body.type,
        amount=body.amount,
        start=body.start,
        end=body.end or body.start,
        category_id=body.category_id,
        category_name=body.category_name,
        description=body.description,
    )
    return to_json(result)


@router.put("/expenses/series")
async def update_expense_series(
    body: Optional[SeriesBody] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    if body is None or not body.id:
        raise _missing("ID is required")
    if not body.category_id or body.type is None or body.amount in (None, ""):
        raise _missing()

    result = await components.expenses.update_series(
        user,
        expense_id=body.id,
        category_id=body.category_id,
        expense_type=body.type,
        amount=body.amount,
        start=body.start,
        end=body.end,
        description=body.description,
    )
    return to_json(result)


# =============================================================================
# SUMMARY
# =============================================================================

@router.get("/summary")
async def get_summary(
    year: Optional[str] = None,
    month: Optional[str] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    year_value, month_value = components.validator.require_period(year, month)
    return to_json(await components.summary.summary(user, year_value, month_value))


@router.get("/dashboard")
async def get_dashboard(
    year: Optional[str] = None,
    month: Optional[str] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    year_value, month_value = components.validator.require_period(year, month)
    return to_json(await components.summary.dashboard(user, year_value, month_value))


# =============================================================================
# REPORTS
# =============================================================================

@router.get("/reports")
async def list_reports(
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    return to_json(await components.reports.list_for_user(user))


@router.get("/reports/period")
async def get_report(
    year: Optional[str] = None,
    month: Optional[str] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    year_value, month_value = components.validator.require_period(year, month)
    return to_json(await components.reports.get(user, year_value, month_value))


@router.post("/reports", status_code=status.HTTP_201_CREATED)
async def generate_report(
    body: Optional[ReportBody] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    if body is None or not body.year or not body.month or not body.pdf_content:
        raise _missing()
    report = await components.reports.generate(user, body.year, body.month, body.pdf_content)
    return to_json(report)


@router.delete("/reports")
async def delete_report(
    id: Optional[str] = None,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    await components.reports.delete(user, LedgerValidator.parse_id(id))
    return {"success": True}
