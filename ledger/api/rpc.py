"""
Typed RPC Surface (/trpc)

Every procedure is registered with its kind and a pydantic input model:

- queries answer GET, input is JSON in the `input` query parameter
- mutations answer POST, input is the JSON body

The input is validated BEFORE the handler runs, so handlers receive a
typed model and never see raw JSON. Responses are wrapped as
{"result": {"data": ...}}; failures as {"error": {"message", "code"}}.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Type

import structlog
from fastapi import APIRouter, Depends, Request

from ledger.api.dependencies import get_components, get_user
from ledger.api.errors import RpcError, rpc_error_response
from ledger.api.schemas import (
    CategoryCreateInput,
    ExpenseCreateInput,
    ExpenseListInput,
    ExpenseUpdateInput,
    GroupInput,
    IdInput,
    IncomeRangeInput,
    IncomeUpsertInput,
    PeriodInput,
    ReportGenerateInput,
    RequestModel,
    SeriesCreateInput,
    SeriesUpdateInput,
    SetPaidInput,
    to_json,
)
from ledger.models.finance import UserContext
from ledger.orchestrator import AppComponents


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/trpc", tags=["rpc"])

QUERY = "query"
MUTATION = "mutation"

Handler = Callable[[AppComponents, UserContext, Any], Awaitable[Any]]


@dataclass(frozen=True)
class Procedure:
    kind: str
    input_model: Optional[Type[RequestModel]]
    handler: Handler


PROCEDURES: dict[str, Procedure] = {}


def procedure(name: str, kind: str, input_model: Optional[Type[RequestModel]] = None):
    """Register a handler under a dotted procedure name."""
    def decorator(handler: Handler) -> Handler:
        PROCEDURES[name] = Procedure(kind, input_model, handler)
        return handler
    return decorator


# =============================================================================
# CATEGORIES
# =============================================================================

@procedure("categories.list", QUERY)
async def _list_categories(components, user, data):
    return await components.categories.list_for_user(user)


@procedure("categories.create", MUTATION, CategoryCreateInput)
async def _create_category(components, user, data: CategoryCreateInput):
    return await components.categories.create(user, data.name, icon=data.icon, color=data.color)


@procedure("categories.delete", MUTATION, IdInput)
async def _delete_category(components, user, data: IdInput):
    await components.categories.delete(user, data.id)
    return {"success": True}


# =============================================================================
# INCOME
# =============================================================================

@procedure("income.get", QUERY, PeriodInput)
async def _get_income(components, user, data: PeriodInput):
    return await components.income.get(user, data.year, data.month)


@procedure("income.upsert", MUTATION, IncomeUpsertInput)
async def _upsert_income(components, user, data: IncomeUpsertInput):
    return await components.income.upsert(
        user, data.year, data.month, data.amount, data.description
    )


@procedure("income.upsertRange", MUTATION, IncomeRangeInput)
async def _upsert_income_range(components, user, data: IncomeRangeInput):
    return await components.income.upsert_range(
        user, data.start, data.end, data.amount, data.description
    )


# =============================================================================
# EXPENSES
# =============================================================================

@procedure("expenses.list", QUERY, ExpenseListInput)
async def _list_expenses(components, user, data: ExpenseListInput):
    return await components.expenses.list_for_period(
        user, data.year, data.month, data.category_id
    )


@procedure("expenses.byGroup", QUERY, GroupInput)
async def _list_group(components, user, data: GroupInput):
    return await components.expenses.list_group(user, data.group_id)


@procedure("expenses.create", MUTATION, ExpenseCreateInput)
async def _create_expense(components, user, data: ExpenseCreateInput):
    return await components.expenses.create(
        user,
        year=data.year,
        month=data.month,
        expense_type=data.type,
        amount=data.amount,
        category_id=data.category_id,
        category_name=data.category_name,
        description=data.description,
        group_id=data.group_id,
        paid=bool(data.paid),
    )


@procedure("expenses.update", MUTATION, ExpenseUpdateInput)
async def _update_expense(components, user, data: ExpenseUpdateInput):
    return await components.expenses.update(user, data.id, data.to_update())


@procedure("expenses.delete", MUTATION, IdInput)
async def _delete_expense(components, user, data: IdInput):
    await components.expenses.delete(user, data.id)
    return {"success": True}


@procedure("expenses.setPaid", MUTATION, SetPaidInput)
async def _set_paid(components, user, data: SetPaidInput):
    updated = await components.expenses.set_paid(user, data.ids, data.paid)
    return {"success": True, "updated": updated}


@procedure("expenses.createSeries", MUTATION, SeriesCreateInput)
async def _create_series(components, user, data: SeriesCreateInput):
    return await components.expenses.create_series(
        user,
        expense_type=data.type,
        amount=data.amount,
        start=data.start,
        end=data.end,
        category_id=data.category_id,
        category_name=data.category_name,
        description=data.description,
    )


@procedure("expenses.updateSeries", MUTATION, SeriesUpdateInput)
async def _update_series(components, user, data: SeriesUpdateInput):
    return await components.expenses.update_series(
        user,
        expense_id=data.id,
        category_id=data.category_id,
        expense_type=data.type,
        amount=data.amount,
        start=data.start,
        end=data.end,
        description=data.description,
    )


# =============================================================================
# SUMMARY AND REPORTS
# =============================================================================

@procedure("summary.get", QUERY, PeriodInput)
async def _get_summary(components, user, data: PeriodInput):
    return await components.summary.summary(user, data.year, data.month)


@procedure("dashboard.get", QUERY, PeriodInput)
async def _get_dashboard(components, user, data: PeriodInput):
    return await components.summary.dashboard(user, data.year, data.month)


@procedure("reports.list", QUERY)
async def _list_reports(components, user, data):
    return await components.reports.list_for_user(user)


@procedure("reports.get", QUERY, PeriodInput)
async def _get_report(components, user, data: PeriodInput):
    return await components.reports.get(user, data.year, data.month)


@procedure("reports.generate", MUTATION, ReportGenerateInput)
async def _generate_report(components, user, data: ReportGenerateInput):
    return await components.reports.generate(user, data.year, data.month, data.pdf_content)


@procedure("reports.delete", MUTATION, IdInput)
async def _delete_report(components, user, data: IdInput):
    await components.reports.delete(user, data.id)
    return {"success": True}


# =============================================================================
# DISPATCH
# =============================================================================

async def _read_input(request: Request, kind: str) -> Any:
    """Raw JSON input of a call; None when the caller sent nothing."""
    if kind == QUERY:
        raw = request.query_params.get("input")
        if raw is None or not raw.strip():
            return None
    else:
        body = await request.body()
        if not body.strip():
            return None
        raw = body.decode("utf-8", errors="replace")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise RpcError("BAD_REQUEST", f"Input is not valid JSON: {e.msg}")


async def call_procedure(
    name: str,
    method: str,
    request: Request,
    components: AppComponents,
    user: UserContext,
) -> Any:
    """Resolve, validate and run one procedure call."""
    proc = PROCEDURES.get(name)
    if proc is None:
        raise RpcError("NOT_FOUND", f'No procedure found on path "{name}"')

    expected = "GET" if proc.kind == QUERY else "POST"
    if method != expected:
        raise RpcError(
            "METHOD_NOT_SUPPORTED",
            f"Unsupported {method} request to {proc.kind} procedure at path \"{name}\"",
        )

    raw = await _read_input(request, proc.kind)
    data = None
    if proc.input_model is not None:
        data = proc.input_model.model_validate(raw if raw is not None else {})

    return await proc.handler(components, user, data)


@router.api_route("/{name}", methods=["GET", "POST"])
async def dispatch(
    name: str,
    request: Request,
    components: AppComponents = Depends(get_components),
    user: UserContext = Depends(get_user),
):
    try:
        result = await call_procedure(name, request.method, request, components, user)
    except Exception as e:
        logger.info("rpc_call_failed", procedure=name, error=str(e))
        return rpc_error_response(e)
    return {"result": {"data": to_json(result)}}
