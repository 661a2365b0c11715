"""
Request Schemas

Two families of request bodies:

- REST bodies are LOOSE: every field is optional and the handler checks
  presence itself, so a missing field comes back as a 400 with a plain
  message instead of a schema dump.
- RPC inputs are STRICT: types and bounds (month 1..12) are enforced by
  pydantic before the procedure runs.

Both accept camelCase keys, the same as every response.
"""

from typing import Any, Optional, Union

from pydantic import ConfigDict, Field

from ledger.models.finance import ExpenseType, ExpenseUpdate, LedgerModel
from ledger.models.series import MonthKey


AmountField = Union[str, float]


class RequestModel(LedgerModel):
    model_config = ConfigDict(extra="ignore")


class RangeFields(RequestModel):
    """A "from (year, month) to (year, month)" pair."""
    start_year: Optional[int] = None
    start_month: Optional[int] = None
    end_year: Optional[int] = None
    end_month: Optional[int] = None

    @property
    def start(self) -> Optional[MonthKey]:
        if self.start_year is None or self.start_month is None:
            return None
        return MonthKey(self.start_year, self.start_month)

    @property
    def end(self) -> Optional[MonthKey]:
        if self.end_year is None or self.end_month is None:
            return None
        return MonthKey(self.end_year, self.end_month)


# =============================================================================
# REST BODIES
# =============================================================================

class CategoryBody(RequestModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None


class IncomeBody(RequestModel):
    year: Optional[int] = None
    month: Optional[int] = None
    amount: Optional[AmountField] = None
    description: Optional[str] = None


class IncomeRangeBody(RangeFields):
    amount: Optional[AmountField] = None
    description: Optional[str] = None


class ExpenseBody(RequestModel):
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    group_id: Optional[str] = None
    paid: Optional[bool] = None
    year: Optional[int] = None
    month: Optional[int] = None
    type: Optional[ExpenseType] = None
    description: Optional[str] = None
    amount: Optional[AmountField] = None


class ExpenseUpdateBody(ExpenseUpdate):
    """Partial update; only the fields present in the body are written."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None

    def to_update(self) -> ExpenseUpdate:
        return ExpenseUpdate.model_validate(
            self.model_dump(exclude_unset=True, exclude={"id"})
        )


class BulkPaidBody(RequestModel):
    ids: Optional[list[Any]] = None
    paid: Optional[Any] = None


class SeriesBody(RangeFields):
    """Create a series, or edit one when id is set."""
    id: Optional[int] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    type: Optional[ExpenseType] = None
    description: Optional[str] = None
    amount: Optional[AmountField] = None


class ReportBody(RequestModel):
    year: Optional[int] = None
    month: Optional[int] = None
    pdf_content: Optional[str] = None


# =============================================================================
# RPC INPUTS
# =============================================================================

class PeriodInput(RequestModel):
    year: int
    month: int = Field(..., ge=1, le=12)


class IdInput(RequestModel):
    id: int


class CategoryCreateInput(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None


class IncomeUpsertInput(PeriodInput):
    amount: AmountField
    description: Optional[str] = None


class IncomeRangeInput(RangeFields):
    start_year: int
    start_month: int = Field(..., ge=1, le=12)
    end_year: int
    end_month: int = Field(..., ge=1, le=12)
    amount: AmountField
    description: Optional[str] = None


class ExpenseListInput(PeriodInput):
    category_id: Optional[int] = None


class GroupInput(RequestModel):
    group_id: str = Field(..., min_length=1)


class ExpenseCreateInput(PeriodInput):
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    group_id: Optional[str] = None
    paid: Optional[bool] = None
    type: ExpenseType
    description: Optional[str] = Field(default=None, max_length=255)
    amount: AmountField


class ExpenseUpdateInput(ExpenseUpdateBody):
    id: int


class SetPaidInput(RequestModel):
    ids: list[int]
    paid: bool


class SeriesCreateInput(RangeFields):
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    type: ExpenseType
    description: Optional[str] = Field(default=None, max_length=255)
    amount: AmountField
    start_year: int
    start_month: int = Field(..., ge=1, le=12)
    end_year: int
    end_month: int = Field(..., ge=1, le=12)


class SeriesUpdateInput(RangeFields):
    id: int
    category_id: int
    type: ExpenseType
    description: Optional[str] = Field(default=None, max_length=255)
    amount: AmountField


class ReportGenerateInput(PeriodInput):
    pdf_content: str


def to_json(value: Any) -> Any:
    """JSON-ready form of a response value (models use their wire format)."""
    if isinstance(value, LedgerModel):
        return value.to_wire()
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    if isinstance(value, dict):
        return {key: to_json(item) for key, item in value.items()}
    return value
