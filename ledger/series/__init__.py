"""Month-range materializer package."""

from ledger.series.materializer import (
    month_range,
    new_group_id,
    plan_income_range,
    plan_series_creation,
    plan_series_edit,
    validate_range,
)

__all__ = [
    "month_range",
    "new_group_id",
    "plan_income_range",
    "plan_series_creation",
    "plan_series_edit",
    "validate_range",
]
