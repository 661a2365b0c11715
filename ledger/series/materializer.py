"""
Month-Range Materializer

Turns "this expense, from (year, month) to (year, month)" into the exact
set of row operations that make the store match it.

DESIGN DECISION: Planning is PURE. These functions never touch storage;
they take the rows that exist now and return a SeriesPlan. The store then
applies the plan in one transaction, so a failed operation leaves no
half-applied series behind.

After a fixed-expense plan is applied:
- exactly one row of the series exists for every month of the range
- no row of the series exists outside the range
- every row carries the template's category, type, description and amount
"""

from typing import Callable, Optional
from uuid import uuid4

from ledger.models.finance import Expense, ExpenseType, ExpenseUpdate
from ledger.models.series import (
    MonthKey,
    PlannedCreate,
    PlannedDelete,
    PlannedUpdate,
    SeriesPlan,
    SeriesTemplate,
)
from ledger.validation import (
    InvalidRangeError,
    LedgerValidationError,
    LedgerValidator,
    ValidationIssue,
)


GroupIdFactory = Callable[[], str]


def new_group_id() -> str:
    """Fresh series identifier, e.g. grp_1b4e28ba-2fa1-11d2-883f-0016d3cca427."""
    return f"grp_{uuid4()}"


def validate_range(start: MonthKey, end: MonthKey) -> None:
    """
    Reject a range before anything is planned.

    Raises:
        LedgerValidationError: If a month is outside 1..12
        InvalidRangeError: If end precedes start
    """
    issues = LedgerValidator.check_month_key(start, "start") + LedgerValidator.check_month_key(end, "end")
    if issues:
        raise LedgerValidationError(issues)
    if end < start:
        raise InvalidRangeError([ValidationIssue(
            field="end",
            issue_type="inverted_range",
            message=f"The start period ({start}) can't be after the end period ({end})",
            suggested_fix="Pick an end month on or after the start month",
        )])


def month_range(start: MonthKey, end: MonthKey) -> list[MonthKey]:
    """
    Every month from start to end inclusive, in calendar order.

    Returns an empty list when end precedes start.
    """
    months = []
    current = start
    while current <= end:
        months.append(current)
        current = current.next()
    return months


def _template_changes(template: SeriesTemplate, **extra) -> ExpenseUpdate:
    return ExpenseUpdate(
        category_id=template.category_id,
        type=template.type,
        description=template.description,
        amount=template.amount,
        **extra,
    )


def _create(template: SeriesTemplate, month: MonthKey, group_id: Optional[str]) -> PlannedCreate:
    return PlannedCreate(
        year=month.year,
        month=month.month,
        group_id=group_id,
        category_id=template.category_id,
        type=template.type,
        description=template.description,
        amount=template.amount,
        paid=False,
    )


def plan_series_creation(
    template: SeriesTemplate,
    start: MonthKey,
    end: MonthKey,
    group_id_factory: GroupIdFactory = new_group_id,
) -> SeriesPlan:
    """
    Plan the rows of a brand new expense.

    Fixed expenses get one row per month of the range; a variable
    expense only gets the start month. Rows share a group id only when
    there is more than one of them.
    """
    validate_range(start, end)

    if template.type == ExpenseType.FIXED:
        months = month_range(start, end)
    else:
        months = [start]

    group_id = group_id_factory() if len(months) > 1 else None
    return SeriesPlan(
        group_id=group_id,
        creates=[_create(template, month, group_id) for month in months],
    )


def plan_series_edit(
    anchor: Expense,
    template: SeriesTemplate,
    start: MonthKey,
    end: MonthKey,
    group_rows: list[Expense],
    group_id_factory: GroupIdFactory = new_group_id,
) -> SeriesPlan:
    """
    Plan the edit of an existing expense and the series it belongs to.

    Args:
        anchor: The expense the user opened for editing
        template: The new field values
        start: First month of the new range (fixed expenses only)
        end: Last month of the new range (fixed expenses only)
        group_rows: Every row currently sharing the anchor's group id,
                    in calendar order. Ignored for ungrouped anchors.
        group_id_factory: Source of new group ids when a single row is
                    promoted into a series

    Variable: the series collapses into the anchor. Every other row of
    the group is deleted and the anchor loses its group id.

    Fixed: an ungrouped anchor whose range is still exactly its own
    month is edited in place. Anything else reconciles the existing
    rows, keyed by "{year}-{month}", against the months of the range.
    """
    if template.type == ExpenseType.VARIABLE:
        deletes = []
        if anchor.group_id is not None:
            deletes = [
                PlannedDelete(expense_id=row.id, year=row.year, month=row.month)
                for row in group_rows
                if row.id != anchor.id
            ]
        return SeriesPlan(
            group_id=None,
            updates=[PlannedUpdate(
                expense_id=anchor.id,
                year=anchor.year,
                month=anchor.month,
                changes=_template_changes(template, group_id=None),
            )],
            deletes=deletes,
        )

    validate_range(start, end)
    months = month_range(start, end)
    anchor_month = MonthKey(anchor.year, anchor.month)

    if anchor.group_id is None and months == [anchor_month]:
        return SeriesPlan(
            group_id=None,
            updates=[PlannedUpdate(
                expense_id=anchor.id,
                year=anchor.year,
                month=anchor.month,
                changes=_template_changes(template),
            )],
        )

    if anchor.group_id is not None:
        group_id = anchor.group_id
        existing = list(group_rows)
        if all(row.id != anchor.id for row in existing):
            existing.append(anchor)
    else:
        group_id = group_id_factory()
        existing = [anchor]

    occupants: dict[str, Expense] = {}
    deletes = []
    for row in existing:
        key = MonthKey(row.year, row.month).key
        if key in occupants:
            # one row per month: later duplicates go
            deletes.append(PlannedDelete(expense_id=row.id, year=row.year, month=row.month))
        else:
            occupants[key] = row

    target_keys = {month.key for month in months}
    updates = []
    creates = []
    for month in months:
        row = occupants.get(month.key)
        if row is not None:
            updates.append(PlannedUpdate(
                expense_id=row.id,
                year=row.year,
                month=row.month,
                changes=_template_changes(template, group_id=group_id),
            ))
        else:
            creates.append(_create(template, month, group_id))

    for key, row in occupants.items():
        if key not in target_keys:
            deletes.append(PlannedDelete(expense_id=row.id, year=row.year, month=row.month))

    return SeriesPlan(
        group_id=group_id,
        creates=creates,
        updates=updates,
        deletes=deletes,
    )


def plan_income_range(start: MonthKey, end: MonthKey) -> list[MonthKey]:
    """The months a recurring income upsert writes, validated."""
    validate_range(start, end)
    return month_range(start, end)
