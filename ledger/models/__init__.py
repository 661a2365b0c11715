"""
Data Models Package

This package contains all Pydantic models used in the Personal Ledger system.
All data flowing through the system must conform to these schemas.
"""

from ledger.models.finance import (
    Category,
    CategoryBreakdown,
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
from ledger.models.series import (
    MonthKey,
    PlannedCreate,
    PlannedDelete,
    PlannedUpdate,
    SeriesPlan,
    SeriesResult,
    SeriesTemplate,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Category",
    "CategoryBreakdown",
    "DashboardPayload",
    "Expense",
    "ExpenseType",
    "ExpenseUpdate",
    "IncomeUpsert",
    "MonthlyIncome",
    "MonthlySummary",
    "NewCategory",
    "NewExpense",
    "NewReport",
    "Report",
    "UserContext",
    "unique_categories",
    # Series models
    "MonthKey",
    "PlannedCreate",
    "PlannedDelete",
    "PlannedUpdate",
    "SeriesPlan",
    "SeriesResult",
    "SeriesTemplate",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
