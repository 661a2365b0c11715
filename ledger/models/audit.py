"""
Audit Models for Personal Ledger

Every mutation of ledger data is logged for audit purposes.
This provides:
1. Traceability of who changed what, and when
2. Debugging information when a store call fails
3. A record of partial work if a user action is interrupted

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_DELETED = "category_deleted"

    # Income
    INCOME_UPSERTED = "income_upserted"
    INCOME_RANGE_UPSERTED = "income_range_upserted"

    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    PAID_STATUS_UPDATED = "paid_status_updated"
    SERIES_APPLIED = "series_applied"

    # Reports
    REPORT_GENERATED = "report_generated"
    REPORT_DELETED = "report_deleted"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORAGE_ERROR = "storage_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    user_id: Optional[int] = Field(
        default=None,
        description="User the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'income', 'series')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one form submit)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.user_id) if self.user_id is not None else "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(user_id, expense_id, ...)
        event = AuditEventBuilder.series_applied(user_id, group_id, ...)
    """

    @staticmethod
    def category_created(
        user_id: int,
        category_id: int,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            user_id=user_id,
            entity_type="category",
            entity_id=str(category_id),
            correlation_id=correlation_id,
            description=f"Category created: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(
        user_id: int,
        category_id: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            user_id=user_id,
            entity_type="category",
            entity_id=str(category_id),
            correlation_id=correlation_id,
            description=f"Category {category_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def income_upserted(
        user_id: int,
        income_id: int,
        period: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_UPSERTED,
            user_id=user_id,
            entity_type="income",
            entity_id=str(income_id),
            correlation_id=correlation_id,
            description=f"Income for {period} set to {amount}",
            details={"period": period, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def income_range_upserted(
        user_id: int,
        start: str,
        end: str,
        months: int,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_RANGE_UPSERTED,
            user_id=user_id,
            entity_type="income",
            correlation_id=correlation_id,
            description=f"Income set to {amount} for {months} months ({start} to {end})",
            details={"start": start, "end": end, "months": months, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def expense_created(
        user_id: int,
        expense_id: int,
        period: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            user_id=user_id,
            entity_type="expense",
            entity_id=str(expense_id),
            correlation_id=correlation_id,
            description=f"Expense created for {period}: {amount}",
            details={"period": period, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        user_id: int,
        expense_id: int,
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            user_id=user_id,
            entity_type="expense",
            entity_id=str(expense_id),
            correlation_id=correlation_id,
            description=f"Expense {expense_id} updated",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        user_id: int,
        expense_id: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            user_id=user_id,
            entity_type="expense",
            entity_id=str(expense_id),
            correlation_id=correlation_id,
            description=f"Expense {expense_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def paid_status_updated(
        user_id: int,
        expense_ids: list[int],
        paid: bool,
        updated: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        state = "paid" if paid else "unpaid"
        return AuditEvent(
            event_type=AuditEventType.PAID_STATUS_UPDATED,
            user_id=user_id,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"{updated} expenses marked {state}",
            details={"expense_ids": expense_ids, "paid": paid, "updated": updated},
            is_user_action=True,
        )

    @staticmethod
    def series_applied(
        user_id: int,
        group_id: Optional[str],
        created: int,
        updated: int,
        deleted: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_APPLIED,
            user_id=user_id,
            entity_type="series",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=(
                f"Series applied: {created} created, "
                f"{updated} updated, {deleted} deleted"
            ),
            details={"created": created, "updated": updated, "deleted": deleted},
            is_user_action=True,
        )

    @staticmethod
    def report_generated(
        user_id: int,
        report_id: int,
        file_key: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            user_id=user_id,
            entity_type="report",
            entity_id=str(report_id),
            correlation_id=correlation_id,
            description=f"Report stored: {file_key}",
            details={"file_key": file_key},
            is_user_action=True,
        )

    @staticmethod
    def report_deleted(
        user_id: int,
        report_id: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_DELETED,
            user_id=user_id,
            entity_type="report",
            entity_id=str(report_id),
            correlation_id=correlation_id,
            description=f"Report {report_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        user_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={"operation": operation, "issues": issues},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        user_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        user_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
