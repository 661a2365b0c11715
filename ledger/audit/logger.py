"""
Audit Logger

DESIGN DECISION: Every mutation of ledger data is logged.
This provides:
1. Traceability of series edits that touch many rows
2. Debugging capability when a store call fails
3. An optional persistent trail in Google Sheets

The audit logger:
- Is async so flows can await it next to storage calls
- Gracefully handles failures (a broken audit sink never fails a user action)
- Supports correlation IDs to trace the events of one request
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ledger.services.storage.interface import AuditStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog for JSON output on the standard library logger.

    Safe to call more than once; the last call wins.
    """
    logging.basicConfig(format="%(message)s")
    logging.getLogger().setLevel(level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (always)
    2. An audit storage backend such as Google Sheets (when configured)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_validation_failed(
        self,
        operation: str,
        issues: list[dict],
        user_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected request."""
        event = AuditEventBuilder.validation_failed(
            operation=operation,
            issues=issues,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        user_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed store call."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        user_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def get_trail(self, correlation_id: UUID) -> list[AuditEvent]:
        """
        Persisted events of one user action, oldest first.

        Empty when no audit storage is configured. Storage failures
        propagate to the caller.
        """
        if not self._storage:
            return []
        return await self._storage.get_events_by_correlation_id(correlation_id)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., one series edit).
    Pass it through all subsequent operations.
    """
    return uuid4()
