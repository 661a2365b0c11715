"""Tests for the audit logger."""

import asyncio

from ledger.audit import AuditLogger, create_correlation_id
from ledger.models.audit import AuditEventBuilder
from ledger.models.finance import ExpenseType


def run(coro):
    return asyncio.run(coro)


class TestAuditTrail:
    """Tests for looking up the events of one action."""

    def test_trail_lists_events_of_one_action(self, components):
        user = components.default_user
        correlation_id = create_correlation_id()
        run(components.expenses.create(
            user, 2024, 3, ExpenseType.VARIABLE, "5",
            category_name="Food", correlation_id=correlation_id,
        ))
        run(components.income.upsert(user, 2024, 3, "100"))

        trail = run(components.audit_logger.get_trail(correlation_id))
        assert [e.event_type.value for e in trail] == ["category_created", "expense_created"]

    def test_trail_is_empty_without_storage(self):
        assert run(AuditLogger().get_trail(create_correlation_id())) == []

    def test_failed_audit_write_does_not_raise(self, audit_storage):
        class BrokenStorage(type(audit_storage)):
            async def append_event(self, event):
                raise RuntimeError("sheet unavailable")

        event = AuditEventBuilder.validation_failed(operation="create expense", issues=[])
        assert run(AuditLogger(BrokenStorage()).log(event)) is False
