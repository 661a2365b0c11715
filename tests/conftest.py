"""Shared fakes and fixtures."""

from uuid import UUID

import pytest

from ledger.models.audit import AuditEvent
from ledger.orchestrator import create_app_components
from ledger.services.reports import ObjectStoreError, ObjectStoreInterface
from ledger.services.storage import AuditStorageInterface, InMemoryLedgerStorage


class RecordingAuditStorage(AuditStorageInterface):
    """Keeps audit events in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]

    def types(self) -> list[str]:
        return [e.event_type.value for e in self.events]


class FakeObjectStore(ObjectStoreInterface):
    """Records uploads and hands back a predictable URL."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.objects: dict[str, bytes] = {}

    async def put(self, key: str, data: bytes, content_type: str = "application/pdf") -> str:
        if self.fail:
            raise ObjectStoreError("Failed to upload report: service unavailable")
        self.objects[key] = data
        return f"https://files.example.com/{key}"


@pytest.fixture
def audit_storage():
    return RecordingAuditStorage()


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def components(audit_storage, object_store):
    return create_app_components(
        storage=InMemoryLedgerStorage(),
        object_store=object_store,
        audit_storage=audit_storage,
        use_external_services=False,
    )
