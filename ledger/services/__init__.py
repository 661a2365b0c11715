"""Services package."""

from ledger.services.reports import (
    CloudinaryObjectStore,
    ObjectStoreError,
    ObjectStoreInterface,
    build_report_key,
)
from ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    SqlLedgerStorage,
    StorageError,
)

__all__ = [
    # Report services
    "CloudinaryObjectStore",
    "ObjectStoreError",
    "ObjectStoreInterface",
    "build_report_key",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "SqlLedgerStorage",
    "StorageError",
]
