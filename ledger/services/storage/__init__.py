"""
Storage Services Package

Provides the abstract ledger storage interface and its implementations:
a SQLAlchemy store for PostgreSQL/SQLite, an in-memory store, and an
optional Google Sheets audit trail.
"""

from ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    wrap_storage_error,
)
from ledger.services.storage.memory import InMemoryLedgerStorage
from ledger.services.storage.sql import SqlLedgerStorage, build_engine
from ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    "wrap_storage_error",
    # Implementations
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "InMemoryLedgerStorage",
    "SqlLedgerStorage",
    "build_engine",
]
