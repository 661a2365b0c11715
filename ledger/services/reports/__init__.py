"""Report blob storage package."""

from ledger.services.reports.cloudinary_store import (
    CloudinaryObjectStore,
    ObjectStoreError,
    ObjectStoreInterface,
    build_report_key,
)

__all__ = [
    "CloudinaryObjectStore",
    "ObjectStoreError",
    "ObjectStoreInterface",
    "build_report_key",
]
