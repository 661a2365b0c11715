"""Validation package."""

from ledger.validation.validator import (
    InvalidRangeError,
    LedgerValidationError,
    LedgerValidator,
    ValidationIssue,
    get_user_friendly_summary,
)

__all__ = [
    "InvalidRangeError",
    "LedgerValidationError",
    "LedgerValidator",
    "ValidationIssue",
    "get_user_friendly_summary",
]
