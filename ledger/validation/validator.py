"""
Request Validation

DESIGN DECISION: Every check that can reject a request runs before the
first store call. Pydantic models cover types and field bounds; this
module covers the rules that span fields or arrive as loose input:

- periods given as query parameters
- month ranges (end must not precede start)
- id lists for bulk updates
- category names and report payloads

IMPORTANT: Validation NEVER silently fixes issues it can't coerce.
It reports them and the request is rejected.
"""

import base64
import binascii
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, Field

from ledger.config import AppSettings, get_settings
from ledger.models.finance import MAX_AMOUNT
from ledger.models.series import MonthKey


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'inverted_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class LedgerValidationError(ValueError):
    """A request was rejected before any mutation was attempted."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues) or "Invalid request")

    def to_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]

    @classmethod
    def single(
        cls,
        field: str,
        issue_type: str,
        message: str,
        suggested_fix: Optional[str] = None,
    ) -> "LedgerValidationError":
        return cls([ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
            suggested_fix=suggested_fix,
        )])


class InvalidRangeError(LedgerValidationError):
    """The end of a month range precedes its start."""
    pass


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    if number != number.to_integral_value():
        return None
    return int(number)


class LedgerValidator:
    """
    Validates loose request input.

    Methods named check_* return issues; the others raise
    LedgerValidationError and return the cleaned value.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    # ------------------------------------------------------------------
    # Periods
    # ------------------------------------------------------------------

    def check_period(self, year: Any, month: Any) -> list[ValidationIssue]:
        """Year and month must both be present and non-zero integers."""
        issues = []
        if not _as_int(year):
            issues.append(ValidationIssue(
                field="year",
                issue_type="missing",
                message="Year and month are required",
            ))
        if not _as_int(month):
            issues.append(ValidationIssue(
                field="month",
                issue_type="missing",
                message="Year and month are required",
            ))
        return issues

    def require_period(self, year: Any, month: Any) -> tuple[int, int]:
        """
        Presence check for a period given as query parameters.

        Month bounds are NOT checked here: an out-of-range month simply
        matches no rows.
        """
        issues = self.check_period(year, month)
        if issues:
            raise LedgerValidationError(issues[:1])
        return _as_int(year), _as_int(month)

    @staticmethod
    def check_month_key(key: MonthKey, field: str) -> list[ValidationIssue]:
        if 1 <= key.month <= 12:
            return []
        return [ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message=f"Month must be between 1 and 12, got {key.month}",
        )]

    # ------------------------------------------------------------------
    # Amounts, ids and names
    # ------------------------------------------------------------------

    @staticmethod
    def check_amount(amount: Any, field: str = "amount") -> list[ValidationIssue]:
        """Amounts must parse as a non-negative decimal."""
        if amount is None or (isinstance(amount, str) and not amount.strip()):
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message="Amount is required",
            )]
        if isinstance(amount, bool):
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be a number",
            )]
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"Amount is not a number: {amount!r}",
            )]
        if not value.is_finite() or value < 0:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be zero or greater",
            )]
        if value > MAX_AMOUNT:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"Amount must not exceed {MAX_AMOUNT}",
            )]
        return []

    @staticmethod
    def parse_id(raw: Any, field: str = "id") -> int:
        """A single positive id, e.g. from a query parameter."""
        value = _as_int(raw) if raw is not None else None
        if value is None or value <= 0:
            raise LedgerValidationError.single(field, "missing", "ID is required")
        return value

    @staticmethod
    def parse_expense_ids(raw: Any) -> list[int]:
        """
        Coerce a bulk-update id list.

        Non-numeric and non-positive entries are dropped; duplicates are
        kept once in first-seen order. An empty result is rejected.
        """
        if not isinstance(raw, (list, tuple)):
            raise LedgerValidationError.single(
                "ids", "missing", "Expense ids and paid status are required",
            )
        ids = []
        for item in raw:
            value = _as_int(item)
            if value is not None and value > 0 and value not in ids:
                ids.append(value)
        if not ids:
            raise LedgerValidationError.single(
                "ids", "invalid_value", "Invalid expense ids",
                suggested_fix="Send at least one positive expense id",
            )
        return ids

    @staticmethod
    def clean_category_name(name: Any) -> str:
        if not isinstance(name, str) or not name.strip():
            raise LedgerValidationError.single(
                "name", "missing", "Category name is required",
            )
        cleaned = name.strip()
        if len(cleaned) > 100:
            raise LedgerValidationError.single(
                "name", "invalid_value", "Category name must be at most 100 characters",
            )
        return cleaned

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def decode_report_content(self, content: Any) -> bytes:
        """Decode base64 PDF content and enforce the configured size limit."""
        if not isinstance(content, str) or not content.strip():
            raise LedgerValidationError.single(
                "pdfContent", "missing", "Report content is required",
            )
        try:
            data = base64.b64decode(content.strip(), validate=True)
        except (binascii.Error, ValueError):
            raise LedgerValidationError.single(
                "pdfContent", "invalid_format", "Report content is not valid base64",
            )
        if not data:
            raise LedgerValidationError.single(
                "pdfContent", "missing", "Report content is empty",
            )
        if len(data) > self._settings.max_report_size_bytes:
            raise LedgerValidationError.single(
                "pdfContent",
                "too_large",
                f"Report is larger than {self._settings.max_report_size_mb} MB",
            )
        return data


def get_user_friendly_summary(error: LedgerValidationError) -> str:
    """
    Generate a user-friendly summary of a rejected request.

    This is what the dashboard shows next to a form.
    """
    lines = ["❌ Please fix the following:"]
    for issue in error.issues:
        lines.append(f"   • {issue.message}")
        if issue.suggested_fix:
            lines.append(f"     💡 {issue.suggested_fix}")
    return "\n".join(lines)
