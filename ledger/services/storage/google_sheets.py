"""
Google Sheets Audit Trail

DESIGN DECISION: Ledger rows live in the relational store, but the audit
trail can optionally be mirrored to a Google Sheet because:
1. The user can read the history of their changes without a SQL client
2. No extra infrastructure is needed for a personal deployment
3. Appends are the only write, which suits a spreadsheet well

TRADEOFFS:
- Reads scan the whole sheet (fine for a personal audit log)
- The Sheets API is rate limited, so appends retry with backoff
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger.config import GoogleSheetsSettings, get_settings
from ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column order matches AuditEvent.to_sheets_row
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

CORRELATION_COLUMN = AUDIT_COLUMNS.index("correlation_id")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the audit worksheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )

        try:
            sheet = self._spreadsheet.worksheet(self._settings.audit_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = self._spreadsheet.add_worksheet(
                title=self._settings.audit_sheet_name,
                rows=5000,
                cols=len(AUDIT_COLUMNS),
            )
            sheet.append_row(AUDIT_COLUMNS)
        return sheet


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    One event per row; details are JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_to_event(row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def cell(index: int) -> str:
            return row[index] if index < len(row) else ""

        return AuditEvent(
            event_id=UUID(cell(0)),
            timestamp=datetime.fromisoformat(cell(1)),
            event_type=AuditEventType(cell(2)),
            severity=AuditSeverity(cell(3)),
            user_id=int(cell(4)) if cell(4) else None,
            entity_type=cell(5) or None,
            entity_id=cell(6) or None,
            correlation_id=UUID(cell(7)) if cell(7) else None,
            description=cell(8),
            details=json.loads(cell(9)) if cell(9) else {},
            error_message=cell(10) or None,
            is_user_action=cell(11).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are logged, never raised."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            logger.warning(
                "audit_sheet_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID, oldest first."""
        try:
            sheet = self._client.get_audit_sheet()
            rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if len(row) > CORRELATION_COLUMN and row[CORRELATION_COLUMN] == str(correlation_id):
                try:
                    events.append(self._row_to_event(row))
                except ValueError as e:
                    logger.warning("audit_row_unreadable", error=str(e))

        events.sort(key=lambda e: e.timestamp)
        return events
