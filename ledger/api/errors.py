"""
Error Mapping

One place decides how an exception looks on the wire:

| Exception                          | HTTP | RPC code              |
|------------------------------------|------|-----------------------|
| LedgerValidationError, schema error| 400  | BAD_REQUEST           |
| NotFoundError                      | 404  | NOT_FOUND             |
| StorageError, ObjectStoreError     | 500  | INTERNAL_SERVER_ERROR |

REST bodies are {"error": message}; RPC bodies are
{"error": {"message": message, "code": code}}.
"""

from typing import Sequence

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ledger.services.reports import ObjectStoreError
from ledger.services.storage import NotFoundError, StorageError
from ledger.validation import LedgerValidationError


logger = structlog.get_logger(__name__)

RPC_STATUS = {
    "BAD_REQUEST": 400,
    "NOT_FOUND": 404,
    "METHOD_NOT_SUPPORTED": 405,
    "INTERNAL_SERVER_ERROR": 500,
}


class RpcError(Exception):
    """An RPC failure with an explicit code."""

    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(message)


def describe_schema_errors(errors: Sequence[dict]) -> str:
    """Turn pydantic error dicts into one readable line."""
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def classify_error(exc: Exception) -> tuple[str, str]:
    """
    Map an exception to (rpc_code, message).

    Unknown exceptions become INTERNAL_SERVER_ERROR and are logged with
    their traceback.
    """
    if isinstance(exc, RpcError):
        return exc.code, str(exc)
    if isinstance(exc, LedgerValidationError):
        return "BAD_REQUEST", str(exc)
    if isinstance(exc, (ValidationError, RequestValidationError)):
        return "BAD_REQUEST", describe_schema_errors(exc.errors())
    if isinstance(exc, NotFoundError):
        return "NOT_FOUND", str(exc)
    if isinstance(exc, (StorageError, ObjectStoreError)):
        return "INTERNAL_SERVER_ERROR", str(exc)

    logger.exception("unexpected_error", error=str(exc))
    return "INTERNAL_SERVER_ERROR", f"Unexpected error: {exc}"


def rest_error_response(exc: Exception) -> JSONResponse:
    code, message = classify_error(exc)
    return JSONResponse(status_code=RPC_STATUS[code], content={"error": message})


def rpc_error_response(exc: Exception) -> JSONResponse:
    code, message = classify_error(exc)
    return JSONResponse(
        status_code=RPC_STATUS[code],
        content={"error": {"message": message, "code": code}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """REST error bodies for every exception the flows raise."""

    async def handle(request: Request, exc: Exception) -> JSONResponse:
        return rest_error_response(exc)

    for exc_class in (
        LedgerValidationError,
        ValidationError,
        RequestValidationError,
        StorageError,
        ObjectStoreError,
        Exception,
    ):
        app.add_exception_handler(exc_class, handle)
