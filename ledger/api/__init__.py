"""HTTP surfaces: REST under /api and typed RPC under /trpc."""

from ledger.api.app import create_app
from ledger.api.errors import RpcError, classify_error
from ledger.api.rpc import PROCEDURES

__all__ = [
    "create_app",
    "RpcError",
    "classify_error",
    "PROCEDURES",
]
