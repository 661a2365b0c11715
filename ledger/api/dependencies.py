"""FastAPI dependencies shared by the REST and RPC routers."""

from fastapi import Depends, Request

from ledger.models.finance import UserContext
from ledger.orchestrator import AppComponents


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def get_user(components: AppComponents = Depends(get_components)) -> UserContext:
    """
    The identity of the current request.

    Authentication is out of scope: every request runs as the configured
    default user.
    """
    return components.default_user
