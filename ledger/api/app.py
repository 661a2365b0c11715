"""
HTTP Application

Builds the FastAPI app that serves both surfaces:
- /api/...   REST endpoints for the dashboard client
- /trpc/...  typed RPC procedures

Run with:
    uvicorn ledger.api.app:create_app --factory
"""

from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ledger import __version__
from ledger.api.errors import register_exception_handlers
from ledger.api.rest import router as rest_router
from ledger.api.rpc import router as rpc_router
from ledger.orchestrator import AppComponents, create_app_components


logger = structlog.get_logger(__name__)


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Create the API application.

    Args:
        components: Prebuilt flows, e.g. over an in-memory store in tests.
                    Built from settings when omitted.
    """
    components = components or create_app_components()

    app = FastAPI(
        title="Personal Ledger API",
        description="Monthly income, expenses, fixed-expense series and report metadata.",
        version=__version__,
    )
    app.state.components = components

    # Single-user deployment behind the dashboard: allow any origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(rest_router)
    app.include_router(rpc_router)

    logger.info("api_created", version=__version__, user_id=components.default_user.id)
    return app
