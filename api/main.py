#!/usr/bin/env python3
"""
Grouping API - HTTP layer for the camper grouping engine.

Thin request handling over GroupingEngine:
- Auto-grouping runs over a submitted roster
- Manual moves with override acknowledgement
- Review / finalize / unfinalize lifecycle
- Report snapshots for export
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from grouping.errors import GroupingError
from grouping.logging_config import configure_logging

from .dependencies import authenticate_pb
from .routers.grouping import to_http_exception
from .settings import get_settings

# Configure unified logging format
# Format: 2026-01-06T14:05:52Z [api] LEVEL message
configure_logging(source="api")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle - startup and shutdown."""
    settings = get_settings()

    if settings.uses_pocketbase and not settings.skip_pb_auth:
        await authenticate_pb()
    elif settings.uses_pocketbase:
        logger.warning("Skipping PocketBase authentication (SKIP_PB_AUTH=true)")
    else:
        logger.info("Grouping store is in-memory; PocketBase not used")

    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="Grouping API", description="Camper grouping engine API", lifespan=lifespan)

    # Fallback for engine errors raised outside the router's own mapping
    @app.exception_handler(GroupingError)
    async def grouping_error_handler(request: Request, exc: GroupingError) -> JSONResponse:
        http_error = to_http_exception(exc)
        return JSONResponse(status_code=http_error.status_code, content={"detail": http_error.detail})

    settings = get_settings()

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Register routers
    from .routers import grouping

    app.include_router(grouping.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "grouping-api"}

    return app


# Create app instance for uvicorn
app = create_app()
