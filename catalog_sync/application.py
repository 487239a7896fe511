"""FastAPI application factory and bootstrap helpers."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_sync.api.routes import include_api_routes
from catalog_sync.config import settings
from catalog_sync.errors import DomainError
from catalog_sync.services.clients.catalog_client import close_catalog_client
from catalog_sync.services.storage.redis_client import close_redis_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events."""
    logger.info("Starting catalog sync service", extra={"environment": settings.ENVIRONMENT})

    yield

    await close_catalog_client()
    try:
        await close_redis_client()
    except Exception:
        logger.exception("Failed closing Redis client on shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Catalog Sync",
        description="WhatsApp catalog synchronization and media lifecycle service",
        version="1.0.0",
        lifespan=lifespan,
    )

    _configure_cors(app)
    _register_error_handlers(app)
    include_api_routes(app)

    return app


def _configure_cors(app: FastAPI) -> None:
    """Allow broad access in non-production environments."""

    if settings.is_production:
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _register_error_handlers(app: FastAPI) -> None:
    """Render domain errors as ``{"error": {...}}`` with their HTTP status."""

    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("Request failed: %s", exc.message, extra={"path": request.url.path})
        return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})
