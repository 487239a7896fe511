"""System-level routes such as health checks."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from catalog_sync.api.dependencies import RedisDependency
from catalog_sync.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


@router.get("/")
async def read_root() -> dict[str, str]:
    """Service banner used by smoke tests."""

    return {"message": "Catalog sync service"}


@router.get("/health")
async def health_check(client: RedisDependency) -> dict[str, str]:
    """Health check endpoint with Redis connectivity check."""

    try:
        await client.ping()
        redis_status = "connected"
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        redis_status = "disconnected"

    return {
        "status": "healthy",
        "redis": redis_status,
        "environment": settings.ENVIRONMENT,
    }
