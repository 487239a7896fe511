"""FastAPI dependency factories wiring the services together."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends, Header

from catalog_sync.config import EngineConfig, settings
from catalog_sync.errors import UnauthenticatedError
from catalog_sync.services.access import AccessGate
from catalog_sync.services.analytics import AnalyticsRecorder
from catalog_sync.services.catalog.orchestrator import SyncOrchestrator
from catalog_sync.services.clients.catalog_client import (
    RemoteCatalogClient,
    get_catalog_client,
)
from catalog_sync.services.media.manager import MediaLifecycleManager
from catalog_sync.services.media.optimizer import ImageOptimizer, PillowImageOptimizer
from catalog_sync.services.notifications.dispatcher import NotificationDispatcher
from catalog_sync.services.storage.document_store import (
    DocumentStore,
    RedisDocumentStore,
)
from catalog_sync.services.storage.redis_client import get_redis_client


@lru_cache(maxsize=1)
def get_engine_config() -> EngineConfig:
    return EngineConfig.from_settings(settings)


def get_image_optimizer(
    config: Annotated[EngineConfig, Depends(get_engine_config)],
) -> ImageOptimizer:
    return PillowImageOptimizer(config)


def get_document_store(
    client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> DocumentStore:
    return RedisDocumentStore(client, settings.DOCUMENT_KEY_PREFIX)


RedisDependency = Annotated[redis.Redis, Depends(get_redis_client)]
ConfigDependency = Annotated[EngineConfig, Depends(get_engine_config)]
StoreDependency = Annotated[DocumentStore, Depends(get_document_store)]
CatalogClientDependency = Annotated[RemoteCatalogClient, Depends(get_catalog_client)]
OptimizerDependency = Annotated[ImageOptimizer, Depends(get_image_optimizer)]


def get_access_gate(store: StoreDependency) -> AccessGate:
    return AccessGate(store)


def get_analytics_recorder(store: StoreDependency) -> AnalyticsRecorder:
    return AnalyticsRecorder(store)


GateDependency = Annotated[AccessGate, Depends(get_access_gate)]
AnalyticsDependency = Annotated[AnalyticsRecorder, Depends(get_analytics_recorder)]


def get_media_manager(
    store: StoreDependency,
    client: CatalogClientDependency,
    optimizer: OptimizerDependency,
    gate: GateDependency,
    analytics: AnalyticsDependency,
    config: ConfigDependency,
) -> MediaLifecycleManager:
    return MediaLifecycleManager(
        store=store,
        client=client,
        optimizer=optimizer,
        gate=gate,
        analytics=analytics,
        config=config,
    )


MediaManagerDependency = Annotated[MediaLifecycleManager, Depends(get_media_manager)]


def get_sync_orchestrator(
    store: StoreDependency,
    client: CatalogClientDependency,
    media: MediaManagerDependency,
    gate: GateDependency,
    analytics: AnalyticsDependency,
    config: ConfigDependency,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        store=store,
        client=client,
        media=media,
        gate=gate,
        analytics=analytics,
        config=config,
    )


def get_notification_dispatcher(
    store: StoreDependency,
    client: CatalogClientDependency,
    gate: GateDependency,
    analytics: AnalyticsDependency,
    config: ConfigDependency,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        store=store,
        client=client,
        gate=gate,
        analytics=analytics,
        config=config,
    )


def get_caller_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Identity of the already-authenticated caller."""
    if not x_user_id:
        raise UnauthenticatedError()
    return x_user_id


OrchestratorDependency = Annotated[SyncOrchestrator, Depends(get_sync_orchestrator)]
DispatcherDependency = Annotated[
    NotificationDispatcher, Depends(get_notification_dispatcher)
]
CallerDependency = Annotated[str, Depends(get_caller_id)]
