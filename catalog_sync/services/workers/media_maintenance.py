"""Periodic media refresh and garbage collection for every enabled business."""

from __future__ import annotations

import asyncio
import logging

from catalog_sync.config import EngineConfig, settings
from catalog_sync.models.business import Business
from catalog_sync.services.access import AccessGate
from catalog_sync.services.analytics import AnalyticsRecorder
from catalog_sync.services.clients.catalog_client import (
    close_catalog_client,
    get_catalog_client,
)
from catalog_sync.services.media.manager import MediaLifecycleManager
from catalog_sync.services.media.optimizer import PillowImageOptimizer
from catalog_sync.services.storage import collections
from catalog_sync.services.storage.document_store import (
    DocumentStore,
    RedisDocumentStore,
    where,
)
from catalog_sync.services.storage.redis_client import (
    close_redis_client,
    get_redis_client,
)
from catalog_sync.services.workers.base import BaseWorker

logger = logging.getLogger(__name__)


class MediaMaintenanceWorker(BaseWorker):
    """Refreshes expiring media and removes unreferenced records on an interval."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        gate: AccessGate,
        media: MediaLifecycleManager,
        interval_seconds: float,
        refresh_buffer_days: int,
        cleanup_age_days: int,
        worker_name: str | None = None,
    ) -> None:
        super().__init__(worker_name)
        self.store = store
        self.gate = gate
        self.media = media
        self.interval_seconds = interval_seconds
        self.refresh_buffer_days = refresh_buffer_days
        self.cleanup_age_days = cleanup_age_days

    async def run_forever(self) -> None:
        logger.info(
            "Media maintenance worker started",
            extra={"worker": self.worker_name, "interval": self.interval_seconds},
        )
        try:
            while not self.is_shutdown_requested():
                try:
                    await self.run_once()
                except Exception:
                    logger.exception("Media maintenance pass failed")
                if await self.wait_for_shutdown(self.interval_seconds):
                    break
        except asyncio.CancelledError:
            logger.info("Media maintenance worker %s cancelled", self.worker_name)
            raise

    async def run_once(self) -> dict[str, int]:
        """Run one pass over all WhatsApp-enabled businesses."""
        documents = await self.store.query(
            collections.BUSINESSES, [where("whatsapp_enabled", "==", True)]
        )
        stats = {"businesses": len(documents), "failed": 0, "refreshed": 0, "deleted": 0}

        for document in documents:
            if self.is_shutdown_requested():
                break
            business = Business.model_validate(document)
            try:
                owner = await self.gate.get_owner(business.id)
                if not owner:
                    logger.warning("Business %s has no owner, skipping", business.id)
                    continue
                refreshed = await self.media.refresh_expiring(
                    business.id, self.refresh_buffer_days, owner
                )
                cleaned = await self.media.cleanup_unused(
                    business.id, self.cleanup_age_days, owner
                )
            except Exception:
                logger.exception(
                    "Media maintenance failed", extra={"business_id": business.id}
                )
                stats["failed"] += 1
                continue

            stats["refreshed"] += refreshed.refreshed
            stats["deleted"] += cleaned.deleted_count

        logger.info("Media maintenance pass completed", extra=stats)
        return stats


def create_media_maintenance_worker() -> MediaMaintenanceWorker:
    """Factory function to create the worker with all dependencies."""
    config = EngineConfig.from_settings(settings)
    store = RedisDocumentStore(get_redis_client(), settings.DOCUMENT_KEY_PREFIX)
    gate = AccessGate(store)
    media = MediaLifecycleManager(
        store=store,
        client=get_catalog_client(),
        optimizer=PillowImageOptimizer(config),
        gate=gate,
        analytics=AnalyticsRecorder(store),
        config=config,
    )
    return MediaMaintenanceWorker(
        store=store,
        gate=gate,
        media=media,
        interval_seconds=settings.MAINTENANCE_INTERVAL_SECONDS,
        refresh_buffer_days=settings.MEDIA_REFRESH_BUFFER_DAYS,
        cleanup_age_days=settings.MEDIA_CLEANUP_AGE_DAYS,
    )


async def run_worker() -> None:
    worker = create_media_maintenance_worker()
    try:
        await worker.run_forever()
    finally:
        await close_catalog_client()
        await close_redis_client()


def main() -> None:
    """CLI entry point."""
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("Media maintenance worker interrupted, shutting down")


if __name__ == "__main__":
    main()
