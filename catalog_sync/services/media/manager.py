"""Remote media lifecycle: upload, expiry refresh and garbage collection.

Every uploaded image gets a ``MediaRecord`` in ``whatsapp_media`` pointing
back at its owner through ``(reference_type, reference_id)``. The owner keeps
the current remote handle in ``whatsapp_image_id``. Records are never
cascaded; ``cleanup_unused`` removes records no owner or active order still
points at.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlparse

from catalog_sync.config import EngineConfig
from catalog_sync.errors import ErrorReason, InternalError, InvalidArgumentError
from catalog_sync.models.business import WhatsAppConfig
from catalog_sync.models.media import (
    ItemFailure,
    MediaBatchResult,
    MediaCleanupResult,
    MediaPurpose,
    MediaRecord,
    MediaRefreshResult,
    ReferenceType,
    UploadMediaRequest,
    UploadMediaResult,
    UploadStatus,
)
from catalog_sync.models.product import Category, Product
from catalog_sync.services.access import AccessGate
from catalog_sync.services.analytics import AnalyticsEvent, AnalyticsRecorder
from catalog_sync.services.batching import gather_bounded
from catalog_sync.services.business_settings import get_whatsapp_config
from catalog_sync.services.clients.catalog_client import RemoteCatalogClient
from catalog_sync.services.media.optimizer import ImageOptimizer
from catalog_sync.services.storage import collections
from catalog_sync.services.storage.document_store import DocumentStore, where

logger = logging.getLogger(__name__)

ACTIVE_ORDER_STATUSES = ("pending", "processing")

MediaOwner = Product | Category


class MediaOwnerMissingError(LookupError):
    """The product or category a media record points at no longer exists."""


@dataclass(frozen=True)
class ReferenceHandler:
    """How to find and inspect the owner of a media record."""

    collection: str
    references: Callable[[dict[str, Any], str], bool]


def _product_references(document: dict[str, Any], handle: str) -> bool:
    if document.get("whatsapp_image_id") == handle:
        return True
    return handle in (document.get("additional_image_ids") or [])


def _category_references(document: dict[str, Any], handle: str) -> bool:
    return document.get("whatsapp_image_id") == handle


REFERENCE_HANDLERS: dict[ReferenceType, ReferenceHandler] = {
    ReferenceType.PRODUCTS: ReferenceHandler(collections.PRODUCTS, _product_references),
    ReferenceType.CATEGORIES: ReferenceHandler(
        collections.CATEGORIES, _category_references
    ),
}


def validate_image_url(image_url: str) -> None:
    parsed = urlparse(image_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidArgumentError("Invalid image URL")


class MediaLifecycleManager:
    """Mirrors owner images into the remote media store and tracks their expiry."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        client: RemoteCatalogClient,
        optimizer: ImageOptimizer,
        gate: AccessGate,
        analytics: AnalyticsRecorder,
        config: EngineConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._optimizer = optimizer
        self._gate = gate
        self._analytics = analytics
        self._config = config
        self._clock = clock or (lambda: datetime.now(UTC))

    async def ensure_media(
        self,
        business_id: str,
        entity_id: str,
        entity: MediaOwner,
        purpose: MediaPurpose = MediaPurpose.PRODUCT,
        reference_type: ReferenceType = ReferenceType.PRODUCTS,
        *,
        whatsapp_config: WhatsAppConfig | None = None,
    ) -> str | None:
        """Return the entity's remote handle, uploading its image first if needed.

        Never raises: failures are logged and ``None`` is returned so callers
        can carry on without an image. On success ``entity`` is updated in
        place with the new handle.
        """
        if entity.whatsapp_image_id:
            return entity.whatsapp_image_id
        if not entity.image_url:
            return None

        try:
            config = whatsapp_config or await get_whatsapp_config(
                self._store, business_id
            )
            record = await self._upload_and_record(
                config,
                business_id=business_id,
                image_url=entity.image_url,
                purpose=purpose,
                reference_id=entity_id,
                reference_type=reference_type,
            )
        except Exception:
            logger.exception(
                "Failed to ensure media",
                extra={"business_id": business_id, "entity_id": entity_id},
            )
            return None

        entity.whatsapp_image_id = record.whatsapp_media_id
        entity.whatsapp_image_url = entity.image_url
        entity.updated_at = record.uploaded_at
        return record.whatsapp_media_id

    async def upload_media(
        self, request: UploadMediaRequest, caller: str | None
    ) -> UploadMediaResult:
        validate_image_url(request.image_url)
        await self._gate.authorize(caller, request.business_id)
        config = await get_whatsapp_config(self._store, request.business_id)

        logger.info(
            "Starting media upload",
            extra={
                "business_id": request.business_id,
                "purpose": request.purpose.value,
                "reference_id": request.reference_id,
            },
        )
        try:
            record = await self._upload_and_record(
                config,
                business_id=request.business_id,
                image_url=request.image_url,
                purpose=request.purpose,
                reference_id=request.reference_id,
                reference_type=request.reference_type,
            )
        except Exception as exc:
            logger.exception(
                "Media upload failed",
                extra={"business_id": request.business_id, "image_url": request.image_url},
            )
            raise InternalError(
                f"Media upload failed: {exc}", reason=ErrorReason.MEDIA_UPLOAD_FAILED
            ) from exc

        await self._analytics.log(
            request.business_id,
            AnalyticsEvent.MEDIA_UPLOAD,
            {
                "purpose": request.purpose.value,
                "reference_type": request.reference_type.value,
                "file_size": record.file_size,
            },
        )
        return UploadMediaResult(
            whatsapp_media_id=record.whatsapp_media_id, media_doc_id=record.id
        )

    async def batch_upload_media(
        self, business_id: str, product_ids: list[str], caller: str | None
    ) -> MediaBatchResult:
        await self._gate.authorize(caller, business_id)
        config = await get_whatsapp_config(self._store, business_id)

        async def upload_one(product_id: str) -> bool:
            data = await self._store.get(collections.PRODUCTS, product_id)
            if data is None:
                raise LookupError("Product not found")
            product = Product.model_validate(data)
            if product.business_id != business_id:
                raise PermissionError("Product does not belong to this business")
            if not product.image_url or product.whatsapp_image_id:
                return False
            await self._upload_and_record(
                config,
                business_id=business_id,
                image_url=product.image_url,
                purpose=MediaPurpose.PRODUCT,
                reference_id=product_id,
                reference_type=ReferenceType.PRODUCTS,
            )
            return True

        outcomes = await gather_bounded(
            product_ids, upload_one, self._config.media_upload_concurrency
        )

        result = MediaBatchResult(total=len(product_ids))
        for product_id, outcome in zip(product_ids, outcomes):
            if isinstance(outcome, BaseException):
                result.failed += 1
                result.errors.append(ItemFailure(item_id=product_id, error=str(outcome)))
            elif outcome:
                result.successful += 1
            else:
                result.skipped += 1

        logger.info(
            "Batch media upload completed",
            extra={"business_id": business_id, **result.model_dump(exclude={"errors"})},
        )
        return result

    async def refresh_expiring(
        self, business_id: str, buffer_days: int, caller: str | None
    ) -> MediaRefreshResult:
        """Re-upload every live record expiring within ``buffer_days``."""
        await self._gate.authorize(caller, business_id)
        config = await get_whatsapp_config(self._store, business_id)

        horizon = self._clock() + timedelta(days=buffer_days)
        documents = await self._store.query(
            collections.MEDIA,
            [
                where("business_id", "==", business_id),
                where("upload_status", "==", UploadStatus.UPLOADED),
                where("expires_at", "<=", horizon),
            ],
        )
        records = [MediaRecord.model_validate(doc) for doc in documents]

        async def refresh_one(record: MediaRecord) -> bool:
            try:
                await self._upload_and_record(
                    config,
                    business_id=business_id,
                    image_url=record.original_url,
                    purpose=record.purpose,
                    reference_id=record.reference_id,
                    reference_type=record.reference_type,
                    superseded_id=record.id,
                )
            except MediaOwnerMissingError:
                logger.info(
                    "Owner of media %s is gone, expiring without refresh", record.id
                )
                await self._store.update(
                    collections.MEDIA, record.id, self._expired_fields()
                )
                return False
            return True

        outcomes = await gather_bounded(
            records, refresh_one, self._config.media_upload_concurrency
        )

        result = MediaRefreshResult(total=len(records))
        for record, outcome in zip(records, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Media refresh failed for %s: %s", record.id, outcome
                )
                result.failed += 1
                result.errors.append(ItemFailure(item_id=record.id, error=str(outcome)))
            elif outcome:
                result.refreshed += 1
            else:
                result.skipped += 1

        logger.info(
            "Media refresh completed",
            extra={"business_id": business_id, "total": result.total, "refreshed": result.refreshed},
        )
        return result

    async def cleanup_unused(
        self, business_id: str, older_than_days: int, caller: str | None
    ) -> MediaCleanupResult:
        """Delete records older than the cutoff that nothing references any more."""
        await self._gate.authorize(caller, business_id)

        cutoff = self._clock() - timedelta(days=older_than_days)
        documents = await self._store.query(
            collections.MEDIA,
            [
                where("business_id", "==", business_id),
                where("created_at", "<=", cutoff),
            ],
        )
        records = [MediaRecord.model_validate(doc) for doc in documents]

        order_handles = await self._active_order_handles(business_id)

        batch = self._store.batch()
        deleted_ids: list[str] = []
        for record in records:
            if await self._is_referenced(record, order_handles):
                continue
            batch.delete(collections.MEDIA, record.id)
            deleted_ids.append(record.id)

        if deleted_ids:
            await self._store.commit(batch)

        logger.info(
            "Media cleanup completed",
            extra={
                "business_id": business_id,
                "deleted_count": len(deleted_ids),
                "total_checked": len(records),
            },
        )
        return MediaCleanupResult(
            deleted_count=len(deleted_ids),
            total_checked=len(records),
            deleted_ids=deleted_ids,
            message=f"Cleaned up {len(deleted_ids)} unused media files",
        )

    async def remove_reference_media(self, business_id: str, reference_id: str) -> int:
        """Delete every media record pointing at ``reference_id``."""
        documents = await self._store.query(
            collections.MEDIA,
            [
                where("business_id", "==", business_id),
                where("reference_id", "==", reference_id),
            ],
        )
        if not documents:
            return 0

        batch = self._store.batch()
        for document in documents:
            batch.delete(collections.MEDIA, document["id"])
        await self._store.commit(batch)

        logger.info(
            "Reference media removed",
            extra={"reference_id": reference_id, "media_count": len(documents)},
        )
        return len(documents)

    async def _upload_and_record(
        self,
        config: WhatsAppConfig,
        *,
        business_id: str,
        image_url: str,
        purpose: MediaPurpose,
        reference_id: str,
        reference_type: ReferenceType,
        superseded_id: str | None = None,
    ) -> MediaRecord:
        """Upload the image and link it to its owner.

        The new record, the owner's handle and the expiry of ``superseded_id``
        are committed together, so nothing is written if the owner vanished.
        """
        handler = REFERENCE_HANDLERS.get(reference_type)
        if handler is not None:
            if await self._store.get(handler.collection, reference_id) is None:
                raise MediaOwnerMissingError(
                    f"{reference_type.value} '{reference_id}' no longer exists"
                )

        data = await self._optimizer.optimize(image_url, purpose.value)
        handle = await self._client.upload_media(config, data, f"{reference_id}.jpg")

        now = self._clock()
        record = MediaRecord(
            id=uuid.uuid4().hex,
            business_id=business_id,
            whatsapp_media_id=handle,
            original_url=image_url,
            purpose=purpose,
            reference_id=reference_id,
            reference_type=reference_type,
            file_size=len(data),
            uploaded_at=now,
            expires_at=now + timedelta(days=self._config.media_expires_days),
            created_at=now,
        )
        batch = self._store.batch().set(
            collections.MEDIA, record.id, record.model_dump(mode="json")
        )
        if handler is not None:
            batch.update(
                handler.collection,
                reference_id,
                {
                    "whatsapp_image_id": handle,
                    "whatsapp_image_url": image_url,
                    "updated_at": now,
                },
            )
        if superseded_id is not None:
            batch.update(collections.MEDIA, superseded_id, self._expired_fields())
        await self._store.commit(batch)

        logger.info(
            "Media uploaded",
            extra={"media_doc_id": record.id, "whatsapp_media_id": handle},
        )
        return record

    def _expired_fields(self) -> dict[str, Any]:
        return {"upload_status": UploadStatus.EXPIRED.value, "expired_at": self._clock()}

    async def _active_order_handles(self, business_id: str) -> set[str] | None:
        """Image handles used by the newest active orders, or ``None`` if unknown."""
        try:
            orders = await self._store.query(
                collections.ORDERS,
                [
                    where("business_id", "==", business_id),
                    where("status", "in", ACTIVE_ORDER_STATUSES),
                ],
                order_by="created_at",
                descending=True,
                limit=self._config.liveness_order_scan_limit,
            )
        except Exception:
            logger.exception("Failed to scan active orders for media references")
            return None

        handles: set[str] = set()
        for order in orders:
            for item in order.get("items") or []:
                if item.get("whatsapp_image_id"):
                    handles.add(item["whatsapp_image_id"])
        return handles

    async def _is_referenced(
        self, record: MediaRecord, order_handles: set[str] | None
    ) -> bool:
        try:
            handler = REFERENCE_HANDLERS.get(record.reference_type)
            if handler is not None:
                owner = await self._store.get(handler.collection, record.reference_id)
                if owner is not None and handler.references(
                    owner, record.whatsapp_media_id
                ):
                    return True
        except Exception:
            logger.exception("Error checking media references for %s", record.id)
            return True

        if order_handles is None:
            return True
        return record.whatsapp_media_id in order_handles
