"""Catalog synchronization driven per business.

Products are pushed to the remote catalog in fixed-size batches. A batch is
the unit of failure: after each submission every product of the batch is
marked ``synced`` or every product is marked ``error`` with the same message,
and those status writes are committed together.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from catalog_sync.config import EngineConfig
from catalog_sync.errors import (
    DomainError,
    ErrorReason,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from catalog_sync.models.business import WhatsAppConfig
from catalog_sync.models.catalog import (
    InventorySyncResult,
    OperationResult,
    ProductSyncDetail,
    ProductSyncError,
    SyncCatalogRequest,
    SyncCatalogResult,
    SyncInventoryRequest,
    SyncStatusReport,
    SyncType,
)
from catalog_sync.models.product import InventorySnapshot, Product, SyncStatus
from catalog_sync.services.access import AccessGate
from catalog_sync.services.analytics import AnalyticsEvent, AnalyticsRecorder
from catalog_sync.services.batching import chunk
from catalog_sync.services.business_settings import get_whatsapp_config
from catalog_sync.services.catalog.payloads import (
    UPDATABLE_FIELDS,
    build_catalog_item,
    build_partial_item,
)
from catalog_sync.services.catalog.projector import project_inventory
from catalog_sync.services.clients.catalog_client import RemoteCatalogClient
from catalog_sync.services.media.manager import MediaLifecycleManager
from catalog_sync.services.storage import collections
from catalog_sync.services.storage.document_store import DocumentStore, where

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Pushes local product state to the remote catalog and tracks the outcome."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        client: RemoteCatalogClient,
        media: MediaLifecycleManager,
        gate: AccessGate,
        analytics: AnalyticsRecorder,
        config: EngineConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._media = media
        self._gate = gate
        self._analytics = analytics
        self._config = config
        self._clock = clock or (lambda: datetime.now(UTC))

    async def sync_catalog(
        self, request: SyncCatalogRequest, caller: str | None
    ) -> SyncCatalogResult:
        if request.sync_type is SyncType.SPECIFIC and not request.product_ids:
            raise InvalidArgumentError("product_ids are required for a specific sync")

        business_id = request.business_id
        await self._gate.authorize(caller, business_id)
        whatsapp = await get_whatsapp_config(self._store, business_id)

        try:
            products, rejected = await self._select_products(
                business_id, request.sync_type, request.product_ids or []
            )
            logger.info(
                "Starting catalog sync",
                extra={
                    "business_id": business_id,
                    "sync_type": request.sync_type.value,
                    "product_count": len(products),
                },
            )

            result = SyncCatalogResult(failed_count=len(rejected), errors=rejected)
            for batch in chunk(products, self._config.batch_size):
                await self._process_batch(business_id, batch, whatsapp, result)
        except DomainError:
            raise
        except Exception as exc:
            logger.exception("Catalog sync failed", extra={"business_id": business_id})
            raise InternalError(
                f"Sync failed: {exc}", reason=ErrorReason.SYNC_FAILED
            ) from exc

        await self._analytics.log(
            business_id,
            AnalyticsEvent.CATALOG_SYNC,
            {
                "sync_type": request.sync_type.value,
                "products_synced": result.synced_count,
                "errors_count": result.failed_count,
            },
        )
        logger.info(
            "Catalog sync completed",
            extra={
                "business_id": business_id,
                "synced": result.synced_count,
                "failed": result.failed_count,
            },
        )
        return result

    async def update_product(
        self,
        product_id: str,
        business_id: str,
        update_fields: Sequence[str],
        caller: str | None,
    ) -> OperationResult:
        fields = list(dict.fromkeys(update_fields))
        if not fields:
            raise InvalidArgumentError("update_fields must not be empty")
        unknown = sorted(set(fields) - UPDATABLE_FIELDS)
        if unknown:
            raise InvalidArgumentError(f"Unsupported update fields: {', '.join(unknown)}")

        await self._gate.authorize(caller, business_id)
        whatsapp = await get_whatsapp_config(self._store, business_id)
        product = await self._load_product(product_id, business_id)

        try:
            if "image" in fields:
                await self._media.ensure_media(
                    business_id, product.id, product, whatsapp_config=whatsapp
                )
            item = build_partial_item(product, fields, self._config)
            await self._client.upsert_catalog_items(whatsapp, [item])
        except Exception as exc:
            logger.exception(
                "Product update failed",
                extra={"product_id": product_id, "update_fields": fields},
            )
            await self._record_failure(product_id, str(exc))
            raise InternalError(
                f"Update failed: {exc}", reason=ErrorReason.SYNC_FAILED
            ) from exc

        await self._store.update(
            collections.PRODUCTS, product_id, self._status_fields(SyncStatus.SYNCED)
        )
        logger.info(
            "Product updated successfully",
            extra={"product_id": product_id, "update_fields": fields},
        )
        return OperationResult(message="Product updated successfully")

    async def delete_product(
        self,
        product_id: str,
        business_id: str,
        delete_remote: bool,
        caller: str | None,
    ) -> OperationResult:
        """Detach a product from the remote catalog and drop its media records."""
        await self._gate.authorize(caller, business_id)
        product = await self._load_product(product_id, business_id)

        if delete_remote:
            whatsapp = await get_whatsapp_config(self._store, business_id)
            try:
                await self._client.delete_catalog_items(
                    whatsapp, [product.effective_retailer_id]
                )
            except Exception as exc:
                logger.exception("Product deletion failed", extra={"product_id": product_id})
                raise InternalError(
                    f"Deletion failed: {exc}", reason=ErrorReason.SYNC_FAILED
                ) from exc

        await self._media.remove_reference_media(business_id, product_id)
        await self._store.update(
            collections.PRODUCTS,
            product_id,
            {
                "whatsapp_image_id": None,
                "whatsapp_image_url": None,
                "sync_status": SyncStatus.PENDING.value,
                "sync_error": None,
                "last_synced": self._clock(),
            },
        )
        logger.info(
            "Product deleted successfully",
            extra={"product_id": product_id, "delete_remote": delete_remote},
        )
        return OperationResult(message="Product deleted successfully")

    async def sync_inventory(
        self, request: SyncInventoryRequest, caller: str | None
    ) -> InventorySyncResult:
        """Push availability (and optionally price) for the selected products.

        The call either succeeds for every product or fails as a whole; no
        per-product status is written when a submission fails.
        """
        business_id = request.business_id
        await self._gate.authorize(caller, business_id)
        whatsapp = await get_whatsapp_config(self._store, business_id)

        filters = [where("business_id", "==", business_id)]
        if request.product_ids:
            filters.append(where("id", "in", request.product_ids))
        documents = await self._store.query(collections.PRODUCTS, filters)
        products = [Product.model_validate(doc) for doc in documents]

        snapshots = await self._inventory_by_product(business_id)
        items = [
            project_inventory(
                product,
                snapshots.get(product.id)
                or InventorySnapshot.empty(product.id, business_id),
                request.update_prices,
                self._config.currency,
            )
            for product in products
        ]

        if items:
            try:
                for batch in chunk(items, self._config.batch_size):
                    await self._client.upsert_catalog_items(whatsapp, batch)
            except Exception as exc:
                logger.exception(
                    "Inventory sync failed", extra={"business_id": business_id}
                )
                raise InternalError(
                    f"Inventory sync failed: {exc}", reason=ErrorReason.SYNC_FAILED
                ) from exc

            writes = self._store.batch()
            for product in products:
                writes.update(
                    collections.PRODUCTS,
                    product.id,
                    self._status_fields(SyncStatus.SYNCED),
                )
            await self._store.commit(writes)

        await self._analytics.log(
            business_id,
            AnalyticsEvent.INVENTORY_SYNC,
            {
                "products_updated": len(items),
                "price_updates_included": request.update_prices,
            },
        )
        logger.info(
            "Inventory sync completed",
            extra={"business_id": business_id, "updated_products": len(items)},
        )
        return InventorySyncResult(
            updated_count=len(items),
            message=f"Successfully updated {len(items)} products",
        )

    async def get_sync_status(
        self, business_id: str, include_details: bool, caller: str | None
    ) -> SyncStatusReport:
        await self._gate.authorize(caller, business_id)
        documents = await self._store.query(
            collections.PRODUCTS, [where("business_id", "==", business_id)]
        )

        report = SyncStatusReport(total_products=len(documents))
        for document in documents:
            status = document.get("sync_status") or SyncStatus.PENDING.value
            if status == SyncStatus.SYNCED.value:
                report.synced_products += 1
            elif status == SyncStatus.PENDING.value:
                report.pending_products += 1
            elif status == SyncStatus.ERROR.value:
                report.error_products += 1

            if include_details:
                report.product_details.append(
                    ProductSyncDetail(
                        id=document["id"],
                        name=document.get("name") or "",
                        sync_status=status,
                        sync_error=document.get("sync_error"),
                        last_synced=document.get("last_synced"),
                    )
                )

        report.completion_percentage = completion_percentage(
            report.synced_products, report.total_products
        )
        return report

    async def _select_products(
        self, business_id: str, sync_type: SyncType, product_ids: Sequence[str]
    ) -> tuple[list[Product], list[ProductSyncError]]:
        if sync_type is SyncType.SPECIFIC:
            requested = list(dict.fromkeys(product_ids))
            found = {
                doc["id"]: doc
                for doc in await self._store.get_many(collections.PRODUCTS, requested)
            }
            products: list[Product] = []
            rejected: list[ProductSyncError] = []
            for product_id in requested:
                document = found.get(product_id)
                if document is None:
                    rejected.append(
                        ProductSyncError(product_id=product_id, error="Product not found")
                    )
                elif document.get("business_id") != business_id:
                    rejected.append(
                        ProductSyncError(
                            product_id=product_id,
                            error="Product does not belong to this business",
                        )
                    )
                else:
                    products.append(Product.model_validate(document))
            return products, rejected

        filters = [where("business_id", "==", business_id)]
        if sync_type is SyncType.INCREMENTAL:
            since = self._clock() - timedelta(hours=self._config.incremental_window_hours)
            filters.append(where("updated_at", ">=", since))
        documents = await self._store.query(collections.PRODUCTS, filters)
        return [Product.model_validate(doc) for doc in documents], []

    async def _process_batch(
        self,
        business_id: str,
        products: list[Product],
        whatsapp: WhatsAppConfig,
        result: SyncCatalogResult,
    ) -> None:
        writes = self._store.batch()
        try:
            await asyncio.gather(
                *(
                    self._media.ensure_media(
                        business_id, product.id, product, whatsapp_config=whatsapp
                    )
                    for product in products
                )
            )
            items = [build_catalog_item(product, self._config) for product in products]
            await self._client.upsert_catalog_items(whatsapp, items)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.error(
                "Batch processing failed: %s",
                message,
                extra={"business_id": business_id, "batch_size": len(products)},
            )
            for product in products:
                writes.update(
                    collections.PRODUCTS,
                    product.id,
                    self._status_fields(SyncStatus.ERROR, message),
                )
                result.errors.append(ProductSyncError(product_id=product.id, error=message))
            result.failed_count += len(products)
        else:
            for product in products:
                writes.update(
                    collections.PRODUCTS,
                    product.id,
                    self._status_fields(SyncStatus.SYNCED),
                )
            result.synced_count += len(products)

        await self._store.commit(writes)

    async def _load_product(self, product_id: str, business_id: str) -> Product:
        document = await self._store.get(collections.PRODUCTS, product_id)
        if document is None:
            raise NotFoundError("Product", product_id)
        product = Product.model_validate(document)
        if product.business_id != business_id:
            raise PermissionDeniedError("Product does not belong to this business")
        return product

    async def _inventory_by_product(
        self, business_id: str
    ) -> dict[str, InventorySnapshot]:
        documents = await self._store.query(
            collections.INVENTORY, [where("business_id", "==", business_id)]
        )
        snapshots: dict[str, InventorySnapshot] = {}
        for document in documents:
            snapshot = InventorySnapshot.model_validate(document)
            snapshots.setdefault(snapshot.product_id, snapshot)
        return snapshots

    async def _record_failure(self, product_id: str, message: str) -> None:
        try:
            await self._store.update(
                collections.PRODUCTS,
                product_id,
                self._status_fields(SyncStatus.ERROR, message or "Update failed"),
            )
        except Exception:
            logger.exception("Failed to record sync error for %s", product_id)

    def _status_fields(self, status: SyncStatus, error: str | None = None) -> dict:
        return {
            "sync_status": status.value,
            "sync_error": error,
            "last_synced": self._clock(),
        }


def completion_percentage(synced: int, total: int) -> int:
    if total <= 0:
        return 0
    ratio = Decimal(synced) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
