"""Pytest configuration and fixtures for the catalog sync service."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient

from catalog_sync.api.dependencies import (
    get_catalog_client,
    get_document_store,
    get_engine_config,
    get_image_optimizer,
)
from catalog_sync.config import EngineConfig
from catalog_sync.models.media import MediaRecord
from catalog_sync.models.product import Product
from catalog_sync.services.access import AccessGate
from catalog_sync.services.analytics import AnalyticsRecorder
from catalog_sync.services.catalog.orchestrator import SyncOrchestrator
from catalog_sync.services.clients.catalog_client import (
    RemoteCatalogClient,
    RemoteCatalogError,
)
from catalog_sync.services.media.manager import MediaLifecycleManager
from catalog_sync.services.media.optimizer import (
    ImageOptimizationError,
    ImageOptimizer,
)
from catalog_sync.services.notifications.dispatcher import NotificationDispatcher
from catalog_sync.services.retry import NO_RETRY
from catalog_sync.services.storage import collections
from catalog_sync.services.storage.redis_client import get_redis_client
from catalog_sync.services.storage.document_store import RedisDocumentStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
BUSINESS_ID = "biz-1"
OWNER_ID = "owner-1"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "asyncio: marks tests as async tests")


class StubCatalogClient(RemoteCatalogClient):
    """Records every remote call; failures are switched on per test."""

    def __init__(self) -> None:
        self.upserts: list[list] = []
        self.deletes: list[list[str]] = []
        self.uploads: list[str] = []
        self.messages: list[tuple[str, str]] = []
        self.failing_upserts: set[int] = set()
        self.upload_error: Exception | None = None
        self.send_error: Exception | None = None

    async def upsert_catalog_items(self, config, items) -> None:
        await asyncio.sleep(0)
        call_number = len(self.upserts)
        self.upserts.append(list(items))
        if call_number in self.failing_upserts:
            raise RemoteCatalogError("Remote API returned 400: batch rejected")

    async def delete_catalog_items(self, config, retailer_ids) -> None:
        await asyncio.sleep(0)
        self.deletes.append(list(retailer_ids))

    async def upload_media(self, config, data, filename, mime_type="image/jpeg") -> str:
        await asyncio.sleep(0)
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append(filename)
        return f"handle-{len(self.uploads)}"

    async def send_message(self, config, to, content) -> str:
        await asyncio.sleep(0)
        if self.send_error is not None:
            raise self.send_error
        self.messages.append((to, content.text))
        return f"wamid.{len(self.messages)}"


class StubOptimizer(ImageOptimizer):
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.failing_urls: set[str] = set()

    async def optimize(self, source_url: str, purpose: str) -> bytes:
        await asyncio.sleep(0)
        self.calls.append((source_url, purpose))
        if source_url in self.failing_urls:
            raise ImageOptimizationError(f"Failed to download image from {source_url}")
        return b"optimized-jpeg"


class Seeder:
    """Writes fixture documents straight into the store."""

    def __init__(self, store: RedisDocumentStore) -> None:
        self.store = store

    async def business(
        self,
        business_id: str = BUSINESS_ID,
        *,
        owner_id: str = OWNER_ID,
        enabled: bool = True,
        name: str = "Kofi's Crafts",
        with_config: bool = True,
    ) -> str:
        await self.store.set(
            collections.BUSINESSES,
            business_id,
            {"name": name, "owner_id": owner_id, "whatsapp_enabled": enabled},
        )
        if with_config:
            await self.store.set(
                collections.WHATSAPP_CONFIGS,
                business_id,
                {
                    "phone_number_id": f"phone-{business_id}",
                    "business_account_id": f"waba-{business_id}",
                    "catalog_id": f"catalog-{business_id}",
                    "access_token": "secret-token",
                    "active": True,
                },
            )
        return business_id

    async def product(self, product_id: str, business_id: str = BUSINESS_ID, **fields) -> Product:
        fields.setdefault("name", f"Product {product_id}")
        fields.setdefault("price", Decimal("10.00"))
        fields.setdefault("updated_at", NOW)
        product = Product(id=product_id, business_id=business_id, **fields)
        await self.store.set(
            collections.PRODUCTS, product_id, product.model_dump(mode="json")
        )
        return product

    async def category(self, category_id: str, business_id: str = BUSINESS_ID, **fields) -> None:
        await self.store.set(
            collections.CATEGORIES,
            category_id,
            {"business_id": business_id, "name": category_id, **fields},
        )

    async def inventory(self, product_id: str, quantity: int, status: str, business_id: str = BUSINESS_ID) -> None:
        await self.store.add(
            collections.INVENTORY,
            {
                "product_id": product_id,
                "business_id": business_id,
                "stock_quantity": quantity,
                "stock_status": status,
            },
        )

    async def order(self, order_id: str, business_id: str = BUSINESS_ID, **fields) -> None:
        fields.setdefault("customer", {"id": "cust-1", "name": "Ama", "whatsapp_number": "233201234567"})
        fields.setdefault("status", "pending")
        fields.setdefault("total", "150.00")
        fields.setdefault("created_at", NOW)
        await self.store.set(
            collections.ORDERS, order_id, {"business_id": business_id, **fields}
        )

    async def media(
        self,
        media_id: str,
        handle: str,
        reference_id: str,
        *,
        reference_type: str = "products",
        created_at: datetime = NOW,
        expires_at: datetime = NOW,
        upload_status: str = "uploaded",
        business_id: str = BUSINESS_ID,
    ) -> None:
        record = MediaRecord(
            id=media_id,
            business_id=business_id,
            whatsapp_media_id=handle,
            original_url=f"https://cdn.example.com/{reference_id}.png",
            reference_id=reference_id,
            reference_type=reference_type,
            upload_status=upload_status,
            uploaded_at=created_at,
            expires_at=expires_at,
            created_at=created_at,
        )
        await self.store.set(collections.MEDIA, media_id, record.model_dump(mode="json"))

    async def settings(self, business_id: str = BUSINESS_ID, **notifications) -> None:
        await self.store.set(
            collections.BUSINESS_SETTINGS,
            business_id,
            {"notifications": notifications},
        )


@pytest_asyncio.fixture()
async def redis_client():
    """Provide a fake Redis client for each test."""
    from catalog_sync.main import app

    client = fakeredis.FakeRedis(decode_responses=True)
    app.dependency_overrides[get_redis_client] = lambda: client
    try:
        yield client
    finally:
        await client.flushdb()
        await client.aclose()
        app.dependency_overrides.pop(get_redis_client, None)


@pytest.fixture()
def store(redis_client):
    return RedisDocumentStore(redis_client, "test:")


@pytest.fixture()
def seed(store):
    return Seeder(store)


@pytest.fixture()
def catalog_client():
    return StubCatalogClient()


@pytest.fixture()
def optimizer():
    return StubOptimizer()


@pytest.fixture()
def engine_config():
    return EngineConfig(retry_policy=NO_RETRY)


@pytest.fixture()
def clock():
    return lambda: NOW


@pytest.fixture()
def gate(store):
    return AccessGate(store)


@pytest.fixture()
def analytics(store, clock):
    return AnalyticsRecorder(store, clock=clock)


@pytest.fixture()
def media_manager(store, catalog_client, optimizer, gate, analytics, engine_config, clock):
    return MediaLifecycleManager(
        store=store,
        client=catalog_client,
        optimizer=optimizer,
        gate=gate,
        analytics=analytics,
        config=engine_config,
        clock=clock,
    )


@pytest.fixture()
def orchestrator(store, catalog_client, media_manager, gate, analytics, engine_config, clock):
    return SyncOrchestrator(
        store=store,
        client=catalog_client,
        media=media_manager,
        gate=gate,
        analytics=analytics,
        config=engine_config,
        clock=clock,
    )


@pytest.fixture()
def dispatcher(store, catalog_client, gate, analytics, engine_config, clock):
    return NotificationDispatcher(
        store=store,
        client=catalog_client,
        gate=gate,
        analytics=analytics,
        config=engine_config,
        clock=clock,
    )


@pytest_asyncio.fixture()
async def client(store, catalog_client, optimizer, engine_config):
    """Return an HTTPX async client pointing at the FastAPI app."""
    from catalog_sync.main import app

    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_catalog_client] = lambda: catalog_client
    app.dependency_overrides[get_image_optimizer] = lambda: optimizer
    app.dependency_overrides[get_engine_config] = lambda: engine_config
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://testserver",
        ) as test_client:
            yield test_client
    finally:
        for dependency in (
            get_document_store,
            get_catalog_client,
            get_image_optimizer,
            get_engine_config,
        ):
            app.dependency_overrides.pop(dependency, None)
