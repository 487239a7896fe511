"""HTTP-level tests for the catalog sync API."""

import pytest

from tests.conftest import BUSINESS_ID, OWNER_ID

AUTH = {"X-User-Id": OWNER_ID}


@pytest.mark.asyncio
async def test_read_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Catalog sync service"}


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["redis"] == "connected"


@pytest.mark.asyncio
async def test_missing_caller_is_unauthenticated(client, seed):
    await seed.business()

    response = await client.post("/catalog/sync", json={"business_id": BUSINESS_ID})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthenticated"


@pytest.mark.asyncio
async def test_sync_catalog_endpoint(client, seed, catalog_client):
    await seed.business()
    await seed.product("p1", stock_quantity=2)

    response = await client.post(
        "/catalog/sync", json={"business_id": BUSINESS_ID}, headers=AUTH
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "synced_count": 1,
        "failed_count": 0,
        "errors": [],
    }
    assert len(catalog_client.upserts) == 1


@pytest.mark.asyncio
async def test_foreign_business_is_forbidden(client, seed):
    await seed.business(owner_id="someone-else")

    response = await client.post(
        "/catalog/sync", json={"business_id": BUSINESS_ID}, headers=AUTH
    )

    assert response.status_code == 403
    error = response.json()["error"]
    assert error["code"] == "permission-denied"
    assert error["message"]


@pytest.mark.asyncio
async def test_unknown_business_is_not_found(client):
    response = await client.get(f"/catalog/status/{BUSINESS_ID}", headers=AUTH)

    assert response.status_code == 404
    assert response.json()["error"]["reason"] == "business-not-found"


@pytest.mark.asyncio
async def test_disabled_whatsapp_is_failed_precondition(client, seed):
    await seed.business(enabled=False)

    response = await client.post(
        "/catalog/inventory/sync", json={"business_id": BUSINESS_ID}, headers=AUTH
    )

    assert response.status_code == 412
    assert response.json()["error"]["reason"] == "whatsapp-not-configured"


@pytest.mark.asyncio
async def test_sync_status_endpoint(client, seed):
    await seed.business()
    await seed.product("a", sync_status="synced")
    await seed.product("b")

    response = await client.get(
        f"/catalog/status/{BUSINESS_ID}",
        params={"include_details": "true"},
        headers=AUTH,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total_products"] == 2
    assert body["synced_products"] == 1
    assert body["pending_products"] == 1
    assert body["completion_percentage"] == 50
    assert len(body["product_details"]) == 2


@pytest.mark.asyncio
async def test_update_product_rejects_unknown_fields(client, seed):
    await seed.business()
    await seed.product("p1")

    response = await client.post(
        "/catalog/products/p1/update",
        json={"business_id": BUSINESS_ID, "update_fields": ["colour"]},
        headers=AUTH,
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid-argument"


@pytest.mark.asyncio
async def test_delete_product_endpoint(client, seed, catalog_client):
    await seed.business()
    await seed.product("p1", whatsapp_image_id="h1")

    response = await client.delete(
        "/catalog/products/p1",
        params={"business_id": BUSINESS_ID, "delete_remote": "true"},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert catalog_client.deletes == [["p1"]]


@pytest.mark.asyncio
async def test_media_upload_endpoint(client, seed, catalog_client):
    await seed.business()
    await seed.product("p1")

    response = await client.post(
        "/media/upload",
        json={
            "business_id": BUSINESS_ID,
            "image_url": "https://cdn.example.com/p1.png",
            "reference_id": "p1",
        },
        headers=AUTH,
    )

    assert response.status_code == 200
    assert response.json()["whatsapp_media_id"] == "handle-1"
    assert catalog_client.uploads == ["p1.jpg"]


@pytest.mark.asyncio
async def test_media_cleanup_endpoint(client, seed):
    await seed.business()

    response = await client.post(
        "/media/cleanup", json={"business_id": BUSINESS_ID}, headers=AUTH
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Cleaned up 0 unused media files"


@pytest.mark.asyncio
async def test_order_notification_endpoint(client, seed, catalog_client):
    await seed.business()
    await seed.order("order-1")

    response = await client.post(
        "/notifications/orders",
        json={"business_id": BUSINESS_ID, "order_id": "order-1"},
        headers=AUTH,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message_id"] == "wamid.1"
    assert len(catalog_client.messages) == 1


@pytest.mark.asyncio
async def test_request_validation_errors(client):
    response = await client.post("/catalog/sync", json={}, headers=AUTH)

    assert response.status_code == 422
