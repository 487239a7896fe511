"""Tests for order notifications and delivery-status callbacks."""

from datetime import timedelta

import pytest

from catalog_sync.errors import (
    FailedPreconditionError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
)
from catalog_sync.models.notification import SendNotificationRequest
from catalog_sync.models.webhook import StatusError
from catalog_sync.services.clients.catalog_client import RemoteCatalogError
from catalog_sync.services.notifications.dispatcher import NOTIFICATIONS_DISABLED_MESSAGE
from catalog_sync.services.notifications.templates import order_reference
from catalog_sync.services.storage import collections
from catalog_sync.services.storage.document_store import where
from tests.conftest import BUSINESS_ID, NOW, OWNER_ID


async def _notifications(store):
    return await store.query(collections.NOTIFICATIONS, order_by="created_at")


async def _sent_record(store, message_id="wamid.1", **fields):
    await store.add(
        collections.NOTIFICATIONS,
        {
            "order_id": "order-abc123",
            "business_id": BUSINESS_ID,
            "type": "status_change",
            "message": "hello",
            "delivery_status": "sent",
            "whatsapp_message_id": message_id,
            "is_read": False,
            "created_at": NOW,
            **fields,
        },
    )


@pytest.mark.asyncio
async def test_send_payment_notification(dispatcher, seed, store, catalog_client):
    await seed.business()
    await seed.order("order-abc123")

    result = await dispatcher.send_order_notification(
        SendNotificationRequest(
            business_id=BUSINESS_ID,
            order_id="order-abc123",
            notification_type="payment_received",
        ),
        OWNER_ID,
    )

    assert result.success
    assert result.message_id == "wamid.1"
    assert catalog_client.messages == [
        (
            "233201234567",
            "Thank you Ama! We've received your payment of GHS 150.00 for order #ABC123. "
            "Your order is now being processed.",
        )
    ]

    records = await _notifications(store)
    assert len(records) == 1
    assert records[0]["id"] == result.notification_id
    assert records[0]["delivery_status"] == "sent"
    assert records[0]["whatsapp_message_id"] == "wamid.1"

    order = await store.get(collections.ORDERS, "order-abc123")
    assert order["last_notification_type"] == "payment_received"
    assert order["last_notification_sent"] is not None


@pytest.mark.asyncio
async def test_status_change_uses_business_name(dispatcher, seed, catalog_client):
    await seed.business()
    await seed.order("o-77", status="shipped")

    await dispatcher.send_order_notification(
        SendNotificationRequest(business_id=BUSINESS_ID, order_id="o-77"), OWNER_ID
    )

    _, text = catalog_client.messages[0]
    assert text == (
        "Hi Ama! Your order #O-77 status has been updated to: shipped. "
        "Kofi's Crafts will keep you informed of any changes."
    )


@pytest.mark.asyncio
async def test_custom_message_is_sent_verbatim(dispatcher, seed, catalog_client):
    await seed.business()
    await seed.order("o1")

    await dispatcher.send_order_notification(
        SendNotificationRequest(
            business_id=BUSINESS_ID, order_id="o1", custom_message="Your parcel is ready"
        ),
        OWNER_ID,
    )

    assert catalog_client.messages == [("233201234567", "Your parcel is ready")]


@pytest.mark.asyncio
async def test_disabled_notifications_send_nothing(dispatcher, seed, store, catalog_client):
    await seed.business()
    await seed.order("o1")
    await seed.settings(order_updates=False)

    result = await dispatcher.send_order_notification(
        SendNotificationRequest(business_id=BUSINESS_ID, order_id="o1"), OWNER_ID
    )

    assert result.success is False
    assert result.message == NOTIFICATIONS_DISABLED_MESSAGE
    assert catalog_client.messages == []
    assert await _notifications(store) == []


@pytest.mark.asyncio
async def test_missing_customer_number(dispatcher, seed, store):
    await seed.business()
    await seed.order("o1", customer={"id": "cust-1", "name": "Ama"})

    with pytest.raises(FailedPreconditionError):
        await dispatcher.send_order_notification(
            SendNotificationRequest(business_id=BUSINESS_ID, order_id="o1"), OWNER_ID
        )
    assert await _notifications(store) == []


@pytest.mark.asyncio
async def test_order_checks(dispatcher, seed):
    await seed.business()
    await seed.order("foreign", business_id="biz-2")

    with pytest.raises(NotFoundError):
        await dispatcher.send_order_notification(
            SendNotificationRequest(business_id=BUSINESS_ID, order_id="ghost"), OWNER_ID
        )
    with pytest.raises(PermissionDeniedError):
        await dispatcher.send_order_notification(
            SendNotificationRequest(business_id=BUSINESS_ID, order_id="foreign"), OWNER_ID
        )


@pytest.mark.asyncio
async def test_send_failure_records_failed_attempt(dispatcher, seed, store, catalog_client):
    await seed.business()
    await seed.order("o1")
    catalog_client.send_error = RemoteCatalogError("Remote API returned 400: bad recipient")

    with pytest.raises(InternalError) as excinfo:
        await dispatcher.send_order_notification(
            SendNotificationRequest(business_id=BUSINESS_ID, order_id="o1"), OWNER_ID
        )

    assert excinfo.value.reason == "notification-failed"
    records = await _notifications(store)
    assert len(records) == 1
    assert records[0]["delivery_status"] == "failed"
    assert records[0]["message"] == "Failed to send"
    assert "bad recipient" in records[0]["error_message"]
    order = await store.get(collections.ORDERS, "o1")
    assert order.get("last_notification_sent") is None


@pytest.mark.asyncio
async def test_read_callback_marks_record_read(dispatcher, store):
    await _sent_record(store)
    read_at = NOW + timedelta(minutes=5)

    assert await dispatcher.handle_delivery_status("wamid.1", "read", read_at) is True

    record = (await _notifications(store))[0]
    assert record["delivery_status"] == "read"
    assert record["is_read"] is True
    assert record["read_at"] == read_at.isoformat()


@pytest.mark.asyncio
async def test_unknown_message_id_is_ignored(dispatcher, store):
    await _sent_record(store)

    assert await dispatcher.handle_delivery_status("wamid.other", "delivered", NOW) is False
    assert (await _notifications(store))[0]["delivery_status"] == "sent"


@pytest.mark.asyncio
async def test_status_never_moves_backwards(dispatcher, store):
    await _sent_record(store, delivery_status="read", is_read=True)

    assert await dispatcher.handle_delivery_status("wamid.1", "delivered", NOW) is False
    assert await dispatcher.handle_delivery_status("wamid.1", "failed", NOW) is False
    assert (await _notifications(store))[0]["delivery_status"] == "read"


@pytest.mark.asyncio
async def test_failed_callback_stores_error(dispatcher, store):
    await _sent_record(store, delivery_status="delivered")

    applied = await dispatcher.handle_delivery_status(
        "wamid.1",
        "failed",
        NOW,
        StatusError(code=131026, title="Message undeliverable", message="Receiver unavailable"),
    )

    assert applied is True
    record = (await _notifications(store))[0]
    assert record["delivery_status"] == "failed"
    assert record["error_code"] == "131026"
    assert record["error_message"] == "Receiver unavailable"


@pytest.mark.asyncio
async def test_process_webhook_summary(dispatcher, store):
    await _sent_record(store, message_id="wamid.A")
    await _sent_record(store, message_id="wamid.B", delivery_status="failed")
    timestamp = int(NOW.timestamp())

    summary = await dispatcher.process_webhook(
        {
            "object": "whatsapp_business_account",
            "entry": [
                {
                    "id": "waba-1",
                    "changes": [
                        {
                            "field": "messages",
                            "value": {
                                "statuses": [
                                    {"id": "wamid.A", "status": "delivered", "timestamp": timestamp},
                                    {"id": "wamid.B", "status": "read", "timestamp": timestamp},
                                    {"id": "wamid.C", "status": "sent", "timestamp": timestamp},
                                ],
                                "messages": [
                                    {"id": "in-1", "from": "233200000000", "type": "text", "timestamp": timestamp}
                                ],
                            },
                        }
                    ],
                }
            ],
        }
    )

    assert summary.statuses_applied == 1
    assert summary.statuses_ignored == 2
    assert summary.statuses_failed == 0
    assert summary.messages_recorded == 1

    delivered = await store.query(
        collections.NOTIFICATIONS, [where("whatsapp_message_id", "==", "wamid.A")]
    )
    assert delivered[0]["delivery_status"] == "delivered"
    received = await store.query(
        collections.ANALYTICS, [where("event_type", "==", "message_received")]
    )
    assert received[0]["business_id"] == "system"
    assert received[0]["metadata"]["from"] == "233200000000"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"object": "page", "entry": []},
        {"object": "whatsapp_business_account", "entry": "nope"},
        {"object": "whatsapp_business_account", "entry": [{"changes": [{"field": "messages", "value": {"statuses": [{"id": 1}]}}]}]},
    ],
)
async def test_malformed_webhook_never_raises(dispatcher, payload):
    summary = await dispatcher.process_webhook(payload)

    assert summary.statuses_applied == 0
    assert summary.messages_recorded == 0


@pytest.mark.asyncio
async def test_malformed_status_does_not_hide_its_siblings(dispatcher, store):
    await _sent_record(store, message_id="wamid.A")
    timestamp = int(NOW.timestamp())

    summary = await dispatcher.process_webhook(
        {
            "object": "whatsapp_business_account",
            "entry": [
                "not-an-entry",
                {
                    "id": "waba-1",
                    "changes": [
                        {
                            "field": "messages",
                            "value": {
                                "statuses": [
                                    {"id": "wamid.A", "status": "delivered", "timestamp": timestamp},
                                    {"id": "wamid.B", "status": "read"},
                                ],
                                "messages": [
                                    {"id": "in-1", "from": "233200000000", "type": "text", "timestamp": timestamp}
                                ],
                            },
                        }
                    ],
                },
            ],
        }
    )

    assert summary.statuses_applied == 1
    assert summary.statuses_failed == 0
    assert summary.items_skipped == 2
    assert summary.messages_recorded == 1
    delivered = await store.query(
        collections.NOTIFICATIONS, [where("whatsapp_message_id", "==", "wamid.A")]
    )
    assert delivered[0]["delivery_status"] == "delivered"


def test_order_reference():
    assert order_reference("order-abc123") == "ABC123"
    assert order_reference("x1") == "X1"
