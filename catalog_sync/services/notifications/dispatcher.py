"""Order notifications over WhatsApp and their delivery-status callbacks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from catalog_sync.config import EngineConfig
from catalog_sync.errors import (
    ErrorReason,
    FailedPreconditionError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
)
from catalog_sync.models.notification import (
    DeliveryStatus,
    MessageContent,
    NotificationRecord,
    Order,
    SendNotificationRequest,
    SendNotificationResult,
)
from catalog_sync.models.webhook import (
    Change,
    Entry,
    InboundMessage,
    StatusError,
    StatusUpdate,
    WebhookEnvelope,
    WebhookProcessingSummary,
)
from catalog_sync.services.access import AccessGate
from catalog_sync.services.analytics import AnalyticsEvent, AnalyticsRecorder
from catalog_sync.services.business_settings import (
    get_business_settings,
    get_whatsapp_config,
)
from catalog_sync.services.clients.catalog_client import RemoteCatalogClient
from catalog_sync.services.notifications.templates import render_order_message
from catalog_sync.services.storage import collections
from catalog_sync.services.storage.document_store import DocumentStore, where

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

NOTIFICATIONS_DISABLED_MESSAGE = "Order notifications are disabled for this business"
WHATSAPP_BUSINESS_ACCOUNT = "whatsapp_business_account"
SYSTEM_BUSINESS_ID = "system"


class NotificationDispatcher:
    """Sends order notifications and applies delivery-status callbacks."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        client: RemoteCatalogClient,
        gate: AccessGate,
        analytics: AnalyticsRecorder,
        config: EngineConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._gate = gate
        self._analytics = analytics
        self._config = config
        self._clock = clock or (lambda: datetime.now(UTC))

    async def send_order_notification(
        self, request: SendNotificationRequest, caller: str | None
    ) -> SendNotificationResult:
        business = await self._gate.authorize(caller, request.business_id)

        document = await self._store.get(collections.ORDERS, request.order_id)
        if document is None:
            raise NotFoundError("Order", request.order_id)
        order = Order.model_validate(document)
        if order.business_id != request.business_id:
            raise PermissionDeniedError("Order does not belong to business")

        business_settings = await get_business_settings(self._store, request.business_id)
        if not business_settings.notifications.order_updates:
            return SendNotificationResult(
                success=False, message=NOTIFICATIONS_DISABLED_MESSAGE
            )

        destination = order.customer.messaging_address
        if not destination:
            raise FailedPreconditionError("Customer WhatsApp number not available")
        whatsapp = await get_whatsapp_config(self._store, request.business_id)

        try:
            text = request.custom_message or render_order_message(
                order,
                request.notification_type,
                business_name=business.name,
                currency=self._config.currency,
            )
            message_id = await self._client.send_message(
                whatsapp, destination, MessageContent(text=text)
            )
            now = self._clock()
            record = NotificationRecord(
                order_id=order.id,
                business_id=order.business_id,
                customer_id=order.customer.id,
                type=request.notification_type,
                message=text,
                delivery_status=DeliveryStatus.SENT,
                whatsapp_message_id=message_id,
                created_at=now,
            )
            notification_id = await self._store.add(
                collections.NOTIFICATIONS, record.model_dump(mode="json", exclude={"id"})
            )
            await self._store.update(
                collections.ORDERS,
                order.id,
                {
                    "last_notification_sent": now,
                    "last_notification_type": request.notification_type,
                },
            )
        except Exception as exc:
            logger.exception(
                "Order notification failed",
                extra={
                    "order_id": order.id,
                    "notification_type": request.notification_type,
                },
            )
            await self._store_failed_record(order, request.notification_type, str(exc))
            raise InternalError(
                f"Notification failed: {exc}", reason=ErrorReason.NOTIFICATION_FAILED
            ) from exc

        await self._analytics.log(
            request.business_id,
            AnalyticsEvent.NOTIFICATION_SENT,
            {
                "notification_type": request.notification_type,
                "order_id": order.id,
                "channel": "whatsapp",
            },
        )
        logger.info(
            "Order notification sent successfully",
            extra={"order_id": order.id, "message_id": message_id},
        )
        return SendNotificationResult(
            success=True,
            notification_id=notification_id,
            message_id=message_id,
            message="Notification sent successfully",
        )

    async def handle_delivery_status(
        self,
        message_id: str,
        status: str,
        timestamp: datetime,
        error_info: StatusError | None = None,
    ) -> bool:
        """Apply one delivery callback. Returns False when it was ignored."""
        try:
            target = DeliveryStatus(status)
        except ValueError:
            logger.warning("Ignoring unsupported delivery status %s for %s", status, message_id)
            return False

        matches = await self._store.query(
            collections.NOTIFICATIONS,
            [where("whatsapp_message_id", "==", message_id)],
            limit=1,
        )
        if not matches:
            logger.warning(
                "Notification not found for message ID", extra={"message_id": message_id}
            )
            return False

        record = matches[0]
        current = DeliveryStatus(record.get("delivery_status") or DeliveryStatus.SENT.value)
        if not current.can_transition_to(target):
            logger.info(
                "Ignoring delivery status %s after %s for %s",
                target.value,
                current.value,
                message_id,
            )
            return False

        update: dict[str, Any] = {
            "delivery_status": target.value,
            "status_updated_at": timestamp,
        }
        if target is DeliveryStatus.READ:
            update["is_read"] = True
            update["read_at"] = timestamp
        if target is DeliveryStatus.FAILED and error_info is not None:
            update["error_code"] = (
                str(error_info.code) if error_info.code is not None else None
            )
            update["error_message"] = error_info.message or error_info.title

        await self._store.update(collections.NOTIFICATIONS, record["id"], update)
        logger.info(
            "Delivery status updated",
            extra={"notification_id": record["id"], "message_id": message_id, "status": target.value},
        )
        return True

    async def process_webhook(self, payload: dict[str, Any]) -> WebhookProcessingSummary:
        """Apply a platform callback envelope. Never raises."""
        summary = WebhookProcessingSummary()
        envelope = _parse(WebhookEnvelope, payload, summary)
        if envelope is None or envelope.object != WHATSAPP_BUSINESS_ACCOUNT:
            return summary

        for raw_entry in envelope.entry:
            entry = _parse(Entry, raw_entry, summary)
            if entry is None:
                continue
            for raw_change in entry.changes:
                change = _parse(Change, raw_change, summary)
                if change is None or change.field != "messages":
                    continue
                for raw_status in change.value.statuses:
                    status = _parse(StatusUpdate, raw_status, summary)
                    if status is None:
                        continue
                    try:
                        applied = await self.handle_delivery_status(
                            status.id,
                            status.status,
                            datetime.fromtimestamp(status.timestamp, UTC),
                            status.errors[0] if status.errors else None,
                        )
                    except Exception:
                        logger.exception(
                            "Failed to handle delivery status",
                            extra={"message_id": status.id, "status": status.status},
                        )
                        summary.statuses_failed += 1
                        continue
                    if applied:
                        summary.statuses_applied += 1
                    else:
                        summary.statuses_ignored += 1

                for raw_message in change.value.messages:
                    message = _parse(InboundMessage, raw_message, summary)
                    if message is None:
                        continue
                    await self._analytics.log(
                        SYSTEM_BUSINESS_ID,
                        AnalyticsEvent.MESSAGE_RECEIVED,
                        {
                            "from": message.from_,
                            "type": message.type,
                            "timestamp": _from_epoch(message.timestamp),
                        },
                    )
                    summary.messages_recorded += 1

        return summary

    async def _store_failed_record(
        self, order: Order, notification_type: str, error: str
    ) -> None:
        record = NotificationRecord(
            order_id=order.id,
            business_id=order.business_id,
            customer_id=order.customer.id,
            type=notification_type,
            message="Failed to send",
            delivery_status=DeliveryStatus.FAILED,
            error_message=error or None,
            created_at=self._clock(),
        )
        try:
            await self._store.add(
                collections.NOTIFICATIONS, record.model_dump(mode="json", exclude={"id"})
            )
        except Exception:
            logger.exception("Failed to store failed notification for %s", order.id)


def _parse(
    model: type[ModelT], raw: Any, summary: WebhookProcessingSummary
) -> ModelT | None:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Skipping malformed webhook %s: %s", model.__name__, exc)
        summary.items_skipped += 1
        return None


def _from_epoch(seconds: int | None) -> datetime | None:
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, UTC)
    except (OverflowError, OSError, ValueError):
        return None
