"""Orders, order notifications and their delivery-status state machine."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class DeliveryStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryStatus.READ, DeliveryStatus.FAILED)

    def can_transition_to(self, target: "DeliveryStatus") -> bool:
        """Only forward moves are allowed; read and failed never change again."""
        if self.is_terminal or target is self:
            return False
        if target is DeliveryStatus.FAILED:
            return True
        return _DELIVERY_RANK[target] > _DELIVERY_RANK[self]


_DELIVERY_RANK = {
    DeliveryStatus.SENT: 0,
    DeliveryStatus.DELIVERED: 1,
    DeliveryStatus.READ: 2,
}


class NotificationType(str, Enum):
    STATUS_CHANGE = "status_change"
    PAYMENT_RECEIVED = "payment_received"
    SHIPPING_UPDATE = "shipping_update"


class Customer(BaseModel):
    id: str | None = None
    name: str | None = None
    phone: str | None = None
    whatsapp_number: str | None = None

    @property
    def messaging_address(self) -> str | None:
        return self.whatsapp_number or self.phone


class OrderItem(BaseModel):
    product_id: str | None = None
    name: str | None = None
    quantity: int = 1
    whatsapp_image_id: str | None = None


class Order(BaseModel):
    id: str
    business_id: str
    customer: Customer = Field(default_factory=Customer)
    status: str = "pending"
    total: Decimal = Decimal("0")
    source: Literal["web", "whatsapp"] = "web"
    tracking_number: str | None = None
    items: list[OrderItem] = Field(default_factory=list)
    last_notification_sent: datetime | None = None
    last_notification_type: str | None = None


class NotificationRecord(BaseModel):
    """One send attempt, stored in ``order_notifications``."""

    id: str | None = None
    order_id: str
    business_id: str
    customer_id: str | None = None
    type: str
    channel: str = "whatsapp"
    message: str
    delivery_status: DeliveryStatus = DeliveryStatus.SENT
    whatsapp_message_id: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    status_updated_at: datetime | None = None
    error_code: str | None = None
    error_message: str | None = None
    created_at: datetime


class MessageContent(BaseModel):
    """Outbound text message body."""

    type: Literal["text"] = "text"
    text: str = Field(..., min_length=1)

    def to_payload(self) -> dict:
        return {"type": self.type, "text": {"body": self.text}}


class SendNotificationRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)
    notification_type: str = NotificationType.STATUS_CHANGE.value
    custom_message: str | None = None


class SendNotificationResult(BaseModel):
    success: bool
    notification_id: str | None = None
    message_id: str | None = None
    message: str
