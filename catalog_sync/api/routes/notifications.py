"""Routes for customer order notifications."""

from __future__ import annotations

from fastapi import APIRouter

from catalog_sync.api.dependencies import CallerDependency, DispatcherDependency
from catalog_sync.models.notification import (
    SendNotificationRequest,
    SendNotificationResult,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/orders", summary="Send an order update to the customer over WhatsApp")
async def send_order_notification(
    payload: SendNotificationRequest,
    dispatcher: DispatcherDependency,
    caller: CallerDependency,
) -> SendNotificationResult:
    return await dispatcher.send_order_notification(payload, caller)
