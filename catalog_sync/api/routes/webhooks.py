"""WhatsApp platform webhook: subscription handshake and delivery callbacks."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import PlainTextResponse

from catalog_sync.api.dependencies import DispatcherDependency
from catalog_sync.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("/whatsapp", response_class=PlainTextResponse)
async def verify_webhook(
    mode: str | None = Query(None, alias="hub.mode"),
    verify_token: str | None = Query(None, alias="hub.verify_token"),
    challenge: str | None = Query(None, alias="hub.challenge"),
) -> PlainTextResponse:
    """Echo the challenge when the shared verify token matches."""

    if (
        settings.webhook_verification_enabled
        and mode == "subscribe"
        and verify_token is not None
        and hmac.compare_digest(
            verify_token.encode(), (settings.WEBHOOK_VERIFY_TOKEN or "").encode()
        )
    ):
        return PlainTextResponse(challenge or "")

    logger.warning("Webhook verification failed", extra={"mode": mode})
    return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


@router.post("/whatsapp", response_class=PlainTextResponse)
async def receive_webhook(
    request: Request,
    dispatcher: DispatcherDependency,
) -> PlainTextResponse:
    """Accept a callback envelope; processing failures never change the response."""

    body = await request.body()

    if settings.WHATSAPP_APP_SECRET and not _signature_matches(
        settings.WHATSAPP_APP_SECRET,
        body,
        request.headers.get("X-Hub-Signature-256"),
    ):
        logger.warning("Rejected webhook with invalid signature")
        return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)

    try:
        payload = json.loads(body)
    except ValueError:
        return PlainTextResponse(
            "Invalid payload", status_code=status.HTTP_400_BAD_REQUEST
        )
    if not isinstance(payload, dict):
        return PlainTextResponse(
            "Invalid payload", status_code=status.HTTP_400_BAD_REQUEST
        )

    summary = await dispatcher.process_webhook(payload)
    logger.info("Webhook processed", extra=summary.model_dump())
    return PlainTextResponse("OK")


def _signature_matches(secret: str, body: bytes, header: str | None) -> bool:
    if not header or not header.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(
        expected.encode(), header.removeprefix("sha256=").encode()
    )
