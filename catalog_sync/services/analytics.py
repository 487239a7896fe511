"""Best-effort analytics events stored alongside business data."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from catalog_sync.services.storage import collections
from catalog_sync.services.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)


class AnalyticsEvent:
    CATALOG_SYNC = "catalog_sync"
    INVENTORY_SYNC = "inventory_sync"
    MEDIA_UPLOAD = "media_upload"
    NOTIFICATION_SENT = "notification_sent"
    MESSAGE_RECEIVED = "message_received"


class AnalyticsRecorder:
    """Appends events to ``whatsapp_analytics``; failures never reach the caller."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    async def log(
        self,
        business_id: str,
        event_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        try:
            await self._store.add(
                collections.ANALYTICS,
                {
                    "business_id": business_id,
                    "event_type": event_type,
                    "metadata": metadata or {},
                    "created_at": self._clock(),
                },
            )
        except Exception:
            logger.exception(
                "Failed to record analytics event",
                extra={"business_id": business_id, "event_type": event_type},
            )
