"""Caller authorization against business ownership."""

from __future__ import annotations

import logging

from catalog_sync.errors import (
    ErrorReason,
    FailedPreconditionError,
    NotFoundError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from catalog_sync.models.business import Business
from catalog_sync.services.storage import collections
from catalog_sync.services.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)


class AccessGate:
    """Checks that a caller owns a business whose WhatsApp integration is on."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def authorize(self, user_id: str | None, business_id: str) -> Business:
        if not user_id:
            raise UnauthenticatedError()

        business = await self._load(business_id)
        if business.owner_id != user_id:
            logger.warning(
                "Access denied",
                extra={"user_id": user_id, "business_id": business_id},
            )
            raise PermissionDeniedError("Access denied to this business")
        if not business.whatsapp_enabled:
            raise FailedPreconditionError(
                "WhatsApp integration is not enabled for this business",
                reason=ErrorReason.WHATSAPP_NOT_CONFIGURED,
            )
        return business

    async def get_owner(self, business_id: str) -> str | None:
        business = await self._load(business_id)
        return business.owner_id

    async def _load(self, business_id: str) -> Business:
        data = await self._store.get(collections.BUSINESSES, business_id)
        if data is None:
            raise NotFoundError(
                "Business", business_id, reason=ErrorReason.BUSINESS_NOT_FOUND
            )
        return Business.model_validate(data)
