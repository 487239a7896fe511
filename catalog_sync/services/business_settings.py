"""Lookups of per-business settings and remote platform credentials."""

from __future__ import annotations

from catalog_sync.errors import ErrorReason, FailedPreconditionError
from catalog_sync.models.business import BusinessSettings, WhatsAppConfig
from catalog_sync.services.storage import collections
from catalog_sync.services.storage.document_store import DocumentStore


async def get_whatsapp_config(store: DocumentStore, business_id: str) -> WhatsAppConfig:
    """Return the active WhatsApp credentials of a business."""

    data = await store.get(collections.WHATSAPP_CONFIGS, business_id)
    if data is None:
        raise FailedPreconditionError(
            "WhatsApp is not configured for this business",
            reason=ErrorReason.WHATSAPP_NOT_CONFIGURED,
        )
    config = WhatsAppConfig.model_validate(data)
    if not config.active:
        raise FailedPreconditionError(
            "WhatsApp configuration is inactive for this business",
            reason=ErrorReason.WHATSAPP_NOT_CONFIGURED,
        )
    return config


async def get_business_settings(
    store: DocumentStore, business_id: str
) -> BusinessSettings:
    data = await store.get(collections.BUSINESS_SETTINGS, business_id)
    if data is None:
        return BusinessSettings()
    return BusinessSettings.model_validate(data)
