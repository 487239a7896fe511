"""Remote catalog client abstractions and the WhatsApp Graph API implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import httpx

from catalog_sync.config import EngineConfig, settings
from catalog_sync.models.business import WhatsAppConfig
from catalog_sync.models.catalog import CatalogItem
from catalog_sync.models.notification import MessageContent
from catalog_sync.services.retry import NO_RETRY, RetryPolicy, execute_with_retry

logger = logging.getLogger(__name__)


class RemoteCatalogError(Exception):
    """Raised when the remote platform rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class _TransientRemoteError(RemoteCatalogError):
    """Rate limiting or server-side failure; worth another attempt."""


class RemoteCatalogClient(ABC):
    """Abstract interface to the remote catalog, media and messaging endpoints."""

    @abstractmethod
    async def upsert_catalog_items(
        self, config: WhatsAppConfig, items: Sequence[CatalogItem]
    ) -> None:
        """Create or update every item in one batch call."""

    @abstractmethod
    async def delete_catalog_items(
        self, config: WhatsAppConfig, retailer_ids: Sequence[str]
    ) -> None:
        """Remove items from the remote catalog."""

    @abstractmethod
    async def upload_media(
        self,
        config: WhatsAppConfig,
        data: bytes,
        filename: str,
        mime_type: str = "image/jpeg",
    ) -> str:
        """Upload binary media and return the remote handle."""

    @abstractmethod
    async def send_message(
        self, config: WhatsAppConfig, to: str, content: MessageContent
    ) -> str:
        """Send a message and return the remote message id."""


class GraphCatalogClient(RemoteCatalogClient):
    """Remote catalog client backed by the Graph API over httpx."""

    def __init__(
        self,
        *,
        base_url: str,
        api_version: str,
        timeout: float = 30.0,
        retry_policy: RetryPolicy = NO_RETRY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = f"{base_url.rstrip('/')}/{api_version}"
        self._retry_policy = retry_policy
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def upsert_catalog_items(
        self, config: WhatsAppConfig, items: Sequence[CatalogItem]
    ) -> None:
        if not items:
            return
        requests = [
            {
                "method": "UPDATE",
                "retailer_id": item.retailer_id,
                "data": item.to_remote(),
            }
            for item in items
        ]
        await self._post(
            config,
            f"{config.catalog_id}/batch",
            json={"requests": requests},
        )
        logger.info(
            "Submitted catalog batch",
            extra={"catalog_id": config.catalog_id, "items": len(items)},
        )

    async def delete_catalog_items(
        self, config: WhatsAppConfig, retailer_ids: Sequence[str]
    ) -> None:
        if not retailer_ids:
            return
        requests = [
            {"method": "DELETE", "retailer_id": retailer_id}
            for retailer_id in retailer_ids
        ]
        await self._post(
            config,
            f"{config.catalog_id}/batch",
            json={"requests": requests},
        )

    async def upload_media(
        self,
        config: WhatsAppConfig,
        data: bytes,
        filename: str,
        mime_type: str = "image/jpeg",
    ) -> str:
        body = await self._post(
            config,
            f"{config.phone_number_id}/media",
            data={"messaging_product": "whatsapp", "type": mime_type},
            files={"file": (filename, data, mime_type)},
        )
        handle = body.get("id")
        if not handle:
            raise RemoteCatalogError("Media upload response did not include an id")
        return str(handle)

    async def send_message(
        self, config: WhatsAppConfig, to: str, content: MessageContent
    ) -> str:
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            **content.to_payload(),
        }
        body = await self._post(
            config, f"{config.phone_number_id}/messages", json=payload
        )
        messages = body.get("messages") or []
        if not messages or not messages[0].get("id"):
            raise RemoteCatalogError("Message response did not include a message id")
        return str(messages[0]["id"])

    async def _post(self, config: WhatsAppConfig, path: str, **kwargs: Any) -> dict:
        url = f"{self._base_url}/{path}"
        headers = {"Authorization": f"Bearer {config.access_token}"}

        async def attempt() -> dict:
            try:
                response = await self._client.post(url, headers=headers, **kwargs)
            except httpx.TransportError as exc:
                raise _TransientRemoteError(f"Request to {path} failed: {exc}") from exc

            if response.status_code == 429 or response.status_code >= 500:
                raise _TransientRemoteError(
                    _describe_failure(response), status_code=response.status_code
                )
            if response.is_error:
                raise RemoteCatalogError(
                    _describe_failure(response), status_code=response.status_code
                )
            try:
                return response.json()
            except ValueError:
                return {}

        try:
            return await execute_with_retry(
                attempt, self._retry_policy, retry_on=_TransientRemoteError
            )
        except _TransientRemoteError as exc:
            raise RemoteCatalogError(str(exc), status_code=exc.status_code) from exc


def _describe_failure(response: httpx.Response) -> str:
    try:
        error = response.json().get("error") or {}
        message = error.get("message")
    except (ValueError, AttributeError):
        message = None
    return f"Remote API returned {response.status_code}: {message or response.text}"


_catalog_client: RemoteCatalogClient | None = None


def get_catalog_client() -> RemoteCatalogClient:
    """Return the process-wide Graph API client."""

    global _catalog_client
    if _catalog_client is None:
        _catalog_client = GraphCatalogClient(
            base_url=settings.WHATSAPP_BASE_URL,
            api_version=settings.WHATSAPP_API_VERSION,
            timeout=settings.WHATSAPP_TIMEOUT_SECONDS,
            retry_policy=EngineConfig.from_settings(settings).retry_policy,
        )
    return _catalog_client


async def close_catalog_client() -> None:
    global _catalog_client
    if isinstance(_catalog_client, GraphCatalogClient):
        await _catalog_client.aclose()
    _catalog_client = None
