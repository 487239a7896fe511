"""Image download and re-encoding ahead of remote media upload."""

from __future__ import annotations

import asyncio
import io
import logging
from abc import ABC, abstractmethod

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from catalog_sync.config import EngineConfig

logger = logging.getLogger(__name__)


class ImageOptimizationError(Exception):
    """Raised when a source image cannot be fetched or decoded."""


class ImageOptimizer(ABC):
    """Turns a source image URL into bytes ready for upload."""

    @abstractmethod
    async def optimize(self, source_url: str, purpose: str) -> bytes:
        """Return JPEG bytes sized for ``purpose``."""


class PillowImageOptimizer(ImageOptimizer):
    """Downloads with httpx and resizes/encodes with Pillow."""

    def __init__(
        self,
        config: EngineConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    async def optimize(self, source_url: str, purpose: str) -> bytes:
        raw = await self._download(source_url)
        box = self._config.preset_for(purpose)
        return await asyncio.to_thread(self._encode, raw, box)

    async def _download(self, source_url: str) -> bytes:
        limit = self._config.image_max_download_bytes
        async with httpx.AsyncClient(
            timeout=self._config.image_download_timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            try:
                async with client.stream("GET", source_url) as response:
                    response.raise_for_status()
                    buffer = bytearray()
                    async for part in response.aiter_bytes():
                        buffer.extend(part)
                        if len(buffer) > limit:
                            raise ImageOptimizationError(
                                f"Image at {source_url} exceeds {limit} bytes"
                            )
            except httpx.HTTPError as exc:
                raise ImageOptimizationError(
                    f"Failed to download image from {source_url}: {exc}"
                ) from exc
        return bytes(buffer)

    def _encode(self, raw: bytes, box: tuple[int, int]) -> bytes:
        try:
            with Image.open(io.BytesIO(raw)) as source:
                image = ImageOps.exif_transpose(source)
                if image.mode in ("RGBA", "LA", "P"):
                    image = image.convert("RGBA")
                    background = Image.new("RGB", image.size, (255, 255, 255))
                    background.paste(image, mask=image.split()[-1])
                    image = background
                elif image.mode != "RGB":
                    image = image.convert("RGB")

                # thumbnail() keeps the aspect ratio and never enlarges
                image.thumbnail(box, Image.Resampling.LANCZOS)

                output = io.BytesIO()
                image.save(
                    output,
                    format="JPEG",
                    quality=self._config.image_quality,
                    progressive=True,
                    optimize=True,
                )
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageOptimizationError(f"Could not decode image: {exc}") from exc

        logger.debug("Encoded image to %s bytes", output.tell())
        return output.getvalue()
