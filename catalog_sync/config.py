"""
Configuration settings for the application.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from dotenv import load_dotenv

from catalog_sync.services.retry import RetryPolicy

load_dotenv()


DEFAULT_IMAGE_PRESETS: Mapping[str, tuple[int, int]] = MappingProxyType(
    {
        "product": (800, 800),
        "carousel": (1080, 1080),
        "thumbnail": (300, 300),
    }
)


class Settings:
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Redis document store
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    DOCUMENT_KEY_PREFIX: str = os.getenv("DOCUMENT_KEY_PREFIX", "catalog-sync:")

    # WhatsApp Graph API
    WHATSAPP_API_VERSION: str = os.getenv("WHATSAPP_API_VERSION", "v18.0")
    WHATSAPP_BASE_URL: str = os.getenv(
        "WHATSAPP_BASE_URL", "https://graph.facebook.com"
    )
    WHATSAPP_TIMEOUT_SECONDS: float = float(
        os.getenv("WHATSAPP_TIMEOUT_SECONDS", "30")
    )
    WEBHOOK_VERIFY_TOKEN: str | None = os.getenv("WEBHOOK_VERIFY_TOKEN")
    WHATSAPP_APP_SECRET: str | None = os.getenv("WHATSAPP_APP_SECRET")
    MEDIA_CDN_BASE_URL: str = os.getenv(
        "MEDIA_CDN_BASE_URL", "https://scontent.whatsapp.net/v/t61.24694-24"
    )

    # Catalog sync
    CATALOG_BATCH_SIZE: int = int(os.getenv("CATALOG_BATCH_SIZE", "10"))
    INCREMENTAL_WINDOW_HOURS: int = int(os.getenv("INCREMENTAL_WINDOW_HOURS", "24"))
    CURRENCY_CODE: str = os.getenv("CURRENCY_CODE", "GHS")
    PRODUCT_URL_BASE: str = os.getenv(
        "PRODUCT_URL_BASE", "https://yourapp.com/products"
    )
    DEFAULT_CATEGORY: str = os.getenv("DEFAULT_CATEGORY", "General")

    # Retry policy for remote calls
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    RETRY_BASE_DELAY_SECONDS: float = float(
        os.getenv("RETRY_BASE_DELAY_SECONDS", "1.0")
    )
    RETRY_BACKOFF_MULTIPLIER: float = float(
        os.getenv("RETRY_BACKOFF_MULTIPLIER", "2.0")
    )

    # Media lifecycle
    MEDIA_EXPIRES_DAYS: int = int(os.getenv("MEDIA_EXPIRES_DAYS", "30"))
    MEDIA_UPLOAD_CONCURRENCY: int = int(os.getenv("MEDIA_UPLOAD_CONCURRENCY", "5"))
    MEDIA_REFRESH_BUFFER_DAYS: int = int(os.getenv("MEDIA_REFRESH_BUFFER_DAYS", "7"))
    MEDIA_CLEANUP_AGE_DAYS: int = int(os.getenv("MEDIA_CLEANUP_AGE_DAYS", "30"))
    MEDIA_LIVENESS_ORDER_SCAN_LIMIT: int = int(
        os.getenv("MEDIA_LIVENESS_ORDER_SCAN_LIMIT", "5")
    )
    IMAGE_QUALITY: int = int(os.getenv("IMAGE_QUALITY", "85"))
    IMAGE_MAX_DOWNLOAD_MB: int = int(os.getenv("IMAGE_MAX_DOWNLOAD_MB", "50"))
    IMAGE_DOWNLOAD_TIMEOUT_SECONDS: float = float(
        os.getenv("IMAGE_DOWNLOAD_TIMEOUT_SECONDS", "30")
    )

    # Maintenance worker
    MAINTENANCE_INTERVAL_SECONDS: int = int(
        os.getenv("MAINTENANCE_INTERVAL_SECONDS", "21600")
    )

    @property
    def is_production(self) -> bool:
        """
        Check if running in production environment.
        """
        return self.ENVIRONMENT.lower() == "production"

    @property
    def webhook_verification_enabled(self) -> bool:
        """Return True when a webhook verify token is configured."""
        return bool(self.WEBHOOK_VERIFY_TOKEN)

    def __init__(self):
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        logging.basicConfig(level=self.log_level)
        self.logger = logging.getLogger(__name__)

        self.logger.debug(
            f"Config initialized with env={self.ENVIRONMENT}, debug={self.debug}, "
            f"log_level={self.log_level}"
        )


@dataclass(frozen=True)
class EngineConfig:
    """Immutable tunables handed to the sync, media and notification components."""

    batch_size: int = 10
    incremental_window_hours: int = 24
    currency: str = "GHS"
    product_url_base: str = "https://yourapp.com/products"
    default_category: str = "General"
    media_cdn_base_url: str = "https://scontent.whatsapp.net/v/t61.24694-24"
    media_expires_days: int = 30
    media_upload_concurrency: int = 5
    liveness_order_scan_limit: int = 5
    image_quality: int = 85
    image_max_download_bytes: int = 50 * 1024 * 1024
    image_download_timeout: float = 30.0
    image_presets: Mapping[str, tuple[int, int]] = field(
        default_factory=lambda: DEFAULT_IMAGE_PRESETS
    )
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.media_upload_concurrency < 1:
            raise ValueError("media_upload_concurrency must be at least 1")

    def preset_for(self, purpose: str) -> tuple[int, int]:
        """Return the resize box for a media purpose, falling back to the product preset."""
        return self.image_presets.get(purpose.lower(), self.image_presets["product"])

    def media_url(self, handle: str) -> str:
        return f"{self.media_cdn_base_url.rstrip('/')}/{handle}"

    def product_url(self, product_id: str) -> str:
        return f"{self.product_url_base.rstrip('/')}/{product_id}"

    @classmethod
    def from_settings(cls, source: Settings) -> "EngineConfig":
        return cls(
            batch_size=source.CATALOG_BATCH_SIZE,
            incremental_window_hours=source.INCREMENTAL_WINDOW_HOURS,
            currency=source.CURRENCY_CODE,
            product_url_base=source.PRODUCT_URL_BASE,
            default_category=source.DEFAULT_CATEGORY,
            media_cdn_base_url=source.MEDIA_CDN_BASE_URL,
            media_expires_days=source.MEDIA_EXPIRES_DAYS,
            media_upload_concurrency=source.MEDIA_UPLOAD_CONCURRENCY,
            liveness_order_scan_limit=source.MEDIA_LIVENESS_ORDER_SCAN_LIMIT,
            image_quality=source.IMAGE_QUALITY,
            image_max_download_bytes=source.IMAGE_MAX_DOWNLOAD_MB * 1024 * 1024,
            image_download_timeout=source.IMAGE_DOWNLOAD_TIMEOUT_SECONDS,
            retry_policy=RetryPolicy(
                max_attempts=source.MAX_RETRIES,
                base_delay=source.RETRY_BASE_DELAY_SECONDS,
                multiplier=source.RETRY_BACKOFF_MULTIPLIER,
            ),
        )


# Create a global settings instance for import
settings = Settings()
