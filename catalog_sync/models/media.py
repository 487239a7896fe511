"""Remote media records and media API schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class MediaPurpose(str, Enum):
    PRODUCT = "product"
    CATEGORY = "category"
    CAROUSEL = "carousel"
    FALLBACK = "fallback"


class ReferenceType(str, Enum):
    """Tag of the weak back-reference from a media record to its owner."""

    PRODUCTS = "products"
    CATEGORIES = "categories"
    ORDERS = "orders"


class UploadStatus(str, Enum):
    UPLOADED = "uploaded"
    EXPIRED = "expired"


class MediaRecord(BaseModel):
    """Mapping between a source image and a remote media handle."""

    id: str
    business_id: str
    whatsapp_media_id: str
    original_url: str
    type: str = "image"
    mime_type: str = "image/jpeg"
    purpose: MediaPurpose = MediaPurpose.PRODUCT
    reference_id: str
    reference_type: ReferenceType = ReferenceType.PRODUCTS
    file_size: int = 0
    upload_status: UploadStatus = UploadStatus.UPLOADED
    uploaded_at: datetime
    expires_at: datetime
    expired_at: datetime | None = None
    created_at: datetime


class UploadMediaRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    image_url: str = Field(..., min_length=1)
    purpose: MediaPurpose = MediaPurpose.PRODUCT
    reference_id: str = Field(..., min_length=1)
    reference_type: ReferenceType = ReferenceType.PRODUCTS

    @field_validator("reference_type")
    @classmethod
    def _owner_only(cls, value: ReferenceType) -> ReferenceType:
        if value is ReferenceType.ORDERS:
            raise ValueError("Media can only be uploaded for products or categories")
        return value


class UploadMediaResult(BaseModel):
    success: bool = True
    whatsapp_media_id: str
    media_doc_id: str
    message: str = "Media uploaded successfully"


class BatchUploadRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    product_ids: list[str] = Field(..., min_length=1)


class RefreshMediaRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    buffer_days: int = Field(7, ge=0)


class CleanupMediaRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    older_than_days: int = Field(30, ge=0)


class ItemFailure(BaseModel):
    """One failed item inside a collection operation."""

    item_id: str
    error: str


class MediaBatchResult(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[ItemFailure] = Field(default_factory=list)


class MediaRefreshResult(BaseModel):
    total: int = 0
    refreshed: int = 0
    failed: int = 0
    skipped: int = Field(0, description="Records whose owner no longer exists")
    errors: list[ItemFailure] = Field(default_factory=list)


class MediaCleanupResult(BaseModel):
    success: bool = True
    deleted_count: int = 0
    total_checked: int = 0
    deleted_ids: list[str] = Field(default_factory=list)
    message: str = ""
