"""Remote catalog payloads and catalog sync API schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Availability(str, Enum):
    IN_STOCK = "in stock"
    OUT_OF_STOCK = "out of stock"
    LIMITED = "limited quantity"


class CatalogItem(BaseModel):
    """One item of a remote catalog batch; unset fields are left untouched remotely."""

    retailer_id: str = Field(..., min_length=1)
    name: str | None = None
    description: str | None = None
    price: int | None = Field(None, description="Minor currency units")
    currency: str | None = None
    availability: Availability | None = None
    image_url: str | None = None
    url: str | None = None
    category: str | None = None

    def to_remote(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class SyncType(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"
    SPECIFIC = "specific"


class SyncCatalogRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    sync_type: SyncType = SyncType.FULL
    product_ids: list[str] | None = None


class ProductSyncError(BaseModel):
    product_id: str
    error: str


class SyncCatalogResult(BaseModel):
    success: bool = True
    synced_count: int = 0
    failed_count: int = 0
    errors: list[ProductSyncError] = Field(default_factory=list)


class UpdateProductRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    update_fields: list[str] = Field(..., min_length=1)


class SyncInventoryRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    product_ids: list[str] | None = None
    update_prices: bool = False


class InventorySyncResult(BaseModel):
    success: bool = True
    updated_count: int = 0
    message: str = ""


class ProductSyncDetail(BaseModel):
    id: str
    name: str
    sync_status: str
    sync_error: str | None = None
    last_synced: datetime | None = None


class SyncStatusReport(BaseModel):
    success: bool = True
    total_products: int = 0
    synced_products: int = 0
    pending_products: int = 0
    error_products: int = 0
    completion_percentage: int = Field(0, ge=0, le=100)
    product_details: list[ProductSyncDetail] = Field(default_factory=list)


class OperationResult(BaseModel):
    success: bool = True
    message: str = ""
