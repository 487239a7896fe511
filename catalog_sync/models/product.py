"""Product, category and inventory documents."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class Product(BaseModel):
    """A locally-owned product as stored in the ``products`` collection."""

    id: str = Field(..., min_length=1)
    business_id: str = Field(..., min_length=1)
    name: str = ""
    description: str | None = None
    price: Decimal = Field(default=Decimal("0"), ge=0, description="Major units")
    stock_quantity: int = 0
    retailer_id: str | None = Field(
        None, description="External catalog key; the product id is used when absent"
    )
    category_name: str | None = None
    image_url: str | None = Field(None, description="Source-of-truth image")
    whatsapp_image_id: str | None = Field(
        None, description="Remote media handle, set after a successful upload"
    )
    whatsapp_image_url: str | None = None
    additional_image_ids: list[str] = Field(default_factory=list)
    sync_status: SyncStatus = SyncStatus.PENDING
    sync_error: str | None = None
    last_synced: datetime | None = None
    updated_at: datetime | None = None

    @property
    def effective_retailer_id(self) -> str:
        return self.retailer_id or self.id


class Category(BaseModel):
    """Catalog category; owns an image the same way a product does."""

    id: str = Field(..., min_length=1)
    business_id: str = Field(..., min_length=1)
    name: str = ""
    image_url: str | None = None
    whatsapp_image_id: str | None = None
    whatsapp_image_url: str | None = None
    updated_at: datetime | None = None


class InventorySnapshot(BaseModel):
    """Read-only stock figures for one product."""

    product_id: str
    business_id: str
    stock_quantity: int = 0
    stock_status: str = StockStatus.OUT_OF_STOCK.value

    @classmethod
    def empty(cls, product_id: str, business_id: str) -> "InventorySnapshot":
        """Snapshot used when no inventory document exists: zero stock."""
        return cls(
            product_id=product_id,
            business_id=business_id,
            stock_quantity=0,
            stock_status=StockStatus.OUT_OF_STOCK.value,
        )
