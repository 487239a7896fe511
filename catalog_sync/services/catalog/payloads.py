"""Builders for remote catalog items from local products."""

from __future__ import annotations

from collections.abc import Iterable

from catalog_sync.config import EngineConfig
from catalog_sync.models.catalog import CatalogItem
from catalog_sync.models.product import Product
from catalog_sync.services.catalog.projector import availability_for, to_minor_units

UPDATABLE_FIELDS = frozenset({"name", "price", "description", "availability", "image"})


def build_catalog_item(product: Product, config: EngineConfig) -> CatalogItem:
    return CatalogItem(
        retailer_id=product.effective_retailer_id,
        name=product.name,
        description=product.description or "",
        price=to_minor_units(product.price),
        currency=config.currency,
        availability=availability_for(product.stock_quantity),
        image_url=(
            config.media_url(product.whatsapp_image_id)
            if product.whatsapp_image_id
            else None
        ),
        url=config.product_url(product.id),
        category=product.category_name or config.default_category,
    )


def build_partial_item(
    product: Product, fields: Iterable[str], config: EngineConfig
) -> CatalogItem:
    """Build an item carrying only the requested fields."""
    requested = set(fields)
    item = CatalogItem(retailer_id=product.effective_retailer_id)

    if "name" in requested:
        item.name = product.name
    if "price" in requested:
        item.price = to_minor_units(product.price)
        item.currency = config.currency
    if "description" in requested:
        item.description = product.description or ""
    if "availability" in requested:
        item.availability = availability_for(product.stock_quantity)
    if "image" in requested and product.whatsapp_image_id:
        item.image_url = config.media_url(product.whatsapp_image_id)
    return item
