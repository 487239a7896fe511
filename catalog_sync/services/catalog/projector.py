"""Pure mapping from stock figures and prices to remote catalog fields."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from catalog_sync.models.catalog import Availability, CatalogItem
from catalog_sync.models.product import InventorySnapshot, Product, StockStatus

_CENT = Decimal("0.01")


def availability_for(stock_quantity: int, stock_status: str | None = None) -> Availability:
    if stock_quantity <= 0:
        return Availability.OUT_OF_STOCK
    if stock_status == StockStatus.LOW_STOCK.value:
        return Availability.LIMITED
    return Availability.IN_STOCK


def to_minor_units(amount: Decimal | int | str) -> int:
    """Convert a major-unit price to minor units, rounding half up."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(units: int) -> Decimal:
    return (Decimal(units) / 100).quantize(_CENT)


def project_inventory(
    product: Product,
    snapshot: InventorySnapshot,
    include_price: bool,
    currency: str,
) -> CatalogItem:
    """Build the stock-only catalog update for one product."""
    item = CatalogItem(
        retailer_id=product.effective_retailer_id,
        availability=availability_for(snapshot.stock_quantity, snapshot.stock_status),
    )
    if include_price:
        item.price = to_minor_units(product.price)
        item.currency = currency
    return item
