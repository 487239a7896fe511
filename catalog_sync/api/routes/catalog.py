"""Routes driving catalog synchronization for a business."""

from __future__ import annotations

from fastapi import APIRouter, Query

from catalog_sync.api.dependencies import CallerDependency, OrchestratorDependency
from catalog_sync.models.catalog import (
    InventorySyncResult,
    OperationResult,
    SyncCatalogRequest,
    SyncCatalogResult,
    SyncInventoryRequest,
    SyncStatusReport,
    UpdateProductRequest,
)

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.post("/sync", summary="Push products of a business to the remote catalog")
async def sync_catalog(
    payload: SyncCatalogRequest,
    orchestrator: OrchestratorDependency,
    caller: CallerDependency,
) -> SyncCatalogResult:
    return await orchestrator.sync_catalog(payload, caller)


@router.post(
    "/products/{product_id}/update",
    summary="Push selected fields of one product to the remote catalog",
)
async def update_product(
    product_id: str,
    payload: UpdateProductRequest,
    orchestrator: OrchestratorDependency,
    caller: CallerDependency,
) -> OperationResult:
    return await orchestrator.update_product(
        product_id, payload.business_id, payload.update_fields, caller
    )


@router.delete("/products/{product_id}", summary="Detach a product from the catalog")
async def delete_product(
    product_id: str,
    orchestrator: OrchestratorDependency,
    caller: CallerDependency,
    business_id: str = Query(..., min_length=1),
    delete_remote: bool = Query(False),
) -> OperationResult:
    return await orchestrator.delete_product(
        product_id, business_id, delete_remote, caller
    )


@router.post("/inventory/sync", summary="Push stock levels (and optionally prices)")
async def sync_inventory(
    payload: SyncInventoryRequest,
    orchestrator: OrchestratorDependency,
    caller: CallerDependency,
) -> InventorySyncResult:
    return await orchestrator.sync_inventory(payload, caller)


@router.get("/status/{business_id}", summary="Aggregate sync status of a business")
async def get_sync_status(
    business_id: str,
    orchestrator: OrchestratorDependency,
    caller: CallerDependency,
    include_details: bool = Query(False),
) -> SyncStatusReport:
    return await orchestrator.get_sync_status(business_id, include_details, caller)
