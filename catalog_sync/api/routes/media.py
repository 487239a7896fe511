"""Routes for the remote media lifecycle."""

from __future__ import annotations

from fastapi import APIRouter

from catalog_sync.api.dependencies import CallerDependency, MediaManagerDependency
from catalog_sync.models.media import (
    BatchUploadRequest,
    CleanupMediaRequest,
    MediaBatchResult,
    MediaCleanupResult,
    MediaRefreshResult,
    RefreshMediaRequest,
    UploadMediaRequest,
    UploadMediaResult,
)

router = APIRouter(prefix="/media", tags=["media"])


@router.post("/upload", summary="Optimize and upload one image for a product or category")
async def upload_media(
    payload: UploadMediaRequest,
    media: MediaManagerDependency,
    caller: CallerDependency,
) -> UploadMediaResult:
    return await media.upload_media(payload, caller)


@router.post("/batch-upload", summary="Upload missing images for several products")
async def batch_upload_media(
    payload: BatchUploadRequest,
    media: MediaManagerDependency,
    caller: CallerDependency,
) -> MediaBatchResult:
    return await media.batch_upload_media(payload.business_id, payload.product_ids, caller)


@router.post("/refresh", summary="Re-upload media that is about to expire")
async def refresh_media(
    payload: RefreshMediaRequest,
    media: MediaManagerDependency,
    caller: CallerDependency,
) -> MediaRefreshResult:
    return await media.refresh_expiring(payload.business_id, payload.buffer_days, caller)


@router.post("/cleanup", summary="Remove media records nothing references")
async def cleanup_media(
    payload: CleanupMediaRequest,
    media: MediaManagerDependency,
    caller: CallerDependency,
) -> MediaCleanupResult:
    return await media.cleanup_unused(
        payload.business_id, payload.older_than_days, caller
    )
