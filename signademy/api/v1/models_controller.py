"""Model cache API endpoints: registry status, downloads and eviction"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...application.dto.model_dto import (
    ModelDownloadAllResponse,
    ModelDownloadResponse,
    ModelListResponse,
    ModelStatusResponse,
)
from ...exceptions import SignademyError
from ...infrastructure.cache.asset_cache import AssetCache, DownloadProgress, format_bytes
from .dependencies import get_asset_cache, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["models"])


@router.get("", response_model=ModelListResponse)
async def list_models(cache: AssetCache = Depends(get_asset_cache)) -> ModelListResponse:
    """List every model category with its cache status and the total cache size"""
    entries = await cache.status()
    total = sum(entry.size_bytes or 0 for entry in entries)
    return ModelListResponse(
        models=[
            ModelStatusResponse(
                key=entry.key,
                display_name=entry.display_name,
                url=entry.url,
                cached=entry.cached,
                size_bytes=entry.size_bytes,
                size_label=format_bytes(entry.size_bytes) if entry.size_bytes is not None else None,
            )
            for entry in entries
        ],
        total_size_bytes=total,
        total_size_label=format_bytes(total),
    )


@router.post("/{category}/download", response_model=ModelDownloadResponse)
async def download_model(
    category: str,
    cache: AssetCache = Depends(get_asset_cache),
) -> ModelDownloadResponse:
    """
    Make sure a category's model is cached, downloading it if needed.
    
    Raises:
        HTTPException: 404 for an unknown category, 502 if the download fails
    """
    progress: List[int] = []

    def on_progress(update: DownloadProgress) -> None:
        if not progress or update.percent > progress[-1]:
            progress.append(update.percent)

    try:
        source = cache.registry.resolve(category)
        payload = await cache.fetch_source(source, on_progress=on_progress)
    except SignademyError as e:
        logger.warning(f"Model download failed for {category}: {e}")
        raise to_http_exception(e)

    return ModelDownloadResponse(
        key=source.key,
        size_bytes=len(payload),
        size_label=format_bytes(len(payload)),
        progress=progress,
    )


@router.post("/download-all", response_model=ModelDownloadAllResponse)
async def download_all_models(cache: AssetCache = Depends(get_asset_cache)) -> ModelDownloadAllResponse:
    """Prefetch every category that is not cached yet"""
    completed: List[str] = []
    try:
        await cache.prefetch_all(on_model_complete=lambda key, index, total: completed.append(key))
    except SignademyError as e:
        logger.warning(f"Bulk model download stopped after {len(completed)} models: {e}")
        raise to_http_exception(e)

    total = await cache.total_size()
    return ModelDownloadAllResponse(
        completed=completed,
        total_size_bytes=total,
        total_size_label=format_bytes(total),
    )


@router.delete("/cache/{key:path}", status_code=status.HTTP_204_NO_CONTENT)
async def evict_model(key: str, cache: AssetCache = Depends(get_asset_cache)) -> None:
    """Remove one cached model (category or custom URL key)"""
    if not await cache.remove(key):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Model not cached: {key}"
        )


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_models(cache: AssetCache = Depends(get_asset_cache)) -> None:
    """Remove every cached model"""
    await cache.clear()
