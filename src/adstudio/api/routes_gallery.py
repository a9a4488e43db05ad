"""Galeria pública de vídeos concluídos."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from adstudio.api.dependencies import get_gallery
from adstudio.api.errors import ok
from adstudio.application.gallery import DEFAULT_PAGE_SIZE, GalleryService
from adstudio.domain.enums import GallerySort

router = APIRouter(prefix="/api/gallery")


@router.get("/videos")
async def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    sort_by: GallerySort = Query(GallerySort.RECENT, alias="sortBy"),
    gallery: GalleryService = Depends(get_gallery),
) -> dict[str, Any]:
    result = await gallery.list_videos(page, limit, sort_by)
    return ok(result.items, pagination=result.pagination)
