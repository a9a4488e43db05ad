"""Galeria de vídeos concluídos (paginada)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from adstudio.application.job_tracker import VideoJobTracker
from adstudio.domain.enums import GallerySort
from adstudio.domain.errors import AppError, ErrorCode
from adstudio.domain.models import VideoJob
from adstudio.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 50


@dataclass(slots=True, frozen=True)
class GalleryPage:
    items: list[dict[str, Any]]
    page: int
    limit: int
    total_count: int

    @property
    def pagination(self) -> dict[str, Any]:
        total_pages = math.ceil(self.total_count / self.limit) if self.limit else 0
        return {
            "page": self.page,
            "limit": self.limit,
            "totalCount": self.total_count,
            "totalPages": total_pages,
            "hasNext": self.page < total_pages,
            "hasPrev": self.page > 1,
        }


def gallery_item(job: VideoJob) -> dict[str, Any]:
    return {
        "id": job.job_id,
        "title": job.prompt[:60],
        "prompt": job.prompt,
        "videoUrl": job.video_url,
        "thumbnailUrl": job.thumbnail_url,
        "duration": job.duration,
        "aspectRatio": job.aspect_ratio,
        "views": job.views,
        "createdAt": job.created_at.isoformat(),
        "completedAt": job.completed_at.isoformat() if job.completed_at else None,
    }


class GalleryService:
    def __init__(self, tracker: VideoJobTracker) -> None:
        self._tracker = tracker

    async def list_videos(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        sort_by: GallerySort = GallerySort.RECENT,
    ) -> GalleryPage:
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)
        try:
            jobs, total = await self._tracker.list_completed(page, limit, sort_by)
        except Exception as e:
            logger.error("gallery_fetch_failed", extra={"error_type": type(e).__name__})
            raise AppError(
                "Failed to fetch gallery videos", code=ErrorCode.GALLERY_FETCH_ERROR
            ) from e
        return GalleryPage(
            items=[gallery_item(job) for job in jobs],
            page=page,
            limit=limit,
            total_count=total,
        )
