"""Persistência de jobs de geração de vídeo (coleção `videoJobs`)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from adstudio.domain.enums import GallerySort, JobStatus
from adstudio.domain.errors import StoreError
from adstudio.domain.models import VideoJob
from adstudio.observability.logging import get_logger, short_id

logger: logging.Logger = get_logger(__name__)

_SORT_FIELDS: dict[GallerySort, str] = {
    GallerySort.RECENT: "created_at",
    GallerySort.POPULAR: "views",
    GallerySort.VIEWS: "views",
}


class JobStore(ABC):
    """Contrato abstrato para armazenamento de VideoJob."""

    @abstractmethod
    async def save(self, job: VideoJob) -> None:
        ...

    @abstractmethod
    async def get(self, job_id: str) -> VideoJob | None:
        ...

    @abstractmethod
    async def list_by_status(self, status: JobStatus, limit: int = 500) -> list[VideoJob]:
        ...

    @abstractmethod
    async def list_completed(
        self, page: int, limit: int, sort_by: GallerySort = GallerySort.RECENT
    ) -> tuple[list[VideoJob], int]:
        """Página de jobs concluídos + total de concluídos."""
        ...

    @abstractmethod
    async def count_by_status(self) -> dict[JobStatus, int]:
        ...


class InMemoryJobStore(JobStore):
    """Armazenamento de jobs em memória (dev/testes)."""

    def __init__(self) -> None:
        self._jobs: dict[str, VideoJob] = {}

    async def save(self, job: VideoJob) -> None:
        self._jobs[job.job_id] = job.model_copy(deep=True)

    async def get(self, job_id: str) -> VideoJob | None:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def list_by_status(self, status: JobStatus, limit: int = 500) -> list[VideoJob]:
        jobs = [j for j in self._jobs.values() if j.status == status]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return [j.model_copy(deep=True) for j in jobs[:limit]]

    async def list_completed(
        self, page: int, limit: int, sort_by: GallerySort = GallerySort.RECENT
    ) -> tuple[list[VideoJob], int]:
        completed = [j for j in self._jobs.values() if j.status == JobStatus.COMPLETED]
        if sort_by == GallerySort.RECENT:
            completed.sort(key=lambda j: j.created_at, reverse=True)
        else:
            completed.sort(key=lambda j: (j.views, j.created_at), reverse=True)
        start = (page - 1) * limit
        return [j.model_copy(deep=True) for j in completed[start : start + limit]], len(completed)

    async def count_by_status(self) -> dict[JobStatus, int]:
        counts = {status: 0 for status in JobStatus}
        for job in self._jobs.values():
            counts[job.status] += 1
        return counts


class FirestoreJobStore(JobStore):
    """Jobs em Firestore: videoJobs/{job_id}."""

    def __init__(self, firestore_client: firestore.Client, collection: str = "videoJobs") -> None:
        self._client = firestore_client
        self._collection = collection

    def _ref(self) -> firestore.CollectionReference:
        return self._client.collection(self._collection)

    @staticmethod
    def _from_data(data: dict[str, Any] | None) -> VideoJob | None:
        if not data:
            return None
        return VideoJob.model_validate(data)

    def _collect(self, query: Any) -> list[VideoJob]:
        jobs: list[VideoJob] = []
        for doc in query.stream():
            job = self._from_data(doc.to_dict())
            if job is not None:
                jobs.append(job)
        return jobs

    async def save(self, job: VideoJob) -> None:
        try:
            self._ref().document(job.job_id).set(job.model_dump(mode="json"))
        except Exception as e:
            logger.error(
                "job_save_failed",
                extra={"job_id": short_id(job.job_id), "error": str(e)},
            )
            raise StoreError(f"Firestore job save failed: {e}") from e

    async def get(self, job_id: str) -> VideoJob | None:
        try:
            snapshot = self._ref().document(job_id).get()
        except Exception as e:
            logger.error(
                "job_load_failed",
                extra={"job_id": short_id(job_id), "error": str(e)},
            )
            raise StoreError(f"Firestore job load failed: {e}") from e
        if not snapshot.exists:
            return None
        return self._from_data(snapshot.to_dict())

    async def list_by_status(self, status: JobStatus, limit: int = 500) -> list[VideoJob]:
        query = (
            self._ref()
            .where(filter=FieldFilter("status", "==", status.value))
            .order_by("created_at", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        return self._collect(query)

    async def list_completed(
        self, page: int, limit: int, sort_by: GallerySort = GallerySort.RECENT
    ) -> tuple[list[VideoJob], int]:
        base = self._ref().where(filter=FieldFilter("status", "==", JobStatus.COMPLETED.value))
        query = (
            base.order_by(_SORT_FIELDS[sort_by], direction=firestore.Query.DESCENDING)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        jobs = self._collect(query)
        total = base.count().get()[0][0].value
        return jobs, int(total)

    async def count_by_status(self) -> dict[JobStatus, int]:
        counts: dict[JobStatus, int] = {}
        for status in JobStatus:
            result = self._ref().where(filter=FieldFilter("status", "==", status.value)).count()
            counts[status] = int(result.get()[0][0].value)
        return counts


def create_job_store(
    backend: str, client: firestore.Client | None = None, collection: str = "videoJobs"
) -> JobStore:
    if backend == "memory":
        return InMemoryJobStore()
    if backend == "firestore":
        if client is None:
            raise ValueError("firestore_client required for firestore backend")
        return FirestoreJobStore(client, collection=collection)
    raise ValueError(f"Unknown job store backend: {backend}")
