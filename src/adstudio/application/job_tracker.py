"""Rastreamento de jobs de vídeo com reconciliação pull-based.

Não existe worker em background: cada `get_status` consulta o Veo quando o
job ainda está ativo e aplica o resultado pela tabela de transições. Falha
na consulta externa devolve o último estado persistido (degradação suave).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from adstudio.application.sessions import SessionService
from adstudio.domain.enums import ACTIVE_JOB_STATUSES, GallerySort, JobStatus
from adstudio.domain.errors import (
    ErrorCode,
    JobExpiredError,
    JobNotFoundError,
    SessionNotFoundError,
    UpstreamError,
    ValidationError,
)
from adstudio.domain.job_states import (
    JobEvent,
    event_for_remote_status,
    next_progress,
    validate_transition,
)
from adstudio.domain.models import JobStatusView, VideoJob, utcnow
from adstudio.infra.job_store import JobStore
from adstudio.infra.media_storage import MediaStorage
from adstudio.infra.veo_client import VeoClient, VeoJobStatus
from adstudio.observability.logging import get_logger, log_fallback, short_id
from adstudio.utils.ids import new_job_id

logger: logging.Logger = get_logger(__name__)

CANCELLED_ERROR = "Job cancelled by user"
DEFAULT_ETA_SECONDS = 300


@dataclass(slots=True, frozen=True)
class CancelOutcome:
    cancelled: bool
    job_id: str
    reason: ErrorCode | None = None


@dataclass(slots=True, frozen=True)
class JobMetrics:
    total: int
    by_status: dict[str, int]
    success_rate: float
    average_processing_seconds: float | None


def status_message(job: VideoJob) -> str:
    if job.status == JobStatus.PENDING:
        return "Your video generation is queued and will begin shortly."
    if job.status == JobStatus.PROCESSING:
        return f"Generating your video... {round(job.progress)}% complete."
    if job.status == JobStatus.COMPLETED:
        return "Your video is ready! Click to view and download."
    return job.error or "Video generation failed. Please try again."


def estimate_time_remaining(job: VideoJob, now: datetime | None = None) -> int | None:
    """ETA em segundos, apenas para jobs em processamento."""
    if job.status != JobStatus.PROCESSING:
        return None
    if job.progress <= 0:
        return DEFAULT_ETA_SECONDS
    elapsed = ((now or utcnow()) - job.created_at).total_seconds()
    total = elapsed / (job.progress / 100)
    return max(0, round(total - elapsed))


class VideoJobTracker:
    def __init__(
        self,
        job_store: JobStore,
        sessions: SessionService,
        veo_client: VeoClient,
        media_storage: MediaStorage | None = None,
        expiry_hours: int = 24,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._jobs = job_store
        self._sessions = sessions
        self._veo = veo_client
        self._media = media_storage
        self._expiry = timedelta(hours=expiry_hours)
        self._clock = clock or utcnow

    async def create_job(
        self,
        session_id: str,
        prompt: str,
        external_operation_id: str,
        estimated_cost: float = 0.0,
        duration: int | None = None,
        aspect_ratio: str | None = None,
    ) -> str:
        if not session_id or not session_id.strip():
            raise ValidationError("session_id is required", details={"field": "sessionId"})
        now = self._clock()
        job = VideoJob(
            job_id=new_job_id(),
            session_id=session_id,
            prompt=prompt,
            status=JobStatus.PENDING,
            progress=0.0,
            veo_job_id=external_operation_id,
            estimated_cost=estimated_cost,
            duration=duration,
            aspect_ratio=aspect_ratio,
            created_at=now,
            updated_at=now,
        )
        await self._jobs.save(job)
        logger.info(
            "job_created",
            extra={"job_id": short_id(job.job_id), "session_id": short_id(session_id)},
        )
        return job.job_id

    async def _load(self, job_id: str) -> VideoJob:
        job = await self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError("Job not found", details={"job_id": job_id})
        if self._clock() - job.created_at > self._expiry:
            raise JobExpiredError("Job has expired", details={"job_id": job_id})
        return job

    def _sign(self, url: str | None) -> str | None:
        if not url or self._media is None:
            return url
        try:
            return self._media.sign_url(url)
        except Exception as e:
            log_fallback(logger, "signed_url", reason=type(e).__name__)
            return url

    def _apply_remote(self, job: VideoJob, remote: VeoJobStatus) -> VideoJob:
        """Aplica o status remoto pela tabela de transições (sem I/O)."""
        event = event_for_remote_status(remote.status)
        if event is None:
            return job
        allowed, next_status, reason = validate_transition(job.status, event)
        if not allowed or next_status is None:
            logger.debug("job_transition_ignored", extra={"reason": reason})
            return job

        changes: dict[str, object] = {
            "status": next_status,
            "progress": next_progress(job.progress, remote.progress, next_status),
        }
        if next_status == JobStatus.COMPLETED:
            changes["video_url"] = self._sign(remote.video_url)
            changes["thumbnail_url"] = self._sign(remote.thumbnail_url)
            changes["completed_at"] = self._clock()
        elif next_status == JobStatus.FAILED:
            changes["error"] = remote.error or "Video generation failed"
        return job.model_copy(update=changes)

    async def _on_completed(self, job: VideoJob) -> None:
        try:
            await self._sessions.mark_completed(job.session_id)
        except SessionNotFoundError:
            # Sessão é referência fraca: pode ter expirado antes do vídeo
            logger.info("job_session_missing", extra={"job_id": short_id(job.job_id)})

    async def get_status(self, job_id: str) -> JobStatusView:
        job = await self._load(job_id)

        if job.status in ACTIVE_JOB_STATUSES and job.veo_job_id:
            try:
                remote = await self._veo.get_job_status(job.veo_job_id)
            except UpstreamError as e:
                log_fallback(
                    logger, "veo_status", reason=type(e).__name__, job_id=short_id(job_id)
                )
            else:
                updated = self._apply_remote(job, remote)
                if (updated.status, updated.progress) != (job.status, job.progress):
                    updated = updated.model_copy(update={"updated_at": self._clock()})
                    await self._jobs.save(updated)
                    logger.info(
                        "job_status_changed",
                        extra={
                            "job_id": short_id(job_id),
                            "from_status": job.status.value,
                            "to_status": updated.status.value,
                            "progress": updated.progress,
                        },
                    )
                    if updated.status == JobStatus.COMPLETED:
                        await self._on_completed(updated)
                job = updated

        return self.to_view(job)

    def to_view(self, job: VideoJob) -> JobStatusView:
        return JobStatusView(
            job_id=job.job_id,
            status=job.status,
            progress=job.progress,
            status_message=status_message(job),
            video_url=job.video_url,
            thumbnail_url=job.thumbnail_url,
            estimated_time_remaining=estimate_time_remaining(job, self._clock()),
            error=job.error,
        )

    async def cancel(self, job_id: str) -> CancelOutcome:
        """Cancela jobs ativos; terminais retornam CANNOT_CANCEL sem exceção."""
        job = await self._load(job_id)
        allowed, next_status, _ = validate_transition(job.status, JobEvent.CANCEL_REQUESTED)
        if not allowed or next_status is None:
            return CancelOutcome(cancelled=False, job_id=job_id, reason=ErrorCode.CANNOT_CANCEL)

        if job.veo_job_id and not await self._veo.cancel_job(job.veo_job_id):
            logger.warning("job_cancel_rejected", extra={"job_id": short_id(job_id)})
            return CancelOutcome(
                cancelled=False, job_id=job_id, reason=ErrorCode.CANCELLATION_FAILED
            )

        now = self._clock()
        await self._jobs.save(
            job.model_copy(
                update={"status": next_status, "error": CANCELLED_ERROR, "updated_at": now}
            )
        )
        await self._sessions.fail(job.session_id, CANCELLED_ERROR)
        logger.info("job_cancelled", extra={"job_id": short_id(job_id)})
        return CancelOutcome(cancelled=True, job_id=job_id)

    async def get_metrics(self) -> JobMetrics:
        counts = await self._jobs.count_by_status()
        total = sum(counts.values())
        finished = counts.get(JobStatus.COMPLETED, 0) + counts.get(JobStatus.FAILED, 0)
        success_rate = counts.get(JobStatus.COMPLETED, 0) / finished if finished else 0.0

        durations = [
            (job.completed_at - job.created_at).total_seconds()
            for job in await self._jobs.list_by_status(JobStatus.COMPLETED, limit=100)
            if job.completed_at
        ]
        return JobMetrics(
            total=total,
            by_status={status.value: count for status, count in counts.items()},
            success_rate=round(success_rate, 4),
            average_processing_seconds=(
                round(sum(durations) / len(durations), 2) if durations else None
            ),
        )

    async def list_completed(
        self, page: int = 1, limit: int = 12, sort_by: GallerySort = GallerySort.RECENT
    ) -> tuple[list[VideoJob], int]:
        return await self._jobs.list_completed(page, limit, sort_by)
