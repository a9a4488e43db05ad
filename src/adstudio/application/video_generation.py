"""Caso de uso: submeter geração de vídeo.

Ordem: validação → orçamento → sessão → Veo → job → custo → sessão `generating`.
Falha do Veo marca a sessão como `failed` (compensação) e propaga 502.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from adstudio.application.budget import CostTracker
from adstudio.application.job_tracker import VideoJobTracker
from adstudio.application.sessions import SessionService
from adstudio.domain.enums import CostService, JobStatus, Locale
from adstudio.domain.errors import UpstreamError, ValidationError
from adstudio.infra.veo_client import VeoClient, VideoRequest, validate_video_request
from adstudio.observability.logging import get_logger, short_id

logger: logging.Logger = get_logger(__name__)

SUBMITTED_MESSAGE = "Video generation started. Check status with the job ID."


@dataclass(slots=True, frozen=True)
class GenerationResult:
    job_id: str
    session_id: str
    status: JobStatus
    estimated_completion_time: int
    estimated_cost: float
    message: str = SUBMITTED_MESSAGE


class GenerateVideoUseCase:
    def __init__(
        self,
        sessions: SessionService,
        tracker: VideoJobTracker,
        budget: CostTracker,
        veo_client: VeoClient,
        min_prompt: int = 5,
        max_prompt: int = 500,
        max_duration: int = 15,
        max_style: int = 100,
    ) -> None:
        self._sessions = sessions
        self._tracker = tracker
        self._budget = budget
        self._veo = veo_client
        self._min_prompt = min_prompt
        self._max_prompt = max_prompt
        self._max_duration = max_duration
        self._max_style = max_style

    def _validate(self, request: VideoRequest) -> None:
        errors = validate_video_request(
            request,
            min_prompt=self._min_prompt,
            max_prompt=self._max_prompt,
            max_duration=self._max_duration,
        )
        if request.style and len(request.style) > self._max_style:
            errors.append(f"Style must be at most {self._max_style} characters")
        if errors:
            raise ValidationError("Invalid video generation request", details={"errors": errors})

    async def execute(
        self,
        request: VideoRequest,
        session_id: str | None = None,
        locale: Locale = Locale.EN,
    ) -> GenerationResult:
        self._validate(request)
        estimated_cost = self._budget.estimate_video_generation_cost(request.duration)
        await self._budget.ensure_can_proceed(estimated_cost)

        if session_id:
            session = await self._sessions.require(session_id)
        else:
            session = await self._sessions.start_session(prompt=request.prompt, locale=locale)

        try:
            submission = await self._veo.generate_video(request)
        except UpstreamError as e:
            await self._sessions.fail(session.session_id, f"Video submission failed: {e.message}")
            raise

        job_id = await self._tracker.create_job(
            session.session_id,
            request.prompt,
            submission.job_id,
            estimated_cost=estimated_cost,
            duration=request.duration,
            aspect_ratio=request.aspect_ratio,
        )
        await self._budget.record_cost(
            CostService.VEO,
            estimated_cost,
            f"Video generation ({request.duration}s)",
            session_id=session.session_id,
            job_id=job_id,
        )
        await self._sessions.mark_generating(session.session_id, job_id)

        logger.info(
            "video_generation_submitted",
            extra={
                "job_id": short_id(job_id),
                "session_id": short_id(session.session_id),
                "estimated_cost": estimated_cost,
            },
        )
        return GenerationResult(
            job_id=job_id,
            session_id=session.session_id,
            status=submission.status,
            estimated_completion_time=submission.estimated_completion_time,
            estimated_cost=estimated_cost,
        )
