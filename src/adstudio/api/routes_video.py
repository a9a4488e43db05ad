"""Rotas de geração de vídeo e polling de status."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from adstudio.api.dependencies import (
    get_generate_video,
    get_job_tracker,
    rate_limited,
    use_locale,
)
from adstudio.api.errors import ok
from adstudio.application.job_tracker import VideoJobTracker
from adstudio.application.video_generation import GenerateVideoUseCase
from adstudio.domain.enums import EndpointClass
from adstudio.domain.errors import AppError, CannotCancelError, ErrorCode, ValidationError
from adstudio.infra.veo_client import VideoRequest
from adstudio.utils.ids import is_valid_job_id

router = APIRouter(prefix="/api")

CANCELLED_MESSAGE = "Video generation cancelled."


class GenerateVideoBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt: str
    duration: int = 15
    aspect_ratio: str = "16:9"
    style: str | None = None
    session_id: str | None = None
    locale: str | None = None


def _require_job_id(job_id: str) -> str:
    if not is_valid_job_id(job_id):
        raise ValidationError(
            "Invalid job ID format", code=ErrorCode.INVALID_JOB_ID, details={"job_id": job_id}
        )
    return job_id


@router.post(
    "/generate-video",
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(rate_limited(EndpointClass.VIDEO_GENERATION))],
)
async def generate_video(
    body: GenerateVideoBody,
    request: Request,
    use_case: GenerateVideoUseCase = Depends(get_generate_video),
) -> dict[str, Any]:
    """Submete o vídeo ao Veo; o cliente acompanha pelo jobId."""
    locale = use_locale(request, body.locale)
    result = await use_case.execute(
        VideoRequest(
            prompt=body.prompt,
            duration=body.duration,
            aspect_ratio=body.aspect_ratio,
            style=body.style,
        ),
        session_id=body.session_id,
        locale=locale,
    )
    return ok(
        {
            "jobId": result.job_id,
            "sessionId": result.session_id,
            "status": result.status,
            "estimatedCompletionTime": result.estimated_completion_time,
            "estimatedCost": result.estimated_cost,
            "message": result.message,
        }
    )


@router.get(
    "/status/{job_id}",
    dependencies=[Depends(rate_limited(EndpointClass.STATUS_CHECK))],
)
async def get_job_status(
    job_id: str,
    tracker: VideoJobTracker = Depends(get_job_tracker),
) -> dict[str, Any]:
    view = await tracker.get_status(_require_job_id(job_id))
    return ok(view.model_dump(mode="json", by_alias=True, exclude_none=True))


@router.delete(
    "/status/{job_id}",
    dependencies=[Depends(rate_limited(EndpointClass.STATUS_CHECK))],
)
async def cancel_job(
    job_id: str,
    tracker: VideoJobTracker = Depends(get_job_tracker),
) -> dict[str, Any]:
    """Cancela um job ativo; job terminal → 409, recusa do Veo → 500."""
    outcome = await tracker.cancel(_require_job_id(job_id))
    if not outcome.cancelled:
        if outcome.reason == ErrorCode.CANNOT_CANCEL:
            raise CannotCancelError(
                "Job is already finished and cannot be cancelled",
                details={"job_id": job_id},
            )
        raise AppError(
            "Video service refused the cancellation",
            code=ErrorCode.CANCELLATION_FAILED,
            details={"job_id": job_id},
        )
    return ok({"jobId": outcome.job_id, "status": "cancelled", "message": CANCELLED_MESSAGE})
