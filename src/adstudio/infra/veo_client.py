"""Cliente do Veo (geração de vídeo via Generative Language API).

Dois modos:
- Real (GEMINI_API_KEY presente): `models/{model}:predictLongRunning`,
  polling da operação e `:cancel`. O nome da operação é URL-encoded e usado
  como `veo_job_id`.
- Demo (sem chave): ids `veo-demo-<epoch_ms>-<rand>` cujo progresso avança
  com o tempo decorrido (3s pendente, conclusão em 15s).

Falhas de submissão/consulta levantam UpstreamError (VEO_API_ERROR, 502).
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, unquote

from adstudio.config.settings import (
    DEFAULT_VEO_MODEL,
    GENAI_API_BASE_URL,
    SUPPORTED_ASPECT_RATIOS,
)
from adstudio.domain.enums import JobStatus
from adstudio.domain.errors import UpstreamError, ValidationError
from adstudio.infra.http import HttpClient, HttpError
from adstudio.observability.logging import get_logger, short_id
from adstudio.observability.timing import timed
from adstudio.utils.ids import new_demo_operation_id

if TYPE_CHECKING:
    from adstudio.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

DEMO_PREFIX = "veo-demo-"
DEMO_PENDING_MS = 3_000
DEMO_TOTAL_MS = 15_000
DEMO_VIDEO_URL = (
    "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4"
)
DEMO_THUMBNAIL_URL = (
    "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/images/BigBuckBunny.jpg"
)
REAL_ESTIMATED_SECONDS = 180
DEMO_ESTIMATED_SECONDS = 300
COST_PER_SECOND = 0.10  # $1.50 por 15s

_DEMO_TIMESTAMP = re.compile(r"^veo-demo-(\d+)-")


@dataclass(slots=True)
class VideoRequest:
    prompt: str
    duration: int = 15
    aspect_ratio: str = "16:9"
    style: str | None = None


@dataclass(slots=True, frozen=True)
class VeoSubmission:
    job_id: str
    status: JobStatus
    estimated_completion_time: int  # segundos


@dataclass(slots=True, frozen=True)
class VeoJobStatus:
    job_id: str
    status: JobStatus
    progress: float | None = None
    video_url: str | None = None
    thumbnail_url: str | None = None
    error: str | None = None


def validate_video_request(
    request: VideoRequest,
    *,
    min_prompt: int = 5,
    max_prompt: int = 500,
    max_duration: int = 15,
) -> list[str]:
    """Retorna lista de erros (vazia = requisição válida)."""
    errors: list[str] = []
    prompt = (request.prompt or "").strip()
    if len(prompt) < min_prompt:
        errors.append(f"Prompt must be at least {min_prompt} characters")
    if len(prompt) > max_prompt:
        errors.append(f"Prompt must be at most {max_prompt} characters")
    if not isinstance(request.duration, int) or not 1 <= request.duration <= max_duration:
        errors.append(f"Duration must be an integer between 1 and {max_duration} seconds")
    if request.aspect_ratio not in SUPPORTED_ASPECT_RATIOS:
        errors.append(f"Aspect ratio must be one of {', '.join(SUPPORTED_ASPECT_RATIOS)}")
    return errors


def estimate_cost(duration: int, cost_per_second: float = COST_PER_SECOND) -> float:
    """Custo estimado do Veo; duração limitada a 15s."""
    return round(min(duration, 15) * cost_per_second, 4)


def _extract_video_uri(data: dict[str, Any]) -> str | None:
    samples = (data.get("response") or {}).get("generateVideoResponse", {}).get(
        "generatedSamples"
    ) or []
    if not samples:
        return None
    return (samples[0].get("video") or {}).get("uri")


class VeoClient:
    """Fachada sobre a API do Veo com modo demo."""

    def __init__(
        self,
        http_client: HttpClient,
        api_key: str | None = None,
        model: str = DEFAULT_VEO_MODEL,
        base_url: str = GENAI_API_BASE_URL,
        cost_per_second: float = COST_PER_SECOND,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._cost_per_second = cost_per_second
        self._http = http_client
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    @property
    def real_mode(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key or "", "Content-Type": "application/json"}

    async def generate_video(self, request: VideoRequest) -> VeoSubmission:
        errors = validate_video_request(request)
        if errors:
            raise ValidationError("Invalid video request", details={"errors": errors})

        if not self.real_mode:
            job_id = new_demo_operation_id()
            logger.info("veo_demo_submitted", extra={"veo_job_id": short_id(job_id)})
            return VeoSubmission(
                job_id=job_id,
                status=JobStatus.PENDING,
                estimated_completion_time=DEMO_ESTIMATED_SECONDS,
            )

        url = f"{self._base_url}/models/{self._model}:predictLongRunning"
        body = {
            "instances": [{"prompt": request.prompt}],
            "parameters": {"aspectRatio": request.aspect_ratio},
        }
        try:
            with timed("veo_submit"):
                response = await self._http.post(url, json=body, headers=self._headers())
        except HttpError as e:
            logger.error(
                "veo_submit_failed",
                extra={"status_code": e.status_code, "error": str(e)},
            )
            raise UpstreamError(
                f"Veo submission failed: {e}", details={"status_code": e.status_code}
            ) from e

        operation_name = response.json().get("name")
        if not operation_name:
            raise UpstreamError("Veo response missing operation name")

        job_id = quote(operation_name, safe="")
        logger.info("veo_submitted", extra={"veo_job_id": short_id(job_id)})
        return VeoSubmission(
            job_id=job_id,
            status=JobStatus.PENDING,
            estimated_completion_time=REAL_ESTIMATED_SECONDS,
        )

    async def get_job_status(self, job_id: str) -> VeoJobStatus:
        """Consulta o estado remoto.

        Raises:
            UpstreamError: falha de transporte/HTTP (o chamador decide o fallback)
        """
        if job_id.startswith(DEMO_PREFIX):
            return self._demo_status(job_id)

        operation = unquote(job_id)
        if "operations" not in operation and "models" not in operation:
            return VeoJobStatus(job_id=job_id, status=JobStatus.FAILED, error="Invalid job ID format")
        if not self.real_mode:
            raise UpstreamError("Veo API key not configured")

        try:
            with timed("veo_status"):
                response = await self._http.get(
                    f"{self._base_url}/{operation}", headers=self._headers()
                )
        except HttpError as e:
            raise UpstreamError(
                f"Veo status query failed: {e}", details={"status_code": e.status_code}
            ) from e

        data = response.json()
        if not data.get("done"):
            return VeoJobStatus(job_id=job_id, status=JobStatus.PROCESSING, progress=50.0)
        if data.get("error"):
            message = (data["error"] or {}).get("message") or "Video generation failed"
            return VeoJobStatus(job_id=job_id, status=JobStatus.FAILED, error=message)

        video_uri = _extract_video_uri(data)
        if not video_uri:
            return VeoJobStatus(
                job_id=job_id, status=JobStatus.FAILED, error="Video URL not found in response"
            )
        return VeoJobStatus(
            job_id=job_id, status=JobStatus.COMPLETED, progress=100.0, video_url=video_uri
        )

    def _demo_status(self, job_id: str) -> VeoJobStatus:
        match = _DEMO_TIMESTAMP.match(job_id)
        if not match:
            return VeoJobStatus(
                job_id=job_id, status=JobStatus.FAILED, error="Cannot parse job timestamp"
            )
        elapsed = self._clock_ms() - int(match.group(1))
        if elapsed < DEMO_PENDING_MS:
            return VeoJobStatus(job_id=job_id, status=JobStatus.PENDING, progress=0.0)
        if elapsed < DEMO_TOTAL_MS:
            progress = min(
                (elapsed - DEMO_PENDING_MS) * 100 // (DEMO_TOTAL_MS - DEMO_PENDING_MS), 99
            )
            return VeoJobStatus(job_id=job_id, status=JobStatus.PROCESSING, progress=float(progress))
        return VeoJobStatus(
            job_id=job_id,
            status=JobStatus.COMPLETED,
            progress=100.0,
            video_url=DEMO_VIDEO_URL,
            thumbnail_url=DEMO_THUMBNAIL_URL,
        )

    async def cancel_job(self, job_id: str) -> bool:
        """Cancelamento best-effort; False quando a API recusa ou falha."""
        if job_id.startswith(DEMO_PREFIX):
            return True
        if not self.real_mode:
            return False
        try:
            await self._http.post(
                f"{self._base_url}/{unquote(job_id)}:cancel", headers=self._headers()
            )
        except HttpError as e:
            logger.warning(
                "veo_cancel_failed",
                extra={"veo_job_id": short_id(job_id), "status_code": e.status_code},
            )
            return False
        return True

    def estimate_cost(self, duration: int) -> float:
        return estimate_cost(duration, self._cost_per_second)


def create_veo_client(settings: Settings, http_client: HttpClient) -> VeoClient:
    if not settings.veo_real_mode:
        logger.warning("GEMINI_API_KEY ausente: Veo em modo demo")
    return VeoClient(
        http_client,
        api_key=settings.gemini_api_key,
        model=settings.veo_model,
        base_url=settings.veo_api_base_url,
        cost_per_second=settings.veo_cost_per_second,
    )

