"""Dependências injetadas nas rotas."""

from __future__ import annotations

import hmac
from collections.abc import Callable

from fastapi import Request, Response

from adstudio.api.errors import locale_from_request
from adstudio.application.budget import CostTracker
from adstudio.application.chat_refinement import ChatRefinementUseCase
from adstudio.application.events import EventBroadcaster
from adstudio.application.gallery import GalleryService
from adstudio.application.handoff import HandoffCoordinator
from adstudio.application.job_tracker import VideoJobTracker
from adstudio.application.monitoring import MonitoringService
from adstudio.application.product_intelligence import ProductIntelligenceService
from adstudio.application.sessions import SessionService
from adstudio.application.video_generation import GenerateVideoUseCase
from adstudio.config.settings import Settings
from adstudio.domain.enums import EndpointClass, Locale
from adstudio.domain.errors import RateLimitedError, UnauthorizedError
from adstudio.domain.rate_limit import RateLimiter, client_identifier
from adstudio.observability.logging import get_logger

logger = get_logger(__name__)


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""

    return request.app.state.settings


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_session_service(request: Request) -> SessionService:
    """Retorna o serviço de sessões."""

    return request.app.state.session_service


def get_job_tracker(request: Request) -> VideoJobTracker:
    """Retorna o rastreador de jobs de vídeo."""

    return request.app.state.job_tracker


def get_cost_tracker(request: Request) -> CostTracker:
    return request.app.state.cost_tracker


def get_handoff_coordinator(request: Request) -> HandoffCoordinator:
    return request.app.state.handoff_coordinator


def get_event_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.event_broadcaster


def get_generate_video(request: Request) -> GenerateVideoUseCase:
    return request.app.state.generate_video


def get_chat_refinement(request: Request) -> ChatRefinementUseCase:
    return request.app.state.chat_refinement


def get_product_intelligence(request: Request) -> ProductIntelligenceService:
    return request.app.state.product_intelligence


def get_gallery(request: Request) -> GalleryService:
    return request.app.state.gallery


def get_monitoring(request: Request) -> MonitoringService:
    return request.app.state.monitoring


def rate_limited(endpoint_class: EndpointClass) -> Callable[[Request, Response], None]:
    """Dependência que consome cota da classe de endpoint.

    Headers X-RateLimit-* vão em toda resposta; ao estourar, 429 com Retry-After.
    """

    def _check(request: Request, response: Response) -> None:
        limiter: RateLimiter = request.app.state.rate_limiter
        client_id = client_identifier(request.headers)
        result = limiter.check(client_id, endpoint_class)
        if not result.allowed:
            logger.warning(
                "rate_limit_exceeded",
                extra={"endpoint_class": endpoint_class.value, "limit": result.limit},
            )
            raise RateLimitedError(
                "Rate limit exceeded",
                details={"retry_after": result.retry_after, "limit": result.limit},
                headers=result.headers(),
            )
        response.headers.update(result.headers())

    return _check


def use_locale(request: Request, locale: str | None = None) -> Locale:
    """Fixa o locale da requisição (corpo > Accept-Language) para as mensagens de erro."""
    if locale in {item.value for item in Locale}:
        request.state.locale = locale
    return locale_from_request(request)


def get_locale(request: Request) -> Locale:
    return locale_from_request(request)


def require_admin(request: Request) -> None:
    """Exige `Authorization: Bearer <ADMIN_API_KEY>`; sem chave configurada, tudo é 401."""
    settings: Settings = request.app.state.settings
    expected = settings.admin_api_key
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")

    if not expected or scheme.lower() != "bearer" or not token:
        raise UnauthorizedError("Admin credentials required")
    if not hmac.compare_digest(token.strip().encode(), expected.encode()):
        logger.warning("admin_auth_failed", extra={"path": request.url.path})
        raise UnauthorizedError("Invalid admin credentials")
