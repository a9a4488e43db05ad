"""Fábrica da aplicação FastAPI."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from adstudio.api.errors import register_exception_handlers
from adstudio.api.routes import router
from adstudio.api.routes_admin import router as admin_router
from adstudio.api.routes_agents import router as agents_router
from adstudio.api.routes_chat import router as chat_router
from adstudio.api.routes_gallery import router as gallery_router
from adstudio.api.routes_video import router as video_router
from adstudio.application.budget import CostTracker, OperationCosts
from adstudio.application.chat_refinement import ChatRefinementUseCase
from adstudio.application.events import EventBroadcaster
from adstudio.application.gallery import GalleryService
from adstudio.application.handoff import HandoffCoordinator
from adstudio.application.job_tracker import VideoJobTracker
from adstudio.application.monitoring import MonitoringService
from adstudio.application.product_intelligence import ProductIntelligenceService
from adstudio.application.sessions import SessionService
from adstudio.application.video_generation import GenerateVideoUseCase
from adstudio.config.settings import SUPPORTED_IMAGE_TYPES, Settings, get_settings
from adstudio.infra.cost_ledger import create_cost_ledger
from adstudio.infra.gemini_client import create_gemini_client
from adstudio.infra.handoff_store import create_handoff_store
from adstudio.infra.http import create_http_client
from adstudio.infra.job_store import create_job_store
from adstudio.infra.media_storage import create_media_storage
from adstudio.infra.rate_limiter_factory import create_rate_limiter_from_settings
from adstudio.infra.session_store import create_session_store
from adstudio.infra.veo_client import create_veo_client
from adstudio.observability.logging import configure_logging, get_logger
from adstudio.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


def _uses_firestore(settings: Settings) -> bool:
    backends = (
        settings.session_store_backend,
        settings.job_store_backend,
        settings.cost_ledger_backend,
        settings.handoff_store_backend,
    )
    return any(backend.lower() == "firestore" for backend in backends)


def _create_firestore_client(settings: Settings):
    """Cliente Firestore compartilhado entre os stores (None se ninguém usa)."""
    if not _uses_firestore(settings):
        return None
    from google.cloud import firestore

    return firestore.Client(
        project=settings.firestore_project,
        database=settings.firestore_database_id,
    )


def _create_storage_client(settings: Settings):
    if not settings.media_bucket:
        return None
    from google.cloud import storage

    return storage.Client(project=settings.gcp_project)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await app.state.http_client.close()
    logger.info("app_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Cria a aplicação FastAPI."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name)

    validation_errors = settings.validate_all()
    if validation_errors:
        error_msg = "; ".join(validation_errors)
        raise ValueError(f"Configuração inválida: {error_msg}")

    app = FastAPI(title=settings.service_name, version=settings.version, lifespan=_lifespan)
    app.add_middleware(CorrelationIdMiddleware, header_name=settings.correlation_id_header)
    register_exception_handlers(app, expose_details=settings.is_development)
    for api_router in (
        router,
        video_router,
        chat_router,
        agents_router,
        gallery_router,
        admin_router,
    ):
        app.include_router(api_router)

    app.state.settings = settings

    # Persistência
    firestore_client = _create_firestore_client(settings)
    session_store = create_session_store(
        settings.session_store_backend.lower(),
        client=firestore_client,
        collection=settings.sessions_collection,
    )
    job_store = create_job_store(
        settings.job_store_backend.lower(),
        client=firestore_client,
        collection=settings.jobs_collection,
    )
    cost_ledger = create_cost_ledger(
        settings.cost_ledger_backend.lower(),
        client=firestore_client,
        collection=settings.costs_collection,
    )
    handoff_store = create_handoff_store(
        settings.handoff_store_backend.lower(),
        client=firestore_client,
        collection=settings.handoffs_collection,
    )

    # Serviços externos
    http_client = create_http_client(settings)
    app.state.http_client = http_client
    veo_client = create_veo_client(settings, http_client)
    gemini_client = create_gemini_client(settings)
    media_storage = create_media_storage(
        settings.media_bucket,
        client=_create_storage_client(settings),
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
    )
    app.state.rate_limiter = create_rate_limiter_from_settings(settings)

    # Casos de uso
    broadcaster = EventBroadcaster()
    sessions = SessionService(
        session_store, broadcaster=broadcaster, ttl_hours=settings.session_ttl_hours
    )
    budget = CostTracker(
        cost_ledger,
        total_budget=settings.total_budget,
        warning_threshold=settings.budget_warning_threshold,
        critical_threshold=settings.budget_critical_threshold,
        costs=OperationCosts(
            veo_per_second=settings.veo_cost_per_second,
            gemini_analysis=settings.gemini_analysis_cost,
            gemini_chat=settings.gemini_chat_cost,
            storage_per_video=settings.storage_cost_per_video,
        ),
    )
    tracker = VideoJobTracker(
        job_store,
        sessions,
        veo_client,
        media_storage=media_storage,
        expiry_hours=settings.job_expiry_hours,
    )

    app.state.event_broadcaster = broadcaster
    app.state.session_service = sessions
    app.state.cost_tracker = budget
    app.state.job_tracker = tracker
    app.state.handoff_coordinator = HandoffCoordinator(
        handoff_store,
        threshold=settings.handoff_completeness_threshold,
        low_confidence_threshold=settings.handoff_low_confidence_threshold,
    )
    app.state.generate_video = GenerateVideoUseCase(
        sessions,
        tracker,
        budget,
        veo_client,
        min_prompt=settings.prompt_min_length,
        max_prompt=settings.prompt_max_length,
        max_duration=settings.video_max_duration_seconds,
        max_style=settings.style_max_length,
    )
    app.state.chat_refinement = ChatRefinementUseCase(sessions, budget, gemini_client)
    app.state.product_intelligence = ProductIntelligenceService(
        sessions,
        budget,
        gemini_client,
        media_storage,
        max_upload_bytes=settings.upload_max_bytes,
        allowed_types=SUPPORTED_IMAGE_TYPES,
    )
    app.state.gallery = GalleryService(tracker)
    app.state.monitoring = MonitoringService(
        budget,
        tracker,
        app.state.rate_limiter,
        service_name=settings.service_name,
        version=settings.version,
        environment=settings.environment,
        circuit_breaker=http_client.circuit_breaker,
    )

    logger.info(
        "app_created",
        extra={
            "environment": settings.environment,
            "veo_mode": "real" if veo_client.real_mode else "demo",
            "gemini_mode": "demo" if gemini_client.demo_mode else "real",
        },
    )
    return app


app = create_app()
