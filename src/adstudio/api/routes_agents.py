"""Rotas das etapas (agentes): inteligência de produto e handoffs.

Etapas aceitam o nome da rota (`product-intelligence`, `creative-director`,
`video-producer`) ou o nome do agente (`maya`, `david`, `alex`, `zara`).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from adstudio.api.dependencies import (
    get_event_broadcaster,
    get_handoff_coordinator,
    get_product_intelligence,
    get_session_service,
    get_settings,
    rate_limited,
    use_locale,
)
from adstudio.api.errors import ok
from adstudio.application.events import EventBroadcaster
from adstudio.application.handoff import HandoffCoordinator
from adstudio.application.product_intelligence import ProductIntelligenceService
from adstudio.application.sessions import SessionService
from adstudio.config.settings import Settings
from adstudio.domain.enums import STAGE_ALIASES, AgentRole, EndpointClass
from adstudio.domain.errors import ErrorCode, ValidationError
from adstudio.domain.models import HandoffPayload

router = APIRouter(prefix="/api/agents")

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyzeBody(BaseModel):
    model_config = _CAMEL

    session_id: str
    description: str = ""
    locale: str | None = None


class ProductChatBody(BaseModel):
    model_config = _CAMEL

    session_id: str
    message: str
    locale: str | None = None


class ConfirmStrategyBody(BaseModel):
    model_config = _CAMEL

    session_id: str
    confirmed: bool
    locale: str | None = None


class HandoffBody(BaseModel):
    model_config = _CAMEL

    session_id: str
    target_agent: str
    payload: dict[str, Any] | None = None


def _stage(name: str) -> AgentRole:
    role = STAGE_ALIASES.get(name.lower())
    if role is None:
        raise ValidationError(
            f"Unknown agent stage '{name}'",
            code=ErrorCode.INVALID_HANDOFF_ROUTE,
            details={"stage": name, "allowed": sorted(STAGE_ALIASES)},
        )
    return role


def _handoff_json(handoff: HandoffPayload) -> dict[str, Any]:
    data = handoff.model_dump(mode="json", by_alias=True)
    data["integrityVerified"] = HandoffCoordinator.verify_integrity(handoff)
    return data


# -----------------------------------------------------------------------------
# Inteligência de produto (Maya)
# -----------------------------------------------------------------------------


@router.post(
    "/product-intelligence/upload",
    dependencies=[Depends(rate_limited(EndpointClass.DEFAULT))],
)
async def upload_product_image(
    request: Request,
    file: UploadFile = File(...),
    locale: str | None = Form(None),
    service: ProductIntelligenceService = Depends(get_product_intelligence),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Recebe a imagem do produto e abre uma sessão `draft`."""
    resolved = use_locale(request, locale)
    # Lê 1 byte além do limite para detectar arquivo grande sem carregar tudo
    content = await file.read(settings.upload_max_bytes + 1)
    result = await service.upload(content, file.content_type, file.filename, locale=resolved)
    return ok(
        {
            "sessionId": result.session.session_id,
            "imageUrl": result.image_url,
            "processingStatus": "uploaded",
            "fileInfo": result.file_info,
        }
    )


@router.post(
    "/product-intelligence/analyze",
    dependencies=[Depends(rate_limited(EndpointClass.PRODUCT_ANALYZE))],
)
async def analyze_product(
    body: AnalyzeBody,
    request: Request,
    service: ProductIntelligenceService = Depends(get_product_intelligence),
) -> dict[str, Any]:
    locale = use_locale(request, body.locale)
    analysis = await service.analyze(body.session_id, body.description, locale=locale)
    return ok(
        {
            "sessionId": body.session_id,
            "status": "completed",
            "analysis": analysis.model_dump(mode="json", exclude_none=True),
        }
    )


@router.post(
    "/product-intelligence/chat/confirm-strategy",
    dependencies=[Depends(rate_limited(EndpointClass.PRODUCT_CHAT))],
)
async def confirm_strategy(
    body: ConfirmStrategyBody,
    request: Request,
    sessions: SessionService = Depends(get_session_service),
) -> dict[str, Any]:
    locale = use_locale(request, body.locale)
    message, strategy = await sessions.confirm_strategy(body.session_id, body.confirmed, locale)
    data: dict[str, Any] = {"message": message}
    if strategy is not None:
        data["updatedStrategy"] = strategy
    return ok(data)


@router.post(
    "/product-intelligence/chat",
    dependencies=[Depends(rate_limited(EndpointClass.PRODUCT_CHAT))],
)
async def product_chat(
    body: ProductChatBody,
    request: Request,
    service: ProductIntelligenceService = Depends(get_product_intelligence),
) -> dict[str, Any]:
    locale = use_locale(request, body.locale)
    result = await service.chat(body.session_id, body.message, locale=locale)
    data: dict[str, Any] = {
        "messageId": result.message_id,
        "messageType": result.message_type,
        "agentResponse": result.agent_response,
    }
    if result.proposed_strategy is not None:
        data["proposedStrategy"] = result.proposed_strategy
        data["originalStrategy"] = result.original_strategy
    return ok(data)


@router.get("/product-intelligence/events")
async def session_events(
    session_id: str = Query(..., alias="sessionId"),
    sessions: SessionService = Depends(get_session_service),
    broadcaster: EventBroadcaster = Depends(get_event_broadcaster),
) -> StreamingResponse:
    """Stream SSE de eventos da sessão (ex.: `analysis-complete`)."""
    await sessions.require(session_id)
    return StreamingResponse(
        broadcaster.stream(session_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


# -----------------------------------------------------------------------------
# Handoffs entre etapas
# -----------------------------------------------------------------------------


@router.post(
    "/{stage}/handoff",
    dependencies=[Depends(rate_limited(EndpointClass.PRODUCT_HANDOFF))],
)
async def create_handoff(
    stage: str,
    body: HandoffBody,
    sessions: SessionService = Depends(get_session_service),
    coordinator: HandoffCoordinator = Depends(get_handoff_coordinator),
) -> dict[str, Any]:
    """Grava o handoff da etapa `stage` para `targetAgent`.

    Sem `payload` no corpo, o snapshot é montado a partir da sessão
    (análise + estratégia confirmada).
    """
    source = _stage(stage)
    target = _stage(body.target_agent)
    session = await sessions.require(body.session_id)
    payload = body.payload
    if payload is None:
        payload = HandoffCoordinator.build_from_session(session)
    handoff = await coordinator.prepare_handoff(session.session_id, source, target, payload)
    return ok({"handoff": _handoff_json(handoff)})


@router.get("/{stage}/handoffs")
async def list_handoffs(
    stage: str,
    session_id: str = Query(..., alias="sessionId"),
    sessions: SessionService = Depends(get_session_service),
    coordinator: HandoffCoordinator = Depends(get_handoff_coordinator),
) -> dict[str, Any]:
    role = _stage(stage)
    await sessions.require(session_id)
    history = await coordinator.history(session_id)
    involved = [h for h in history if role in (h.source_agent, h.target_agent)]
    return ok({"handoffs": [_handoff_json(h) for h in involved]})


@router.post("/{stage}/handoffs/{handoff_id}/begin")
async def begin_stage(
    stage: str,
    handoff_id: str,
    coordinator: HandoffCoordinator = Depends(get_handoff_coordinator),
) -> dict[str, Any]:
    """Inicia a etapa de destino; handoff incompleto → 422 HANDOFF_INCOMPLETE."""
    handoff = await coordinator.begin_stage(handoff_id, _stage(stage))
    return ok({"handoff": _handoff_json(handoff)})
