"""Rota de chat de refinamento de prompt."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from adstudio.api.dependencies import get_chat_refinement, rate_limited, use_locale
from adstudio.api.errors import ok
from adstudio.application.chat_refinement import ChatRefinementUseCase
from adstudio.domain.enums import EndpointClass

router = APIRouter(prefix="/api/chat")


class RefineBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    message: str
    current_prompt: str | None = None
    locale: str | None = None


@router.post("/refine", dependencies=[Depends(rate_limited(EndpointClass.CHAT_REFINEMENT))])
async def refine(
    body: RefineBody,
    request: Request,
    use_case: ChatRefinementUseCase = Depends(get_chat_refinement),
) -> dict[str, Any]:
    locale = use_locale(request, body.locale)
    reply = await use_case.execute(
        body.session_id, body.message, current_prompt=body.current_prompt, locale=locale
    )
    return ok({"response": reply.response, "suggestions": reply.suggestions})
