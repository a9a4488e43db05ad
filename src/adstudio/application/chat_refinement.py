"""Caso de uso: chat de refinamento do prompt de vídeo."""

from __future__ import annotations

import logging

from adstudio.application.budget import CostTracker
from adstudio.application.sessions import SessionService
from adstudio.domain.enums import CostService, Locale
from adstudio.domain.errors import ErrorCode, ValidationError
from adstudio.infra.gemini_client import ChatReply, GeminiChatClient
from adstudio.observability.logging import get_logger, short_id
from adstudio.utils.text import sanitize_input

logger: logging.Logger = get_logger(__name__)


class ChatRefinementUseCase:
    def __init__(
        self,
        sessions: SessionService,
        budget: CostTracker,
        gemini: GeminiChatClient,
    ) -> None:
        self._sessions = sessions
        self._budget = budget
        self._gemini = gemini

    async def execute(
        self,
        session_id: str,
        message: str,
        current_prompt: str | None = None,
        locale: Locale = Locale.EN,
    ) -> ChatReply:
        """Responde ao usuário, registra custo e grava a troca no histórico.

        Raises:
            ValidationError: EMPTY_MESSAGE quando nada sobra após sanitização
            BudgetExceededError: orçamento no nível crítico
            SessionNotFoundError: sessão inexistente/expirada
            UpstreamError: falha do Gemini (AI_API_ERROR)
        """
        clean = sanitize_input(message)
        if not clean:
            raise ValidationError(
                "Message cannot be empty after sanitization.", code=ErrorCode.EMPTY_MESSAGE
            )

        await self._budget.ensure_can_proceed()
        session = await self._sessions.require(session_id)

        reply = await self._gemini.refine_prompt(
            clean,
            history=session.chat_history,
            current_prompt=current_prompt or session.prompt,
            locale=locale,
        )
        await self._budget.record_cost(
            CostService.GEMINI,
            self._budget.costs.gemini_chat,
            "Chat refinement",
            session_id=session_id,
        )
        await self._sessions.add_chat_exchange(session_id, clean, reply.response)

        logger.info(
            "chat_refined",
            extra={"session_id": short_id(session_id), "suggestions": len(reply.suggestions)},
        )
        return reply
