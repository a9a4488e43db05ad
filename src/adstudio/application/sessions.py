"""Casos de uso de sessão: criação, análise, chat e estratégia pendente."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from adstudio.application.events import EventBroadcaster, SessionEvent
from adstudio.domain.enums import ChatRole, Locale, SessionStatus
from adstudio.domain.errors import SessionNotFoundError
from adstudio.domain.models import ChatMessage, ProductAnalysis, Session, utcnow
from adstudio.infra.session_store import SessionStore
from adstudio.observability.logging import get_logger, short_id
from adstudio.utils.ids import new_session_id

logger: logging.Logger = get_logger(__name__)

ANALYSIS_COMPLETE = "analysis-complete"
SESSION_FAILED = "session-failed"

_CONFIRM_MESSAGES: dict[Locale, tuple[str, str]] = {
    Locale.EN: (
        "Strategy updated! Let's continue with the new strategy.",
        "Understood. Keeping the original strategy. Anything else you'd like to adjust?",
    ),
    Locale.JA: (
        "戦略を更新しました！新しい戦略で進めましょう。",
        "承知しました。元の戦略を保持します。他に調整したい点はありますか？",
    ),
}


def confirmation_message(confirmed: bool, locale: Locale | str = Locale.EN) -> str:
    try:
        resolved = Locale(locale)
    except ValueError:
        resolved = Locale.EN
    accepted, kept = _CONFIRM_MESSAGES[resolved]
    return accepted if confirmed else kept


class SessionService:
    """Orquestra o ciclo de vida da Session sobre o SessionStore."""

    def __init__(
        self,
        store: SessionStore,
        broadcaster: EventBroadcaster | None = None,
        ttl_hours: int = 12,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._ttl = timedelta(hours=ttl_hours)
        self._clock = clock or utcnow

    async def require(self, session_id: str) -> Session:
        session = await self._store.get(session_id)
        if session is None:
            raise SessionNotFoundError(
                "Session not found or has expired", details={"session_id": session_id}
            )
        return session

    async def start_session(
        self,
        prompt: str = "",
        locale: Locale = Locale.EN,
        image_url: str | None = None,
        session_id: str | None = None,
    ) -> Session:
        now = self._clock()
        session = Session(
            session_id=session_id or new_session_id(),
            prompt=prompt,
            status=SessionStatus.DRAFT,
            locale=locale,
            image_url=image_url,
            created_at=now,
            updated_at=now,
            expires_at=now + self._ttl,
        )
        await self._store.create(session)
        logger.info("session_started", extra={"session_id": short_id(session.session_id)})
        return session

    async def begin_analysis(self, session_id: str) -> Session:
        return await self._store.update(session_id, status=SessionStatus.ANALYZING)

    async def complete_analysis(self, session_id: str, analysis: ProductAnalysis) -> Session:
        """Sessão vai a `completed` com a análise; emite `analysis-complete`."""
        session = await self._store.update(
            session_id, status=SessionStatus.COMPLETED, analysis=analysis
        )
        logger.info("analysis_completed", extra={"session_id": short_id(session_id)})
        if self._broadcaster:
            self._broadcaster.publish(
                SessionEvent(
                    type=ANALYSIS_COMPLETE,
                    session_id=session_id,
                    data={"analysis": analysis.model_dump(mode="json", exclude_none=True)},
                )
            )
        return session

    async def fail(self, session_id: str, reason: str) -> Session | None:
        """Compensação: falha parcial do pipeline marca a sessão como `failed`.

        Não propaga SessionNotFoundError (a sessão pode ter expirado no meio).
        """
        try:
            session = await self._store.update(
                session_id, status=SessionStatus.FAILED, failure_reason=reason
            )
        except SessionNotFoundError:
            logger.warning("session_fail_skipped", extra={"session_id": short_id(session_id)})
            return None
        logger.warning(
            "session_failed", extra={"session_id": short_id(session_id), "reason": reason}
        )
        if self._broadcaster:
            self._broadcaster.publish(
                SessionEvent(type=SESSION_FAILED, session_id=session_id, data={"reason": reason})
            )
        return session

    async def mark_generating(self, session_id: str, job_id: str) -> Session:
        return await self._store.update(
            session_id, status=SessionStatus.GENERATING, video_job_id=job_id
        )

    async def attach_image(self, session_id: str, image_url: str) -> Session:
        return await self._store.update(session_id, image_url=image_url)

    async def mark_completed(self, session_id: str) -> Session:
        return await self._store.update(session_id, status=SessionStatus.COMPLETED)

    async def add_chat_exchange(self, session_id: str, user: str, assistant: str) -> None:
        now = self._clock()
        await self._store.append_chat_messages(
            session_id,
            [
                ChatMessage(role=ChatRole.USER, content=user, timestamp=now),
                ChatMessage(role=ChatRole.ASSISTANT, content=assistant, timestamp=now),
            ],
        )

    async def propose_strategy(self, session_id: str, strategy: dict[str, Any]) -> None:
        """Uma única estratégia pendente por sessão (sobrescreve a anterior)."""
        await self._store.set_pending_strategy(session_id, strategy)

    async def confirm_strategy(
        self, session_id: str, confirmed: bool, locale: Locale | str = Locale.EN
    ) -> tuple[str, dict[str, Any] | None]:
        """Aplica ou descarta a estratégia pendente.

        Raises:
            SessionNotFoundError: sessão inexistente/expirada
            NoPendingStrategyError: não há estratégia pendente (apenas ao confirmar)
        """
        await self.require(session_id)
        if confirmed:
            strategy = await self._store.confirm_pending_strategy(session_id)
            logger.info("strategy_confirmed", extra={"session_id": short_id(session_id)})
            return confirmation_message(True, locale), strategy

        await self._store.clear_pending_strategy(session_id)
        logger.info("strategy_rejected", extra={"session_id": short_id(session_id)})
        return confirmation_message(False, locale), None
