"""Casos de uso da etapa de inteligência de produto (Maya).

upload → sessão `draft` com imagem; analyze → `analyzing` → `completed`
(evento `analysis-complete`); chat pode propor nova estratégia, que fica
pendente até `confirm-strategy`.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from adstudio.application.budget import CostTracker
from adstudio.application.sessions import SessionService
from adstudio.domain.enums import CostService, Locale
from adstudio.domain.errors import ErrorCode, UpstreamError, ValidationError
from adstudio.domain.models import ProductAnalysis, Session, utcnow
from adstudio.infra.gemini_client import STRATEGY_UPDATE_SIGNAL, GeminiChatClient
from adstudio.infra.media_storage import MediaStorage
from adstudio.observability.logging import get_logger, log_fallback, short_id
from adstudio.utils.text import sanitize_input

logger: logging.Logger = get_logger(__name__)

NORMAL_CHAT = "NORMAL_CHAT"
STRATEGY_UPDATE_CONFIRMATION = "STRATEGY_UPDATE_CONFIRMATION"

_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


@dataclass(slots=True, frozen=True)
class UploadResult:
    session: Session
    image_url: str
    file_info: dict[str, Any]


@dataclass(slots=True)
class ProductChatResult:
    message_id: str
    message_type: str
    agent_response: str
    proposed_strategy: dict[str, Any] | None = None
    original_strategy: dict[str, Any] | None = None


class ProductIntelligenceService:
    def __init__(
        self,
        sessions: SessionService,
        budget: CostTracker,
        gemini: GeminiChatClient,
        media: MediaStorage,
        max_upload_bytes: int = 10 * 1024 * 1024,
        allowed_types: tuple[str, ...] = tuple(_EXTENSIONS),
    ) -> None:
        self._sessions = sessions
        self._budget = budget
        self._gemini = gemini
        self._media = media
        self._max_bytes = max_upload_bytes
        self._allowed_types = allowed_types

    def _validate_upload(self, content: bytes, content_type: str | None) -> None:
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > self._max_bytes:
            raise ValidationError(
                "File exceeds maximum upload size",
                code=ErrorCode.FILE_TOO_LARGE,
                details={"max_bytes": self._max_bytes, "size_bytes": len(content)},
            )
        if content_type not in self._allowed_types:
            raise ValidationError(
                "Unsupported image format",
                code=ErrorCode.UNSUPPORTED_FORMAT,
                details={"allowed": list(self._allowed_types), "received": content_type},
            )

    async def upload(
        self,
        content: bytes,
        content_type: str | None,
        filename: str | None = None,
        locale: Locale = Locale.EN,
    ) -> UploadResult:
        self._validate_upload(content, content_type)
        session = await self._sessions.start_session(locale=locale)

        extension = _EXTENSIONS.get(content_type or "", "bin")
        object_name = f"uploads/{session.session_id}/product.{extension}"
        try:
            stored_uri = self._media.upload(object_name, content, content_type or "")
        except UpstreamError:
            await self._sessions.fail(session.session_id, "Image upload failed")
            raise

        try:
            image_url = self._media.sign_url(stored_uri)
        except Exception as e:
            log_fallback(logger, "signed_url", reason=type(e).__name__)
            image_url = stored_uri
        session = await self._sessions.attach_image(session.session_id, stored_uri)
        logger.info(
            "product_image_uploaded",
            extra={"session_id": short_id(session.session_id), "size_bytes": len(content)},
        )
        return UploadResult(
            session=session,
            image_url=image_url,
            file_info={
                "name": filename,
                "size": len(content),
                "type": content_type,
                "uploadedAt": utcnow().isoformat(),
            },
        )

    async def analyze(
        self,
        session_id: str,
        description: str = "",
        locale: Locale = Locale.EN,
    ) -> ProductAnalysis:
        """Analisa o produto; falha do Gemini marca a sessão como `failed`."""
        await self._budget.ensure_can_proceed(self._budget.costs.gemini_analysis)
        session = await self._sessions.require(session_id)
        await self._sessions.begin_analysis(session_id)

        try:
            analysis = await self._gemini.analyze_product(
                sanitize_input(description) or session.prompt,
                image_url=session.image_url,
                locale=locale,
            )
        except UpstreamError as e:
            await self._sessions.fail(session_id, f"Product analysis failed: {e.message}")
            raise

        await self._budget.record_cost(
            CostService.GEMINI,
            self._budget.costs.gemini_analysis,
            "Product analysis",
            session_id=session_id,
        )
        await self._sessions.complete_analysis(session_id, analysis)
        return analysis

    async def chat(
        self, session_id: str, message: str, locale: Locale = Locale.EN
    ) -> ProductChatResult:
        clean = sanitize_input(message)
        if not clean:
            raise ValidationError(
                "Message cannot be empty after sanitization.", code=ErrorCode.EMPTY_MESSAGE
            )
        await self._budget.ensure_can_proceed()
        session = await self._sessions.require(session_id)

        reply = await self._gemini.product_chat(
            clean, session.analysis, history=session.chat_history, locale=locale
        )
        await self._budget.record_cost(
            CostService.GEMINI, self._budget.costs.gemini_chat, "Product chat", session_id=session_id
        )

        message_id = str(uuid.uuid4())
        if STRATEGY_UPDATE_SIGNAL not in reply:
            await self._sessions.add_chat_exchange(session_id, clean, reply)
            return ProductChatResult(message_id, NORMAL_CHAT, reply)

        clean_reply = reply.replace(STRATEGY_UPDATE_SIGNAL, "").strip()
        current = (session.analysis.commercial_strategy if session.analysis else None) or {}
        proposed = await self._gemini.update_strategy(current, clean, locale=locale)
        await self._sessions.propose_strategy(session_id, proposed)
        await self._sessions.add_chat_exchange(session_id, clean, clean_reply)
        logger.info("strategy_proposed", extra={"session_id": short_id(session_id)})
        return ProductChatResult(
            message_id,
            STRATEGY_UPDATE_CONFIRMATION,
            clean_reply,
            proposed_strategy=proposed,
            original_strategy=current or None,
        )
