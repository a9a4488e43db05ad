"""Coordenação de handoffs entre etapas (Maya → David → Alex/Zara).

Cada handoff é um snapshot imutável, versionado e com hash (SHA-256 do JSON
canônico do payload) gravado uma única vez na trilha de auditoria. Payloads
abaixo do limiar são gravados mesmo assim com `validation_status=failed`;
o bloqueio acontece em `begin_stage`.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from adstudio.domain.enums import AgentRole
from adstudio.domain.errors import HandoffNotFoundError, HandoffRejectedError
from adstudio.domain.handoff_rules import validate_handoff
from adstudio.domain.models import (
    HandoffPayload,
    HandoffValidationResult,
    Session,
    thaw_payload,
    utcnow,
)
from adstudio.infra.handoff_store import HandoffStore
from adstudio.observability.logging import get_logger, short_id
from adstudio.utils.ids import new_handoff_id

logger: logging.Logger = get_logger(__name__)

HANDOFF_VERSION = "1.0"


def compute_data_hash(payload: Mapping[str, Any]) -> str:
    """SHA-256 do JSON canônico (chaves ordenadas, sem espaços)."""

    def _default(obj: Any) -> str:
        if isinstance(obj, datetime):
            return obj.isoformat()
        return str(obj)

    canonical = json.dumps(
        thaw_payload(payload), sort_keys=True, separators=(",", ":"), default=_default
    )
    return hashlib.sha256(canonical.encode()).hexdigest()


class HandoffCoordinator:
    def __init__(
        self,
        store: HandoffStore,
        threshold: float = 0.7,
        low_confidence_threshold: float = 0.7,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._threshold = threshold
        self._low_confidence = low_confidence_threshold
        self._clock = clock or utcnow

    def validate(
        self, source: AgentRole, target: AgentRole, payload: Mapping[str, Any]
    ) -> HandoffValidationResult:
        return validate_handoff(
            source,
            target,
            payload,
            threshold=self._threshold,
            low_confidence_threshold=self._low_confidence,
        )

    async def prepare_handoff(
        self,
        session_id: str,
        source: AgentRole,
        target: AgentRole,
        source_payload: Mapping[str, Any],
    ) -> HandoffPayload:
        """Valida, congela e grava o handoff (append-only).

        Raises:
            ValidationError: rota não suportada (INVALID_HANDOFF_ROUTE)
            HandoffConflictError: handoff_id já gravado
        """
        result = self.validate(source, target, source_payload)
        payload = thaw_payload(source_payload)
        handoff = HandoffPayload(
            handoff_id=new_handoff_id(),
            session_id=session_id,
            timestamp=self._clock(),
            version=HANDOFF_VERSION,
            source_agent=source,
            target_agent=target,
            payload=payload,
            validation_result=result,
            data_hash=compute_data_hash(payload),
        )
        await self._store.append(handoff)

        log = logger.info if handoff.passed else logger.warning
        log(
            "handoff_prepared",
            extra={
                "handoff_id": short_id(handoff.handoff_id),
                "session_id": short_id(session_id),
                "route": f"{source.value}->{target.value}",
                "completeness": result.completeness,
                "validation_status": result.validation_status,
            },
        )
        return handoff

    async def get(self, handoff_id: str) -> HandoffPayload:
        handoff = await self._store.get(handoff_id)
        if handoff is None:
            raise HandoffNotFoundError("Handoff not found", details={"handoff_id": handoff_id})
        return handoff

    async def begin_stage(
        self, handoff_id: str, stage: AgentRole | None = None
    ) -> HandoffPayload:
        """Libera a etapa de destino apenas para handoffs aprovados.

        Raises:
            HandoffNotFoundError: handoff inexistente (ou de outra etapa)
            HandoffRejectedError: completeness abaixo do limiar (422)
        """
        handoff = await self.get(handoff_id)
        if stage is not None and handoff.target_agent != stage:
            raise HandoffNotFoundError(
                "Handoff not addressed to this stage",
                details={"handoff_id": handoff_id, "stage": stage.value},
            )
        if not handoff.passed:
            result = handoff.validation_result
            raise HandoffRejectedError(
                "Handoff is incomplete; target stage cannot begin",
                details={
                    "handoff_id": handoff_id,
                    "completeness": result.completeness,
                    "threshold": result.threshold,
                    "missing_fields": [issue.field for issue in result.errors],
                },
            )
        logger.info(
            "stage_started",
            extra={
                "handoff_id": short_id(handoff_id),
                "target_agent": handoff.target_agent.value,
            },
        )
        return handoff

    async def history(self, session_id: str) -> list[HandoffPayload]:
        return await self._store.list_for_session(session_id)

    @staticmethod
    def verify_integrity(handoff: HandoffPayload) -> bool:
        return compute_data_hash(handoff.payload) == handoff.data_hash

    @staticmethod
    def build_from_session(session: Session) -> dict[str, Any]:
        """Monta o payload Maya → David a partir da análise e estratégia confirmada."""
        analysis = session.analysis
        analysis_data = analysis.model_dump(mode="json", exclude_none=True) if analysis else None
        return {
            "session_id": session.session_id,
            "locale": session.locale.value,
            "product_analysis": analysis_data,
            "commercial_strategy": analysis.commercial_strategy if analysis else None,
            "image_url": session.image_url,
            "conversation_summary": [
                {"role": m.role.value, "content": m.content} for m in session.chat_history[-10:]
            ],
        }
