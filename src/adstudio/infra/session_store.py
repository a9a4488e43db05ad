"""Persistência de sessões de criação de comercial.

- InMemorySessionStore: desenvolvimento/testes
- FirestoreSessionStore: produção (coleção `sessions`, TTL via `_ttl_expire_at`)

Sessões expiradas (`now > expires_at`) são tratadas como inexistentes.
Append de chat é atômico: ArrayUnion no Firestore, lock no in-memory.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from adstudio.domain.errors import (
    NoPendingStrategyError,
    SessionConflictError,
    SessionNotFoundError,
    StoreError,
)
from adstudio.domain.models import ChatMessage, ProductAnalysis, Session, utcnow
from adstudio.observability.logging import get_logger, short_id

logger: logging.Logger = get_logger(__name__)

Clock = Callable[[], datetime]


def _confirm_strategy(session: Session, now: datetime) -> tuple[Session, dict[str, Any]]:
    """Move a estratégia pendente para `analysis.commercial_strategy`."""
    if not session.pending_strategy:
        raise NoPendingStrategyError(
            "No pending strategy to confirm",
            details={"session_id": session.session_id},
        )
    strategy = dict(session.pending_strategy)
    analysis = session.analysis or ProductAnalysis()
    analysis = analysis.model_copy(update={"commercial_strategy": strategy})
    updated = session.model_copy(
        update={
            "analysis": analysis,
            "pending_strategy": None,
            "pending_strategy_at": None,
            "updated_at": now,
        }
    )
    return updated, strategy


class SessionStore(ABC):
    """Contrato abstrato para armazenamento de Session."""

    @abstractmethod
    async def create(self, session: Session) -> None:
        ...

    @abstractmethod
    async def get(self, session_id: str) -> Session | None:
        """Retorna a sessão se existir e não tiver expirado."""
        ...

    @abstractmethod
    async def update(self, session_id: str, **fields: Any) -> Session:
        """Atualiza campos e avança `updated_at`.

        Raises:
            SessionNotFoundError: sessão inexistente ou expirada
        """
        ...

    @abstractmethod
    async def append_chat_messages(self, session_id: str, messages: list[ChatMessage]) -> None:
        """Append atômico ao histórico (sem read-modify-write)."""
        ...

    @abstractmethod
    async def set_pending_strategy(self, session_id: str, strategy: dict[str, Any]) -> None:
        """Grava a única estratégia pendente (sobrescreve proposta anterior)."""
        ...

    @abstractmethod
    async def confirm_pending_strategy(self, session_id: str) -> dict[str, Any]:
        """Promove a estratégia pendente e limpa o slot.

        Raises:
            NoPendingStrategyError: não há estratégia aguardando confirmação
        """
        ...

    @abstractmethod
    async def clear_pending_strategy(self, session_id: str) -> bool:
        ...

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        ...

    @abstractmethod
    async def cleanup_expired(self, now: datetime | None = None) -> int:
        ...


class InMemorySessionStore(SessionStore):
    """Armazenamento em memória para desenvolvimento e testes.

    ⚠️ Não usar em produção (não compartilha estado entre instâncias).
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or utcnow

    def _active(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None or session.is_expired(self._clock()):
            raise SessionNotFoundError(
                "Session not found", details={"session_id": session_id}
            )
        return session

    async def create(self, session: Session) -> None:
        async with self._lock:
            self._sessions[session.session_id] = session.model_copy(deep=True)
        logger.debug("session_created", extra={"session_id": short_id(session.session_id)})

    async def get(self, session_id: str) -> Session | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            logger.debug("session_expired", extra={"session_id": short_id(session_id)})
            return None
        return session.model_copy(deep=True)

    async def update(self, session_id: str, **fields: Any) -> Session:
        async with self._lock:
            current = self._active(session_id)
            updated = current.model_copy(update={**fields, "updated_at": self._clock()})
            self._sessions[session_id] = updated
        return updated.model_copy(deep=True)

    async def append_chat_messages(self, session_id: str, messages: list[ChatMessage]) -> None:
        async with self._lock:
            current = self._active(session_id)
            history = [*current.chat_history, *messages]
            self._sessions[session_id] = current.model_copy(
                update={"chat_history": history, "updated_at": self._clock()}
            )

    async def set_pending_strategy(self, session_id: str, strategy: dict[str, Any]) -> None:
        now = self._clock()
        async with self._lock:
            current = self._active(session_id)
            self._sessions[session_id] = current.model_copy(
                update={
                    "pending_strategy": dict(strategy),
                    "pending_strategy_at": now,
                    "updated_at": now,
                }
            )

    async def confirm_pending_strategy(self, session_id: str) -> dict[str, Any]:
        async with self._lock:
            updated, strategy = _confirm_strategy(self._active(session_id), self._clock())
            self._sessions[session_id] = updated
        return strategy

    async def clear_pending_strategy(self, session_id: str) -> bool:
        async with self._lock:
            current = self._active(session_id)
            had_pending = current.pending_strategy is not None
            self._sessions[session_id] = current.model_copy(
                update={
                    "pending_strategy": None,
                    "pending_strategy_at": None,
                    "updated_at": self._clock(),
                }
            )
        return had_pending

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            return self._sessions.pop(session_id, None) is not None

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        async with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)


class FirestoreSessionStore(SessionStore):
    """Armazenamento em Firestore para produção.

    Coleção: sessions/{session_id}
    - `_ttl_expire_at` alimenta a TTL policy do Firestore
    - Chat via ArrayUnion (atômico, sem last-write-wins)
    - Confirmação de estratégia em transação
    """

    def __init__(
        self,
        firestore_client: firestore.Client,
        collection: str = "sessions",
        clock: Clock | None = None,
    ) -> None:
        self._client = firestore_client
        self._collection = collection
        self._clock = clock or utcnow

    def _doc(self, session_id: str) -> firestore.DocumentReference:
        return self._client.collection(self._collection).document(session_id)

    def _to_document(self, session: Session) -> dict[str, Any]:
        payload = session.model_dump(mode="json")
        payload["_ttl_expire_at"] = session.expires_at
        return payload

    def _from_snapshot(self, snapshot: Any) -> Session | None:
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        data.pop("_ttl_expire_at", None)
        return Session.model_validate(data)

    async def create(self, session: Session) -> None:
        try:
            self._doc(session.session_id).set(self._to_document(session))
        except Exception as e:
            logger.error(
                "session_create_failed",
                extra={"session_id": short_id(session.session_id), "error": str(e)},
            )
            raise StoreError(f"Firestore create failed: {e}") from e
        logger.debug("session_created", extra={"session_id": short_id(session.session_id)})

    async def get(self, session_id: str) -> Session | None:
        try:
            session = self._from_snapshot(self._doc(session_id).get())
        except Exception as e:
            logger.error(
                "session_load_failed",
                extra={"session_id": short_id(session_id), "error": str(e)},
            )
            raise StoreError(f"Firestore load failed: {e}") from e

        if session is None:
            return None
        if session.is_expired(self._clock()):
            logger.debug("session_expired", extra={"session_id": short_id(session_id)})
            return None
        return session

    async def _require(self, session_id: str) -> Session:
        session = await self.get(session_id)
        if session is None:
            raise SessionNotFoundError("Session not found", details={"session_id": session_id})
        return session

    def _write(self, session_id: str, changes: dict[str, Any]) -> None:
        try:
            self._doc(session_id).update(changes)
        except gcp_exceptions.NotFound as e:
            raise SessionNotFoundError(
                "Session not found", details={"session_id": session_id}
            ) from e
        except gcp_exceptions.FailedPrecondition as e:
            raise SessionConflictError(
                "Document was modified concurrently", details={"session_id": session_id}
            ) from e
        except Exception as e:
            logger.error(
                "session_update_failed",
                extra={"session_id": short_id(session_id), "error": str(e)},
            )
            raise StoreError(f"Firestore update failed: {e}") from e

    async def update(self, session_id: str, **fields: Any) -> Session:
        current = await self._require(session_id)
        updated = current.model_copy(update={**fields, "updated_at": self._clock()})
        changed = set(fields) | {"updated_at"}
        self._write(session_id, updated.model_dump(mode="json", include=changed))
        return updated

    async def append_chat_messages(self, session_id: str, messages: list[ChatMessage]) -> None:
        await self._require(session_id)
        self._write(
            session_id,
            {
                "chat_history": firestore.ArrayUnion(
                    [m.model_dump(mode="json") for m in messages]
                ),
                "updated_at": self._clock().isoformat(),
            },
        )

    async def set_pending_strategy(self, session_id: str, strategy: dict[str, Any]) -> None:
        await self._require(session_id)
        now = self._clock().isoformat()
        self._write(
            session_id,
            {"pending_strategy": strategy, "pending_strategy_at": now, "updated_at": now},
        )

    async def confirm_pending_strategy(self, session_id: str) -> dict[str, Any]:
        doc_ref = self._doc(session_id)
        now = self._clock()

        @firestore.transactional
        def _txn(transaction: firestore.Transaction) -> dict[str, Any]:
            session = self._from_snapshot(doc_ref.get(transaction=transaction))
            if session is None or session.is_expired(now):
                raise SessionNotFoundError(
                    "Session not found", details={"session_id": session_id}
                )
            updated, strategy = _confirm_strategy(session, now)
            transaction.update(
                doc_ref,
                {
                    "analysis": updated.model_dump(mode="json")["analysis"],
                    "pending_strategy": firestore.DELETE_FIELD,
                    "pending_strategy_at": firestore.DELETE_FIELD,
                    "updated_at": now.isoformat(),
                },
            )
            return strategy

        try:
            return _txn(self._client.transaction())
        except (SessionNotFoundError, NoPendingStrategyError):
            raise
        except gcp_exceptions.Aborted as e:
            raise SessionConflictError(
                "Document was modified concurrently", details={"session_id": session_id}
            ) from e

    async def clear_pending_strategy(self, session_id: str) -> bool:
        session = await self._require(session_id)
        self._write(
            session_id,
            {
                "pending_strategy": firestore.DELETE_FIELD,
                "pending_strategy_at": firestore.DELETE_FIELD,
                "updated_at": self._clock().isoformat(),
            },
        )
        return session.pending_strategy is not None

    async def delete(self, session_id: str) -> bool:
        try:
            self._doc(session_id).delete()
        except Exception as e:
            logger.error(
                "session_delete_failed",
                extra={"session_id": short_id(session_id), "error": str(e)},
            )
            raise StoreError(f"Firestore delete failed: {e}") from e
        return True

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        query = self._client.collection(self._collection).where(
            filter=FieldFilter("_ttl_expire_at", "<", now)
        )
        removed = 0
        for snapshot in query.stream():
            snapshot.reference.delete()
            removed += 1
        if removed:
            logger.info("sessions_cleanup", extra={"removed": removed})
        return removed


def create_session_store(
    backend: str, client: firestore.Client | None = None, collection: str = "sessions"
) -> SessionStore:
    """Factory do SessionStore."""
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "firestore":
        if client is None:
            raise ValueError("firestore_client required for firestore backend")
        return FirestoreSessionStore(client, collection=collection)
    raise ValueError(f"Unknown session store backend: {backend}")
