"""Trilha de auditoria append-only dos handoffs (coleção `agent_handoffs`).

Cada HandoffPayload é gravado uma única vez; regravar o mesmo handoff_id
levanta HandoffConflictError. Documentos expiram em 48h via TTL policy.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import timedelta

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from adstudio.domain.errors import HandoffConflictError, StoreError
from adstudio.domain.models import HandoffPayload
from adstudio.observability.logging import get_logger, short_id

logger: logging.Logger = get_logger(__name__)

HANDOFF_RETENTION = timedelta(hours=48)


class HandoffStore(ABC):
    @abstractmethod
    async def append(self, handoff: HandoffPayload) -> None:
        """Grava o handoff; nunca sobrescreve."""
        ...

    @abstractmethod
    async def get(self, handoff_id: str) -> HandoffPayload | None:
        ...

    @abstractmethod
    async def list_for_session(self, session_id: str) -> list[HandoffPayload]:
        """Histórico ordenado por timestamp."""
        ...


class InMemoryHandoffStore(HandoffStore):
    """Guarda snapshots reconstruídos; o payload congelado não aceita mutação."""

    def __init__(self) -> None:
        self._handoffs: dict[str, HandoffPayload] = {}

    async def append(self, handoff: HandoffPayload) -> None:
        if handoff.handoff_id in self._handoffs:
            raise HandoffConflictError(
                "Handoff already recorded", details={"handoff_id": handoff.handoff_id}
            )
        self._handoffs[handoff.handoff_id] = HandoffPayload.model_validate(
            handoff.model_dump()
        )

    async def get(self, handoff_id: str) -> HandoffPayload | None:
        return self._handoffs.get(handoff_id)

    async def list_for_session(self, session_id: str) -> list[HandoffPayload]:
        items = [h for h in self._handoffs.values() if h.session_id == session_id]
        items.sort(key=lambda h: h.timestamp)
        return items


class FirestoreHandoffStore(HandoffStore):
    def __init__(
        self, firestore_client: firestore.Client, collection: str = "agent_handoffs"
    ) -> None:
        self._client = firestore_client
        self._collection = collection

    def _ref(self) -> firestore.CollectionReference:
        return self._client.collection(self._collection)

    async def append(self, handoff: HandoffPayload) -> None:
        data = handoff.model_dump(mode="json")
        data["_ttl_expire_at"] = handoff.timestamp + HANDOFF_RETENTION
        try:
            self._ref().document(handoff.handoff_id).create(data)
        except (gcp_exceptions.Conflict, gcp_exceptions.AlreadyExists) as e:
            raise HandoffConflictError(
                "Handoff already recorded", details={"handoff_id": handoff.handoff_id}
            ) from e
        except Exception as e:
            logger.error(
                "handoff_write_failed",
                extra={"handoff_id": short_id(handoff.handoff_id), "error": str(e)},
            )
            raise StoreError(f"Firestore handoff write failed: {e}") from e

    @staticmethod
    def _from_data(data: dict | None) -> HandoffPayload | None:
        if not data:
            return None
        data.pop("_ttl_expire_at", None)
        return HandoffPayload.model_validate(data)

    async def get(self, handoff_id: str) -> HandoffPayload | None:
        snapshot = self._ref().document(handoff_id).get()
        if not snapshot.exists:
            return None
        return self._from_data(snapshot.to_dict())

    async def list_for_session(self, session_id: str) -> list[HandoffPayload]:
        query = self._ref().where(filter=FieldFilter("session_id", "==", session_id))
        items: list[HandoffPayload] = []
        for doc in query.stream():
            handoff = self._from_data(doc.to_dict())
            if handoff is not None:
                items.append(handoff)
        items.sort(key=lambda h: h.timestamp)
        return items


def create_handoff_store(
    backend: str, client: firestore.Client | None = None, collection: str = "agent_handoffs"
) -> HandoffStore:
    if backend == "memory":
        return InMemoryHandoffStore()
    if backend == "firestore":
        if client is None:
            raise ValueError("firestore_client required for firestore backend")
        return FirestoreHandoffStore(client, collection=collection)
    raise ValueError(f"Unknown handoff store backend: {backend}")
