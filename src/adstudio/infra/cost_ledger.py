"""Livro-razão de custos (gasto acumulado contra o orçamento).

- InMemoryCostLedger: por processo, sem persistência entre restarts
- FirestoreCostLedger: coleção `costs`, compartilhada entre instâncias;
  soma via aggregation query e orçamento em `costs_config/budget`
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from adstudio.domain.errors import StoreError
from adstudio.domain.models import CostEntry
from adstudio.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class CostLedger(ABC):
    """Contrato abstrato para o registro de custos."""

    @abstractmethod
    async def add(self, entry: CostEntry) -> None:
        ...

    @abstractmethod
    async def total(self) -> float:
        ...

    @abstractmethod
    async def entries(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[CostEntry]:
        ...

    @abstractmethod
    async def clear(self) -> int:
        """Remove todos os lançamentos (reset administrativo)."""
        ...

    @abstractmethod
    async def get_budget(self) -> float | None:
        """Orçamento persistido por ação admin (None = usar configuração)."""
        ...

    @abstractmethod
    async def set_budget(self, amount: float) -> None:
        ...


def _in_range(entry: CostEntry, start: datetime | None, end: datetime | None) -> bool:
    if start and entry.timestamp < start:
        return False
    if end and entry.timestamp > end:
        return False
    return True


class InMemoryCostLedger(CostLedger):
    """Ledger em memória (dev/testes)."""

    def __init__(self) -> None:
        self._entries: list[CostEntry] = []
        self._budget: float | None = None

    async def add(self, entry: CostEntry) -> None:
        self._entries.append(entry)

    async def total(self) -> float:
        return round(sum(e.amount for e in self._entries), 6)

    async def entries(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[CostEntry]:
        return [e for e in self._entries if _in_range(e, start, end)]

    async def clear(self) -> int:
        removed = len(self._entries)
        self._entries.clear()
        return removed

    async def get_budget(self) -> float | None:
        return self._budget

    async def set_budget(self, amount: float) -> None:
        self._budget = amount


class FirestoreCostLedger(CostLedger):
    """Ledger em Firestore: costs/{auto_id}."""

    def __init__(self, firestore_client: firestore.Client, collection: str = "costs") -> None:
        self._client = firestore_client
        self._collection = collection

    def _ref(self) -> firestore.CollectionReference:
        return self._client.collection(self._collection)

    def _budget_doc(self) -> firestore.DocumentReference:
        return self._client.collection(f"{self._collection}_config").document("budget")

    async def add(self, entry: CostEntry) -> None:
        data = entry.model_dump(mode="json")
        data["timestamp"] = entry.timestamp
        try:
            self._ref().add(data)
        except Exception as e:
            logger.error("cost_entry_write_failed", extra={"error": str(e)})
            raise StoreError(f"Firestore cost write failed: {e}") from e

    async def total(self) -> float:
        try:
            result = self._ref().sum("amount").get()
        except Exception as e:
            logger.error("cost_total_read_failed", extra={"error": str(e)})
            raise StoreError(f"Firestore cost aggregation failed: {e}") from e
        value = result[0][0].value if result and result[0] else 0
        return float(value or 0)

    async def entries(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[CostEntry]:
        query = self._ref()
        if start:
            query = query.where(filter=FieldFilter("timestamp", ">=", start))
        if end:
            query = query.where(filter=FieldFilter("timestamp", "<=", end))
        return [CostEntry.model_validate(doc.to_dict()) for doc in query.stream()]

    async def clear(self) -> int:
        removed = 0
        for doc in self._ref().stream():
            doc.reference.delete()
            removed += 1
        return removed

    async def get_budget(self) -> float | None:
        snapshot = self._budget_doc().get()
        if not snapshot.exists:
            return None
        return float((snapshot.to_dict() or {}).get("total_budget"))

    async def set_budget(self, amount: float) -> None:
        self._budget_doc().set({"total_budget": amount})


def create_cost_ledger(
    backend: str, client: firestore.Client | None = None, collection: str = "costs"
) -> CostLedger:
    if backend == "memory":
        logger.warning("Using in-memory cost ledger (dev only, not shared across instances)")
        return InMemoryCostLedger()
    if backend == "firestore":
        if client is None:
            raise ValueError("firestore_client required for firestore backend")
        return FirestoreCostLedger(client, collection=collection)
    raise ValueError(f"Unknown cost ledger backend: {backend}")
