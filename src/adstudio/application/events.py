"""Pub/sub em processo para eventos de sessão (stream SSE).

Cada assinante recebe uma `asyncio.Queue` limitada; quando a fila enche, o
evento mais antigo é descartado (o cliente SSE lento não bloqueia o emissor).
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from adstudio.domain.models import utcnow
from adstudio.observability.logging import get_logger, short_id

logger: logging.Logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 32
HEARTBEAT_SECONDS = 15.0


@dataclass(slots=True, frozen=True)
class SessionEvent:
    type: str  # ex.: "analysis-complete", "session-failed"
    session_id: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_sse(self) -> str:
        body = json.dumps(
            {
                "type": self.type,
                "sessionId": self.session_id,
                "data": self.data,
                "timestamp": self.timestamp.isoformat(),
            },
            default=str,
        )
        return f"event: {self.type}\ndata: {body}\n\n"


class EventBroadcaster:
    """Distribui eventos por session_id para os assinantes ativos."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[SessionEvent]]] = defaultdict(set)

    def subscribe(self, session_id: str) -> asyncio.Queue[SessionEvent]:
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[session_id].add(queue)
        return queue

    def unsubscribe(self, session_id: str, queue: asyncio.Queue[SessionEvent]) -> None:
        queues = self._subscribers.get(session_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[session_id]

    def subscriber_count(self, session_id: str | None = None) -> int:
        if session_id is not None:
            return len(self._subscribers.get(session_id, ()))
        return sum(len(q) for q in self._subscribers.values())

    def publish(self, event: SessionEvent) -> int:
        """Entrega o evento; retorna quantos assinantes o receberam."""
        delivered = 0
        for queue in list(self._subscribers.get(event.session_id, ())):
            if queue.full():
                queue.get_nowait()
                logger.warning(
                    "event_dropped_slow_subscriber",
                    extra={"session_id": short_id(event.session_id)},
                )
            queue.put_nowait(event)
            delivered += 1
        logger.debug(
            "event_published",
            extra={
                "event_type": event.type,
                "session_id": short_id(event.session_id),
                "delivered": delivered,
            },
        )
        return delivered

    async def stream(
        self, session_id: str, heartbeat_seconds: float = HEARTBEAT_SECONDS
    ) -> AsyncIterator[str]:
        """Gera frames SSE; comentários `: heartbeat` mantêm a conexão viva."""
        queue = self.subscribe(session_id)
        try:
            yield ": connected\n\n"
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
                except TimeoutError:
                    yield ": heartbeat\n\n"
                    continue
                yield event.to_sse()
        finally:
            self.unsubscribe(session_id, queue)
