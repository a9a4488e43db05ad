"""Rate limiting por cliente e classe de endpoint (janela fixa).

Chave de contagem: "{client_id}:{endpoint_class}". Cada classe tem sua
própria política (ex.: `status-check` é independente de `video-generation`).

- InMemoryRateLimiter: desenvolvimento/testes, estado por processo
- RedisRateLimiter: INCR + EXPIRE, compartilhado entre instâncias
"""

from __future__ import annotations

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

from adstudio.domain.enums import EndpointClass
from adstudio.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

IDLE_ENTRY_TTL_SECONDS = 24 * 60 * 60


@dataclass(slots=True, frozen=True)
class RateLimitPolicy:
    window_seconds: int
    max_requests: int


DEFAULT_POLICIES: dict[str, RateLimitPolicy] = {
    EndpointClass.DEFAULT: RateLimitPolicy(window_seconds=60, max_requests=10),
    EndpointClass.VIDEO_GENERATION: RateLimitPolicy(window_seconds=60 * 60, max_requests=3),
    EndpointClass.CHAT_REFINEMENT: RateLimitPolicy(window_seconds=5 * 60, max_requests=20),
    EndpointClass.STATUS_CHECK: RateLimitPolicy(window_seconds=60, max_requests=60),
    EndpointClass.PRODUCT_ANALYZE: RateLimitPolicy(window_seconds=60 * 60, max_requests=5),
    EndpointClass.PRODUCT_CHAT: RateLimitPolicy(window_seconds=5 * 60, max_requests=30),
    EndpointClass.PRODUCT_HANDOFF: RateLimitPolicy(window_seconds=60 * 60, max_requests=10),
}


@dataclass(slots=True)
class RateLimitResult:
    """Resultado de uma verificação de rate limit."""

    allowed: bool
    remaining: int
    reset_time: float  # epoch (segundos)
    limit: int
    retry_after: int | None = None

    def headers(self) -> dict[str, str]:
        """Headers HTTP padrão de rate limit."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(math.ceil(self.reset_time))),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


def client_identifier(headers: Mapping[str, str]) -> str:
    """Identifica o cliente pelo IP (primeiro hop do X-Forwarded-For)."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(header)
        if value:
            return value.strip()
    return "unknown"


def _retry_after(reset_time: float, now: float) -> int:
    return max(1, math.ceil(reset_time - now))


class RateLimiter(ABC):
    """Contrato abstrato para rate limiting."""

    def __init__(self, policies: Mapping[str, RateLimitPolicy] | None = None) -> None:
        self._policies: dict[str, RateLimitPolicy] = dict(policies or DEFAULT_POLICIES)

    def policy_for(self, endpoint_class: str) -> RateLimitPolicy:
        return self._policies.get(endpoint_class, self._policies[EndpointClass.DEFAULT])

    @staticmethod
    def key(client_id: str, endpoint_class: str) -> str:
        return f"{client_id}:{endpoint_class}"

    @abstractmethod
    def check(
        self, client_id: str, endpoint_class: str, now: float | None = None
    ) -> RateLimitResult:
        """Registra a requisição e informa se ela é permitida."""
        ...

    @abstractmethod
    def status(
        self, client_id: str, endpoint_class: str, now: float | None = None
    ) -> RateLimitResult:
        """Consulta a janela corrente sem consumir cota."""
        ...

    @abstractmethod
    def reset(self, client_id: str, endpoint_class: str) -> None:
        ...

    @abstractmethod
    def cleanup(self, now: float | None = None) -> int:
        """Remove entradas ociosas; retorna quantas foram removidas."""
        ...

    @abstractmethod
    def stats(self) -> dict[str, object]:
        ...


@dataclass(slots=True)
class _Window:
    count: int
    reset_time: float
    last_seen: float


class InMemoryRateLimiter(RateLimiter):
    """Rate limiter em memória para desenvolvimento.

    ⚠️ Não usar em produção: cada instância Cloud Run teria sua própria contagem.
    Dependências síncronas rodam no threadpool do FastAPI; leitura, comparação
    e incremento da janela acontecem sob `threading.Lock`.
    """

    def __init__(self, policies: Mapping[str, RateLimitPolicy] | None = None) -> None:
        super().__init__(policies)
        self._windows: dict[str, _Window] = {}
        self._rejections = 0
        self._lock = threading.Lock()

    def check(
        self, client_id: str, endpoint_class: str, now: float | None = None
    ) -> RateLimitResult:
        now = time.time() if now is None else now
        policy = self.policy_for(endpoint_class)
        key = self.key(client_id, endpoint_class)

        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.reset_time:
                window = _Window(count=0, reset_time=now + policy.window_seconds, last_seen=now)
                self._windows[key] = window
            window.last_seen = now

            allowed = window.count < policy.max_requests
            if allowed:
                window.count += 1
            else:
                self._rejections += 1
            count, reset_time = window.count, window.reset_time

        if not allowed:
            logger.warning(
                "rate_limit_exceeded",
                extra={
                    "client_id": client_id,
                    "endpoint_class": endpoint_class,
                    "limit": policy.max_requests,
                    "window_seconds": policy.window_seconds,
                },
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=reset_time,
                limit=policy.max_requests,
                retry_after=_retry_after(reset_time, now),
            )

        return RateLimitResult(
            allowed=True,
            remaining=policy.max_requests - count,
            reset_time=reset_time,
            limit=policy.max_requests,
        )

    def status(
        self, client_id: str, endpoint_class: str, now: float | None = None
    ) -> RateLimitResult:
        now = time.time() if now is None else now
        policy = self.policy_for(endpoint_class)
        with self._lock:
            window = self._windows.get(self.key(client_id, endpoint_class))
            if window is None or now >= window.reset_time:
                count, reset_time = 0, now + policy.window_seconds
            else:
                count, reset_time = window.count, window.reset_time
        remaining = max(0, policy.max_requests - count)
        return RateLimitResult(
            allowed=remaining > 0,
            remaining=remaining,
            reset_time=reset_time,
            limit=policy.max_requests,
            retry_after=None if remaining else _retry_after(reset_time, now),
        )

    def reset(self, client_id: str, endpoint_class: str) -> None:
        with self._lock:
            self._windows.pop(self.key(client_id, endpoint_class), None)

    def cleanup(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        cutoff = now - IDLE_ENTRY_TTL_SECONDS
        with self._lock:
            stale = [key for key, window in self._windows.items() if window.last_seen < cutoff]
            for key in stale:
                del self._windows[key]
        if stale:
            logger.info("rate_limit_cleanup", extra={"removed": len(stale)})
        return len(stale)

    def stats(self) -> dict[str, object]:
        with self._lock:
            keys = list(self._windows)
            rejections = self._rejections
        by_endpoint: dict[str, int] = {}
        for key in keys:
            endpoint_class = key.rsplit(":", 1)[-1]
            by_endpoint[endpoint_class] = by_endpoint.get(endpoint_class, 0) + 1
        return {
            "backend": "memory",
            "active_keys": len(keys),
            "rejections": rejections,
            "by_endpoint": by_endpoint,
        }


class RedisRateLimiter(RateLimiter):
    """Rate limiter via Redis com TTL nativo.

    - INCR + EXPIRE na primeira requisição da janela
    - Escalável para múltiplas instâncias
    - Falha do Redis = fail-open (requisição permitida, erro logado)
    """

    def __init__(
        self,
        redis_client: object,
        policies: Mapping[str, RateLimitPolicy] | None = None,
        prefix: str = "ratelimit",
    ) -> None:
        super().__init__(policies)
        self._redis = redis_client
        self._prefix = prefix

    def _redis_key(self, client_id: str, endpoint_class: str) -> str:
        return f"{self._prefix}:{self.key(client_id, endpoint_class)}"

    def _reset_time(self, key: str, policy: RateLimitPolicy, now: float) -> float:
        ttl = self._redis.ttl(key)
        if ttl is None or ttl < 0:
            self._redis.expire(key, policy.window_seconds)
            ttl = policy.window_seconds
        return now + ttl

    def check(
        self, client_id: str, endpoint_class: str, now: float | None = None
    ) -> RateLimitResult:
        now = time.time() if now is None else now
        policy = self.policy_for(endpoint_class)
        key = self._redis_key(client_id, endpoint_class)

        try:
            count = int(self._redis.incr(key))
            if count == 1:
                self._redis.expire(key, policy.window_seconds)
                reset_time = now + policy.window_seconds
            else:
                reset_time = self._reset_time(key, policy, now)
        except Exception as e:
            logger.error(
                "redis_rate_limit_error",
                extra={"endpoint_class": endpoint_class, "error": str(e)},
            )
            return RateLimitResult(
                allowed=True,
                remaining=policy.max_requests,
                reset_time=now + policy.window_seconds,
                limit=policy.max_requests,
            )

        if count > policy.max_requests:
            logger.warning(
                "rate_limit_exceeded",
                extra={
                    "client_id": client_id,
                    "endpoint_class": endpoint_class,
                    "limit": policy.max_requests,
                    "backend": "redis",
                },
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=reset_time,
                limit=policy.max_requests,
                retry_after=_retry_after(reset_time, now),
            )

        return RateLimitResult(
            allowed=True,
            remaining=policy.max_requests - count,
            reset_time=reset_time,
            limit=policy.max_requests,
        )

    def status(
        self, client_id: str, endpoint_class: str, now: float | None = None
    ) -> RateLimitResult:
        now = time.time() if now is None else now
        policy = self.policy_for(endpoint_class)
        key = self._redis_key(client_id, endpoint_class)
        try:
            raw = self._redis.get(key)
            count = int(raw) if raw is not None else 0
            ttl = self._redis.ttl(key) if raw is not None else policy.window_seconds
        except Exception as e:
            logger.error("redis_rate_limit_error", extra={"error": str(e)})
            count, ttl = 0, policy.window_seconds
        remaining = max(0, policy.max_requests - count)
        reset_time = now + (ttl if ttl and ttl > 0 else policy.window_seconds)
        return RateLimitResult(
            allowed=remaining > 0,
            remaining=remaining,
            reset_time=reset_time,
            limit=policy.max_requests,
            retry_after=None if remaining else _retry_after(reset_time, now),
        )

    def reset(self, client_id: str, endpoint_class: str) -> None:
        self._redis.delete(self._redis_key(client_id, endpoint_class))

    def cleanup(self, now: float | None = None) -> int:
        # Chaves expiram via TTL do Redis
        return 0

    def stats(self) -> dict[str, object]:
        return {"backend": "redis", "prefix": self._prefix}
