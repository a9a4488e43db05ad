"""Circuit breaker para chamadas à API do Veo.

closed → (fail_max falhas retentáveis) → open → (reset_timeout) → half_open
half_open → sucesso → closed | falha → open
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

CircuitState = Literal["closed", "open", "half_open"]


@dataclass(frozen=True)
class CircuitBreakerConfig:
    enabled: bool = False
    fail_max: int = 5
    reset_timeout_seconds: float = 60.0
    half_open_max_calls: int = 1


class CircuitBreaker:
    """Circuit breaker assíncrono protegido por asyncio.Lock."""

    def __init__(
        self,
        config: CircuitBreakerConfig,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._config = config
        self._clock = clock or time.monotonic
        self._lock = asyncio.Lock()
        self._state: CircuitState = "closed"
        self._failures = 0
        self._opened_at: float | None = None
        self._trial_calls = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failures

    def snapshot(self) -> dict[str, object]:
        """Estado atual para o painel de monitoramento."""
        return {
            "enabled": self._config.enabled,
            "state": self._state,
            "failures": self._failures,
        }

    async def allow_request(self) -> bool:
        if not self._config.enabled:
            return True

        async with self._lock:
            if self._state == "open":
                opened_at = self._opened_at if self._opened_at is not None else self._clock()
                if self._clock() - opened_at < self._config.reset_timeout_seconds:
                    return False
                self._state = "half_open"
                self._trial_calls = 0

            if self._state == "half_open":
                if self._trial_calls >= self._config.half_open_max_calls:
                    return False
                self._trial_calls += 1

            return True

    async def record_success(self) -> CircuitState:
        if not self._config.enabled:
            return "closed"
        async with self._lock:
            self._close()
            return self._state

    async def record_failure(self, is_retryable: bool) -> CircuitState:
        """Falhas não retentáveis (4xx) não contam para abrir o circuito."""
        if not self._config.enabled:
            return "closed"

        async with self._lock:
            if not is_retryable:
                self._close()
            elif self._state == "half_open":
                self._open()
            else:
                self._failures += 1
                if self._failures >= self._config.fail_max:
                    self._open()
            return self._state

    def _close(self) -> None:
        self._state = "closed"
        self._failures = 0
        self._opened_at = None
        self._trial_calls = 0

    def _open(self) -> None:
        self._state = "open"
        self._opened_at = self._clock()
        self._trial_calls = 0
