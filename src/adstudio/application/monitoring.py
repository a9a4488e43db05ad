"""Painel de monitoramento (orçamento, jobs, rate limiter, sistema)."""

from __future__ import annotations

import platform
import time
from dataclasses import asdict
from typing import Any

from adstudio.application.budget import CostTracker
from adstudio.application.job_tracker import VideoJobTracker
from adstudio.domain.models import utcnow
from adstudio.domain.rate_limit import RateLimiter
from adstudio.infra.circuit_breaker import CircuitBreaker

_STARTED_AT = time.monotonic()


class MonitoringService:
    def __init__(
        self,
        budget: CostTracker,
        tracker: VideoJobTracker,
        rate_limiter: RateLimiter,
        service_name: str = "adstudio",
        version: str = "0.1.0",
        environment: str = "development",
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self._budget = budget
        self._tracker = tracker
        self._rate_limiter = rate_limiter
        self._service = service_name
        self._version = version
        self._environment = environment
        self._circuit_breaker = circuit_breaker

    async def budget_report(self) -> dict[str, Any]:
        status = await self._budget.get_budget_status()
        return {
            "status": status.model_dump(mode="json", by_alias=True),
            "breakdown": await self._budget.get_cost_breakdown(),
            "estimates": self._budget.estimate_operation_costs(),
        }

    async def dashboard(self) -> dict[str, Any]:
        metrics = await self._tracker.get_metrics()
        return {
            "budget": await self.budget_report(),
            "jobs": asdict(metrics),
            "rateLimiter": self._rate_limiter.stats(),
            "veoCircuitBreaker": (
                self._circuit_breaker.snapshot() if self._circuit_breaker else {"enabled": False}
            ),
            "system": {
                "service": self._service,
                "version": self._version,
                "environment": self._environment,
                "python": platform.python_version(),
                "uptimeSeconds": round(time.monotonic() - _STARTED_AT, 1),
            },
            "generatedAt": utcnow().isoformat(),
        }
