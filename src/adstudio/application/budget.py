"""Controle de orçamento: gasto acumulado contra o limite total.

Contabilidade nunca bloqueia: `record_cost` sempre registra, mesmo quando o
lançamento ultrapassa o orçamento. Quem bloqueia trabalho novo é
`ensure_can_proceed`, chamado antes de qualquer chamada externa cobrada.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from adstudio.domain.enums import AlertLevel, CostService
from adstudio.domain.errors import (
    BudgetExceededError,
    InsufficientBudgetError,
    ValidationError,
)
from adstudio.domain.models import BudgetStatus, CostEntry, utcnow
from adstudio.infra.cost_ledger import CostLedger
from adstudio.observability.logging import get_logger, log_fallback

logger: logging.Logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class OperationCosts:
    """Custos unitários das operações cobradas."""

    veo_per_second: float = 0.10
    gemini_analysis: float = 0.20
    gemini_chat: float = 0.05
    storage_per_video: float = 0.01


class CostTracker:
    def __init__(
        self,
        ledger: CostLedger,
        total_budget: float = 300.0,
        warning_threshold: float = 0.75,
        critical_threshold: float = 0.90,
        costs: OperationCosts | None = None,
    ) -> None:
        self._ledger = ledger
        self._total_budget = total_budget
        self._warning = warning_threshold
        self._critical = critical_threshold
        self._costs = costs or OperationCosts()

    @property
    def costs(self) -> OperationCosts:
        return self._costs

    async def _budget(self) -> float:
        stored = await self._ledger.get_budget()
        return stored if stored else self._total_budget

    def _status(self, total_budget: float, spend: float) -> BudgetStatus:
        ratio = spend / total_budget if total_budget > 0 else 1.0
        if spend >= total_budget:
            level = AlertLevel.EXCEEDED
        elif ratio >= self._critical:
            level = AlertLevel.DANGER
        elif ratio >= self._warning:
            level = AlertLevel.WARNING
        else:
            level = AlertLevel.SAFE
        return BudgetStatus(
            total_budget=total_budget,
            current_spend=round(spend, 4),
            remaining_budget=round(max(0.0, total_budget - spend), 4),
            percentage_used=round(ratio * 100, 2),
            alert_level=level,
            can_proceed=ratio < self._critical,
        )

    async def record_cost(
        self,
        service: CostService | str,
        amount: float,
        description: str = "",
        session_id: str | None = None,
        job_id: str | None = None,
    ) -> CostEntry:
        if amount < 0:
            raise ValidationError(
                "Cost amount must be non-negative", details={"amount": amount}
            )
        entry = CostEntry(
            service=CostService(service),
            amount=amount,
            description=description,
            session_id=session_id,
            job_id=job_id,
        )
        await self._ledger.add(entry)

        status = await self.get_budget_status()
        if status.alert_level != AlertLevel.SAFE:
            logger.warning(
                "budget_alert",
                extra={
                    "alert_level": status.alert_level.value,
                    "percentage_used": status.percentage_used,
                    "current_spend": status.current_spend,
                },
            )
        return entry

    async def get_budget_status(self) -> BudgetStatus:
        """Status atual; falha de leitura do ledger = fail-open (status seguro)."""
        try:
            total_budget = await self._budget()
            spend = await self._ledger.total()
        except Exception as e:
            log_fallback(logger, "budget_status", reason=type(e).__name__)
            return self._status(self._total_budget, 0.0)
        return self._status(total_budget, spend)

    async def ensure_can_proceed(self, estimated_cost: float = 0.0) -> BudgetStatus:
        """Levanta 402 quando o trabalho cobrado não deve começar."""
        status = await self.get_budget_status()
        if not status.can_proceed:
            raise BudgetExceededError(
                "Budget limit exceeded. Cannot process new requests.",
                details={"budget_status": status.model_dump(mode="json", by_alias=True)},
            )
        if estimated_cost > status.remaining_budget:
            raise InsufficientBudgetError(
                "Insufficient budget for this operation",
                details={
                    "estimated_cost": estimated_cost,
                    "remaining_budget": status.remaining_budget,
                },
            )
        return status

    async def get_cost_breakdown(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> dict[str, float]:
        breakdown = {service.value: 0.0 for service in CostService}
        for entry in await self._ledger.entries(start, end):
            breakdown[entry.service.value] += entry.amount
        breakdown = {k: round(v, 4) for k, v in breakdown.items()}
        breakdown["total"] = round(sum(breakdown.values()), 4)
        return breakdown

    def estimate_video_generation_cost(self, duration: int) -> float:
        return round(min(duration, 15) * self._costs.veo_per_second, 4)

    def estimate_operation_costs(self, duration: int = 15) -> dict[str, float]:
        """Estimativa completa de um comercial (vídeo + análise + storage)."""
        video = self.estimate_video_generation_cost(duration)
        total = video + self._costs.gemini_analysis + self._costs.storage_per_video
        return {
            "video_generation": video,
            "gemini_analysis": self._costs.gemini_analysis,
            "storage": self._costs.storage_per_video,
            "total": round(total, 4),
        }

    async def set_budget(self, amount: float) -> BudgetStatus:
        if amount <= 0:
            raise ValidationError("Budget must be positive", details={"amount": amount})
        await self._ledger.set_budget(amount)
        logger.info("budget_updated", extra={"total_budget": amount})
        return await self.get_budget_status()

    async def reset(self) -> BudgetStatus:
        """Único caminho de reset do gasto acumulado (ação admin)."""
        removed = await self._ledger.clear()
        logger.warning("budget_reset", extra={"entries_removed": removed, "at": utcnow().isoformat()})
        return await self.get_budget_status()
