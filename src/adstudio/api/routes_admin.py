"""Rotas de monitoramento e administração do orçamento."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from adstudio.api.dependencies import get_cost_tracker, get_monitoring, require_admin
from adstudio.api.errors import ok
from adstudio.application.budget import CostTracker
from adstudio.application.monitoring import MonitoringService

router = APIRouter(prefix="/api")


class BudgetResetBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_budget: float | None = Field(default=None, gt=0)


@router.get("/monitoring/budget")
async def budget_overview(
    monitoring: MonitoringService = Depends(get_monitoring),
) -> dict[str, Any]:
    return ok(await monitoring.budget_report())


@router.get("/admin/monitoring", dependencies=[Depends(require_admin)])
async def admin_dashboard(
    monitoring: MonitoringService = Depends(get_monitoring),
) -> dict[str, Any]:
    """Painel completo: orçamento, jobs, rate limiter e sistema."""
    return ok(await monitoring.dashboard())


@router.post("/admin/budget/reset", dependencies=[Depends(require_admin)])
async def reset_budget(
    body: BudgetResetBody | None = None,
    budget: CostTracker = Depends(get_cost_tracker),
) -> dict[str, Any]:
    """Zera o gasto acumulado; `totalBudget` opcional redefine o teto."""
    if body is not None and body.total_budget is not None:
        await budget.set_budget(body.total_budget)
    status = await budget.reset()
    return ok(status.model_dump(mode="json", by_alias=True))
