"""Testes do CostTracker sobre o ledger em memória."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from adstudio.application.budget import CostTracker, OperationCosts
from adstudio.domain.enums import AlertLevel, CostService
from adstudio.domain.errors import (
    BudgetExceededError,
    InsufficientBudgetError,
    StoreError,
    ValidationError,
)
from adstudio.domain.models import CostEntry
from adstudio.infra.cost_ledger import (
    FirestoreCostLedger,
    InMemoryCostLedger,
    create_cost_ledger,
)


@pytest.fixture()
def ledger() -> InMemoryCostLedger:
    return InMemoryCostLedger()


@pytest.fixture()
def tracker(ledger) -> CostTracker:
    return CostTracker(ledger, total_budget=300.0)


class TestAlertLevels:
    """Níveis de alerta derivados do gasto."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("spend", "level", "can_proceed"),
        [
            (0.0, AlertLevel.SAFE, True),
            (224.99, AlertLevel.SAFE, True),
            (225.0, AlertLevel.WARNING, True),
            (270.0, AlertLevel.DANGER, False),
            (300.0, AlertLevel.EXCEEDED, False),
            (350.0, AlertLevel.EXCEEDED, False),
        ],
    )
    async def test_levels(self, tracker, spend, level, can_proceed):
        if spend:
            await tracker.record_cost(CostService.VEO, spend)
        status = await tracker.get_budget_status()
        assert status.alert_level == level
        assert status.can_proceed is can_proceed
        assert status.remaining_budget == round(max(0.0, 300.0 - spend), 4)

    @pytest.mark.asyncio
    async def test_percentage_used(self, tracker):
        await tracker.record_cost("gemini", 30.0)
        status = await tracker.get_budget_status()
        assert status.percentage_used == 10.0
        assert status.current_spend == 30.0


class TestRecordCost:
    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self, tracker):
        with pytest.raises(ValidationError):
            await tracker.record_cost(CostService.VEO, -1.0)

    @pytest.mark.asyncio
    async def test_recording_never_blocks(self, tracker, ledger):
        """Lançamento acima do orçamento é registrado mesmo assim."""
        await tracker.record_cost(CostService.VEO, 299.0)
        await tracker.record_cost(CostService.VEO, 10.0)
        assert await ledger.total() == 309.0

    @pytest.mark.asyncio
    async def test_breakdown_by_service(self, tracker):
        await tracker.record_cost(CostService.VEO, 1.5)
        await tracker.record_cost(CostService.GEMINI, 0.2)
        await tracker.record_cost(CostService.GEMINI, 0.05)

        breakdown = await tracker.get_cost_breakdown()
        assert breakdown["veo"] == 1.5
        assert breakdown["gemini"] == 0.25
        assert breakdown["storage"] == 0.0
        assert breakdown["total"] == 1.75

    @pytest.mark.asyncio
    async def test_breakdown_time_window(self, ledger):
        tracker = CostTracker(ledger)
        old = datetime(2024, 1, 1, tzinfo=UTC)
        await ledger.add(CostEntry(service=CostService.VEO, amount=5.0, timestamp=old))
        await ledger.add(
            CostEntry(service=CostService.VEO, amount=2.0, timestamp=old + timedelta(days=10))
        )

        breakdown = await tracker.get_cost_breakdown(start=old + timedelta(days=1))
        assert breakdown["total"] == 2.0


class TestEnsureCanProceed:
    """Bloqueio de trabalho novo (402)."""

    @pytest.mark.asyncio
    async def test_ok_under_budget(self, tracker):
        status = await tracker.ensure_can_proceed(1.5)
        assert status.can_proceed is True

    @pytest.mark.asyncio
    async def test_blocked_at_critical(self, tracker):
        await tracker.record_cost(CostService.VEO, 280.0)
        with pytest.raises(BudgetExceededError) as exc_info:
            await tracker.ensure_can_proceed()
        assert exc_info.value.details["budget_status"]["alertLevel"] == "danger"

    @pytest.mark.asyncio
    async def test_insufficient_for_estimate(self, ledger):
        tracker = CostTracker(ledger, total_budget=10.0, critical_threshold=0.99)
        await tracker.record_cost(CostService.VEO, 9.0)
        with pytest.raises(InsufficientBudgetError):
            await tracker.ensure_can_proceed(1.5)

    @pytest.mark.asyncio
    async def test_ledger_failure_fails_open(self):
        ledger = MagicMock()
        ledger.get_budget = AsyncMock(side_effect=StoreError("firestore down"))
        tracker = CostTracker(ledger, total_budget=300.0)

        status = await tracker.ensure_can_proceed(1.5)
        assert status.alert_level == AlertLevel.SAFE
        assert status.remaining_budget == 300.0


class TestAdminActions:
    @pytest.mark.asyncio
    async def test_set_budget_overrides_config(self, tracker):
        status = await tracker.set_budget(100.0)
        assert status.total_budget == 100.0

    @pytest.mark.asyncio
    async def test_set_budget_must_be_positive(self, tracker):
        with pytest.raises(ValidationError):
            await tracker.set_budget(0)

    @pytest.mark.asyncio
    async def test_reset_clears_spend(self, tracker):
        await tracker.record_cost(CostService.VEO, 290.0)
        status = await tracker.reset()
        assert status.current_spend == 0.0
        assert status.can_proceed is True


class TestEstimates:
    def test_video_cost_capped_at_fifteen_seconds(self, tracker):
        assert tracker.estimate_video_generation_cost(15) == 1.5
        assert tracker.estimate_video_generation_cost(30) == 1.5
        assert tracker.estimate_video_generation_cost(5) == 0.5

    def test_operation_costs(self, ledger):
        tracker = CostTracker(ledger, costs=OperationCosts(veo_per_second=0.2))
        estimate = tracker.estimate_operation_costs(10)
        assert estimate["video_generation"] == 2.0
        assert estimate["total"] == round(2.0 + 0.20 + 0.01, 4)


class TestFirestoreCostLedger:
    """Ledger Firestore com cliente mockado."""

    @pytest.mark.asyncio
    async def test_total_uses_sum_aggregation(self):
        client = MagicMock()
        aggregate = MagicMock()
        aggregate.value = 12.5
        client.collection.return_value.sum.return_value.get.return_value = [[aggregate]]

        ledger = FirestoreCostLedger(client)
        assert await ledger.total() == 12.5
        client.collection.return_value.sum.assert_called_once_with("amount")

    @pytest.mark.asyncio
    async def test_write_failure_becomes_store_error(self):
        client = MagicMock()
        client.collection.return_value.add.side_effect = RuntimeError("denied")
        ledger = FirestoreCostLedger(client)
        with pytest.raises(StoreError):
            await ledger.add(CostEntry(service=CostService.VEO, amount=1.0))

    @pytest.mark.asyncio
    async def test_budget_document(self):
        client = MagicMock()
        snapshot = client.collection.return_value.document.return_value.get.return_value
        snapshot.exists = True
        snapshot.to_dict.return_value = {"total_budget": 120}

        ledger = FirestoreCostLedger(client)
        assert await ledger.get_budget() == 120.0
        client.collection.assert_called_with("costs_config")

    def test_factory(self):
        assert isinstance(create_cost_ledger("memory"), InMemoryCostLedger)
        with pytest.raises(ValueError):
            create_cost_ledger("firestore")
