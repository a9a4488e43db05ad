"""Testes da tabela de transições de VideoJob."""

from __future__ import annotations

import pytest

from adstudio.domain.enums import JobStatus
from adstudio.domain.job_states import (
    TRANSITIONS,
    JobEvent,
    event_for_remote_status,
    next_progress,
    validate_transition,
)


class TestTransitionTable:
    """Testes da tabela TRANSITIONS."""

    def test_terminal_states_are_never_sources(self):
        """Estados terminais não aparecem como origem."""
        sources = {status for status, _ in TRANSITIONS}
        assert JobStatus.COMPLETED not in sources
        assert JobStatus.FAILED not in sources

    @pytest.mark.parametrize("status", [JobStatus.PENDING, JobStatus.PROCESSING])
    def test_cancel_from_active_fails_job(self, status):
        """Cancelamento de job ativo leva a failed."""
        allowed, next_status, reason = validate_transition(status, JobEvent.CANCEL_REQUESTED)
        assert allowed is True
        assert next_status == JobStatus.FAILED
        assert reason == ""

    def test_pending_can_jump_to_completed(self):
        """Veo pode reportar conclusão sem passar por processing."""
        allowed, next_status, _ = validate_transition(
            JobStatus.PENDING, JobEvent.COMPLETION_REPORTED
        )
        assert allowed is True
        assert next_status == JobStatus.COMPLETED

    @pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.FAILED])
    @pytest.mark.parametrize("event", list(JobEvent))
    def test_terminal_rejects_every_event(self, status, event):
        """Nenhum evento tira um job de estado terminal."""
        allowed, next_status, reason = validate_transition(status, event)
        assert allowed is False
        assert next_status is None
        assert "Terminal" in reason


class TestRemoteStatusMapping:
    """Testes do mapeamento status remoto → evento."""

    def test_remote_pending_is_no_event(self):
        assert event_for_remote_status(JobStatus.PENDING) is None

    def test_remote_statuses_map_to_events(self):
        assert event_for_remote_status(JobStatus.PROCESSING) == JobEvent.PROCESSING_REPORTED
        assert event_for_remote_status(JobStatus.COMPLETED) == JobEvent.COMPLETION_REPORTED
        assert event_for_remote_status(JobStatus.FAILED) == JobEvent.FAILURE_REPORTED


class TestNextProgress:
    """Testes de progresso monotônico."""

    def test_progress_never_regresses(self):
        assert next_progress(60.0, 40.0, JobStatus.PROCESSING) == 60.0

    def test_progress_advances(self):
        assert next_progress(20.0, 45.5, JobStatus.PROCESSING) == 45.5

    def test_progress_is_bounded(self):
        assert next_progress(0.0, 150.0, JobStatus.PROCESSING) == 100.0
        assert next_progress(0.0, -5.0, JobStatus.PROCESSING) == 0.0

    def test_missing_report_keeps_current(self):
        assert next_progress(33.0, None, JobStatus.PROCESSING) == 33.0

    def test_completed_is_always_full(self):
        assert next_progress(10.0, 50.0, JobStatus.COMPLETED) == 100.0
