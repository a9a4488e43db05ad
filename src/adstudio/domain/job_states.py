"""Tabela de transições do ciclo de vida de VideoJob.

- TRANSITIONS[(current_status, event)] = next_status
- Estados terminais (completed/failed) não aparecem como origem
- Validação pura: sem side effects, nunca lança exceção
"""

from __future__ import annotations

from enum import StrEnum

from adstudio.domain.enums import TERMINAL_JOB_STATUSES, JobStatus


class JobEvent(StrEnum):
    """Eventos que movem um job (status remoto do Veo ou ação do usuário)."""

    PROCESSING_REPORTED = "PROCESSING_REPORTED"
    COMPLETION_REPORTED = "COMPLETION_REPORTED"
    FAILURE_REPORTED = "FAILURE_REPORTED"
    CANCEL_REQUESTED = "CANCEL_REQUESTED"


TRANSITIONS: dict[tuple[JobStatus, JobEvent], JobStatus] = {
    # === pending → ... ===
    (JobStatus.PENDING, JobEvent.PROCESSING_REPORTED): JobStatus.PROCESSING,
    (JobStatus.PENDING, JobEvent.COMPLETION_REPORTED): JobStatus.COMPLETED,
    (JobStatus.PENDING, JobEvent.FAILURE_REPORTED): JobStatus.FAILED,
    (JobStatus.PENDING, JobEvent.CANCEL_REQUESTED): JobStatus.FAILED,
    # === processing → ... ===
    (JobStatus.PROCESSING, JobEvent.PROCESSING_REPORTED): JobStatus.PROCESSING,
    (JobStatus.PROCESSING, JobEvent.COMPLETION_REPORTED): JobStatus.COMPLETED,
    (JobStatus.PROCESSING, JobEvent.FAILURE_REPORTED): JobStatus.FAILED,
    (JobStatus.PROCESSING, JobEvent.CANCEL_REQUESTED): JobStatus.FAILED,
}

_REMOTE_EVENTS: dict[JobStatus, JobEvent] = {
    JobStatus.PROCESSING: JobEvent.PROCESSING_REPORTED,
    JobStatus.COMPLETED: JobEvent.COMPLETION_REPORTED,
    JobStatus.FAILED: JobEvent.FAILURE_REPORTED,
}


def event_for_remote_status(remote_status: JobStatus) -> JobEvent | None:
    """Converte status reportado pelo Veo em evento (pending remoto = nada muda)."""
    return _REMOTE_EVENTS.get(remote_status)


def validate_transition(
    current_status: JobStatus, event: JobEvent
) -> tuple[bool, JobStatus | None, str]:
    """Valida se uma transição é permitida.

    Retorna:
    - (True, next_status, ""): transição válida
    - (False, None, motivo): transição inválida
    """
    if current_status in TERMINAL_JOB_STATUSES:
        return False, None, f"Terminal status {current_status} has no transitions"

    next_status = TRANSITIONS.get((current_status, event))
    if next_status is None:
        return False, None, f"No transition from {current_status} on event {event}"

    return True, next_status, ""


def next_progress(current: float, reported: float | None, next_status: JobStatus) -> float:
    """Progresso nunca regride enquanto o job está ativo; completed = 100."""
    if next_status == JobStatus.COMPLETED:
        return 100.0
    if reported is None:
        return current
    bounded = min(max(reported, 0.0), 100.0)
    return max(current, bounded)
