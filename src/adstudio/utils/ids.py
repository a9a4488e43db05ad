"""Geradores de identificadores."""

from __future__ import annotations

import re
import secrets
import string
import time
import uuid

_BASE36 = string.digits + string.ascii_lowercase
_JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def _random_base36(length: int = 9) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def now_ms() -> int:
    return int(time.time() * 1000)


def new_session_id() -> str:
    """Gera um session_id único."""

    return str(uuid.uuid4())


def new_handoff_id() -> str:
    return str(uuid.uuid4())


def new_job_id() -> str:
    """Id local do job: job-<epoch_ms>-<aleatório base36>."""

    return f"job-{now_ms()}-{_random_base36()}"


def new_demo_operation_id() -> str:
    """Id de operação Veo simulada (modo demo)."""

    return f"veo-demo-{now_ms()}-{_random_base36()}"


def is_valid_job_id(job_id: str | None) -> bool:
    """Aceita ids não vazios com caracteres seguros para URL."""
    return bool(job_id) and bool(_JOB_ID_PATTERN.match(job_id or ""))
