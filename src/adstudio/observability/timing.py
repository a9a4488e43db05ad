"""Medição de latência por componente externo (Veo, Gemini, Firestore)."""

from __future__ import annotations

import contextlib
import time
from collections.abc import Generator

from adstudio.observability.logging import get_logger

logger = get_logger(__name__)


@contextlib.contextmanager
def timed(component: str, **context: object) -> Generator[None, None, None]:
    """Mede e loga o tempo gasto dentro do bloco.

    Uso:
        with timed("veo_submit"):
            await client.post(...)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "component_latency",
            extra={"component": component, "elapsed_ms": round(elapsed_ms, 2), **context},
        )
