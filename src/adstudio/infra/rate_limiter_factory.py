"""Factory para RateLimiter: rate limit distribuído por cliente/classe.

Responsabilidades:
- Criar instâncias de RateLimiter baseado em config
- Validar clientes obrigatórios (Redis)
- Proibir backend em memória em staging/production
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import redis

from adstudio.domain.rate_limit import (
    InMemoryRateLimiter,
    RateLimiter,
    RateLimitPolicy,
    RedisRateLimiter,
)
from adstudio.observability.logging import get_logger

if TYPE_CHECKING:
    from adstudio.config.settings import Settings

logger: logging.Logger = get_logger(__name__)


def create_rate_limiter(
    backend: str,
    redis_client: Any | None = None,
    policies: Mapping[str, RateLimitPolicy] | None = None,
) -> RateLimiter:
    """Factory para RateLimiter.

    Args:
        backend: "redis" ou "memory"
        redis_client: Cliente Redis (obrigatório se backend="redis")
        policies: Políticas por classe de endpoint (default: DEFAULT_POLICIES)

    Raises:
        ValueError: Se backend inválido ou cliente Redis não fornecido
    """
    if backend == "memory":
        logger.warning("Using in-memory rate limiter (dev only, unsuitable for Cloud Run)")
        return InMemoryRateLimiter(policies)

    if backend == "redis":
        if not redis_client:
            msg = "redis_client required for redis backend"
            raise ValueError(msg)
        logger.info("Using Redis rate limiter (distributed)")
        return RedisRateLimiter(redis_client, policies)

    msg = f"Unknown rate limiter backend: {backend}"
    raise ValueError(msg)


def create_rate_limiter_from_settings(
    settings: Settings, redis_client: Any | None = None
) -> RateLimiter:
    """Cria RateLimiter a partir de Settings.

    - Desenvolvimento: memory
    - Staging/produção: redis (obrigatório para Cloud Run multi-instância)
    """
    backend = settings.rate_limiter_backend.lower()

    if (settings.is_production or settings.is_staging) and backend == "memory":
        msg = (
            "RATE_LIMITER_BACKEND=memory is unsuitable for production. "
            "Use 'redis' for Cloud Run distributed instances."
        )
        raise ValueError(msg)

    if backend == "redis" and not redis_client:
        redis_url = settings.redis_url or "redis://localhost:6379"
        try:
            redis_client = redis.from_url(redis_url)
        except Exception as e:
            msg = f"Failed to create Redis client for rate limiter: {e}"
            raise ValueError(msg) from e
        logger.info("Auto-created Redis client for rate limiter")

    return create_rate_limiter(backend=backend, redis_client=redis_client)
