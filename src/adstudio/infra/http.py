"""Cliente HTTP centralizado com retry, timeout e logging.

Usado para a API REST do Veo (Generative Language API):
- Retry com backoff exponencial apenas para falhas de transporte, 429 e 5xx
- Timeouts sempre configurados
- Circuit breaker opcional
- Logs sem chaves de API (query `key=` e header `x-goog-api-key` nunca logados)
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from adstudio.infra.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from adstudio.observability.logging import get_logger

if TYPE_CHECKING:
    from adstudio.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

_API_KEY_PATTERN = re.compile(r"([?&]key=)[^&]+")


def _sanitize_url(url: str) -> str:
    """Remove a chave de API da URL para logging seguro."""
    return _API_KEY_PATTERN.sub(r"\1***", url)


@dataclass
class HttpClientConfig:
    """Configuração do cliente HTTP (defaults conservadores)."""

    timeout_seconds: float = 30.0
    max_retries: int = 2
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    default_headers: dict[str, str] = field(default_factory=dict)
    circuit_breaker_enabled: bool = False
    circuit_breaker_fail_max: int = 5
    circuit_breaker_reset_timeout_seconds: float = 60.0
    circuit_breaker_half_open_max_calls: int = 1


class HttpError(Exception):
    """Erro de requisição HTTP sem expor informações sensíveis."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        is_retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.is_retryable = is_retryable


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


def _calculate_backoff(attempt: int, base_seconds: float, max_seconds: float) -> float:
    return min((2**attempt) * base_seconds, max_seconds)


def _transport_error(exc: Exception, method: str, url: str, attempt: int) -> HttpError:
    """Converte falhas de transporte em HttpError retentável."""
    if isinstance(exc, httpx.TimeoutException):
        reason = "Timeout"
    elif isinstance(exc, httpx.TransportError):
        reason = "Erro de conexão"
    else:
        logger.error(
            "http_unexpected_error",
            extra={"method": method, "url": _sanitize_url(url), "error_type": type(exc).__name__},
        )
        raise HttpError(f"Erro inesperado: {type(exc).__name__}") from exc

    logger.warning(
        "http_transient_error",
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "attempt": attempt + 1,
            "reason": reason,
        },
    )
    return HttpError(reason, is_retryable=True)


class HttpClient:
    """Cliente HTTP assíncrono com retry e logging.

    Uso típico:
        async with HttpClient(config) as client:
            response = await client.post(url, json=payload)
    """

    def __init__(
        self,
        config: HttpClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or HttpClientConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._circuit_breaker: CircuitBreaker | None = None
        if self._config.circuit_breaker_enabled:
            self._circuit_breaker = CircuitBreaker(
                CircuitBreakerConfig(
                    enabled=True,
                    fail_max=self._config.circuit_breaker_fail_max,
                    reset_timeout_seconds=self._config.circuit_breaker_reset_timeout_seconds,
                    half_open_max_calls=self._config.circuit_breaker_half_open_max_calls,
                )
            )

    @property
    def circuit_breaker(self) -> CircuitBreaker | None:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers=self._config.default_headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _request_with_retry(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        cfg = self._config
        last_error: HttpError | None = None

        for attempt in range(cfg.max_retries + 1):
            try:
                response = await client.request(method, url, **kwargs)
            except Exception as exc:
                last_error = _transport_error(exc, method, url, attempt)
            else:
                if response.is_success:
                    logger.debug(
                        "http_request_ok",
                        extra={
                            "method": method,
                            "url": _sanitize_url(url),
                            "status_code": response.status_code,
                        },
                    )
                    return response
                if not _is_retryable_status(response.status_code):
                    logger.warning(
                        "http_request_failed",
                        extra={
                            "method": method,
                            "url": _sanitize_url(url),
                            "status_code": response.status_code,
                        },
                    )
                    raise HttpError(
                        f"HTTP {response.status_code}",
                        status_code=response.status_code,
                        is_retryable=False,
                    )
                last_error = HttpError(
                    f"HTTP {response.status_code}",
                    status_code=response.status_code,
                    is_retryable=True,
                )

            if attempt < cfg.max_retries:
                backoff = _calculate_backoff(
                    attempt, cfg.backoff_base_seconds, cfg.backoff_max_seconds
                )
                logger.info(
                    "http_retry_backoff",
                    extra={"backoff_seconds": backoff, "next_attempt": attempt + 2},
                )
                await asyncio.sleep(backoff)

        logger.error(
            "http_retries_exhausted",
            extra={
                "method": method,
                "url": _sanitize_url(url),
                "total_attempts": cfg.max_retries + 1,
            },
        )
        raise last_error or HttpError("Falha após todos os retries")

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Orquestra requisição com circuit breaker e retry."""
        breaker = self._circuit_breaker
        if breaker and not await breaker.allow_request():
            logger.warning(
                "circuit_breaker_open",
                extra={"method": method, "url": _sanitize_url(url)},
            )
            raise HttpError("Circuit breaker aberto", is_retryable=False)

        try:
            response = await self._request_with_retry(method, url, **kwargs)
        except HttpError as exc:
            if breaker:
                state = await breaker.record_failure(exc.is_retryable)
                if state == "open":
                    logger.error(
                        "circuit_breaker_opened",
                        extra={"url": _sanitize_url(url), "failures": breaker.failure_count},
                    )
            raise

        if breaker:
            await breaker.record_success()
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(
        self,
        url: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        return await self.request("POST", url, json=json, **kwargs)


def create_http_client(settings: Settings | None = None) -> HttpClient:
    """Factory do cliente HTTP usado pelo VeoClient."""
    if settings is None:
        from adstudio.config.settings import get_settings

        settings = get_settings()

    config = HttpClientConfig(
        timeout_seconds=float(settings.veo_request_timeout_seconds),
        max_retries=settings.veo_max_retries,
        backoff_base_seconds=float(settings.veo_retry_backoff_seconds),
        default_headers={"User-Agent": f"{settings.service_name}/{settings.version}"},
        circuit_breaker_enabled=settings.veo_circuit_breaker_enabled,
        circuit_breaker_fail_max=settings.veo_circuit_breaker_fail_max,
        circuit_breaker_reset_timeout_seconds=float(
            settings.veo_circuit_breaker_reset_timeout_seconds
        ),
        circuit_breaker_half_open_max_calls=settings.veo_circuit_breaker_half_open_max_calls,
    )
    logger.info(
        "http_client_created",
        extra={"timeout_seconds": config.timeout_seconds, "max_retries": config.max_retries},
    )
    return HttpClient(config)
