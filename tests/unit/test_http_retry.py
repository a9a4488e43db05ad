"""Testes unitários para infra/http.py e infra/circuit_breaker.py.

Valida retry, classificação de erros e circuit breaker.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from adstudio.config.settings import Settings
from adstudio.infra.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from adstudio.infra.http import (
    HttpClient,
    HttpClientConfig,
    HttpError,
    _calculate_backoff,
    _is_retryable_status,
    _sanitize_url,
    create_http_client,
)


def _client(handler, **config) -> HttpClient:
    return HttpClient(HttpClientConfig(**config), transport=httpx.MockTransport(handler))


class TestHelpers:
    """Testes das funções auxiliares."""

    def test_sanitize_url_hides_key(self) -> None:
        url = "https://example.com/v1/ops?key=SECRET&alt=json"
        assert _sanitize_url(url) == "https://example.com/v1/ops?key=***&alt=json"

    @pytest.mark.parametrize(("status", "retryable"), [(429, True), (503, True), (404, False)])
    def test_retryable_status(self, status, retryable) -> None:
        assert _is_retryable_status(status) is retryable

    def test_backoff_is_capped(self) -> None:
        assert _calculate_backoff(0, 1.0, 30.0) == 1.0
        assert _calculate_backoff(3, 1.0, 30.0) == 8.0
        assert _calculate_backoff(10, 1.0, 30.0) == 30.0


class TestHttpClient:
    """Testes do HttpClient com transporte mockado."""

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={"ok": True}))
        response = await client.get("https://veo.test/ok")
        assert response.json() == {"ok": True}
        await client.close()

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400)

        client = _client(handler, max_retries=3)
        with pytest.raises(HttpError) as exc_info:
            await client.post("https://veo.test/x", json={})
        assert exc_info.value.status_code == 400
        assert exc_info.value.is_retryable is False
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self) -> None:
        responses = iter([httpx.Response(503), httpx.Response(200, json={"done": True})])
        client = _client(lambda request: next(responses), max_retries=1)
        with patch("adstudio.infra.http.asyncio.sleep", new=AsyncMock()) as sleep:
            response = await client.get("https://veo.test/op")
        assert response.json() == {"done": True}
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_retries_exhausted(self) -> None:
        client = _client(lambda request: httpx.Response(500), max_retries=0)
        with pytest.raises(HttpError) as exc_info:
            await client.get("https://veo.test/op")
        assert exc_info.value.is_retryable is True

    @pytest.mark.asyncio
    async def test_transport_error_becomes_http_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler, max_retries=0)
        with pytest.raises(HttpError, match="conexão"):
            await client.get("https://veo.test/op")

    @pytest.mark.asyncio
    async def test_open_circuit_short_circuits(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        client = _client(
            handler, max_retries=0, circuit_breaker_enabled=True, circuit_breaker_fail_max=1
        )
        with pytest.raises(HttpError):
            await client.get("https://veo.test/op")
        assert client.circuit_breaker is not None
        assert client.circuit_breaker.state == "open"

        with pytest.raises(HttpError, match="Circuit breaker"):
            await client.get("https://veo.test/op")
        assert len(calls) == 1


class TestCircuitBreaker:
    """Testes do circuit breaker com relógio controlado."""

    @pytest.mark.asyncio
    async def test_half_open_after_timeout(self) -> None:
        now = [0.0]
        breaker = CircuitBreaker(
            CircuitBreakerConfig(enabled=True, fail_max=2, reset_timeout_seconds=10),
            clock=lambda: now[0],
        )
        await breaker.record_failure(is_retryable=True)
        assert await breaker.record_failure(is_retryable=True) == "open"
        assert await breaker.allow_request() is False

        now[0] = 11.0
        assert await breaker.allow_request() is True
        assert breaker.state == "half_open"
        assert await breaker.allow_request() is False

        assert await breaker.record_success() == "closed"
        assert breaker.snapshot() == {"enabled": True, "state": "closed", "failures": 0}

    @pytest.mark.asyncio
    async def test_non_retryable_failures_do_not_open(self) -> None:
        breaker = CircuitBreaker(CircuitBreakerConfig(enabled=True, fail_max=1))
        assert await breaker.record_failure(is_retryable=False) == "closed"

    @pytest.mark.asyncio
    async def test_disabled_always_allows(self) -> None:
        breaker = CircuitBreaker(CircuitBreakerConfig(enabled=False))
        assert await breaker.record_failure(is_retryable=True) == "closed"
        assert await breaker.allow_request() is True


class TestFactory:
    def test_create_http_client_uses_veo_settings(self) -> None:
        settings = Settings(veo_max_retries=2, veo_circuit_breaker_enabled=True)
        client = create_http_client(settings)
        assert client.circuit_breaker is not None
