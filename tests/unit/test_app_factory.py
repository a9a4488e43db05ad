"""Testes da fábrica da aplicação."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from adstudio.api.app import create_app
from adstudio.config.settings import Settings
from adstudio.infra.media_storage import InMemoryMediaStorage


class TestCreateApp:
    """Bootstrap de serviços e validação de configuração."""

    def test_demo_services_by_default(self) -> None:
        app = create_app(Settings(gemini_api_key=None, media_bucket=None))

        assert app.state.settings.veo_real_mode is False
        assert app.state.product_intelligence._media.__class__ is InMemoryMediaStorage
        for name in (
            "rate_limiter",
            "session_service",
            "job_tracker",
            "cost_tracker",
            "handoff_coordinator",
            "event_broadcaster",
            "generate_video",
            "chat_refinement",
            "gallery",
            "monitoring",
        ):
            assert getattr(app.state, name) is not None

    def test_invalid_configuration_fails_fast(self) -> None:
        with pytest.raises(ValueError, match="Configuração inválida"):
            create_app(Settings(total_budget=0))

    def test_unhandled_errors_use_envelope(self) -> None:
        app = create_app(Settings())

        @app.get("/boom")
        def boom() -> None:
            raise RuntimeError("kaboom")

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/boom", headers={"Accept-Language": "ja"})

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_SERVER_ERROR"
        assert error["message"] == "RuntimeError: kaboom"
        assert error["userMessage"] == "問題が発生しました。もう一度お試しください。"

    def test_unhandled_error_details_hidden_outside_development(self) -> None:
        app = create_app(Settings(environment="test"))

        @app.get("/boom")
        def boom() -> None:
            raise RuntimeError("kaboom")

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/boom")

        assert response.json()["error"]["message"] == "An unexpected error occurred"
