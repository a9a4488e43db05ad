"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars ou Secret Manager.
Nunca hardcode secrets (GEMINI_API_KEY, ADMIN_API_KEY) no código.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from adstudio.infra.secrets import (
    create_secret_provider,
    get_admin_api_key,
    get_gemini_api_key,
)
from adstudio.observability.logging import get_logger

# -----------------------------------------------------------------------------
# Constantes da Generative Language API (Gemini / Veo)
# -----------------------------------------------------------------------------
GENAI_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_OPENAI_BASE_URL: str = f"{GENAI_API_BASE_URL}/openai/"
DEFAULT_VEO_MODEL: str = "veo-3.0-generate-preview"

SUPPORTED_ASPECT_RATIOS: tuple[str, ...] = ("16:9", "9:16", "1:1")
SUPPORTED_IMAGE_TYPES: tuple[str, ...] = ("image/jpeg", "image/png", "image/webp")


class Settings(BaseSettings):
    """Configurações lidas de variáveis de ambiente."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
    )

    # Aplicação
    service_name: str = "adstudio"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    correlation_id_header: str = "X-Correlation-ID"

    # Backends de persistência
    session_store_backend: str = "memory"  # memory | firestore
    job_store_backend: str = "memory"  # memory | firestore
    cost_ledger_backend: str = "memory"  # memory | firestore
    handoff_store_backend: str = "memory"  # memory | firestore
    rate_limiter_backend: str = "memory"  # memory | redis
    redis_url: str | None = None

    # Firestore
    gcp_project: str | None = None
    firestore_project_id: str | None = None
    firestore_database_id: str = "(default)"
    sessions_collection: str = "sessions"
    jobs_collection: str = "videoJobs"
    costs_collection: str = "costs"
    handoffs_collection: str = "agent_handoffs"

    # Gemini (chat/análise) e Veo (vídeo)
    gemini_api_key: str | None = None  # Ausente = modo demo (respostas simuladas)
    gemini_model: str = "gemini-2.5-flash"
    gemini_timeout_seconds: float = 30.0
    veo_model: str = DEFAULT_VEO_MODEL
    veo_api_base_url: str = GENAI_API_BASE_URL
    veo_request_timeout_seconds: int = 30
    veo_max_retries: int = 0  # Falhas upstream vão ao cliente (502); retry é do cliente
    veo_retry_backoff_seconds: int = 1
    veo_circuit_breaker_enabled: bool = False
    veo_circuit_breaker_fail_max: int = 5
    veo_circuit_breaker_reset_timeout_seconds: float = 60.0
    veo_circuit_breaker_half_open_max_calls: int = 1
    veo_cost_per_second: float = 0.10  # $1.50 por 15s

    # Vídeo
    video_max_duration_seconds: int = 15
    video_default_duration_seconds: int = 15
    prompt_min_length: int = 5
    prompt_max_length: int = 500
    style_max_length: int = 100

    # Orçamento (Budget)
    total_budget: float = 300.0
    budget_warning_threshold: float = 0.75
    budget_critical_threshold: float = 0.90
    gemini_chat_cost: float = 0.05
    gemini_analysis_cost: float = 0.20
    storage_cost_per_video: float = 0.01

    # Handoff entre etapas
    handoff_completeness_threshold: float = 0.7
    handoff_low_confidence_threshold: float = 0.7

    # Ciclo de vida
    session_ttl_hours: int = 12
    job_expiry_hours: int = 24

    # Upload de imagens
    upload_max_bytes: int = 10 * 1024 * 1024
    media_bucket: str | None = None  # Ausente = armazenamento em memória
    signed_url_ttl_seconds: int = 3600

    # Administração
    admin_api_key: str | None = None  # Ausente = todas as rotas admin retornam 401

    def validate_store_backends(self) -> list[str]:
        """Valida backends de persistência por ambiente.

        Em staging/prod, memory é proibido (Cloud Run é stateless).
        Retorna lista de erros (vazia = tudo OK).
        """
        errors: list[str] = []
        backends = {
            "SESSION_STORE_BACKEND": self.session_store_backend,
            "JOB_STORE_BACKEND": self.job_store_backend,
            "COST_LEDGER_BACKEND": self.cost_ledger_backend,
            "HANDOFF_STORE_BACKEND": self.handoff_store_backend,
        }
        for name, value in backends.items():
            backend = value.lower()
            if backend not in {"memory", "firestore"}:
                errors.append(f"{name} '{backend}' inválido. Valores válidos: memory | firestore")
                continue
            if backend == "memory" and (self.is_staging or self.is_production):
                errors.append(
                    f"{name}=memory é proibido em staging/production. "
                    "Use 'firestore' para estado compartilhado entre instâncias."
                )
            if backend == "firestore" and not (self.firestore_project_id or self.gcp_project):
                errors.append(f"{name}=firestore requer FIRESTORE_PROJECT_ID ou GCP_PROJECT")
        return errors

    def validate_rate_limiter_config(self) -> list[str]:
        """Valida backend do rate limiter."""
        errors: list[str] = []
        backend = self.rate_limiter_backend.lower()
        if backend not in {"memory", "redis"}:
            errors.append("RATE_LIMITER_BACKEND inválido: use memory | redis")
        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append("RATE_LIMITER_BACKEND=memory é proibido em staging/production")
        if backend == "redis" and not self.redis_url:
            errors.append("RATE_LIMITER_BACKEND=redis requer REDIS_URL configurado")
        return errors

    def validate_budget_config(self) -> list[str]:
        """Valida orçamento e limiares de alerta."""
        errors: list[str] = []
        if self.total_budget <= 0:
            errors.append("TOTAL_BUDGET deve ser positivo")
        if not 0 < self.budget_warning_threshold < self.budget_critical_threshold <= 1:
            errors.append(
                "Limiares de orçamento inválidos: 0 < WARNING < CRITICAL <= 1"
            )
        return errors

    def validate_handoff_config(self) -> list[str]:
        """Valida limiar de completude do handoff."""
        errors: list[str] = []
        if not 0 < self.handoff_completeness_threshold <= 1:
            errors.append("HANDOFF_COMPLETENESS_THRESHOLD deve estar entre 0 e 1")
        return errors

    def validate_lifecycle_config(self) -> list[str]:
        """Valida TTL de sessão (12–24h) e expiração de jobs."""
        errors: list[str] = []
        if not 1 <= self.session_ttl_hours <= 24:
            errors.append("SESSION_TTL_HOURS deve estar entre 1 e 24")
        if self.job_expiry_hours <= 0:
            errors.append("JOB_EXPIRY_HOURS deve ser positivo")
        return errors

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        """Retorna True se ambiente é staging."""
        return self.environment.lower() in ("staging", "stage")

    @property
    def is_development(self) -> bool:
        """Retorna True se ambiente é desenvolvimento."""
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def firestore_project(self) -> str | None:
        return self.firestore_project_id or self.gcp_project

    @property
    def veo_real_mode(self) -> bool:
        """Veo real só é usado quando há GEMINI_API_KEY."""
        return bool(self.gemini_api_key)

    def validate_all(self) -> list[str]:
        errors: list[str] = []
        errors.extend(self.validate_store_backends())
        errors.extend(self.validate_rate_limiter_config())
        errors.extend(self.validate_budget_config())
        errors.extend(self.validate_handoff_config())
        errors.extend(self.validate_lifecycle_config())
        return errors

    def model_post_init(self, __context: Any) -> None:
        """Carrega secrets do Secret Manager em staging/production.

        - Nunca loga valores de secrets
        - Fail-closed em produção se o provider não puder ser criado
        """
        logger: logging.Logger = get_logger(__name__)

        if self.is_development:
            logger.info(
                "Usando configuração de development (secrets via env vars)",
                extra={"environment": self.environment},
            )
            return

        if not (self.is_staging or self.is_production):
            return

        if os.getenv("SKIP_SECRET_MANAGER", "").lower() == "true":
            raise RuntimeError("SKIP_SECRET_MANAGER não é permitido em staging/production")

        # Testes com environment=staging/prod não devem chamar o Secret Manager real
        if os.getenv("PYTEST_CURRENT_TEST"):
            logger.info(
                "Pulando Secret Manager em ambiente de teste controlado",
                extra={"environment": self.environment},
            )
            return

        project_id = os.getenv("GOOGLE_CLOUD_PROJECT") or self.gcp_project
        if not project_id:
            raise RuntimeError("GOOGLE_CLOUD_PROJECT obrigatório em staging/production")

        try:
            provider = create_secret_provider(backend="secret_manager", project_id=project_id)
        except Exception as e:
            logger.error(
                "Falha ao criar Secret Manager provider",
                extra={"error": type(e).__name__, "environment": self.environment},
            )
            raise RuntimeError(
                f"Não foi possível inicializar Secret Manager: {type(e).__name__}"
            ) from e

        loaders = {
            "gemini_api_key": get_gemini_api_key,
            "admin_api_key": get_admin_api_key,
        }
        for attr_name, loader in loaders.items():
            if getattr(self, attr_name):
                continue
            try:
                value = loader(provider)
            except RuntimeError as e:
                logger.error(
                    "Falha ao carregar secret",
                    extra={"secret_name": attr_name.upper(), "error": str(e)},
                )
                if self.is_production:
                    raise
                continue
            if value is None:
                logger.warning(
                    "Secret ausente no Secret Manager",
                    extra={"secret_name": attr_name.upper()},
                )
                continue
            setattr(self, attr_name, value)
            logger.info(
                "Secret carregado do Secret Manager",
                extra={"secret_name": attr_name.upper()},
            )


@lru_cache
def get_settings() -> Settings:
    """Retorna instância única de Settings (cacheada)."""
    return Settings()
