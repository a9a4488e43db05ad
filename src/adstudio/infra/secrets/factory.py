from __future__ import annotations

import logging

from adstudio.observability.logging import get_logger

from .env_provider import EnvSecretProvider
from .gcp_provider import SecretManagerProvider
from .protocol import SecretProvider

logger: logging.Logger = get_logger(__name__)


def create_secret_provider(backend: str = "env", project_id: str | None = None) -> SecretProvider:
    """Factory para criar o provider de secrets apropriado."""
    if backend == "env":
        return EnvSecretProvider()

    if backend == "secret_manager":
        logger.info("secret_provider_selected", extra={"project_id": project_id})
        return SecretManagerProvider(project_id=project_id)

    raise ValueError(f"Backend de secrets não reconhecido: {backend}")


def _optional_secret(provider: SecretProvider, name: str) -> str | None:
    if not provider.secret_exists(name):
        return None
    return provider.get_secret(name)


def get_gemini_api_key(provider: SecretProvider | None = None) -> str | None:
    """Retorna GEMINI_API_KEY ou None (Veo/Gemini em modo demo)."""
    return _optional_secret(provider or EnvSecretProvider(), "GEMINI_API_KEY")


def get_admin_api_key(provider: SecretProvider | None = None) -> str | None:
    """Retorna ADMIN_API_KEY ou None (rotas admin sempre 401)."""
    return _optional_secret(provider or EnvSecretProvider(), "ADMIN_API_KEY")
