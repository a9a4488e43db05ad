from __future__ import annotations

import logging
import os

from google.cloud import secretmanager

from adstudio.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class SecretManagerProvider:
    """Provider para Google Cloud Secret Manager.

    Requer Application Default Credentials com permissão secretAccessor
    no projeto informado (ou GOOGLE_CLOUD_PROJECT).
    """

    def __init__(
        self,
        project_id: str | None = None,
        client: secretmanager.SecretManagerServiceClient | None = None,
    ) -> None:
        self._project_id = project_id or os.getenv("GOOGLE_CLOUD_PROJECT")
        self._client = client

    def _get_client(self) -> secretmanager.SecretManagerServiceClient:
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def _secret_path(self, name: str) -> str:
        if not self._project_id:
            raise RuntimeError(
                "project_id não configurado. "
                "Defina GOOGLE_CLOUD_PROJECT ou passe project_id ao construtor."
            )
        return f"projects/{self._project_id}/secrets/{name}"

    def get_secret(self, name: str, version: str = "latest") -> str:
        secret_path = f"{self._secret_path(name)}/versions/{version}"
        try:
            response = self._get_client().access_secret_version(name=secret_path)
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "secret_manager_access_failed",
                extra={"secret_name": name, "version": version, "error_type": type(e).__name__},
            )
            raise RuntimeError(
                f"Não foi possível acessar secret {name}: acesso negado ou não existe"
            ) from e

        logger.info(
            "secret_loaded",
            extra={"secret_name": name, "version": version, "provider": "secret_manager"},
        )
        return response.payload.data.decode("utf-8")

    def secret_exists(self, name: str) -> bool:
        try:
            self._get_client().get_secret(name=self._secret_path(name))
            return True
        except Exception:  # pylint: disable=broad-except
            return False
