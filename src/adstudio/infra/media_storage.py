"""Armazenamento de mídia (imagens enviadas e vídeos gerados).

- GCSMediaStorage: bucket privado, URLs assinadas v4
- InMemoryMediaStorage: desenvolvimento/testes (URLs `memory://`)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import timedelta

from google.cloud import storage

from adstudio.domain.errors import ErrorCode, UpstreamError
from adstudio.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class MediaStorage(ABC):
    @abstractmethod
    def upload(self, object_name: str, content: bytes, content_type: str) -> str:
        """Grava o objeto e retorna sua URI (`gs://` ou `memory://`)."""
        ...

    @abstractmethod
    def sign_url(self, url: str) -> str:
        """URL de acesso temporário; URLs externas voltam inalteradas."""
        ...


class InMemoryMediaStorage(MediaStorage):
    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}

    def upload(self, object_name: str, content: bytes, content_type: str) -> str:
        self.objects[object_name] = (content, content_type)
        return f"memory://{object_name}"

    def sign_url(self, url: str) -> str:
        return url


class GCSMediaStorage(MediaStorage):
    """Persiste mídia em GCS e gera URLs assinadas."""

    def __init__(
        self,
        bucket_name: str,
        client: storage.Client | None = None,
        signed_url_ttl_seconds: int = 3600,
    ) -> None:
        self._bucket_name = bucket_name
        self._client = client or storage.Client()
        self._ttl = timedelta(seconds=signed_url_ttl_seconds)

    def upload(self, object_name: str, content: bytes, content_type: str) -> str:
        blob = self._client.bucket(self._bucket_name).blob(object_name)
        try:
            blob.upload_from_string(content, content_type=content_type)
        except Exception as e:
            logger.error("media_upload_failed", extra={"error_type": type(e).__name__})
            raise UpstreamError(
                f"Storage upload failed: {type(e).__name__}", code=ErrorCode.STORAGE_ERROR
            ) from e
        logger.info("media_uploaded", extra={"size_bytes": len(content)})
        return f"gs://{self._bucket_name}/{object_name}"

    def sign_url(self, url: str) -> str:
        prefix = f"gs://{self._bucket_name}/"
        if not url.startswith(prefix):
            return url
        blob = self._client.bucket(self._bucket_name).blob(url[len(prefix) :])
        signed = blob.generate_signed_url(version="v4", expiration=self._ttl, method="GET")
        logger.debug("signed_url_generated", extra={"object_prefix": url[len(prefix) :][:20]})
        return signed


def create_media_storage(
    bucket_name: str | None,
    client: storage.Client | None = None,
    signed_url_ttl_seconds: int = 3600,
) -> MediaStorage:
    if not bucket_name:
        logger.warning("MEDIA_BUCKET ausente: usando armazenamento de mídia em memória")
        return InMemoryMediaStorage()
    return GCSMediaStorage(bucket_name, client=client, signed_url_ttl_seconds=signed_url_ttl_seconds)
