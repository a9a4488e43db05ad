"""Rotas HTTP principais."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from adstudio.api.dependencies import get_settings
from adstudio.config.settings import Settings

router = APIRouter()


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Healthcheck simples para Cloud Run."""
    return {"status": "ok", "service": settings.service_name, "version": settings.version}
