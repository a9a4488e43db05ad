"""Envelope de resposta e handlers de exceção.

Toda resposta segue `{success, data | error, timestamp}`. Nenhuma exceção
sai sem formatação: AppError usa o próprio código, erro de validação do
FastAPI vira VALIDATION_ERROR e o resto vira INTERNAL_SERVER_ERROR.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from adstudio.domain.enums import Locale
from adstudio.domain.errors import AppError, ErrorCode, user_message
from adstudio.domain.models import utcnow
from adstudio.observability.logging import get_logger
from adstudio.observability.middleware import get_correlation_id

logger: logging.Logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


def ok(data: Any = None, **extra: Any) -> dict[str, Any]:
    """Envelope de sucesso; `extra` entra no nível raiz (ex.: pagination)."""
    body: dict[str, Any] = {"success": True, "data": data}
    body.update(extra)
    body["timestamp"] = utcnow().isoformat()
    return jsonable_encoder(body)


def locale_from_request(request: Request) -> Locale:
    """Locale definido pela rota (corpo) ou, na falta, pelo Accept-Language."""
    state_locale = getattr(request.state, "locale", None)
    if state_locale:
        return Locale(state_locale)
    header = request.headers.get("accept-language", "")
    primary = header.split(",")[0].strip().lower()
    if primary.startswith("ja"):
        return Locale.JA
    return Locale.EN


def error_body(
    code: ErrorCode | str,
    message: str,
    locale: Locale,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": str(code),
        "message": message,
        "userMessage": user_message(code, locale),
    }
    if details:
        error["details"] = details
    return jsonable_encoder(
        {"success": False, "error": error, "timestamp": utcnow().isoformat()}
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "app_error",
        extra={
            "code": str(exc.code),
            "status_code": exc.status_code,
            "path": request.url.path,
            "correlation_id": get_correlation_id(),
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, locale_from_request(request), exc.details),
        headers=exc.headers or None,
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    logger.info(
        "request_validation_failed",
        extra={"path": request.url.path, "error_count": len(errors)},
    )
    return JSONResponse(
        status_code=400,
        content=error_body(
            ErrorCode.VALIDATION_ERROR,
            "Request validation failed",
            locale_from_request(request),
            {"errors": errors},
        ),
    )


def build_unhandled_error_handler(expose_details: bool):
    """Handler genérico; detalhes só fora de produção."""

    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_error",
            extra={
                "path": request.url.path,
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        message = f"{type(exc).__name__}: {exc}" if expose_details else GENERIC_ERROR_MESSAGE
        return JSONResponse(
            status_code=500,
            content=error_body(
                ErrorCode.INTERNAL_SERVER_ERROR, message, locale_from_request(request)
            ),
        )

    return unhandled_error_handler


def register_exception_handlers(app: FastAPI, expose_details: bool = False) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, build_unhandled_error_handler(expose_details))
