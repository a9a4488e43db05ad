"""Sanitização de texto livre enviado pelo usuário."""

from __future__ import annotations

import html
import re

_BLOCK_TAGS = re.compile(
    r"<(script|style|iframe|object|embed)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL
)
_TAGS = re.compile(r"<[^>]*>")
_SCHEMES = re.compile(r"(javascript|vbscript|data):", re.IGNORECASE)
_EVENT_HANDLERS = re.compile(r"on\w+\s*=", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_input(value: str | None) -> str:
    """Remove HTML/scripts e caracteres de controle; escapa o restante.

    Retorna string vazia quando nada sobra (o chamador decide o erro).
    """
    if not value:
        return ""
    text = _BLOCK_TAGS.sub("", value.strip())
    text = _TAGS.sub("", text)
    text = _SCHEMES.sub("", text)
    text = _EVENT_HANDLERS.sub("", text)
    text = _CONTROL_CHARS.sub("", text)
    return html.escape(text.strip(), quote=True)
