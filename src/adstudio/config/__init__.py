"""Configurações centralizadas do adstudio.

Este módulo exporta:
- Settings: classe de configuração via variáveis de ambiente
- get_settings: função cacheada para obter instância única
- Constantes da Generative Language API (Gemini/Veo)

Uso típico:
    from adstudio.config import get_settings, SUPPORTED_ASPECT_RATIOS
"""

from adstudio.config.settings import (
    DEFAULT_VEO_MODEL,
    GEMINI_OPENAI_BASE_URL,
    GENAI_API_BASE_URL,
    SUPPORTED_ASPECT_RATIOS,
    SUPPORTED_IMAGE_TYPES,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "GENAI_API_BASE_URL",
    "GEMINI_OPENAI_BASE_URL",
    "DEFAULT_VEO_MODEL",
    "SUPPORTED_ASPECT_RATIOS",
    "SUPPORTED_IMAGE_TYPES",
]
