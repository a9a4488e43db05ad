"""Enums de domínio: estados de sessão/job, etapas (agentes) e custos."""

from __future__ import annotations

from enum import StrEnum


class SessionStatus(StrEnum):
    """Estados de uma sessão de criação de comercial."""

    DRAFT = "draft"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(StrEnum):
    """Estados de um job de geração de vídeo."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_JOB_STATUSES: frozenset[JobStatus] = frozenset({JobStatus.PENDING, JobStatus.PROCESSING})
TERMINAL_JOB_STATUSES: frozenset[JobStatus] = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class AgentRole(StrEnum):
    """Etapas do fluxo: Maya (produto) → David (criativo) → Alex/Zara (produção)."""

    MAYA = "maya"
    DAVID = "david"
    ALEX = "alex"
    ZARA = "zara"


# Nome da rota HTTP (`/api/agents/{stage}`) → etapa
STAGE_ALIASES: dict[str, AgentRole] = {
    "product-intelligence": AgentRole.MAYA,
    "creative-director": AgentRole.DAVID,
    "video-producer": AgentRole.ZARA,
    "maya": AgentRole.MAYA,
    "david": AgentRole.DAVID,
    "alex": AgentRole.ALEX,
    "zara": AgentRole.ZARA,
}


class ChatRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class CostService(StrEnum):
    """Serviços cobrados no orçamento."""

    VEO = "veo"
    GEMINI = "gemini"
    STORAGE = "storage"
    OTHER = "other"


class AlertLevel(StrEnum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"
    EXCEEDED = "exceeded"


class Locale(StrEnum):
    EN = "en"
    JA = "ja"


class EndpointClass(StrEnum):
    """Classes de endpoint com janelas de rate limit independentes."""

    DEFAULT = "default"
    VIDEO_GENERATION = "video-generation"
    CHAT_REFINEMENT = "chat-refinement"
    STATUS_CHECK = "status-check"
    PRODUCT_ANALYZE = "product-intelligence-analyze"
    PRODUCT_CHAT = "product-intelligence-chat"
    PRODUCT_HANDOFF = "product-intelligence-handoff"


class GallerySort(StrEnum):
    RECENT = "recent"
    POPULAR = "popular"
    VIEWS = "views"
