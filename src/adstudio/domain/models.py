"""Modelos de domínio (contratos principais).

Serializáveis via `model_dump(mode="json")` para Firestore e validados de
volta com `model_validate`.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from adstudio.domain.enums import (
    AgentRole,
    AlertLevel,
    ChatRole,
    CostService,
    JobStatus,
    Locale,
    SessionStatus,
)


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def freeze_payload(value: Any) -> Any:
    """Converte recursivamente dicts em MappingProxyType e listas em tuplas."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze_payload(item) for key, item in value.items()})
    if isinstance(value, list | tuple):
        return tuple(freeze_payload(item) for item in value)
    return value


def thaw_payload(value: Any) -> Any:
    """Inverso de `freeze_payload`: volta a dicts e listas comuns."""
    if isinstance(value, Mapping):
        return {key: thaw_payload(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw_payload(item) for item in value]
    return value


# Payload imutável em profundidade; serializa como dict comum
FrozenPayload = Annotated[
    dict[str, Any],
    AfterValidator(freeze_payload),
    PlainSerializer(thaw_payload, return_type=dict[str, Any]),
]


# Modelos expostos na API serializam em camelCase (`by_alias=True`)
_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(BaseModel):
    role: ChatRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    message_id: str | None = None


class TargetAudience(BaseModel):
    primary: str | None = None
    secondary: str | None = None
    demographics: dict[str, Any] = Field(default_factory=dict)


class ProductAnalysis(BaseModel):
    """Resultado da análise de produto (etapa Maya)."""

    model_config = ConfigDict(extra="allow")

    product_name: str | None = None
    category: str | None = None
    description: str | None = None
    target_audience: TargetAudience | None = None
    positioning: str | None = None
    visual_preferences: dict[str, Any] | None = None
    commercial_strategy: dict[str, Any] | None = None
    key_insights: list[str] = Field(default_factory=list)
    confidence: float | None = Field(default=None, ge=0, le=1)


class Session(BaseModel):
    """Estado de uma conversa de criação de comercial."""

    session_id: str
    prompt: str = ""
    status: SessionStatus = SessionStatus.DRAFT
    locale: Locale = Locale.EN
    chat_history: list[ChatMessage] = Field(default_factory=list)
    analysis: ProductAnalysis | None = None
    pending_strategy: dict[str, Any] | None = None
    pending_strategy_at: datetime | None = None
    video_job_id: str | None = None
    image_url: str | None = None
    failure_reason: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime = Field(default_factory=lambda: utcnow() + timedelta(hours=12))

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > self.expires_at


class VideoJob(BaseModel):
    """Job de geração de vídeo rastreado até estado terminal."""

    job_id: str
    session_id: str
    prompt: str
    status: JobStatus = JobStatus.PENDING
    progress: float = Field(default=0.0, ge=0, le=100)
    veo_job_id: str | None = None
    estimated_cost: float = 0.0
    video_url: str | None = None
    thumbnail_url: str | None = None
    error: str | None = None
    duration: int | None = None
    aspect_ratio: str | None = None
    views: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None


class JobStatusView(BaseModel):
    """Visão de status entregue ao cliente no polling."""

    model_config = _CAMEL

    job_id: str
    status: JobStatus
    progress: float
    status_message: str
    video_url: str | None = None
    thumbnail_url: str | None = None
    estimated_time_remaining: int | None = None
    error: str | None = None


class ValidationIssue(BaseModel):
    model_config = _CAMEL

    field: str
    message: str
    code: str
    severity: Literal["critical", "high", "medium", "low"] = "high"


class ValidationWarning(BaseModel):
    model_config = _CAMEL

    field: str
    message: str
    recommendation: str | None = None


class HandoffValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    is_valid: bool
    completeness: float = Field(ge=0, le=1)
    threshold: float
    validation_status: Literal["passed", "failed"]
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationWarning, ...] = ()


class HandoffPayload(BaseModel):
    """Snapshot imutável entregue à próxima etapa (trilha de auditoria)."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    handoff_id: str
    session_id: str
    timestamp: datetime
    version: str = "1.0"
    source_agent: AgentRole
    target_agent: AgentRole
    payload: FrozenPayload
    validation_result: HandoffValidationResult
    data_hash: str

    @property
    def passed(self) -> bool:
        return self.validation_result.validation_status == "passed"


class CostEntry(BaseModel):
    service: CostService
    amount: float = Field(ge=0)
    currency: str = "USD"
    description: str = ""
    session_id: str | None = None
    job_id: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class BudgetStatus(BaseModel):
    model_config = _CAMEL

    total_budget: float
    current_spend: float
    remaining_budget: float
    percentage_used: float
    alert_level: AlertLevel
    can_proceed: bool
