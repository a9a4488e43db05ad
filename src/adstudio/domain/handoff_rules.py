"""Regras de validação dos handoffs entre etapas.

Rotas fixas: maya→david, david→alex, david→zara.
A validação é pura e idempotente: mesmo payload, mesmo resultado.

completeness = campos obrigatórios presentes / total de obrigatórios.
validation_status = "passed" quando completeness >= threshold e nenhum
erro crítico foi encontrado.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from adstudio.domain.enums import AgentRole
from adstudio.domain.errors import ErrorCode, ValidationError
from adstudio.domain.models import (
    HandoffValidationResult,
    ValidationIssue,
    ValidationWarning,
)


@dataclass(slots=True, frozen=True)
class FieldRule:
    path: str  # caminho com pontos, ex.: "product_analysis.target_audience.primary"
    message: str
    code: str
    severity: str = "high"
    recommendation: str | None = None


@dataclass(slots=True, frozen=True)
class HandoffRoute:
    source: AgentRole
    target: AgentRole
    required: tuple[FieldRule, ...]
    recommended: tuple[FieldRule, ...] = ()


_MAYA_TO_DAVID = HandoffRoute(
    source=AgentRole.MAYA,
    target=AgentRole.DAVID,
    required=(
        FieldRule(
            "product_analysis",
            "Product analysis is required for creative direction",
            "MISSING_PRODUCT_ANALYSIS",
            severity="critical",
        ),
        FieldRule(
            "product_analysis.target_audience.primary",
            "Primary target audience is required",
            "MISSING_TARGET_AUDIENCE",
        ),
        FieldRule(
            "product_analysis.positioning",
            "Brand positioning is required",
            "MISSING_POSITIONING",
        ),
        FieldRule(
            "commercial_strategy",
            "Commercial strategy is required",
            "MISSING_COMMERCIAL_STRATEGY",
        ),
    ),
    recommended=(
        FieldRule(
            "product_analysis.visual_preferences",
            "Visual preferences not specified",
            "MISSING_VISUAL_PREFERENCES",
            recommendation="Provide visual preferences for better creative direction",
        ),
        FieldRule(
            "product_analysis.key_insights",
            "No key insights captured",
            "MISSING_KEY_INSIGHTS",
            recommendation="Ask the user about what makes the product unique",
        ),
    ),
)

_DAVID_TO_PRODUCER_REQUIRED = (
    FieldRule(
        "product_analysis",
        "Product analysis is required for video production",
        "MISSING_PRODUCT_ANALYSIS",
        severity="critical",
    ),
    FieldRule(
        "creative_direction",
        "Creative direction is required",
        "MISSING_CREATIVE_DIRECTION",
        severity="critical",
    ),
    FieldRule("asset_package", "Asset package is required", "MISSING_ASSET_PACKAGE"),
    FieldRule("production_specs", "Production specs are required", "MISSING_PRODUCTION_SPECS"),
)

_DAVID_TO_PRODUCER_RECOMMENDED = (
    FieldRule(
        "style_guide",
        "Style guide not provided",
        "MISSING_STYLE_GUIDE",
        recommendation="Include a style guide to keep scenes consistent",
    ),
    FieldRule(
        "brand_guidelines",
        "Brand guidelines not provided",
        "MISSING_BRAND_GUIDELINES",
        recommendation="Attach brand guidelines for color and tone",
    ),
    FieldRule(
        "scenes",
        "Scene breakdown not provided",
        "MISSING_SCENES",
        recommendation="Describe the key scenes of the commercial",
    ),
)

ROUTES: dict[tuple[AgentRole, AgentRole], HandoffRoute] = {
    (AgentRole.MAYA, AgentRole.DAVID): _MAYA_TO_DAVID,
    (AgentRole.DAVID, AgentRole.ALEX): HandoffRoute(
        AgentRole.DAVID, AgentRole.ALEX, _DAVID_TO_PRODUCER_REQUIRED, _DAVID_TO_PRODUCER_RECOMMENDED
    ),
    (AgentRole.DAVID, AgentRole.ZARA): HandoffRoute(
        AgentRole.DAVID, AgentRole.ZARA, _DAVID_TO_PRODUCER_REQUIRED, _DAVID_TO_PRODUCER_RECOMMENDED
    ),
}


def get_route(source: AgentRole, target: AgentRole) -> HandoffRoute:
    route = ROUTES.get((source, target))
    if route is None:
        raise ValidationError(
            f"Unsupported handoff route {source}->{target}",
            code=ErrorCode.INVALID_HANDOFF_ROUTE,
            details={"source": str(source), "target": str(target)},
        )
    return route


def lookup(payload: Mapping[str, Any], path: str) -> Any:
    """Resolve caminho com pontos em dicts aninhados (None se ausente)."""
    current: Any = payload
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def is_present(value: Any) -> bool:
    """Campo presente: não vazio; dicts precisam de ao menos um valor preenchido."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, Mapping):
        return any(is_present(v) for v in value.values())
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0
    return True


def validate_handoff(
    source: AgentRole,
    target: AgentRole,
    payload: Mapping[str, Any],
    threshold: float = 0.7,
    low_confidence_threshold: float = 0.7,
) -> HandoffValidationResult:
    """Valida payload de handoff sem side effects."""
    route = get_route(source, target)

    errors: list[ValidationIssue] = []
    satisfied = 0
    for rule in route.required:
        if is_present(lookup(payload, rule.path)):
            satisfied += 1
            continue
        errors.append(
            ValidationIssue(
                field=rule.path, message=rule.message, code=rule.code, severity=rule.severity
            )
        )

    warnings = [
        ValidationWarning(field=rule.path, message=rule.message, recommendation=rule.recommendation)
        for rule in route.recommended
        if not is_present(lookup(payload, rule.path))
    ]

    confidence = lookup(payload, "product_analysis.confidence")
    if isinstance(confidence, (int, float)) and confidence < low_confidence_threshold:
        warnings.append(
            ValidationWarning(
                field="product_analysis.confidence",
                message=f"Low analysis confidence ({confidence:.2f})",
                recommendation="Gather more product details before proceeding",
            )
        )

    completeness = round(satisfied / len(route.required), 4) if route.required else 1.0
    has_critical = any(issue.severity == "critical" for issue in errors)
    passed = completeness >= threshold and not has_critical

    return HandoffValidationResult(
        is_valid=not errors,
        completeness=completeness,
        threshold=threshold,
        validation_status="passed" if passed else "failed",
        errors=tuple(errors),
        warnings=tuple(warnings),
    )
