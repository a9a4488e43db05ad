"""Cliente Gemini via endpoint compatível com OpenAI.

Usado para refinamento de prompt (chat) e análise de produto. Sem
GEMINI_API_KEY o cliente responde em modo demo (respostas determinísticas).
Falhas da API levantam UpstreamError (AI_API_ERROR, 502).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from openai import APIError, APITimeoutError, AsyncOpenAI
from pydantic import ValidationError as PydanticValidationError

from adstudio.config.settings import GEMINI_OPENAI_BASE_URL
from adstudio.domain.enums import Locale
from adstudio.domain.errors import ErrorCode, UpstreamError
from adstudio.domain.models import ChatMessage, ProductAnalysis
from adstudio.observability.logging import get_logger
from adstudio.observability.timing import timed

if TYPE_CHECKING:
    from adstudio.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

MAX_SUGGESTIONS = 3

_REFINE_SYSTEM_PROMPT = (
    "You are a creative director helping a user refine a prompt for a short "
    "commercial video (up to 15 seconds). Reply conversationally in the user's "
    "language, then list up to three concrete improvement suggestions, one per "
    "line, each starting with '- '."
)

STRATEGY_UPDATE_SIGNAL = "[STRATEGY_UPDATE_REQUEST]"

_PRODUCT_CHAT_SYSTEM_PROMPT = (
    "You are Maya, a product intelligence assistant. Discuss the product analysis "
    "with the user in their language. If the user asks to change the commercial "
    "strategy, include the marker [STRATEGY_UPDATE_REQUEST] in your reply."
)

_STRATEGY_SYSTEM_PROMPT = (
    "Update the commercial strategy according to the user request. Return ONLY a "
    "JSON object with the same keys as the current strategy."
)

_ANALYSIS_SYSTEM_PROMPT = (
    "You are a product marketing analyst. Return ONLY a JSON object with keys: "
    "product_name, category, description, target_audience {primary, secondary}, "
    "positioning, visual_preferences {style, colors, mood}, commercial_strategy "
    "{key_messages, emotional_triggers, call_to_action}, key_insights (list), "
    "confidence (0-1)."
)


@dataclass(slots=True)
class ChatReply:
    response: str
    suggestions: list[str] = field(default_factory=list)


def split_suggestions(text: str) -> ChatReply:
    """Separa linhas '- ' como sugestões (máximo 3)."""
    body: list[str] = []
    suggestions: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith(("- ", "* ")) and len(suggestions) < MAX_SUGGESTIONS:
            suggestions.append(stripped[2:].strip())
        elif stripped.startswith(("- ", "* ")):
            continue
        else:
            body.append(line)
    return ChatReply(response="\n".join(body).strip(), suggestions=suggestions)


def _extract_json(text: str) -> dict[str, Any]:
    """Extrai o objeto JSON da resposta (tolera cercas de código)."""
    start, end = text.find("{"), text.rfind("}")
    if start < 0 or end <= start:
        raise UpstreamError("AI response did not contain JSON", code=ErrorCode.AI_API_ERROR)
    try:
        return json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise UpstreamError(
            "AI response could not be parsed: JSONDecodeError", code=ErrorCode.AI_API_ERROR
        ) from e


def parse_analysis(text: str) -> ProductAnalysis:
    data = _extract_json(text)
    try:
        return ProductAnalysis.model_validate(data)
    except PydanticValidationError as e:
        raise UpstreamError(
            f"AI response could not be parsed: {type(e).__name__}",
            code=ErrorCode.AI_API_ERROR,
        ) from e


def _demo_reply(message: str, locale: Locale) -> ChatReply:
    if locale == Locale.JA:
        return ChatReply(
            response=f"「{message[:60]}」について、映像の雰囲気をもう少し具体的にしましょう。",
            suggestions=[
                "照明や時間帯を指定する",
                "カメラの動きを追加する",
                "製品の見せ場を明確にする",
            ],
        )
    return ChatReply(
        response=f"Nice direction. Let's make \"{message[:60]}\" more vivid and specific.",
        suggestions=[
            "Specify lighting and time of day",
            "Add a camera movement",
            "Highlight the product's key moment",
        ],
    )


def _demo_analysis(description: str) -> ProductAnalysis:
    return ProductAnalysis(
        product_name=description[:40] or "Product",
        category="general",
        description=description,
        target_audience={"primary": "young professionals"},
        positioning="premium everyday essential",
        visual_preferences={"style": "modern", "mood": "aspirational"},
        commercial_strategy={
            "key_messages": ["Quality you can feel"],
            "call_to_action": "Discover more",
        },
        key_insights=["Visual simplicity resonates with the target audience"],
        confidence=0.85,
    )


class GeminiChatClient:
    """Chat de refinamento e análise de produto sobre o Gemini."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-2.5-flash",
        timeout_seconds: float = 30.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._model = model
        self._timeout = timeout_seconds
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key, base_url=GEMINI_OPENAI_BASE_URL)

    @property
    def demo_mode(self) -> bool:
        return self._client is None

    async def _complete(
        self, messages: list[dict[str, str]], temperature: float, max_tokens: int, component: str
    ) -> str:
        try:
            with timed(component):
                response = await self._client.chat.completions.create(  # type: ignore[union-attr]
                    model=self._model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    timeout=self._timeout,
                )
        except (APIError, APITimeoutError) as e:
            logger.warning(
                f"{component}_error",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise UpstreamError(
                f"Gemini request failed: {type(e).__name__}", code=ErrorCode.AI_API_ERROR
            ) from e
        return response.choices[0].message.content or ""

    async def refine_prompt(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        current_prompt: str | None = None,
        locale: Locale = Locale.EN,
    ) -> ChatReply:
        """Responde ao usuário e sugere melhorias para o prompt."""
        if self.demo_mode:
            return _demo_reply(message, locale)

        messages: list[dict[str, str]] = [{"role": "system", "content": _REFINE_SYSTEM_PROMPT}]
        if current_prompt:
            messages.append({"role": "system", "content": f"Current prompt: {current_prompt}"})
        for item in history or []:
            messages.append({"role": item.role.value, "content": item.content})
        messages.append({"role": "user", "content": message})

        text = await self._complete(messages, 0.7, 500, "gemini_refine")
        return split_suggestions(text)

    async def analyze_product(
        self, description: str, image_url: str | None = None, locale: Locale = Locale.EN
    ) -> ProductAnalysis:
        """Gera a análise estruturada do produto."""
        if self.demo_mode:
            return _demo_analysis(description)

        user_content = f"Locale: {locale.value}\nProduct description: {description}"
        if image_url:
            user_content += f"\nProduct image: {image_url}"
        text = await self._complete(
            [
                {"role": "system", "content": _ANALYSIS_SYSTEM_PROMPT},
                {"role": "user", "content": user_content},
            ],
            0.3,
            1200,
            "gemini_analysis",
        )
        return parse_analysis(text)

    async def product_chat(
        self,
        message: str,
        analysis: ProductAnalysis | None,
        history: list[ChatMessage] | None = None,
        locale: Locale = Locale.EN,
    ) -> str:
        """Conversa sobre a análise; pode conter STRATEGY_UPDATE_SIGNAL."""
        if self.demo_mode:
            wants_update = any(word in message.lower() for word in ("strategy", "戦略"))
            reply = _demo_reply(message, locale).response
            return f"{reply} {STRATEGY_UPDATE_SIGNAL}" if wants_update else reply

        context = analysis.model_dump_json(exclude_none=True) if analysis else "{}"
        messages: list[dict[str, str]] = [
            {"role": "system", "content": _PRODUCT_CHAT_SYSTEM_PROMPT},
            {"role": "system", "content": f"Locale: {locale.value}\nProduct analysis: {context}"},
        ]
        for item in history or []:
            messages.append({"role": item.role.value, "content": item.content})
        messages.append({"role": "user", "content": message})
        return await self._complete(messages, 0.7, 600, "gemini_product_chat")

    async def update_strategy(
        self, current: dict[str, Any], request: str, locale: Locale = Locale.EN
    ) -> dict[str, Any]:
        """Nova estratégia proposta a partir do pedido do usuário."""
        if self.demo_mode:
            return {**current, "user_request": request, "locale": locale.value}

        text = await self._complete(
            [
                {"role": "system", "content": _STRATEGY_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": f"Current strategy: {json.dumps(current)}\nRequest: {request}",
                },
            ],
            0.4,
            800,
            "gemini_strategy_update",
        )
        return _extract_json(text)


def create_gemini_client(settings: Settings) -> GeminiChatClient:
    return GeminiChatClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout_seconds=settings.gemini_timeout_seconds,
    )
