"""Testes do GenerateVideoUseCase e do ChatRefinementUseCase."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from adstudio.application.budget import CostTracker
from adstudio.application.chat_refinement import ChatRefinementUseCase
from adstudio.application.job_tracker import VideoJobTracker
from adstudio.application.sessions import SessionService
from adstudio.application.video_generation import GenerateVideoUseCase
from adstudio.domain.enums import ChatRole, CostService, JobStatus, Locale, SessionStatus
from adstudio.domain.errors import (
    BudgetExceededError,
    ErrorCode,
    SessionNotFoundError,
    UpstreamError,
    ValidationError,
)
from adstudio.infra.cost_ledger import InMemoryCostLedger
from adstudio.infra.gemini_client import ChatReply, GeminiChatClient
from adstudio.infra.http import HttpClient
from adstudio.infra.job_store import InMemoryJobStore
from adstudio.infra.session_store import InMemorySessionStore
from adstudio.infra.veo_client import VeoClient, VideoRequest


@pytest.fixture()
def sessions() -> SessionService:
    return SessionService(InMemorySessionStore())


@pytest.fixture()
def ledger() -> InMemoryCostLedger:
    return InMemoryCostLedger()


@pytest.fixture()
def budget(ledger) -> CostTracker:
    return CostTracker(ledger, total_budget=300.0)


@pytest.fixture()
def veo() -> VeoClient:
    return VeoClient(HttpClient(), api_key=None)


@pytest.fixture()
def jobs() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture()
def use_case(sessions, budget, veo, jobs) -> GenerateVideoUseCase:
    tracker = VideoJobTracker(jobs, sessions, veo)
    return GenerateVideoUseCase(sessions, tracker, budget, veo)


class TestGenerateVideo:
    """Submissão de geração de vídeo."""

    @pytest.mark.asyncio
    async def test_creates_session_job_and_cost(self, use_case, sessions, ledger, jobs):
        result = await use_case.execute(VideoRequest(prompt="A cat surfing at sunset"))

        assert result.status == JobStatus.PENDING
        assert result.estimated_cost == 1.5
        assert result.estimated_completion_time == 300
        session = await sessions.require(result.session_id)
        assert session.status == SessionStatus.GENERATING
        assert session.video_job_id == result.job_id
        job = await jobs.get(result.job_id)
        assert job.veo_job_id.startswith("veo-demo-")
        entries = await ledger.entries()
        assert [(e.service, e.amount) for e in entries] == [(CostService.VEO, 1.5)]

    @pytest.mark.asyncio
    async def test_reuses_existing_session(self, use_case, sessions):
        session = await sessions.start_session(prompt="draft")
        result = await use_case.execute(
            VideoRequest(prompt="A cat surfing at sunset", duration=5),
            session_id=session.session_id,
        )
        assert result.session_id == session.session_id
        assert result.estimated_cost == 0.5

    @pytest.mark.asyncio
    async def test_unknown_session(self, use_case):
        with pytest.raises(SessionNotFoundError):
            await use_case.execute(VideoRequest(prompt="A cat surfing"), session_id="nope")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "request_",
        [
            VideoRequest(prompt="cat"),
            VideoRequest(prompt="x" * 501),
            VideoRequest(prompt="A cat surfing", duration=16),
            VideoRequest(prompt="A cat surfing", aspect_ratio="4:3"),
            VideoRequest(prompt="A cat surfing", style="s" * 101),
        ],
    )
    async def test_invalid_requests(self, use_case, ledger, request_):
        with pytest.raises(ValidationError) as exc_info:
            await use_case.execute(request_)
        assert exc_info.value.details["errors"]
        assert await ledger.total() == 0

    @pytest.mark.asyncio
    async def test_budget_blocks_before_submission(self, use_case, budget, sessions):
        await budget.record_cost(CostService.VEO, 290.0)
        with pytest.raises(BudgetExceededError):
            await use_case.execute(VideoRequest(prompt="A cat surfing at sunset"))

    @pytest.mark.asyncio
    async def test_veo_failure_marks_session_failed(self, sessions, budget, jobs, ledger):
        veo = MagicMock()
        veo.generate_video = AsyncMock(side_effect=UpstreamError("veo down"))
        use_case = GenerateVideoUseCase(sessions, VideoJobTracker(jobs, sessions, veo), budget, veo)
        session = await sessions.start_session(prompt="draft")

        with pytest.raises(UpstreamError):
            await use_case.execute(
                VideoRequest(prompt="A cat surfing"), session_id=session.session_id
            )

        failed = await sessions.require(session.session_id)
        assert failed.status == SessionStatus.FAILED
        assert "veo down" in failed.failure_reason
        assert await ledger.total() == 0


class TestChatRefinement:
    """Refinamento de prompt via chat."""

    @pytest.fixture()
    def chat(self, sessions, budget) -> ChatRefinementUseCase:
        return ChatRefinementUseCase(sessions, budget, GeminiChatClient(api_key=None))

    @pytest.mark.asyncio
    async def test_reply_is_recorded(self, chat, sessions, ledger):
        session = await sessions.start_session(prompt="coffee ad")
        reply = await chat.execute(session.session_id, "make it <b>warmer</b>")

        assert reply.response
        assert len(reply.suggestions) == 3
        history = (await sessions.require(session.session_id)).chat_history
        assert [m.role for m in history] == [ChatRole.USER, ChatRole.ASSISTANT]
        assert history[0].content == "make it warmer"
        assert await ledger.total() == 0.05

    @pytest.mark.asyncio
    async def test_japanese_demo_reply(self, chat, sessions):
        session = await sessions.start_session(locale=Locale.JA)
        reply = await chat.execute(session.session_id, "もっと明るく", locale=Locale.JA)
        assert "照明" in reply.suggestions[0]

    @pytest.mark.asyncio
    async def test_empty_after_sanitization(self, chat, sessions):
        session = await sessions.start_session()
        with pytest.raises(ValidationError) as exc_info:
            await chat.execute(session.session_id, "<script>alert(1)</script>")
        assert exc_info.value.code == ErrorCode.EMPTY_MESSAGE

    @pytest.mark.asyncio
    async def test_gemini_failure_records_nothing(self, sessions, budget, ledger):
        gemini = MagicMock()
        gemini.refine_prompt = AsyncMock(
            side_effect=UpstreamError("gemini down", code=ErrorCode.AI_API_ERROR)
        )
        chat = ChatRefinementUseCase(sessions, budget, gemini)
        session = await sessions.start_session()

        with pytest.raises(UpstreamError):
            await chat.execute(session.session_id, "brighter please")
        assert (await sessions.require(session.session_id)).chat_history == []
        assert await ledger.total() == 0

    @pytest.mark.asyncio
    async def test_history_is_passed_to_model(self, sessions, budget):
        gemini = MagicMock()
        gemini.refine_prompt = AsyncMock(return_value=ChatReply(response="ok"))
        chat = ChatRefinementUseCase(sessions, budget, gemini)
        session = await sessions.start_session(prompt="base prompt")
        await sessions.add_chat_exchange(session.session_id, "first", "answer")

        await chat.execute(session.session_id, "second")
        kwargs = gemini.refine_prompt.await_args.kwargs
        assert [m.content for m in kwargs["history"]] == ["first", "answer"]
        assert kwargs["current_prompt"] == "base prompt"
