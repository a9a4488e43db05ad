"""Testes do VideoJobTracker com Veo mockado e stores em memória."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from adstudio.application.job_tracker import (
    CANCELLED_ERROR,
    VideoJobTracker,
    estimate_time_remaining,
    status_message,
)
from adstudio.application.sessions import SessionService
from adstudio.domain.enums import JobStatus, SessionStatus
from adstudio.domain.errors import (
    ErrorCode,
    JobExpiredError,
    JobNotFoundError,
    UpstreamError,
    ValidationError,
)
from adstudio.domain.models import VideoJob
from adstudio.infra.job_store import InMemoryJobStore
from adstudio.infra.media_storage import MediaStorage
from adstudio.infra.session_store import InMemorySessionStore
from adstudio.infra.veo_client import VeoJobStatus

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self) -> None:
        self.now = T0

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def veo() -> MagicMock:
    client = MagicMock()
    client.get_job_status = AsyncMock(
        return_value=VeoJobStatus(job_id="op-1", status=JobStatus.PENDING, progress=0.0)
    )
    client.cancel_job = AsyncMock(return_value=True)
    return client


@pytest.fixture()
def sessions(clock: FakeClock) -> SessionService:
    return SessionService(InMemorySessionStore(clock=clock), clock=clock)


@pytest.fixture()
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture()
def tracker(store, sessions, veo, clock) -> VideoJobTracker:
    return VideoJobTracker(store, sessions, veo, expiry_hours=24, clock=clock)


async def _job_with_session(tracker: VideoJobTracker, sessions: SessionService) -> str:
    session = await sessions.start_session(prompt="coffee ad")
    await sessions.mark_generating(session.session_id, "pending")
    return await tracker.create_job(session.session_id, "coffee ad", "op-1", estimated_cost=1.5)


class TestCreateAndPoll:
    """Criação e reconciliação do status."""

    @pytest.mark.asyncio
    async def test_new_job_is_pending(self, tracker, sessions):
        job_id = await _job_with_session(tracker, sessions)
        view = await tracker.get_status(job_id)

        assert view.status == JobStatus.PENDING
        assert view.progress == 0
        assert view.estimated_time_remaining is None
        assert "queued" in view.status_message

    @pytest.mark.asyncio
    async def test_blank_session_rejected(self, tracker):
        with pytest.raises(ValidationError):
            await tracker.create_job("  ", "prompt", "op-1")

    @pytest.mark.asyncio
    async def test_processing_progress_is_persisted(self, tracker, sessions, veo, store):
        job_id = await _job_with_session(tracker, sessions)
        veo.get_job_status.return_value = VeoJobStatus(
            job_id="op-1", status=JobStatus.PROCESSING, progress=40.0
        )

        view = await tracker.get_status(job_id)
        assert view.status == JobStatus.PROCESSING
        assert view.progress == 40.0
        assert (await store.get(job_id)).progress == 40.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "remote",
        [
            VeoJobStatus(job_id="op-1", status=JobStatus.PENDING, progress=0.0),
            VeoJobStatus(job_id="op-1", status=JobStatus.PROCESSING, progress=45.0),
            VeoJobStatus(
                job_id="op-1",
                status=JobStatus.COMPLETED,
                progress=100.0,
                video_url="https://cdn.test/v.mp4",
            ),
        ],
    )
    async def test_repeated_polls_are_idempotent(self, tracker, sessions, veo, store, remote):
        """Sem mudança externa, consultas repetidas devolvem o mesmo status."""
        job_id = await _job_with_session(tracker, sessions)
        veo.get_job_status.return_value = remote

        first = await tracker.get_status(job_id)
        stored = await store.get(job_id)
        second = await tracker.get_status(job_id)

        assert (second.status, second.progress) == (first.status, first.progress)
        assert second.video_url == first.video_url
        after = await store.get(job_id)
        assert (after.status, after.progress) == (stored.status, stored.progress)

    @pytest.mark.asyncio
    async def test_progress_never_regresses(self, tracker, sessions, veo):
        job_id = await _job_with_session(tracker, sessions)
        veo.get_job_status.return_value = VeoJobStatus(
            job_id="op-1", status=JobStatus.PROCESSING, progress=60.0
        )
        await tracker.get_status(job_id)

        veo.get_job_status.return_value = VeoJobStatus(
            job_id="op-1", status=JobStatus.PROCESSING, progress=30.0
        )
        assert (await tracker.get_status(job_id)).progress == 60.0

    @pytest.mark.asyncio
    async def test_completion_marks_session(self, tracker, sessions, veo, store):
        job_id = await _job_with_session(tracker, sessions)
        session_id = (await store.get(job_id)).session_id
        veo.get_job_status.return_value = VeoJobStatus(
            job_id="op-1",
            status=JobStatus.COMPLETED,
            progress=100.0,
            video_url="https://cdn.test/v.mp4",
        )

        view = await tracker.get_status(job_id)
        assert view.status == JobStatus.COMPLETED
        assert view.progress == 100
        assert view.video_url == "https://cdn.test/v.mp4"
        assert (await sessions.require(session_id)).status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_completion_signs_urls(self, store, sessions, veo, clock):
        media = MagicMock(spec=MediaStorage)
        media.sign_url.side_effect = lambda url: f"{url}?signed"
        tracker = VideoJobTracker(store, sessions, veo, media_storage=media, clock=clock)
        job_id = await _job_with_session(tracker, sessions)
        veo.get_job_status.return_value = VeoJobStatus(
            job_id="op-1", status=JobStatus.COMPLETED, video_url="gs://bucket/v.mp4"
        )

        view = await tracker.get_status(job_id)
        assert view.video_url == "gs://bucket/v.mp4?signed"

    @pytest.mark.asyncio
    async def test_completion_without_session_still_completes(self, tracker, veo):
        job_id = await tracker.create_job("ghost-session", "prompt", "op-1")
        veo.get_job_status.return_value = VeoJobStatus(
            job_id="op-1", status=JobStatus.COMPLETED, video_url="https://cdn.test/v.mp4"
        )
        assert (await tracker.get_status(job_id)).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_remote_failure_is_recorded(self, tracker, sessions, veo):
        job_id = await _job_with_session(tracker, sessions)
        veo.get_job_status.return_value = VeoJobStatus(
            job_id="op-1", status=JobStatus.FAILED, error="Safety filter"
        )

        view = await tracker.get_status(job_id)
        assert view.status == JobStatus.FAILED
        assert view.error == "Safety filter"
        assert view.status_message == "Safety filter"

    @pytest.mark.asyncio
    async def test_upstream_error_returns_last_known_state(self, tracker, sessions, veo):
        job_id = await _job_with_session(tracker, sessions)
        veo.get_job_status.side_effect = UpstreamError("veo down")

        view = await tracker.get_status(job_id)
        assert view.status == JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_terminal_job_skips_remote_query(self, tracker, store, veo):
        await store.save(
            VideoJob(
                job_id="job-done",
                session_id="s",
                prompt="p",
                status=JobStatus.COMPLETED,
                progress=100,
                veo_job_id="op-1",
                created_at=T0,
            )
        )
        view = await tracker.get_status("job-done")
        assert view.status == JobStatus.COMPLETED
        veo.get_job_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_job(self, tracker):
        with pytest.raises(JobNotFoundError):
            await tracker.get_status("job-missing")

    @pytest.mark.asyncio
    async def test_expired_job(self, tracker, sessions, clock):
        job_id = await _job_with_session(tracker, sessions)
        clock.now = T0 + timedelta(hours=25)
        with pytest.raises(JobExpiredError):
            await tracker.get_status(job_id)


class TestCancel:
    """Cancelamento de jobs."""

    @pytest.mark.asyncio
    async def test_cancel_active_job(self, tracker, sessions, store, veo):
        job_id = await _job_with_session(tracker, sessions)

        outcome = await tracker.cancel(job_id)
        assert outcome.cancelled is True
        job = await store.get(job_id)
        assert job.status == JobStatus.FAILED
        assert job.error == CANCELLED_ERROR
        session = await sessions.require(job.session_id)
        assert session.status == SessionStatus.FAILED
        veo.cancel_job.assert_awaited_once_with("op-1")

    @pytest.mark.asyncio
    async def test_cancel_terminal_job(self, tracker, store):
        await store.save(
            VideoJob(
                job_id="job-done",
                session_id="s",
                prompt="p",
                status=JobStatus.COMPLETED,
                created_at=T0,
            )
        )
        outcome = await tracker.cancel("job-done")
        assert outcome.cancelled is False
        assert outcome.reason == ErrorCode.CANNOT_CANCEL

    @pytest.mark.asyncio
    async def test_cancel_rejected_by_veo(self, tracker, sessions, store, veo):
        job_id = await _job_with_session(tracker, sessions)
        veo.cancel_job.return_value = False

        outcome = await tracker.cancel(job_id)
        assert outcome.reason == ErrorCode.CANCELLATION_FAILED
        assert (await store.get(job_id)).status == JobStatus.PENDING


class TestMetricsAndHelpers:
    @pytest.mark.asyncio
    async def test_metrics(self, tracker, store):
        for index, status in enumerate(
            [JobStatus.COMPLETED, JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.PENDING]
        ):
            await store.save(
                VideoJob(
                    job_id=f"job-{index}",
                    session_id="s",
                    prompt="p",
                    status=status,
                    created_at=T0,
                    completed_at=T0 + timedelta(seconds=60)
                    if status == JobStatus.COMPLETED
                    else None,
                )
            )

        metrics = await tracker.get_metrics()
        assert metrics.total == 4
        assert metrics.by_status["completed"] == 2
        assert metrics.success_rate == round(2 / 3, 4)
        assert metrics.average_processing_seconds == 60.0

    def test_eta_only_while_processing(self):
        job = VideoJob(
            job_id="j", session_id="s", prompt="p", status=JobStatus.PROCESSING,
            progress=50, created_at=T0,
        )
        assert estimate_time_remaining(job, T0 + timedelta(seconds=60)) == 60
        assert estimate_time_remaining(job.model_copy(update={"progress": 0})) == 300
        pending = job.model_copy(update={"status": JobStatus.PENDING})
        assert estimate_time_remaining(pending) is None

    def test_status_message_processing(self):
        job = VideoJob(
            job_id="j", session_id="s", prompt="p", status=JobStatus.PROCESSING, progress=42.4
        )
        assert status_message(job) == "Generating your video... 42% complete."
