from __future__ import annotations

import asyncio
import base64
from collections import deque
from typing import Any, Iterable, Optional

import pytest
from playwright.async_api import Error

from flow_video_driver.config import AppConfig
from flow_video_driver.errors import GenerationCancelled, InvalidPayloadError, LaunchError
from flow_video_driver.flow.poller import GenerationProbe, PollObservation
from flow_video_driver.models import AspectRatio, FramePayload, GenerationMode, VideoGenerationRequest
from flow_video_driver.orchestrator import runner
from flow_video_driver.orchestrator.control import CancellationToken
from flow_video_driver.orchestrator.runner import VideoGenerationOrchestrator

URL_A = "https://storage.googleapis.com/ai-sandbox-videofx/video/a"
URL_B = "https://storage.googleapis.com/ai-sandbox-videofx/video/b"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class StubPage:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class StubSession:
    def __init__(self) -> None:
        self.pages: list[StubPage] = []

    async def new_page(self) -> StubPage:
        page = StubPage()
        self.pages.append(page)
        return page


class StubSessionManager:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.session = StubSession()
        self.error = error
        self.closed = False

    async def acquire_session(self) -> StubSession:
        if self.error is not None:
            raise self.error
        return self.session

    async def can_attach_to_browser(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


class ScriptedProbe(GenerationProbe):
    def __init__(self, observations: Iterable[PollObservation]) -> None:
        self._observations = deque(observations)
        self._last = PollObservation()

    async def scan(self, page: Any) -> PollObservation:
        if self._observations:
            self._last = self._observations.popleft()
        return self._last

    async def retry_failed(self, page: Any) -> int:
        return 1


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


class Journal:
    """Records which phases ran, in order."""

    def __init__(self) -> None:
        self.entries: list[tuple[Any, ...]] = []


@pytest.fixture
def journal(monkeypatch: pytest.MonkeyPatch) -> Journal:
    record = Journal()

    class Navigation:
        def __init__(self, config, simulator, reporter=None) -> None:
            self._reporter = reporter

        async def open_project(self, page):
            record.entries.append(("navigate",))
            self._reporter.info("Project ready")

    class Settings:
        def __init__(self, config, simulator, reporter=None) -> None:
            pass

        async def configure(self, page, aspect_ratio=None, outputs_count=None):
            record.entries.append(("settings", aspect_ratio, outputs_count))

    class Prompt:
        def __init__(self, config, simulator, reporter=None) -> None:
            pass

        async def submit(self, page, prompt):
            record.entries.append(("prompt", prompt))
            return True

    class Uploader:
        def __init__(self, config, simulator, reporter=None) -> None:
            pass

        async def switch_to_frames_mode(self, page):
            record.entries.append(("frames-mode",))
            return True

        async def upload_frames(self, page, request):
            uploaded = 0
            for payload in (request.start_frame, request.end_frame):
                if not payload:
                    continue
                try:
                    FramePayload.from_data_url(payload)
                except InvalidPayloadError:
                    continue
                uploaded += 1
            record.entries.append(("upload", uploaded))
            return uploaded

    monkeypatch.setattr(runner, "NavigationController", Navigation)
    monkeypatch.setattr(runner, "SettingsConfigurator", Settings)
    monkeypatch.setattr(runner, "PromptSubmitter", Prompt)
    monkeypatch.setattr(runner, "AssetUploader", Uploader)
    return record


def _orchestrator(
    observations: Iterable[PollObservation],
    clock: FakeClock,
    sessions: Optional[StubSessionManager] = None,
) -> tuple[VideoGenerationOrchestrator, StubSessionManager]:
    sessions = sessions or StubSessionManager()
    orchestrator = VideoGenerationOrchestrator(
        AppConfig(),
        sessions,
        probe=ScriptedProbe(observations),
        sleep=clock.sleep,
    )
    return orchestrator, sessions


@pytest.mark.asyncio
async def test_all_requested_videos_found(journal: Journal) -> None:
    clock = FakeClock()
    orchestrator, sessions = _orchestrator([PollObservation((URL_A, URL_B))], clock)
    messages: list[str] = []

    result = await orchestrator.generate(
        VideoGenerationRequest(prompt="ocean waves", outputsCount=2),
        messages.append,
    )

    assert result.success
    assert result.video_urls == (URL_A, URL_B)
    assert result.error is None
    assert sessions.session.pages[0].closed
    assert journal.entries[0] == ("navigate",)
    assert ("settings", AspectRatio.LANDSCAPE, 2) in journal.entries
    assert ("prompt", "ocean waves") in journal.entries
    assert "Project ready" in messages
    assert any("Generated 2 video(s)" in message for message in messages)


@pytest.mark.asyncio
async def test_video_appearing_after_sixteen_seconds(journal: Journal) -> None:
    clock = FakeClock()
    orchestrator, _ = _orchestrator([PollObservation(), PollObservation((URL_A,))], clock)

    result = await orchestrator.generate(VideoGenerationRequest(prompt="city lights"))

    assert result.success
    assert result.video_urls == (URL_A,)
    assert clock.now <= 24


@pytest.mark.asyncio
async def test_no_videos_before_ceiling_is_a_failure(journal: Journal) -> None:
    clock = FakeClock()
    orchestrator, sessions = _orchestrator([PollObservation()], clock)

    result = await orchestrator.generate(VideoGenerationRequest(prompt="desert"))

    assert not result.success
    assert result.video_urls == ()
    assert "No videos" in (result.error or "")
    assert clock.now >= AppConfig().polling.max_wait
    assert sessions.session.pages[0].closed


@pytest.mark.asyncio
async def test_partial_success_returns_available_urls(journal: Journal) -> None:
    clock = FakeClock()
    orchestrator, _ = _orchestrator([PollObservation((URL_A,), failed_count=1)], clock)
    messages: list[str] = []

    result = await orchestrator.generate(
        VideoGenerationRequest(prompt="forest", outputsCount=2),
        messages.append,
    )

    assert result.success
    assert result.video_urls == (URL_A,)
    assert any("1/2" in message for message in messages)


@pytest.mark.asyncio
async def test_frames_request_sets_aspect_before_upload_and_skips_bad_frame(journal: Journal) -> None:
    clock = FakeClock()
    orchestrator, _ = _orchestrator([PollObservation((URL_A,))], clock)
    good = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()

    result = await orchestrator.generate(
        VideoGenerationRequest(
            prompt="timelapse",
            mode=GenerationMode.FRAMES_TO_VIDEO,
            aspect_ratio=AspectRatio.PORTRAIT,
            start_frame="data:image/png;base64,!!!",
            end_frame=good,
        )
    )

    assert result.success
    names = [entry[0] for entry in journal.entries]
    assert names[:4] == ["navigate", "frames-mode", "settings", "upload"]
    assert journal.entries[2] == ("settings", AspectRatio.PORTRAIT, None)
    assert journal.entries[3] == ("upload", 1)


@pytest.mark.asyncio
async def test_text_mode_ignores_frames(journal: Journal) -> None:
    clock = FakeClock()
    orchestrator, _ = _orchestrator([PollObservation((URL_A,))], clock)
    messages: list[str] = []

    await orchestrator.generate(
        VideoGenerationRequest(prompt="river", start_frame="data:image/png;base64,AAAA"),
        messages.append,
    )

    assert "upload" not in [entry[0] for entry in journal.entries]
    assert any("ignored" in message for message in messages)


@pytest.mark.asyncio
async def test_launch_error_is_normalised(journal: Journal) -> None:
    clock = FakeClock()
    sessions = StubSessionManager(error=LaunchError("Could not launch Chromium browser"))
    orchestrator, _ = _orchestrator([], clock, sessions)

    result = await orchestrator.generate(VideoGenerationRequest(prompt="mountains"))

    assert not result.success
    assert result.error == "Could not launch Chromium browser"
    assert journal.entries == []


@pytest.mark.asyncio
async def test_browser_error_mid_run_still_closes_page(journal: Journal) -> None:
    class CrashingProbe(ScriptedProbe):
        async def scan(self, page: Any) -> PollObservation:
            raise Error("Target page, context or browser has been closed")

    clock = FakeClock()
    sessions = StubSessionManager()
    orchestrator = VideoGenerationOrchestrator(AppConfig(), sessions, probe=CrashingProbe([]), sleep=clock.sleep)

    result = await orchestrator.generate(VideoGenerationRequest(prompt="storm"))

    assert not result.success
    assert "has been closed" in (result.error or "")
    assert sessions.session.pages[0].closed


@pytest.mark.asyncio
async def test_cancelled_request_stops_and_closes_page(journal: Journal) -> None:
    token = CancellationToken()
    sessions = StubSessionManager()

    class CancellingProbe(ScriptedProbe):
        async def scan(self, page: Any) -> PollObservation:
            token.cancel("Client went away")
            return PollObservation()

    clock = FakeClock()
    orchestrator = VideoGenerationOrchestrator(AppConfig(), sessions, probe=CancellingProbe([]), sleep=clock.sleep)

    result = await orchestrator.generate(VideoGenerationRequest(prompt="snow"), cancel_token=token)

    assert not result.success
    assert result.error == "Client went away"
    assert clock.now == AppConfig().polling.interval
    assert sessions.session.pages[0].closed


@pytest.mark.asyncio
async def test_cancellation_token_wakes_sleepers() -> None:
    token = CancellationToken()

    async def cancel_soon() -> None:
        await asyncio.sleep(0)
        token.cancel()

    task = asyncio.create_task(cancel_soon())
    with pytest.raises(GenerationCancelled):
        await token.sleep(30)
    await task
    assert token.cancelled
    assert token.cancel() is False


@pytest.mark.asyncio
async def test_close_releases_sessions() -> None:
    sessions = StubSessionManager()
    orchestrator = VideoGenerationOrchestrator(AppConfig(), sessions, probe=ScriptedProbe([]))

    await orchestrator.close()

    assert sessions.closed


@pytest.mark.asyncio
async def test_unexpected_error_is_normalised(journal: Journal) -> None:
    class ExplodingProbe(ScriptedProbe):
        async def scan(self, page: Any) -> PollObservation:
            raise KeyError("videoUrls")

    clock = FakeClock()
    sessions = StubSessionManager()
    orchestrator = VideoGenerationOrchestrator(AppConfig(), sessions, probe=ExplodingProbe([]), sleep=clock.sleep)

    result = await orchestrator.generate(VideoGenerationRequest(prompt="glacier"))

    assert not result.success
    assert result.error == "'videoUrls'"
    assert sessions.session.pages[0].closed
