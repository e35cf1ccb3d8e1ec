"""Top-level sequencing of one video generation request."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Optional

from playwright.async_api import Error

from ..browser.session import SessionManager
from ..config import AppConfig
from ..errors import FlowAutomationError, GenerationCancelled, NoResultsError
from ..flow.navigation import NavigationController
from ..flow.poller import GenerationPoller, GenerationProbe, PageGenerationProbe, PollPhase
from ..flow.prompt import PromptSubmitter
from ..flow.settings import SettingsConfigurator
from ..flow.uploader import AssetUploader
from ..interaction.human import InteractionSimulator, Sleeper
from ..models import GenerationMode, VideoGenerationRequest, VideoGenerationResult
from ..notifications.base import (
    CallbackNotifier,
    CompositeNotifier,
    Notifier,
    ProgressObserver,
    ProgressReporter,
)
from .control import CancellationToken

LOGGER = logging.getLogger(__name__)


class VideoGenerationOrchestrator:
    """Runs navigation, configuration, submission and polling against one page per request.

    The browser session comes from ``sessions`` and is shared by every request;
    each request opens and always closes its own page.
    """

    def __init__(
        self,
        config: AppConfig,
        sessions: SessionManager,
        *,
        notifier: Optional[Notifier] = None,
        probe: Optional[GenerationProbe] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[Sleeper] = None,
    ) -> None:
        self._config = config
        self._sessions = sessions
        self._notifier = notifier
        self._probe = probe or PageGenerationProbe(config.flow, config.polling)
        self._rng = rng
        self._sleep = sleep

    async def can_attach_to_browser(self) -> bool:
        return await self._sessions.can_attach_to_browser()

    async def close(self) -> None:
        await self._sessions.close()

    async def generate(
        self,
        request: VideoGenerationRequest,
        observer: Optional[ProgressObserver] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> VideoGenerationResult:
        """Run one request to a terminal result; never raises."""

        token = cancel_token or CancellationToken()
        notifiers: list[Notifier] = []
        if self._notifier is not None:
            notifiers.append(self._notifier)
        if observer is not None:
            notifiers.append(CallbackNotifier(observer))
        reporter = ProgressReporter(CompositeNotifier(notifiers))

        started = time.monotonic()
        page: Any = None
        try:
            session = await self._sessions.acquire_session()
            token.raise_if_cancelled()
            page = await session.new_page()
            urls = await self._run(page, request, reporter, self._sleeper(token))
        except GenerationCancelled as exc:
            reporter.warning(f"Generation cancelled: {exc}")
            return VideoGenerationResult.failed(str(exc))
        except FlowAutomationError as exc:
            reporter.error(str(exc))
            return VideoGenerationResult.failed(str(exc))
        except Error as exc:
            LOGGER.exception("Browser error during generation")
            reporter.error(f"Browser error: {exc}")
            return VideoGenerationResult.failed(str(exc))
        except Exception as exc:
            LOGGER.exception("Unhandled generation error")
            reporter.error(str(exc))
            return VideoGenerationResult.failed(str(exc) or exc.__class__.__name__)
        finally:
            if page is not None:
                await _close_page(page)

        duration = round(time.monotonic() - started)
        if len(urls) < request.outputs_count:
            reporter.success(
                f"Generated {len(urls)}/{request.outputs_count} video(s) in {duration}s (some failed)"
            )
        else:
            reporter.success(f"Generated {len(urls)} video(s) successfully in {duration}s")
        return VideoGenerationResult.succeeded(urls)

    async def _run(
        self,
        page: Any,
        request: VideoGenerationRequest,
        reporter: ProgressReporter,
        sleep: Sleeper,
    ) -> list[str]:
        flow = self._config.flow
        simulator = InteractionSimulator(
            rng=self._rng,
            sleep=sleep,
            scroll_probability=self._config.interaction.scroll_probability,
            idle_probability=self._config.interaction.idle_probability,
        )
        settings = SettingsConfigurator(flow, simulator, reporter.child("settings"))

        await NavigationController(flow, simulator, reporter.child("navigation")).open_project(page)

        if request.mode is GenerationMode.FRAMES_TO_VIDEO:
            uploader = AssetUploader(flow, simulator, reporter.child("upload"))
            await self._prepare_frames(page, request, uploader, settings, reporter)
        elif request.has_frames:
            reporter.warning("Frames are ignored in text-to-video mode")

        reporter.info(
            f"Configuring settings (aspect: {request.aspect_ratio.value}, outputs: {request.outputs_count})..."
        )
        await settings.configure(page, request.aspect_ratio, request.outputs_count)

        await PromptSubmitter(flow, simulator, reporter.child("prompt")).submit(page, request.prompt)

        poller = GenerationPoller(
            self._config.polling,
            self._probe,
            sleep=sleep,
            reporter=reporter.child("poll"),
        )
        state = await poller.run(page, request.outputs_count)
        if not state.video_urls:
            message = "No videos generated - all generations may have failed"
            if state.phase is PollPhase.TIMED_OUT:
                message += f" (timed out after {round(state.elapsed)}s)"
            raise NoResultsError(message)
        return list(state.video_urls)

    async def _prepare_frames(
        self,
        page: Any,
        request: VideoGenerationRequest,
        uploader: AssetUploader,
        settings: SettingsConfigurator,
        reporter: ProgressReporter,
    ) -> None:
        try:
            if not await uploader.switch_to_frames_mode(page):
                return
            # The crop dialog takes its default orientation from this setting,
            # so it has to be applied before any frame is uploaded.
            reporter.info(f"Setting aspect ratio to {request.aspect_ratio.value} before frame upload...")
            await settings.configure(page, aspect_ratio=request.aspect_ratio)
            if request.has_frames:
                await uploader.upload_frames(page, request)
        except Error as exc:
            reporter.warning(f"Frame upload error: {exc}")
            reporter.warning("Continuing without frames...")

    def _sleeper(self, token: CancellationToken) -> Sleeper:
        if self._sleep is None:
            return token.sleep
        inner = self._sleep

        async def sleep(seconds: float) -> None:
            token.raise_if_cancelled()
            await inner(seconds)
            token.raise_if_cancelled()

        return sleep


async def _close_page(page: Any) -> None:
    try:
        await page.close()
    except Error as exc:
        LOGGER.debug("Ignoring error while closing page: %s", exc)
