"""Watch the project page until the requested videos resolve."""

from __future__ import annotations

import asyncio
import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import FlowConfig, PollingConfig
from ..interaction.human import Sleeper
from ..notifications.base import ProgressReporter

LOGGER = logging.getLogger(__name__)

SCAN_SCRIPT = """
({ marker, failedText }) => {
  const videoUrls = [];
  for (const video of document.querySelectorAll('video')) {
    const src = video.src || video.currentSrc;
    if (src && src.includes(marker) && !videoUrls.includes(src)) {
      videoUrls.push(src);
    }
  }
  let failedCount = 0;
  for (const el of document.querySelectorAll('*')) {
    if (el.textContent && el.textContent.trim() === failedText) {
      failedCount++;
    }
  }
  return { videoUrls, failedCount };
}
"""

RETRY_SCRIPT = """
async ({ failedText, maxDepth }) => {
  const sleep = (ms) => new Promise((r) => setTimeout(r, ms));
  const isMenuButton = (btn) => {
    const label = (btn.getAttribute('aria-label') || '').toLowerCase();
    const icon = btn.querySelector('i');
    return (btn.textContent || '').includes('more_vert')
      || (icon && (icon.textContent || '').includes('more_vert'))
      || label.includes('more') || label.includes('menu');
  };
  const failed = Array.from(document.querySelectorAll('*')).filter((el) =>
    el.textContent && el.textContent.trim() === failedText && el.offsetParent !== null);

  let retried = 0;
  for (const el of failed) {
    let parent = el.parentElement;
    let menuButton = null;
    for (let depth = 0; depth < maxDepth && parent && !menuButton; depth++) {
      menuButton = Array.from(parent.querySelectorAll('button')).find(isMenuButton) || null;
      parent = parent.parentElement;
    }
    if (!menuButton) {
      continue;
    }
    menuButton.click();
    await sleep(500);
    const entry = Array.from(document.querySelectorAll('[role="menuitem"], [role="option"], li, button'))
      .find((item) => {
        const text = (item.textContent || '').toLowerCase();
        return text.includes('regenerate') || text.includes('retry') || text.includes('try again');
      });
    if (entry) {
      entry.click();
      retried++;
      await sleep(500);
    } else {
      document.body.click();
      await sleep(200);
    }
  }
  return retried;
}
"""


class PollPhase(str, enum.Enum):
    POLLING = "polling"
    ALL_DONE = "all_done"
    STABILIZED = "stabilized"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollObservation:
    """What one scan of the page found."""

    video_urls: tuple[str, ...] = ()
    failed_count: int = 0


@dataclass
class PollState:
    expected: int
    elapsed: float = 0.0
    video_urls: list[str] = field(default_factory=list)
    failed_count: int = 0
    stable_cycles: int = 0
    last_count: int = 0
    retry_attempts: int = 0
    phase: PollPhase = PollPhase.POLLING

    def merge(self, urls: tuple[str, ...]) -> None:
        """Add newly seen URLs, keeping discovery order and never dropping any."""

        for url in urls:
            if url not in self.video_urls:
                self.video_urls.append(url)


@dataclass(frozen=True)
class PollDecision:
    phase: PollPhase
    retry: bool = False


def advance(state: PollState, observation: PollObservation, settings: PollingConfig) -> PollDecision:
    """Fold one observation into ``state`` and decide what happens next.

    Rules, first match wins: every output resolved, success count stable for
    ``settings.stable_cycles`` cycles, retry failed items while budget remains,
    time ceiling reached.
    """

    state.merge(observation.video_urls)
    state.failed_count = observation.failed_count
    successes = len(state.video_urls)
    retries_left = state.retry_attempts < settings.max_retries

    if successes + state.failed_count >= state.expected and (successes > 0 or not retries_left):
        state.phase = PollPhase.ALL_DONE
        return PollDecision(PollPhase.ALL_DONE)

    if successes > 0:
        if successes == state.last_count:
            state.stable_cycles += 1
            if state.stable_cycles >= settings.stable_cycles:
                state.phase = PollPhase.STABILIZED
                return PollDecision(PollPhase.STABILIZED)
        else:
            state.stable_cycles = 0
        state.last_count = successes

    retry = state.failed_count > 0 and retries_left

    if state.elapsed >= settings.max_wait:
        state.phase = PollPhase.TIMED_OUT
        return PollDecision(PollPhase.TIMED_OUT)
    return PollDecision(PollPhase.POLLING, retry=retry)


class GenerationProbe(ABC):
    """Reads generation state off a page and pokes failed items."""

    @abstractmethod
    async def scan(self, page: Any) -> PollObservation:
        """Return the currently rendered results."""

    @abstractmethod
    async def retry_failed(self, page: Any) -> int:
        """Click regenerate on failed items; return how many were retried."""


class PageGenerationProbe(GenerationProbe):
    """Probe evaluating small scripts inside the page."""

    def __init__(self, flow: FlowConfig, polling: PollingConfig) -> None:
        self._flow = flow
        self._polling = polling

    async def scan(self, page: Any) -> PollObservation:
        result = await page.evaluate(
            SCAN_SCRIPT,
            {"marker": self._flow.video_url_marker, "failedText": self._flow.failed_generation_text},
        )
        return PollObservation(
            video_urls=tuple(result.get("videoUrls") or ()),
            failed_count=int(result.get("failedCount") or 0),
        )

    async def retry_failed(self, page: Any) -> int:
        retried = await page.evaluate(
            RETRY_SCRIPT,
            {
                "failedText": self._flow.failed_generation_text,
                "maxDepth": self._polling.retry_ancestor_depth,
            },
        )
        return int(retried or 0)


class GenerationPoller:
    """Poll loop around :func:`advance`."""

    def __init__(
        self,
        config: PollingConfig,
        probe: GenerationProbe,
        *,
        sleep: Optional[Sleeper] = None,
        reporter: Optional[ProgressReporter] = None,
    ) -> None:
        self._config = config
        self._probe = probe
        self._sleep = sleep or asyncio.sleep
        self._reporter = reporter or ProgressReporter(phase="poll")

    async def run(self, page: Any, expected: int) -> PollState:
        state = PollState(expected=expected)
        while state.phase is PollPhase.POLLING:
            await self._sleep(self._config.interval)
            state.elapsed += self._config.interval
            progress = min(90, round(state.elapsed / self._config.max_wait * 100))
            self._reporter.info(f"Generating... ({round(state.elapsed)}s elapsed, {progress}%)")

            observation = await self._probe.scan(page)
            decision = advance(state, observation, self._config)
            self._report_counts(state)
            if decision.retry:
                await self._retry(page, state)

        self._report_terminal(state)
        return state

    async def _retry(self, page: Any, state: PollState) -> None:
        self._reporter.info(
            f"Attempting to retry {state.failed_count} failed generation(s)... "
            f"(attempt {state.retry_attempts + 1}/{self._config.max_retries})"
        )
        retried = await self._probe.retry_failed(page)
        if retried > 0:
            self._reporter.info(f"Retried {retried} failed generation(s)")
            state.retry_attempts += 1
            state.stable_cycles = 0
            state.last_count = len(state.video_urls)

    def _report_counts(self, state: PollState) -> None:
        if not state.video_urls:
            return
        if state.failed_count:
            self._reporter.info(f"Found {len(state.video_urls)} video(s), {state.failed_count} failed")
        else:
            self._reporter.info(f"Found {len(state.video_urls)}/{state.expected} video(s)")

    def _report_terminal(self, state: PollState) -> None:
        found = len(state.video_urls)
        if state.phase is PollPhase.ALL_DONE:
            self._reporter.info(
                f"All {state.expected} generations completed ({found} success, {state.failed_count} failed)"
            )
        elif state.phase is PollPhase.STABILIZED:
            self._reporter.info(f"Video count stabilized at {found}, proceeding with available videos")
        else:
            self._reporter.warning(f"Stopped waiting after {round(state.elapsed)}s with {found} video(s)")
