"""Bring a fresh page from the tool's landing URL into a ready project."""

from __future__ import annotations

import enum
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Optional

from playwright.async_api import Error
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import FlowConfig
from ..errors import NavigationError
from ..interaction.human import InteractionSimulator
from ..notifications.base import ProgressReporter
from . import targets

LOGGER = logging.getLogger(__name__)


class NavigationState(str, enum.Enum):
    LANDING = "landing"
    AWAITING_NEW_PROJECT = "awaiting_new_project"
    IN_EXISTING_PROJECT = "in_existing_project"
    PROJECT_READY = "project_ready"
    FAILED = "failed"


class NavigationEvent(str, enum.Enum):
    OUTSIDE_PROJECT = "outside_project"
    INSIDE_PROJECT = "inside_project"
    PROMPT_READY = "prompt_ready"
    PROJECT_UNREACHABLE = "project_unreachable"
    PROMPT_MISSING = "prompt_missing"


_TRANSITIONS: dict[tuple[NavigationState, NavigationEvent], NavigationState] = {
    (NavigationState.LANDING, NavigationEvent.OUTSIDE_PROJECT): NavigationState.AWAITING_NEW_PROJECT,
    (NavigationState.LANDING, NavigationEvent.INSIDE_PROJECT): NavigationState.IN_EXISTING_PROJECT,
}
for _waiting in (NavigationState.AWAITING_NEW_PROJECT, NavigationState.IN_EXISTING_PROJECT):
    _TRANSITIONS[(_waiting, NavigationEvent.PROMPT_READY)] = NavigationState.PROJECT_READY
    _TRANSITIONS[(_waiting, NavigationEvent.PROJECT_UNREACHABLE)] = NavigationState.FAILED
    _TRANSITIONS[(_waiting, NavigationEvent.PROMPT_MISSING)] = NavigationState.FAILED


def transition(state: NavigationState, event: NavigationEvent) -> NavigationState:
    """Return the state reached from ``state`` on ``event``.

    Raises ``ValueError`` for a pair the controller never produces.
    """

    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(f"No navigation transition from {state.value} on {event.value}") from None


@dataclass
class NavigationOutcome:
    state: NavigationState
    project_url: str


class NavigationController:
    """Drive a page into a fresh project, following URL patterns rather than UI state."""

    def __init__(
        self,
        config: FlowConfig,
        simulator: InteractionSimulator,
        reporter: Optional[ProgressReporter] = None,
    ) -> None:
        self._config = config
        self._simulator = simulator
        self._reporter = reporter or ProgressReporter(phase="navigation")
        self._project_pattern = re.compile(config.project_url_pattern)

    def classify(self, url: str) -> NavigationEvent:
        if self._project_pattern.search(url):
            return NavigationEvent.INSIDE_PROJECT
        return NavigationEvent.OUTSIDE_PROJECT

    async def open_project(self, page: Any) -> NavigationOutcome:
        """Navigate ``page`` into a project whose prompt input is ready.

        Raises :class:`NavigationError` when no project page or prompt input appears.
        """

        state = NavigationState.LANDING
        self._reporter.info("Opening Flow in new tab...")
        await self._goto(page, self._config.base_url)
        await self._simulator.pause(*self._config.landing_wait_ms)
        await self._simulator.idle(page)

        current_url = page.url
        self._reporter.info(f"Current URL: {current_url}")
        state = transition(state, self.classify(current_url))

        if state is NavigationState.AWAITING_NEW_PROJECT:
            await self._click_new_project(page)
        else:
            await self._start_fresh_project(page)

        if not await self._wait_for_project_url(page, self._config.project_url_timeout):
            self._reporter.info("Retrying navigation to create new project...")
            retry_url = f"{self._config.base_url}?new={int(time.time() * 1000)}"
            await self._goto(page, retry_url)
            if not await self._wait_for_project_url(page, self._config.project_url_retry_timeout):
                state = transition(state, NavigationEvent.PROJECT_UNREACHABLE)
                raise NavigationError(f"Could not reach a Flow project page (last URL: {page.url})")

        project_url = page.url
        self._reporter.info(f"Project ready: {project_url}")
        self._reporter.info("Waiting for page to load...")
        prompt = await targets.PROMPT_INPUT.resolve(page, self._config.prompt_ready_timeout)
        if prompt is None:
            state = transition(state, NavigationEvent.PROMPT_MISSING)
            raise NavigationError("Prompt input did not appear on the project page")
        state = transition(state, NavigationEvent.PROMPT_READY)
        self._reporter.info("Page ready")
        return NavigationOutcome(state=state, project_url=project_url)

    async def _goto(self, page: Any, url: str) -> None:
        try:
            await page.goto(url, wait_until="networkidle")
        except Error as exc:
            raise NavigationError(f"Failed to load {url}: {exc}") from exc

    async def _click_new_project(self, page: Any) -> None:
        self._reporter.info("Looking for New Project button...")
        button = await targets.NEW_PROJECT_BUTTON.resolve(page, self._config.control_timeout)
        if button is None:
            LOGGER.info("No new project button visible, waiting for redirect")
            return
        await self._simulator.click(page, button)
        await self._simulator.pause(1500, 2500)

    async def _start_fresh_project(self, page: Any) -> None:
        self._reporter.info("Already on a project page, creating new project...")
        timeout = self._config.control_timeout
        menu = await targets.PROJECT_MENU_BUTTON.resolve(page, timeout)
        if menu is not None:
            await self._simulator.click(page, menu)
            await self._simulator.pause(300, 600)
            option = await targets.NEW_PROJECT_MENU_ITEM.resolve(page, timeout)
            if option is not None:
                await self._simulator.click(page, option)
                await self._simulator.pause(1500, 2500)
            else:
                await page.keyboard.press("Escape")

        add_button = await targets.ADD_PROJECT_BUTTON.resolve(page, timeout)
        if add_button is not None:
            await self._simulator.click(page, add_button)
            await self._simulator.pause(1500, 2500)
        elif menu is None:
            self._reporter.info("Could not find new project option, will use current project")

    async def _wait_for_project_url(self, page: Any, timeout: float) -> bool:
        try:
            await page.wait_for_url(self._project_pattern, timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            return False
        return True
