"""Type the generation prompt and press create."""

from __future__ import annotations

import logging
from typing import Any, Optional

from playwright.async_api import Error

from ..config import FlowConfig
from ..errors import ElementNotFoundError
from ..interaction.human import InteractionSimulator
from ..notifications.base import ProgressReporter
from . import targets

LOGGER = logging.getLogger(__name__)


class PromptSubmitter:
    def __init__(
        self,
        config: FlowConfig,
        simulator: InteractionSimulator,
        reporter: Optional[ProgressReporter] = None,
    ) -> None:
        self._config = config
        self._simulator = simulator
        self._reporter = reporter or ProgressReporter(phase="prompt")

    async def submit(self, page: Any, prompt: str) -> bool:
        """Enter ``prompt`` and trigger generation.

        Returns ``False`` when a step failed; the poller then finds no results.
        """

        self._reporter.info("Entering prompt...")
        try:
            await self._simulator.scroll(page)
            await self._simulator.pause(500, 1000)

            textarea = await targets.PROMPT_INPUT.require(page, self._config.control_timeout)
            await textarea.click()
            await self._simulator.pause(200, 400)
            await textarea.fill("")
            await self._simulator.pause(300, 600)
            await self._simulator.type(page, textarea, prompt)

            await self._simulator.idle(page)
            await self._simulator.pause(800, 1500)

            self._reporter.info("Clicking Create button...")
            create = await targets.SUBMIT_BUTTON.require(page, self._config.control_timeout)
            await self._simulator.click(page, create)
        except (ElementNotFoundError, Error) as exc:
            self._reporter.warning(f"Prompt submission failed: {exc}")
            return False
        self._reporter.info("Generation started, waiting for video...")
        return True
