"""Set aspect ratio and output count through the settings panel."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from playwright.async_api import Error

from ..config import FlowConfig
from ..interaction.human import InteractionSimulator
from ..interaction.locators import UITarget
from ..models import AspectRatio
from ..notifications.base import ProgressReporter
from . import targets

LOGGER = logging.getLogger(__name__)


@dataclass
class SettingsOutcome:
    panel_opened: bool = False
    aspect_ratio_set: bool = False
    outputs_count_set: bool = False


class SettingsConfigurator:
    """Open the settings panel and pick dropdown values, skipping anything missing."""

    def __init__(
        self,
        config: FlowConfig,
        simulator: InteractionSimulator,
        reporter: Optional[ProgressReporter] = None,
    ) -> None:
        self._config = config
        self._simulator = simulator
        self._reporter = reporter or ProgressReporter(phase="settings")

    async def configure(
        self,
        page: Any,
        aspect_ratio: Optional[AspectRatio] = None,
        outputs_count: Optional[int] = None,
    ) -> SettingsOutcome:
        outcome = SettingsOutcome()
        settings_button = await targets.SETTINGS_BUTTON.resolve(page, self._config.control_timeout)
        if settings_button is None:
            self._reporter.warning("Settings button not visible")
            return outcome
        try:
            await self._simulator.click(page, settings_button)
            await self._simulator.pause(500, 900)
            outcome.panel_opened = True
            if aspect_ratio is not None:
                outcome.aspect_ratio_set = await self._select(
                    page,
                    targets.ASPECT_RATIO_DROPDOWN,
                    targets.dropdown_option(aspect_ratio.ratio_label),
                )
                if outcome.aspect_ratio_set:
                    self._reporter.info(f"Aspect ratio set to {aspect_ratio.value} ({aspect_ratio.ratio_label})")
            if outputs_count is not None:
                outcome.outputs_count_set = await self._select(
                    page,
                    targets.OUTPUTS_DROPDOWN,
                    targets.dropdown_option(str(outputs_count), exact=True),
                )
                if outcome.outputs_count_set:
                    self._reporter.info(f"Outputs per prompt set to {outputs_count}")
        except Error as exc:
            self._reporter.warning(f"Settings error: {exc}")
        finally:
            await self._dismiss(page)
        return outcome

    async def _select(self, page: Any, dropdown_target: UITarget, option_target: UITarget) -> bool:
        dropdown = await dropdown_target.resolve(page, self._config.control_timeout)
        if dropdown is None:
            self._reporter.warning(f"{dropdown_target.name} not found")
            return False
        await self._simulator.click(page, dropdown)
        await self._simulator.pause(300, 500)
        option = await option_target.resolve(page, 1.0)
        if option is None:
            self._reporter.warning(f"{option_target.name} not found in {dropdown_target.name}")
            await self._dismiss(page)
            return False
        await self._simulator.click(page, option)
        await self._simulator.pause(300, 500)
        return True

    async def _dismiss(self, page: Any) -> None:
        try:
            await page.keyboard.press("Escape")
        except Error as exc:
            LOGGER.debug("Escape key press failed: %s", exc)
            return
        await self._simulator.pause(150, 300)
