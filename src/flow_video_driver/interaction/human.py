"""Human-like pointer and keyboard primitives."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional

LOGGER = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]

PUNCTUATION = ".!?,;:"

# Inter-keystroke delays in milliseconds, keyed by character class.
PUNCTUATION_DELAY_MS = (150, 300)
SPACE_DELAY_MS = (50, 120)
CHARACTER_DELAY_MS = (30, 90)


class InteractionSimulator:
    """Drive a Playwright page with randomised, human-paced input.

    Every wait goes through ``sleep`` (seconds), so callers can thread a
    cancellation-aware sleeper through all suspension points.
    """

    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        sleep: Optional[Sleeper] = None,
        scroll_probability: float = 0.5,
        idle_probability: float = 0.4,
    ) -> None:
        self._rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep
        self._scroll_probability = scroll_probability
        self._idle_probability = idle_probability

    async def pause(self, min_ms: int = 100, max_ms: int = 300) -> None:
        """Wait a random interval between ``min_ms`` and ``max_ms``."""

        await self._sleep(self._rng.randint(min_ms, max_ms) / 1000)

    async def move(self, page: Any, x: float, y: float) -> None:
        target_x = x + (self._rng.random() - 0.5) * 10
        target_y = y + (self._rng.random() - 0.5) * 10
        await page.mouse.move(target_x, target_y, steps=self._rng.randint(5, 15))

    async def click(self, page: Any, locator: Any) -> None:
        box = await locator.bounding_box()
        if not box:
            await locator.click()
            await self.pause(100, 250)
            return
        x = box["x"] + box["width"] / 2 + (self._rng.random() - 0.5) * (box["width"] * 0.3)
        y = box["y"] + box["height"] / 2 + (self._rng.random() - 0.5) * (box["height"] * 0.3)
        await self.move(page, x, y)
        await self.pause(50, 150)
        await page.mouse.click(x, y)
        await self.pause(100, 250)

    def keystroke_delay(self, char: str) -> int:
        """Milliseconds to wait after typing ``char``."""

        if char in PUNCTUATION:
            low, high = PUNCTUATION_DELAY_MS
        elif char == " ":
            low, high = SPACE_DELAY_MS
        else:
            low, high = CHARACTER_DELAY_MS
        return self._rng.randint(low, high)

    async def type(self, page: Any, locator: Any, text: str) -> None:
        await locator.click()
        await self.pause(100, 300)
        for char in text:
            await page.keyboard.type(char, delay=0)
            await self._sleep(self.keystroke_delay(char) / 1000)

    async def scroll(self, page: Any) -> bool:
        """Maybe nudge the page a little; returns whether it scrolled."""

        if self._rng.random() >= self._scroll_probability:
            return False
        await page.mouse.wheel(0, self._rng.randint(-80, 80))
        await self.pause(100, 300)
        return True

    async def idle(self, page: Any) -> bool:
        """Maybe wander the pointer somewhere on the page; returns whether it moved."""

        if self._rng.random() >= self._idle_probability:
            return False
        await self.move(page, self._rng.randint(200, 1200), self._rng.randint(200, 600))
        await self.pause(100, 200)
        return True
