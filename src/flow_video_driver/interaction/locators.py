"""Declarative element lookup strategies.

A :class:`UITarget` names one control of the target UI and lists the
strategies that can find it, in priority order. Resolution tries each strategy
with a bounded wait and returns the first element that reaches the requested
state.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from playwright.async_api import Error
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..errors import ElementNotFoundError

LOGGER = logging.getLogger(__name__)


class LocatorStrategy(ABC):
    """One way of pointing at an element."""

    @abstractmethod
    def build(self, page: Any) -> Any:
        """Return a Playwright locator for the element."""

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable description used in logs."""


@dataclass(frozen=True)
class ByVisibleText(LocatorStrategy):
    """First ``selector`` match whose text matches the regex ``pattern``."""

    selector: str
    pattern: str
    ignore_case: bool = True

    def build(self, page: Any) -> Any:
        flags = re.IGNORECASE if self.ignore_case else 0
        return page.locator(self.selector).filter(has_text=re.compile(self.pattern, flags)).first

    def describe(self) -> str:
        return f"{self.selector} with text /{self.pattern}/"


@dataclass(frozen=True)
class ByAccessibilityLabel(LocatorStrategy):
    """First ``selector`` match whose aria-label equals (or contains) ``label``."""

    label: str
    selector: str = "button"
    exact: bool = True

    def build(self, page: Any) -> Any:
        escaped = self.label.replace('"', '\\"')
        operator = "=" if self.exact else "*="
        suffix = "" if self.exact else " i"
        return page.locator(f'{self.selector}[aria-label{operator}"{escaped}"{suffix}]').first

    def describe(self) -> str:
        return f'{self.selector}[aria-label="{self.label}"]'


@dataclass(frozen=True)
class ByStructuralRole(LocatorStrategy):
    """First ``selector`` match, optionally required to contain ``has``."""

    selector: str
    has: Optional[str] = None

    def build(self, page: Any) -> Any:
        locator = page.locator(self.selector)
        if self.has:
            locator = locator.filter(has=page.locator(self.has))
        return locator.first

    def describe(self) -> str:
        return f"{self.selector} containing {self.has}" if self.has else self.selector


@dataclass(frozen=True)
class ByFallbackPosition(LocatorStrategy):
    """The ``index``-th ``selector`` match (optionally containing ``has``)."""

    selector: str
    index: int
    has: Optional[str] = None

    def build(self, page: Any) -> Any:
        locator = page.locator(self.selector)
        if self.has:
            locator = locator.filter(has=page.locator(self.has))
        return locator.nth(self.index)

    def describe(self) -> str:
        return f"{self.selector}[{self.index}]"


@dataclass(frozen=True)
class UITarget:
    """A named control and the ordered strategies that locate it."""

    name: str
    strategies: tuple[LocatorStrategy, ...]
    state: str = "visible"

    async def resolve(self, page: Any, timeout: float) -> Optional[Any]:
        """Return the first strategy's element that reaches ``state`` within ``timeout`` seconds."""

        for strategy in self.strategies:
            locator = strategy.build(page)
            try:
                await locator.wait_for(state=self.state, timeout=timeout * 1000)
            except PlaywrightTimeoutError:
                LOGGER.debug("%s: no match for %s", self.name, strategy.describe())
                continue
            except Error as exc:
                LOGGER.debug("%s: lookup via %s failed: %s", self.name, strategy.describe(), exc)
                continue
            LOGGER.debug("%s: matched %s", self.name, strategy.describe())
            return locator
        return None

    async def require(self, page: Any, timeout: float) -> Any:
        """Like :meth:`resolve` but raise :class:`ElementNotFoundError` on a miss."""

        locator = await self.resolve(page, timeout)
        if locator is None:
            raise ElementNotFoundError(self.name)
        return locator
