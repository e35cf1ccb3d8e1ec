"""Browser session handle shared by all generation requests."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

LOGGER = logging.getLogger(__name__)


class ConnectionMode(str, enum.Enum):
    """How the session obtained its browser."""

    ATTACHED = "attached"
    LAUNCHED = "launched"


@dataclass
class BrowserSession:
    """Long-lived browser context reused across requests.

    ``context`` and ``browser`` are Playwright async objects. An attached session
    owns the ``browser`` returned by ``connect_over_cdp``; a launched session only
    holds the persistent context.
    """

    mode: ConnectionMode
    context: Any
    browser: Optional[Any] = None
    profile_path: Optional[Path] = None
    stealth_applied: bool = False
    _closed: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        self.context.on("close", self._on_context_closed)

    def _on_context_closed(self, *_: object) -> None:
        LOGGER.info("Browser context closed")
        self._closed = True

    def is_alive(self) -> bool:
        if self._closed:
            return False
        if self.browser is not None:
            return bool(self.browser.is_connected())
        return True

    async def new_page(self) -> Any:
        """Open a fresh tab in the shared context."""

        return await self.context.new_page()
