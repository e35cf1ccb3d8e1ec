"""Cooperative cancellation for in-flight generation requests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional

from ..errors import GenerationCancelled


class CancellationToken:
    """Shared flag checked at every suspension point of a request.

    :meth:`sleep` is the sleeper handed to the interaction simulator and the
    poller; it wakes early and raises :class:`GenerationCancelled` once
    :meth:`cancel` has been called.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._cancelled_at: Optional[datetime] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    @property
    def cancelled_at(self) -> Optional[datetime]:
        return self._cancelled_at

    def cancel(self, reason: str = "Generation cancelled") -> bool:
        """Request cancellation; returns ``False`` if it was already requested."""

        if self._event.is_set():
            return False
        self._reason = reason
        self._cancelled_at = datetime.now(timezone.utc)
        self._event.set()
        return True

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled(self._reason or "Generation cancelled")

    async def sleep(self, seconds: float) -> None:
        self.raise_if_cancelled()
        if seconds > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                return
        self.raise_if_cancelled()
