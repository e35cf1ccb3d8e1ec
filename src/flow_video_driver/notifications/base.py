"""Progress notification channels."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional

from rich.console import Console

from ..models import NotificationEvent, NotificationLevel

LOGGER = logging.getLogger(__name__)

ProgressObserver = Callable[[str], None]

_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


class Notifier(ABC):
    """Interface for receiving progress events of a generation request."""

    @abstractmethod
    def notify(self, event: NotificationEvent) -> None:
        """Send a notification event."""


class ConsoleNotifier(Notifier):
    """Simple notifier that prints to the console using Rich."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or Console()

    def notify(self, event: NotificationEvent) -> None:
        style = {
            "info": "cyan",
            "warning": "yellow",
            "error": "red",
            "success": "green",
        }.get(event.level.value, "white")
        self._console.print(f"[{event.type}] {event.message}", style=style, markup=False)


class LoggingNotifier(Notifier):
    """Write events to a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or LOGGER

    def notify(self, event: NotificationEvent) -> None:
        self._logger.log(_LOG_LEVELS[event.level], "[%s] %s", event.type, event.message)


class CallbackNotifier(Notifier):
    """Forward the message text of every event to a plain callback."""

    def __init__(self, observer: ProgressObserver) -> None:
        self._observer = observer

    def notify(self, event: NotificationEvent) -> None:
        self._observer(event.message)


class CompositeNotifier(Notifier):
    """Fan-out notifier that propagates events to multiple notifiers."""

    def __init__(self, notifiers: Iterable[Notifier]) -> None:
        self._notifiers = list(notifiers)

    def notify(self, event: NotificationEvent) -> None:
        for notifier in self._notifiers:
            try:
                notifier.notify(event)
            except Exception:
                LOGGER.exception("Notifier %r failed for event %s", notifier, event.type)


class ProgressReporter:
    """Phase-scoped helper that turns messages into notification events."""

    def __init__(self, notifier: Optional[Notifier] = None, *, phase: str = "generate") -> None:
        self._notifier = notifier or CompositeNotifier([])
        self._phase = phase

    def child(self, phase: str) -> "ProgressReporter":
        return ProgressReporter(self._notifier, phase=phase)

    def info(self, message: str, **data: object) -> None:
        self._emit(message, NotificationLevel.INFO, data)

    def warning(self, message: str, **data: object) -> None:
        self._emit(message, NotificationLevel.WARNING, data)

    def error(self, message: str, **data: object) -> None:
        self._emit(message, NotificationLevel.ERROR, data)

    def success(self, message: str, **data: object) -> None:
        self._emit(message, NotificationLevel.SUCCESS, data)

    def _emit(self, message: str, level: NotificationLevel, data: dict[str, object]) -> None:
        self._notifier.notify(
            NotificationEvent(type=self._phase, message=message, level=level, data=dict(data))
        )
