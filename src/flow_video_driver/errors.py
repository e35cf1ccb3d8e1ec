"""Exception hierarchy for the automation engine."""

from __future__ import annotations


class FlowAutomationError(RuntimeError):
    """Base class for errors raised while driving the Flow UI."""


class LaunchError(FlowAutomationError):
    """Raised when no browser session can be attached or launched."""


class NavigationError(FlowAutomationError):
    """Raised when a page cannot be brought into a ready project."""


class InvalidPayloadError(FlowAutomationError, ValueError):
    """Raised when an embedded frame image cannot be decoded."""


class ElementNotFoundError(FlowAutomationError):
    """Raised when an optional UI control cannot be located."""

    def __init__(self, target: str) -> None:
        super().__init__(f"UI element not found: {target}")
        self.target = target


class NoResultsError(FlowAutomationError):
    """Raised when polling finishes without a single generated video."""


class GenerationCancelled(FlowAutomationError):
    """Raised at a suspension point once the request has been cancelled."""
