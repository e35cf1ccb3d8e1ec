"""Factories for constructing components from configuration."""

from __future__ import annotations

from .browser.session import SessionManager
from .config import AppConfig, BrowserConfig, NotificationConfig
from .notifications.base import ConsoleNotifier, LoggingNotifier, Notifier
from .orchestrator.runner import VideoGenerationOrchestrator


def build_session_manager(config: BrowserConfig) -> SessionManager:
    return SessionManager(config)


def build_notifier(config: NotificationConfig) -> Notifier:
    channel = config.channel.lower()
    if channel == "console":
        return ConsoleNotifier()
    if channel == "log":
        return LoggingNotifier()
    raise ValueError(f"Unsupported notification channel: {config.channel}")


def build_orchestrator(config: AppConfig) -> VideoGenerationOrchestrator:
    return VideoGenerationOrchestrator(
        config,
        build_session_manager(config.browser),
        notifier=build_notifier(config.notifications),
    )
