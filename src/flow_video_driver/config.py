"""Configuration models for the video generation driver."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--disable-dev-shm-usage",
    "--disable-browser-side-navigation",
    "--disable-gpu",
    "--no-first-run",
    "--no-default-browser-check",
    "--window-size=1920,1080",
    "--disable-extensions",
    "--disable-default-apps",
    "--disable-component-extensions-with-background-pages",
]


class BrowserConfig(BaseModel):
    """Settings for acquiring the shared browser session."""

    profile_path: Path = Field(default_factory=lambda: Path.home() / ".playwright-veo-profile")
    headless: bool = False
    cdp_endpoint: str = "http://localhost:9222"
    channel: Optional[str] = "chrome"
    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = DEFAULT_USER_AGENT
    locale: str = "en-US"
    timezone_id: str = "Asia/Jakarta"
    launch_args: list[str] = Field(default_factory=lambda: list(DEFAULT_LAUNCH_ARGS))


class FlowConfig(BaseModel):
    """Where the target tool lives and how its pages are recognised."""

    base_url: str = "https://labs.google/fx/tools/flow/"
    project_url_pattern: str = r"labs\.google/fx/tools/flow/project/"
    video_url_marker: str = "storage.googleapis.com/ai-sandbox-videofx/video/"
    failed_generation_text: str = "Failed Generation"
    landing_wait_ms: tuple[int, int] = (8000, 12000)
    project_url_timeout: float = 15.0
    project_url_retry_timeout: float = 30.0
    prompt_ready_timeout: float = 30.0
    control_timeout: float = 2.0


class PollingConfig(BaseModel):
    """Bounds of the result polling loop."""

    max_wait: float = Field(default=300.0, gt=0, description="Ceiling (seconds) for the whole poll loop.")
    interval: float = Field(default=8.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    stable_cycles: int = Field(default=3, ge=1)
    retry_ancestor_depth: int = Field(
        default=10,
        ge=1,
        description="How many ancestors to search for a failed item's menu button.",
    )


class InteractionConfig(BaseModel):
    """Tuning for incidental human-like motion."""

    scroll_probability: float = Field(default=0.5, ge=0.0, le=1.0)
    idle_probability: float = Field(default=0.4, ge=0.0, le=1.0)


class NotificationConfig(BaseModel):
    """Where progress events are echoed besides the request observer."""

    channel: str = Field(default="log")


class ServiceConfig(BaseModel):
    """Settings for the HTTP entry point."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    api_key: Optional[str] = None


class AppConfig(BaseSettings):
    """Top-level configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FLOW_VIDEO_DRIVER_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    flow: FlowConfig = Field(default_factory=FlowConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    interaction: InteractionConfig = Field(default_factory=InteractionConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)


def load_config(
    path: Path | None = None,
    *,
    env_file: Path | None = None,
    **overrides: object,
) -> AppConfig:
    """Load configuration from an optional YAML file, the environment and overrides."""

    data: dict[str, Any] = {}
    if path:
        import yaml

        data = yaml.safe_load(path.read_text()) or {}
    if overrides:
        _deep_update(data, overrides)
    settings_kwargs: dict[str, object] = {}
    if env_file is not None:
        settings_kwargs["_env_file"] = env_file
    config = AppConfig(**data, **settings_kwargs)
    if not data:
        return config

    merged = config.model_dump(mode="python")
    _deep_update(merged, data)
    return AppConfig.model_validate(merged)


def _deep_update(target: dict[str, Any], updates: Mapping[str, Any]) -> None:
    """Recursively merge ``updates`` into ``target`` in-place."""

    for key, value in updates.items():
        if (
            isinstance(value, Mapping)
            and isinstance(existing := target.get(key), Mapping)
        ):
            nested: dict[str, Any]
            if isinstance(existing, dict):
                nested = existing
            else:
                nested = dict(existing)
            _deep_update(nested, value)
            target[key] = nested
        else:
            target[key] = value
