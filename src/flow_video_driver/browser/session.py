"""Playwright-powered acquisition of the shared browser session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from playwright.async_api import Error, async_playwright

from ..config import BrowserConfig
from ..errors import LaunchError
from .base import BrowserSession, ConnectionMode
from .stealth import StealthProfile, apply_stealth

LOGGER = logging.getLogger(__name__)


class SessionManager:
    """Owns at most one live :class:`BrowserSession` and hands it out on demand."""

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        *,
        stealth: Optional[StealthProfile] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self._config = config or BrowserConfig()
        self._stealth = stealth or StealthProfile()
        self._playwright_factory = playwright_factory
        self._playwright: Any = None
        self._session: Optional[BrowserSession] = None
        self._lock = asyncio.Lock()
        self._start_lock = asyncio.Lock()

    @property
    def session(self) -> Optional[BrowserSession]:
        return self._session

    async def acquire_session(self) -> BrowserSession:
        """Return the cached live session, or attach/launch a new one."""

        async with self._lock:
            if self._session is not None:
                if self._session.is_alive():
                    LOGGER.info("Reusing existing browser session (%s)", self._session.mode.value)
                    return self._session
                LOGGER.info("Existing browser session is gone, creating a new one")
                self._session = None

            try:
                playwright = await self._ensure_playwright()
            except Error as exc:
                raise LaunchError(f"Could not start Playwright: {exc}") from exc
            session: Optional[BrowserSession] = None
            if not self._config.headless:
                session = await self._attach(playwright)
            if session is None:
                session = await self._launch(playwright)
            if not session.stealth_applied:
                try:
                    await apply_stealth(session.context, self._stealth)
                except Error as exc:
                    await _discard(session)
                    raise LaunchError(f"Could not prepare browser context: {exc}") from exc
                session.stealth_applied = True
            self._session = session
            return session

    async def can_attach_to_browser(self) -> bool:
        """Check whether a browser is listening on the debugging endpoint."""

        try:
            playwright = await self._ensure_playwright()
            browser = await playwright.chromium.connect_over_cdp(self._config.cdp_endpoint)
        except Error as exc:
            LOGGER.debug("CDP endpoint %s not reachable: %s", self._config.cdp_endpoint, exc)
            return False
        await browser.close()
        return True

    async def close(self) -> None:
        """Release the session and stop Playwright (process shutdown only)."""

        session, self._session = self._session, None
        try:
            if session is not None:
                if session.mode is ConnectionMode.LAUNCHED:
                    await session.context.close()
                elif session.browser is not None:
                    await session.browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
            self._playwright = None

    async def _ensure_playwright(self) -> Any:
        async with self._start_lock:
            if self._playwright is None:
                self._playwright = await self._playwright_factory().start()
            return self._playwright

    async def _attach(self, playwright: Any) -> Optional[BrowserSession]:
        endpoint = self._config.cdp_endpoint
        LOGGER.info("Trying to connect to Chrome via CDP at %s", endpoint)
        try:
            browser = await playwright.chromium.connect_over_cdp(endpoint)
        except Error as exc:
            LOGGER.info("CDP not available (%s), using persistent profile", exc)
            return None
        if browser.contexts:
            context = browser.contexts[0]
            LOGGER.info("Connected to running Chrome via CDP")
        else:
            try:
                context = await browser.new_context()
            except Error as exc:
                await browser.close()
                raise LaunchError(f"Could not open a context in the running browser: {exc}") from exc
            LOGGER.info("Created new context in running Chrome")
        return BrowserSession(mode=ConnectionMode.ATTACHED, context=context, browser=browser)

    async def _launch(self, playwright: Any) -> BrowserSession:
        config = self._config
        profile_path = config.profile_path.expanduser()
        LOGGER.info(
            "Launching persistent browser (%s), profile directory: %s",
            "headless" if config.headless else "visible",
            profile_path,
        )
        args = list(config.launch_args)
        if config.headless:
            args.append("--headless=new")
        launch_kwargs: dict[str, Any] = {
            "headless": config.headless,
            "args": args,
            "user_agent": config.user_agent,
            "viewport": {"width": config.viewport_width, "height": config.viewport_height},
            "device_scale_factor": 1,
            "has_touch": False,
            "is_mobile": False,
            "bypass_csp": True,
            "ignore_https_errors": True,
            "locale": config.locale,
            "timezone_id": config.timezone_id,
        }
        if config.channel:
            launch_kwargs["channel"] = config.channel
        try:
            profile_path.mkdir(parents=True, exist_ok=True)
            context = await playwright.chromium.launch_persistent_context(
                str(profile_path),
                **launch_kwargs,
            )
        except (Error, OSError) as exc:
            LOGGER.error("Failed to launch browser: %s", exc)
            raise LaunchError(
                "Could not launch Chromium browser. Make sure Playwright browsers are "
                f"installed (playwright install chromium). Error: {exc}"
            ) from exc
        if config.headless:
            LOGGER.warning("Headless mode: log in once with a visible browser so the profile holds the session")
        return BrowserSession(
            mode=ConnectionMode.LAUNCHED,
            context=context,
            profile_path=profile_path,
        )


async def _discard(session: BrowserSession) -> None:
    """Close a session that never made it into service."""

    try:
        if session.mode is ConnectionMode.LAUNCHED:
            await session.context.close()
        elif session.browser is not None:
            await session.browser.close()
    except Error as exc:
        LOGGER.debug("Ignoring error while discarding browser session: %s", exc)
