from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from flow_video_driver.errors import ElementNotFoundError
from flow_video_driver.flow import targets


class FakeKeyboard:
    def __init__(self) -> None:
        self.pressed: list[str] = []

    async def press(self, key: str) -> None:
        self.pressed.append(key)

    async def type(self, text: str, delay: float = 0) -> None:
        self.pressed.append(text)


class FakePage:
    """Just enough of a Playwright page for the flow phases."""

    def __init__(self, url: str = "about:blank") -> None:
        self.url = url
        self.keyboard = FakeKeyboard()
        self.visited: list[str] = []
        self.redirects: dict[str, str] = {}
        self.url_waits: list[float] = []
        self.url_wait_results: list[bool] = []
        self.evaluations: list[tuple[str, Any]] = []
        self.evaluate_results: list[Any] = []
        self.closed = False

    async def goto(self, url: str, wait_until: str = "load") -> None:
        self.visited.append(url)
        self.url = self.redirects.get(url, url)

    async def wait_for_url(self, pattern: Any, timeout: float = 0) -> None:
        self.url_waits.append(timeout)
        reached = self.url_wait_results.pop(0) if self.url_wait_results else bool(pattern.search(self.url))
        if not reached:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluations.append((script, arg))
        return self.evaluate_results.pop(0) if self.evaluate_results else None

    async def close(self) -> None:
        self.closed = True


class FakeElement:
    def __init__(self, name: str) -> None:
        self.name = name
        self.clicks = 0
        self.values: list[str] = []
        self.files: list[str] = []

    async def click(self) -> None:
        self.clicks += 1

    async def fill(self, value: str) -> None:
        self.values.append(value)

    async def set_input_files(self, files: str) -> None:
        self.files.append(files)


class StubTarget:
    """Stands in for a UI target; resolves to ``element`` or misses."""

    def __init__(self, name: str, element: Optional[FakeElement] = None) -> None:
        self.name = name
        self.element = element
        self.lookups: list[float] = []

    async def resolve(self, page: Any, timeout: float) -> Optional[FakeElement]:
        self.lookups.append(timeout)
        return self.element

    async def require(self, page: Any, timeout: float) -> FakeElement:
        element = await self.resolve(page, timeout)
        if element is None:
            raise ElementNotFoundError(self.name)
        return element


class FakeSimulator:
    """Records high level interactions without any timing."""

    def __init__(self) -> None:
        self.clicked: list[Any] = []
        self.typed: list[str] = []
        self.pauses = 0

    async def pause(self, min_ms: int = 100, max_ms: int = 300) -> None:
        self.pauses += 1

    async def click(self, page: Any, locator: Any) -> None:
        self.clicked.append(getattr(locator, "name", locator))
        if hasattr(locator, "clicks"):
            locator.clicks += 1

    async def type(self, page: Any, locator: Any, text: str) -> None:
        self.typed.append(text)

    async def scroll(self, page: Any) -> bool:
        return False

    async def idle(self, page: Any) -> bool:
        return False


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def simulator() -> FakeSimulator:
    return FakeSimulator()


@pytest.fixture
def stub_targets(monkeypatch: pytest.MonkeyPatch) -> Callable[..., dict[str, StubTarget]]:
    """Replace catalog entries; names listed in ``present`` resolve to an element."""

    def install(present: Iterable[str] = (), *, options: Iterable[str] = ()) -> dict[str, StubTarget]:
        installed: dict[str, StubTarget] = {}
        present = set(present)
        for attribute in dir(targets):
            if isinstance(getattr(targets, attribute), targets.UITarget):
                element = FakeElement(attribute) if attribute in present else None
                stub = StubTarget(attribute, element)
                installed[attribute] = stub
                monkeypatch.setattr(targets, attribute, stub)

        available = set(options)

        def dropdown_option(text: str, *, exact: bool = False) -> StubTarget:
            key = f"option:{text}"
            stub = installed.setdefault(key, StubTarget(key, FakeElement(key) if text in available else None))
            return stub

        monkeypatch.setattr(targets, "dropdown_option", dropdown_option)
        return installed

    return install
