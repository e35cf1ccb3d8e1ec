from __future__ import annotations

import random

import pytest

from flow_video_driver.interaction.human import (
    CHARACTER_DELAY_MS,
    PUNCTUATION_DELAY_MS,
    SPACE_DELAY_MS,
    InteractionSimulator,
)


class FixedRandom(random.Random):
    def __init__(self, value: float) -> None:
        super().__init__(1234)
        self.value = value

    def random(self) -> float:
        return self.value


class RecordingMouse:
    def __init__(self) -> None:
        self.moves: list[tuple[float, float, int]] = []
        self.clicks: list[tuple[float, float]] = []
        self.wheels: list[tuple[int, int]] = []

    async def move(self, x: float, y: float, steps: int = 1) -> None:
        self.moves.append((x, y, steps))

    async def click(self, x: float, y: float) -> None:
        self.clicks.append((x, y))

    async def wheel(self, dx: int, dy: int) -> None:
        self.wheels.append((dx, dy))


class RecordingKeyboard:
    def __init__(self) -> None:
        self.typed: list[str] = []

    async def type(self, text: str, delay: float = 0) -> None:
        self.typed.append(text)


class StubPage:
    def __init__(self) -> None:
        self.mouse = RecordingMouse()
        self.keyboard = RecordingKeyboard()


class StubLocator:
    def __init__(self, box: dict | None) -> None:
        self.box = box
        self.clicked = 0

    async def bounding_box(self) -> dict | None:
        return self.box

    async def click(self) -> None:
        self.clicked += 1


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.mark.parametrize(
    ("char", "bounds"),
    [(".", PUNCTUATION_DELAY_MS), ("?", PUNCTUATION_DELAY_MS), (" ", SPACE_DELAY_MS), ("a", CHARACTER_DELAY_MS)],
)
def test_keystroke_delay_depends_on_character_class(char: str, bounds: tuple[int, int]) -> None:
    simulator = InteractionSimulator(rng=random.Random(7))

    delays = [simulator.keystroke_delay(char) for _ in range(200)]

    assert min(delays) >= bounds[0]
    assert max(delays) <= bounds[1]


@pytest.mark.asyncio
async def test_click_moves_inside_bounding_box_before_clicking() -> None:
    sleep = SleepRecorder()
    simulator = InteractionSimulator(rng=random.Random(3), sleep=sleep)
    page = StubPage()
    locator = StubLocator({"x": 100.0, "y": 200.0, "width": 80.0, "height": 40.0})

    await simulator.click(page, locator)

    assert locator.clicked == 0
    (mx, my, steps), = page.mouse.moves
    (cx, cy), = page.mouse.clicks
    assert 5 <= steps <= 15
    assert 100 <= cx <= 180 and 200 <= cy <= 240
    assert abs(mx - cx) <= 5 and abs(my - cy) <= 5
    assert sleep.calls and all(0.05 <= value <= 0.25 for value in sleep.calls)


@pytest.mark.asyncio
async def test_click_falls_back_without_bounding_box() -> None:
    simulator = InteractionSimulator(rng=random.Random(3), sleep=SleepRecorder())
    page = StubPage()
    locator = StubLocator(None)

    await simulator.click(page, locator)

    assert locator.clicked == 1
    assert page.mouse.clicks == []


@pytest.mark.asyncio
async def test_type_emits_one_keystroke_per_character() -> None:
    sleep = SleepRecorder()
    simulator = InteractionSimulator(rng=random.Random(5), sleep=sleep)
    page = StubPage()
    locator = StubLocator(None)

    await simulator.type(page, locator, "Hi, you.")

    assert page.keyboard.typed == list("Hi, you.")
    assert locator.clicked == 1
    keystroke_sleeps = sleep.calls[1:]
    assert len(keystroke_sleeps) == len("Hi, you.")
    assert keystroke_sleeps[2] >= PUNCTUATION_DELAY_MS[0] / 1000
    assert keystroke_sleeps[3] <= SPACE_DELAY_MS[1] / 1000


@pytest.mark.asyncio
async def test_scroll_and_idle_follow_activation_probability() -> None:
    page = StubPage()
    never = InteractionSimulator(rng=FixedRandom(0.99), sleep=SleepRecorder())
    always = InteractionSimulator(rng=FixedRandom(0.0), sleep=SleepRecorder())

    assert await never.scroll(page) is False
    assert await never.idle(page) is False
    assert page.mouse.wheels == [] and page.mouse.moves == []

    assert await always.scroll(page) is True
    assert await always.idle(page) is True
    assert len(page.mouse.wheels) == 1
    assert -80 <= page.mouse.wheels[0][1] <= 80
    assert len(page.mouse.moves) == 1
