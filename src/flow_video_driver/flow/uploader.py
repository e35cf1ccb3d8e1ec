"""Upload start/end frames through the asset library dialog."""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from playwright.async_api import Error

from ..config import FlowConfig
from ..errors import InvalidPayloadError
from ..interaction.human import InteractionSimulator
from ..models import AspectRatio, FramePayload, VideoGenerationRequest
from ..notifications.base import ProgressReporter
from . import targets

LOGGER = logging.getLogger(__name__)

# Runs in the page: returns one of "missing-dropdown", "already-set",
# "clicked" or "no-option".
ORIENTATION_SCRIPT = """
async (target) => {
  const sleep = (ms) => new Promise((r) => setTimeout(r, ms));
  const combos = Array.from(document.querySelectorAll('button[role="combobox"]'));
  const dropdown = combos.find((btn) => btn.textContent
    && (btn.textContent.includes('Landscape') || btn.textContent.includes('Portrait')));
  if (!dropdown) {
    return 'missing-dropdown';
  }
  if ((dropdown.textContent || '').toLowerCase().includes(target.toLowerCase())) {
    return 'already-set';
  }
  dropdown.click();
  await sleep(500);

  const visible = (el) => el.offsetParent !== null;
  const sized = Array.from(document.querySelectorAll('*')).find((el) => {
    const rect = el.getBoundingClientRect();
    return (el.textContent || '').trim() === target && visible(el)
      && rect.width > 0 && rect.height > 0 && rect.height < 100;
  });
  if (sized) {
    sized.click();
    return 'clicked';
  }
  const option = Array.from(document.querySelectorAll('[role="option"], li, [role="menuitem"]'))
    .find((el) => (el.textContent || '').trim() === target && visible(el));
  if (option) {
    option.click();
    return 'clicked';
  }
  dropdown.focus();
  return 'no-option';
}
"""


@contextmanager
def transient_file(payload: FramePayload, label: str) -> Iterator[Path]:
    """Write ``payload`` to a temporary file that is removed on exit."""

    fd, name = tempfile.mkstemp(prefix=f"veo_frame_{label}_", suffix=f".{payload.extension}")
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload.data)
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            LOGGER.warning("Could not remove temporary frame file %s", path)


class AssetUploader:
    """Switch to frames mode and feed frame images into the upload dialog."""

    def __init__(
        self,
        config: FlowConfig,
        simulator: InteractionSimulator,
        reporter: Optional[ProgressReporter] = None,
    ) -> None:
        self._config = config
        self._simulator = simulator
        self._reporter = reporter or ProgressReporter(phase="upload")

    async def switch_to_frames_mode(self, page: Any) -> bool:
        self._reporter.info("Switching to Frames to Video mode...")
        dropdown = await targets.MODE_DROPDOWN.resolve(page, 3.0)
        if dropdown is None:
            self._reporter.warning("Mode dropdown not found, staying in current mode")
            return False
        await self._simulator.click(page, dropdown)
        await self._simulator.pause(400, 700)
        option = await targets.FRAMES_MODE_OPTION.resolve(page, self._config.control_timeout)
        if option is None:
            self._reporter.warning("Frames to Video option not found")
            await page.keyboard.press("Escape")
            return False
        await self._simulator.click(page, option)
        await self._simulator.pause(800, 1200)
        self._reporter.info("Switched to Frames to Video mode")
        return True

    async def upload_frames(self, page: Any, request: VideoGenerationRequest) -> int:
        """Upload the request's start then end frame; return how many made it."""

        uploaded = 0
        frames = (("Start Frame", request.start_frame), ("End Frame", request.end_frame))
        for slot_index, (label, payload) in enumerate(frames):
            if not payload:
                continue
            if await self.upload_frame(page, payload, slot_index, label, request.aspect_ratio):
                uploaded += 1
        await page.keyboard.press("Escape")
        await self._simulator.pause(400, 600)
        self._reporter.info(f"Frame upload complete ({uploaded} uploaded)")
        return uploaded

    async def upload_frame(
        self,
        page: Any,
        payload: str,
        slot_index: int,
        label: str,
        aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE,
    ) -> bool:
        self._reporter.info(f"Uploading {label}...")
        try:
            frame = FramePayload.from_data_url(payload)
        except InvalidPayloadError as exc:
            self._reporter.warning(f"Invalid image payload for {label}: {exc}")
            return False

        with transient_file(frame, f"{slot_index}") as path:
            try:
                return await self._upload_file(page, path, label, aspect_ratio)
            except Error as exc:
                self._reporter.warning(f"Upload of {label} failed: {exc}")
                return False

    async def _upload_file(self, page: Any, path: Path, label: str, aspect_ratio: AspectRatio) -> bool:
        timeout = self._config.control_timeout
        # Once a slot is filled its add button disappears, so the next free slot
        # is always the first remaining button.
        add_button = await targets.ADD_ASSET_BUTTON.resolve(page, timeout)
        if add_button is None:
            self._reporter.warning(f"No add button available for {label}")
            return False
        await add_button.click()
        await self._simulator.pause(900, 1200)

        file_input = await targets.FILE_INPUT.resolve(page, timeout)
        if file_input is None:
            self._reporter.warning(f"File input not found for {label}")
            await page.keyboard.press("Escape")
            return False
        await file_input.set_input_files(str(path))
        self._reporter.info(f"File selected for {label}")
        await self._simulator.pause(3000, 4000)

        await self._set_orientation(page, aspect_ratio)
        await self._simulator.pause(400, 600)

        crop = await targets.CROP_CONFIRM_BUTTON.resolve(page, 5.0)
        if crop is None:
            self._reporter.warning(f"Crop dialog not found for {label}")
            await page.keyboard.press("Escape")
            await self._simulator.pause(250, 350)
            return False
        await crop.click()
        self._reporter.info(f"Clicked Crop and Save for {label}")
        await self._simulator.pause(1800, 2200)

        asset = await targets.UPLOADED_ASSET.resolve(page, 3.0)
        if asset is None:
            self._reporter.warning(f"No library asset found for {label}")
        else:
            await asset.click()
            self._reporter.info(f"Selected {label} from library")
        await self._simulator.pause(900, 1100)
        return True

    async def _set_orientation(self, page: Any, aspect_ratio: AspectRatio) -> None:
        target = aspect_ratio.orientation_label
        self._reporter.info(f"Setting crop orientation to {target}...")
        result = await page.evaluate(ORIENTATION_SCRIPT, target)
        if result == "no-option":
            key = "ArrowDown" if aspect_ratio is AspectRatio.PORTRAIT else "ArrowUp"
            await page.keyboard.press(key)
            await self._simulator.pause(150, 250)
            await page.keyboard.press("Enter")
            result = "keyboard"
        LOGGER.info("Orientation result: %s", result)
