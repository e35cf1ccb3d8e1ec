"""Catalog of the Flow UI controls the driver interacts with."""

from __future__ import annotations

import re

from ..interaction.locators import (
    ByAccessibilityLabel,
    ByFallbackPosition,
    ByStructuralRole,
    ByVisibleText,
    UITarget,
)

PROMPT_INPUT_SELECTOR = "textarea#PINHOLE_TEXT_AREA_ELEMENT_ID"
UPLOADED_ASSET_LABEL = "A media asset previously uploaded or selected by you"

NEW_PROJECT_BUTTON = UITarget(
    "new project button",
    (ByVisibleText("button, a", r"new.*(project|video)|create|start"),),
)

PROJECT_MENU_BUTTON = UITarget(
    "project menu button",
    (ByStructuralRole("button", 'i:text("more_vert"), i:text("menu")'),),
)

NEW_PROJECT_MENU_ITEM = UITarget(
    "new project menu item",
    (ByVisibleText('[role="menuitem"], li, button', r"new.*project"),),
)

ADD_PROJECT_BUTTON = UITarget(
    "add project button",
    (
        ByStructuralRole('button[aria-label*="new" i], button[aria-label*="create" i]', 'i:text("add")'),
        ByStructuralRole("button", 'i:text("add"), i:text("add_circle")'),
    ),
)

PROMPT_INPUT = UITarget("prompt input", (ByStructuralRole(PROMPT_INPUT_SELECTOR),))

SUBMIT_BUTTON = UITarget(
    "create button",
    (
        ByStructuralRole("button", 'i:text("arrow_forward")'),
        ByAccessibilityLabel("create", exact=False),
    ),
)

MODE_DROPDOWN = UITarget("mode dropdown", (ByVisibleText("button", r"text to video"),))

FRAMES_MODE_OPTION = UITarget(
    "frames to video option",
    (ByVisibleText('[role="option"], li', r"frames to video"),),
)

SETTINGS_BUTTON = UITarget(
    "settings button",
    (
        ByStructuralRole("button", 'i:text("tune")'),
        ByAccessibilityLabel("settings", exact=False),
    ),
)

ASPECT_RATIO_DROPDOWN = UITarget(
    "aspect ratio dropdown",
    (ByVisibleText('button[role="combobox"]', r"aspect ratio"),),
)

OUTPUTS_DROPDOWN = UITarget(
    "outputs per prompt dropdown",
    (ByVisibleText('button[role="combobox"]', r"outputs per prompt"),),
)

ADD_ASSET_BUTTON = UITarget("add asset button", (ByVisibleText("button", r"add"),))

FILE_INPUT = UITarget(
    "file input",
    (ByStructuralRole('input[type="file"]'),),
    state="attached",
)

CROP_CONFIRM_BUTTON = UITarget("crop and save button", (ByVisibleText("button", r"crop and save"),))

# The newest upload comes first in the library grid; cell 0 is the upload card.
UPLOADED_ASSET = UITarget(
    "uploaded asset",
    (
        ByAccessibilityLabel(UPLOADED_ASSET_LABEL),
        ByFallbackPosition('[role="dialog"] button', 1, has="img"),
        ByFallbackPosition('[role="dialog"] button', 0, has="img"),
    ),
)


def dropdown_option(text: str, *, exact: bool = False) -> UITarget:
    """Target for an open dropdown's option whose text contains (or equals) ``text``."""

    pattern = f"^{re.escape(text)}$" if exact else re.escape(text)
    return UITarget(f"option {text!r}", (ByVisibleText('[role="option"]', pattern, ignore_case=False),))
