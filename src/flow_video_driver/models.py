"""Shared models used across the video generation driver."""

from __future__ import annotations

import base64
import binascii
import enum
import re
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidPayloadError

_DATA_URL_RE = re.compile(r"^data:image/([\w.+-]+);base64,(.+)$", re.DOTALL)

# Leading bytes expected for the media types the upload dialog accepts.
_MAGIC_SIGNATURES: dict[str, tuple[bytes, ...]] = {
    "png": (b"\x89PNG\r\n\x1a\n",),
    "jpeg": (b"\xff\xd8\xff",),
    "jpg": (b"\xff\xd8\xff",),
    "gif": (b"GIF87a", b"GIF89a"),
}


class AspectRatio(str, enum.Enum):
    """Output orientation supported by the generator."""

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"

    @property
    def ratio_label(self) -> str:
        """Text shown for this ratio in the settings dropdown."""

        return "9:16" if self is AspectRatio.PORTRAIT else "16:9"

    @property
    def orientation_label(self) -> str:
        """Text shown for this ratio in the crop dialog."""

        return "Portrait" if self is AspectRatio.PORTRAIT else "Landscape"


class GenerationMode(str, enum.Enum):
    """Which generation flow to drive."""

    TEXT_TO_VIDEO = "text-to-video"
    FRAMES_TO_VIDEO = "frames-to-video"


class FramePayload(BaseModel):
    """Decoded image payload for a start or end frame."""

    media_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return "jpg" if self.media_type == "jpeg" else self.media_type

    @classmethod
    def from_data_url(cls, value: str) -> "FramePayload":
        """Decode ``data:image/<type>;base64,<content>``.

        Raises :class:`InvalidPayloadError` when the string is not a base64 image
        data URL, or when the decoded bytes contradict the declared media type.
        """

        match = _DATA_URL_RE.match(value.strip())
        if not match:
            raise InvalidPayloadError("Frame payload is not a base64 image data URL")
        media_type = match.group(1).lower()
        try:
            data = base64.b64decode(match.group(2), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidPayloadError(f"Frame payload has invalid base64 content: {exc}") from exc
        if not data:
            raise InvalidPayloadError("Frame payload is empty")
        signatures = _MAGIC_SIGNATURES.get(media_type)
        if signatures and not data.startswith(signatures):
            raise InvalidPayloadError(f"Frame payload bytes do not match media type image/{media_type}")
        if media_type == "webp" and not (data[:4] == b"RIFF" and data[8:12] == b"WEBP"):
            raise InvalidPayloadError("Frame payload bytes do not match media type image/webp")
        return cls(media_type=media_type, data=data)


class VideoGenerationRequest(BaseModel):
    """Parameters of a single generation job."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    aspect_ratio: AspectRatio = Field(default=AspectRatio.LANDSCAPE, alias="aspectRatio")
    mode: GenerationMode = GenerationMode.TEXT_TO_VIDEO
    outputs_count: int = Field(default=1, ge=1, le=4, alias="outputsCount")
    start_frame: Optional[str] = Field(default=None, alias="startFrameBase64")
    end_frame: Optional[str] = Field(default=None, alias="endFrameBase64")

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("prompt must not be empty")
        return value

    @property
    def has_frames(self) -> bool:
        return bool(self.start_frame or self.end_frame)


class VideoGenerationResult(BaseModel):
    """Terminal outcome of a generation request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool
    video_urls: tuple[str, ...] = Field(default=(), alias="videoUrls")
    error: Optional[str] = None

    @classmethod
    def succeeded(cls, video_urls: list[str] | tuple[str, ...]) -> "VideoGenerationResult":
        return cls(success=True, video_urls=tuple(video_urls))

    @classmethod
    def failed(cls, error: str) -> "VideoGenerationResult":
        return cls(success=False, error=error)


class NotificationLevel(str, enum.Enum):
    """Severity of progress events."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class NotificationEvent(BaseModel):
    """Progress event emitted while a request runs."""

    type: str
    message: str
    level: NotificationLevel = NotificationLevel.INFO
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
