"""Core data models for the photo restoration pipeline."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_MAX_SIZE = 2000
DEFAULT_QUALITY = 95
JPEG_MIME = "image/jpeg"


class MessageType(Enum):
    """Type tag of a message crossing the worker boundary."""

    PROCESS = "process"
    READY = "ready"
    DONE = "done"
    ERROR = "error"


def _number(data: Mapping[str, Any], *keys: str, default: float = 0.0) -> float:
    """Read the first present key as a finite number."""
    for key in keys:
        if key in data and data[key] is not None:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, (int, float, str)):
                raise ValueError(f"Option {key!r} must be a number, got {value!r}")
            try:
                number = float(value)
            except ValueError:
                raise ValueError(f"Option {key!r} must be a number, got {value!r}") from None
            if not math.isfinite(number):
                raise ValueError(f"Option {key!r} must be a finite number, got {value!r}")
            return number
    return default


TRUE_SPELLINGS = frozenset({"true", "1", "yes", "on"})
FALSE_SPELLINGS = frozenset({"false", "0", "no", "off", ""})


def _flag(data: Mapping[str, Any], key: str) -> bool:
    """Read a boolean option; accepts bools, 0/1 and the usual string spellings."""
    value = data.get(key)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        spelling = value.strip().lower()
        if spelling in TRUE_SPELLINGS:
            return True
        if spelling in FALSE_SPELLINGS:
            return False
    raise ValueError(f"Option {key!r} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class RestoreOptions:
    """Caller-supplied restoration parameters.

    Dataclass defaults are the neutral values: with them only the
    normalizer and the luma equalizer run. Values are not validated here;
    each stage clamps the value it consumes.

    Attributes:
        denoise: Denoise strength (0-30, 0 skips the stage)
        sharpen: Unsharp-mask amount (0.0-2.0, 0 skips the stage)
        contrast: Contrast gain in percent (-50 to 50, 0 skips the stage)
        saturation: Saturation gain in percent (-50 to 50, 0 skips the stage)
        scratch_removal: Scratch detection sensitivity (0-100, 0 skips the stage)
        auto: Reserved flag, currently without effect
        max_size: Long-edge cap in pixels (None uses the configured default)
    """

    denoise: float = 0
    sharpen: float = 0.0
    contrast: float = 0
    saturation: float = 0
    scratch_removal: float = 0
    auto: bool = False
    max_size: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RestoreOptions:
        """Build options from a wire mapping.

        Accepts the camelCase wire keys (``scratchRemoval``, ``maxSize``) as
        well as the snake_case field names. Unknown keys are ignored.

        Raises:
            ValueError: If a numeric option is not a finite number or the
                auto flag is not a recognizable boolean
        """
        max_size = _number(data, "maxSize", "max_size", default=0.0)
        return cls(
            denoise=_number(data, "denoise"),
            sharpen=_number(data, "sharpen"),
            contrast=_number(data, "contrast"),
            saturation=_number(data, "saturation"),
            scratch_removal=_number(data, "scratchRemoval", "scratch_removal"),
            auto=_flag(data, "auto"),
            max_size=int(max_size) if max_size > 0 else None,
        )

    @classmethod
    def recommended(cls) -> RestoreOptions:
        """Starting values suited to a typical faded, scratched print."""
        return cls(
            denoise=12,
            sharpen=0.8,
            contrast=10,
            saturation=8,
            scratch_removal=35,
            auto=True,
            max_size=DEFAULT_MAX_SIZE,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire form."""
        return {
            "denoise": self.denoise,
            "sharpen": self.sharpen,
            "contrast": self.contrast,
            "saturation": self.saturation,
            "scratchRemoval": self.scratch_removal,
            "auto": self.auto,
            "maxSize": self.max_size,
        }


@dataclass
class PipelineConfig:
    """Configuration for the restoration pipeline and its worker.

    Attributes:
        quality: JPEG quality of the encoded result (0-100, default 95)
        default_max_size: Long-edge cap used when a request gives none
        max_workers: Number of requests run concurrently by the worker
        use_processes: Run requests in worker processes instead of threads
        verbose: Log request options and, once a worker starts, send DEBUG logs to stdout
    """

    quality: int = DEFAULT_QUALITY
    default_max_size: int = DEFAULT_MAX_SIZE
    max_workers: int = 1
    use_processes: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not 0 <= self.quality <= 100:
            raise ValueError(f"Quality must be between 0 and 100, got {self.quality}")
        if self.default_max_size < 1:
            raise ValueError(f"default_max_size must be at least 1, got {self.default_max_size}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")


@dataclass(frozen=True)
class EncodedImage:
    """Encoded output image bytes and their MIME type."""

    data: bytes
    mime: str = JPEG_MIME


@dataclass
class ProcessRequest:
    """A restoration request.

    Attributes:
        id: Caller-assigned correlation identifier
        buffer: Encoded input image; cleared once handed to the pipeline
        options: Restoration parameters
    """

    id: str
    buffer: bytes | bytearray | memoryview | None
    options: RestoreOptions = field(default_factory=RestoreOptions)

    @classmethod
    def from_dict(cls, message: Mapping[str, Any]) -> ProcessRequest:
        """Build a request from its wire form.

        Raises:
            ValueError: If the id is missing or the options are malformed
        """
        request_id = message.get("id")
        if not request_id:
            raise ValueError("Process message has no correlation id")
        options = message.get("options") or {}
        if isinstance(options, RestoreOptions):
            parsed = options
        else:
            parsed = RestoreOptions.from_mapping(options)
        return cls(id=str(request_id), buffer=message.get("buffer"), options=parsed)

    def take_buffer(self) -> bytes | bytearray | memoryview:
        """Move the input bytes out of the request.

        Raises:
            ValueError: If the buffer was already taken or never set
        """
        buffer = self.buffer
        if buffer is None:
            raise ValueError(f"Request {self.id} has no input buffer")
        self.buffer = None
        return buffer

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": MessageType.PROCESS.value,
            "id": self.id,
            "buffer": self.buffer,
            "options": self.options.to_dict(),
        }


@dataclass
class DoneMessage:
    """Successful response carrying the encoded result."""

    id: str
    buffer: bytes
    mime: str = JPEG_MIME

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": MessageType.DONE.value,
            "id": self.id,
            "buffer": self.buffer,
            "mime": self.mime,
        }


@dataclass
class ErrorMessage:
    """Failure response.

    Attributes:
        id: Correlation identifier of the failed request, when known
        message: Human-readable description of the failure
        category: Error category value (see errors.ErrorCategory)
    """

    id: str | None
    message: str
    category: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": MessageType.ERROR.value,
            "id": self.id,
            "message": self.message,
            "category": self.category,
        }


@dataclass
class ReadyMessage:
    """Emitted once after runtime initialization finishes.

    Attributes:
        error: Initialization error text if the runtime is unavailable
    """

    error: str | None = None

    @property
    def runtime_available(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        message: dict[str, Any] = {"type": MessageType.READY.value}
        if self.error is not None:
            message["error"] = self.error
        return message


ProcessResponse = DoneMessage | ErrorMessage


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))
