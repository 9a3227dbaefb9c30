"""Process-wide lifecycle of the OpenCV runtime.

The runtime is initialized at most once per process. ``ensure_ready`` is
safe to call from several threads at once and from every request; after
the first successful call it returns immediately.
"""

from __future__ import annotations

import threading

import cv2
import numpy as np

from photo_restore.errors import RuntimeUnavailableError
from photo_restore.logging_config import get_logger

# Every OpenCV entry point a pipeline stage calls
REQUIRED_FUNCTIONS = (
    "resize",
    "cvtColor",
    "equalizeHist",
    "fastNlMeansDenoisingColored",
    "Canny",
    "getStructuringElement",
    "dilate",
    "morphologyEx",
    "threshold",
    "inpaint",
    "GaussianBlur",
    "addWeighted",
    "convertScaleAbs",
)

logger = get_logger(__name__)


class VisionRuntime:
    """Init-once wrapper around the OpenCV runtime."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self.version: str | None = None
        self.init_count = 0

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def ensure_ready(self) -> None:
        """Initialize the runtime unless that already happened.

        A failed attempt is not remembered, so the next call retries.

        Raises:
            RuntimeUnavailableError: If OpenCV lacks a required function or
                fails the warm-up transform
        """
        if self._ready.is_set():
            return

        with self._lock:
            if self._ready.is_set():
                return
            self._initialize()
            self._ready.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the runtime is ready; returns False on timeout."""
        return self._ready.wait(timeout)

    def _initialize(self) -> None:
        self.init_count += 1
        missing = [name for name in REQUIRED_FUNCTIONS if not hasattr(cv2, name)]
        if missing:
            raise RuntimeUnavailableError(
                f"OpenCV build is missing required functions: {', '.join(missing)}"
            )

        try:
            # Warm-up pass through the color conversion and histogram code
            sample = np.full((4, 4, 3), 128, dtype=np.uint8)
            ycrcb = cv2.cvtColor(sample, cv2.COLOR_RGB2YCrCb)
            cv2.equalizeHist(np.ascontiguousarray(ycrcb[:, :, 0]))
        except cv2.error as e:
            raise RuntimeUnavailableError(f"OpenCV warm-up failed: {e}") from e

        self.version = cv2.__version__
        logger.info(f"OpenCV runtime ready (version {self.version})")


_runtime = VisionRuntime()


def get_runtime() -> VisionRuntime:
    """Return the process-wide runtime."""
    return _runtime


def ensure_runtime() -> None:
    """Initialize the process-wide runtime; a no-op once it is ready."""
    _runtime.ensure_ready()
