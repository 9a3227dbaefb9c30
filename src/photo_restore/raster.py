"""In-memory raster buffers and their per-run ownership scope."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from photo_restore.errors import RasterReleasedError

if TYPE_CHECKING:
    from types import TracebackType

    from numpy.typing import NDArray

CHANNELS = 4


class Raster:
    """Width x height RGBA pixels, 8 bits per sample, row-major, no padding.

    The pixel buffer is a C-contiguous ``(height, width, 4)`` uint8 array.
    A raster can be released once, after which its pixels are gone and any
    access raises RasterReleasedError.
    """

    __slots__ = ("_pixels", "height", "width")

    def __init__(self, pixels: NDArray[np.uint8]):
        if pixels.dtype != np.uint8 or pixels.ndim != 3 or pixels.shape[2] != CHANNELS:
            raise ValueError(
                f"Raster needs a (height, width, {CHANNELS}) uint8 array, "
                f"got shape {pixels.shape} dtype {pixels.dtype}"
            )
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise ValueError(
                f"Raster must be at least 1x1, got {pixels.shape[1]}x{pixels.shape[0]}"
            )
        self._pixels: NDArray[np.uint8] | None = np.ascontiguousarray(pixels)
        self.height = int(pixels.shape[0])
        self.width = int(pixels.shape[1])

    @classmethod
    def from_array(cls, array: NDArray[np.uint8]) -> Raster:
        """Wrap a grayscale, RGB or RGBA uint8 array, adding an opaque alpha if needed."""
        array = np.asarray(array)
        if array.dtype != np.uint8:
            raise ValueError(f"Raster samples must be uint8, got {array.dtype}")
        if array.ndim == 2:
            array = np.repeat(array[:, :, np.newaxis], 3, axis=2)
        if array.ndim == 3 and array.shape[2] == 3:
            alpha = np.full(array.shape[:2], 255, dtype=np.uint8)
            array = np.dstack((array, alpha))
        return cls(array)

    @classmethod
    def filled(cls, width: int, height: int, color: tuple[int, int, int, int]) -> Raster:
        """Create a raster of one solid RGBA color."""
        pixels = np.empty((height, width, CHANNELS), dtype=np.uint8)
        pixels[:, :] = color
        return cls(pixels)

    @property
    def pixels(self) -> NDArray[np.uint8]:
        if self._pixels is None:
            raise RasterReleasedError("Raster has already been released")
        return self._pixels

    @property
    def rgb(self) -> NDArray[np.uint8]:
        """Contiguous copy of the color channels."""
        return np.ascontiguousarray(self.pixels[:, :, :3])

    @property
    def alpha(self) -> NDArray[np.uint8]:
        return self.pixels[:, :, 3]

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def released(self) -> bool:
        return self._pixels is None

    def with_rgb(self, rgb: NDArray[np.uint8]) -> Raster:
        """Return a new raster with the given color channels and this raster's alpha."""
        if rgb.shape != (self.height, self.width, 3):
            raise ValueError(
                f"Color channels of shape {rgb.shape} do not match a "
                f"{self.width}x{self.height} raster"
            )
        return Raster(np.dstack((rgb, self.alpha)))

    def copy(self) -> Raster:
        return Raster(self.pixels.copy())

    def release(self) -> None:
        """Drop the pixel buffer. Releasing twice is allowed."""
        self._pixels = None

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"Raster({self.width}x{self.height}, {state})"


class RasterScope:
    """Track the rasters of one pipeline run and release them on exit.

    Every raster handed to ``adopt`` or produced through ``replace`` is
    released when the scope closes, on success and on error alike, unless it
    was taken out with ``detach``.
    """

    def __init__(self) -> None:
        self._owned: list[Raster] = []

    def __enter__(self) -> RasterScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release_all()

    def adopt(self, raster: Raster) -> Raster:
        if not any(owned is raster for owned in self._owned):
            self._owned.append(raster)
        return raster

    def replace(self, consumed: Raster, produced: Raster) -> Raster:
        """Accept a stage output and release the raster it consumed."""
        self.adopt(produced)
        if produced is not consumed:
            self._forget(consumed)
            consumed.release()
        return produced

    def detach(self, raster: Raster) -> Raster:
        """Hand a raster out of the scope so it survives the run."""
        self._forget(raster)
        return raster

    def release_all(self) -> None:
        while self._owned:
            self._owned.pop().release()

    @property
    def live_count(self) -> int:
        return len(self._owned)

    def _forget(self, raster: Raster) -> None:
        self._owned = [owned for owned in self._owned if owned is not raster]
