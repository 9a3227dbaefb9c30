"""Geometry normalizer: caps the long edge of a raster."""

from __future__ import annotations

import math

import cv2

from photo_restore.raster import Raster


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_target_size(width: int, height: int, max_size: int) -> tuple[int, int]:
    """Compute the normalized (width, height) for a long-edge cap.

    ``scale = min(1, max_size / max(width, height))``; each edge is rounded
    half-up and floored at 1 pixel.

    Raises:
        ValueError: If any argument is not positive
    """
    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if max_size < 1:
        raise ValueError(f"max_size must be positive, got {max_size}")

    scale = min(1.0, max_size / max(width, height))
    if scale >= 1.0:
        return width, height
    return max(1, _round_half_up(width * scale)), max(1, _round_half_up(height * scale))


def normalize_size(raster: Raster, max_size: int) -> Raster:
    """Downscale a raster so its long edge is at most max_size.

    Returns the input raster itself when it already fits. Downscaling uses
    area interpolation, which averages source pixels instead of skipping
    them.
    """
    width, height = compute_target_size(raster.width, raster.height, max_size)
    if (width, height) == raster.size:
        return raster

    resized = cv2.resize(raster.pixels, (width, height), interpolation=cv2.INTER_AREA)
    return Raster(resized)
