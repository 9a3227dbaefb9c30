"""Contrast and saturation adjusters."""

import cv2
import numpy as np

from photo_restore.models import clamp
from photo_restore.raster import Raster

MAX_PERCENT = 50
SATURATION_CHANNEL = 1


def percent_gain(percent: float) -> float:
    """Multiplier for a percent adjustment clamped to -50..50."""
    return 1 + clamp(percent, -MAX_PERCENT, MAX_PERCENT) / 100


def adjust_contrast(raster: Raster, percent: float) -> Raster:
    """Scale R, G and B by ``1 + percent/100`` with saturation at 0 and 255.

    The brightness offset is fixed at 0 and alpha is left untouched.

    Args:
        raster: Input raster
        percent: Contrast gain in percent, clamped to -50..50
    """
    adjusted = cv2.convertScaleAbs(raster.rgb, alpha=percent_gain(percent), beta=0)
    return raster.with_rgb(adjusted)


def adjust_saturation(raster: Raster, percent: float) -> Raster:
    """Scale the HSV saturation channel by ``1 + percent/100``.

    Saturation is truncated at 255 rather than wrapped; hue and value are
    passed through.

    Args:
        raster: Input raster
        percent: Saturation gain in percent, clamped to -50..50
    """
    hsv = cv2.cvtColor(raster.rgb, cv2.COLOR_RGB2HSV)
    saturation = hsv[:, :, SATURATION_CHANNEL].astype(np.float32) * percent_gain(percent)
    hsv[:, :, SATURATION_CHANNEL] = np.clip(np.rint(saturation), 0, 255).astype(np.uint8)
    return raster.with_rgb(cv2.cvtColor(hsv, cv2.COLOR_HSV2RGB))
