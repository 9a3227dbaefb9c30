"""Edge-preserving color denoiser based on non-local means."""

import cv2
import numpy as np

from photo_restore.models import clamp
from photo_restore.raster import Raster

MAX_STRENGTH = 30
MIN_COLOR_STRENGTH = 2
TEMPLATE_WINDOW = 7
SEARCH_WINDOW = 21


def color_strength(strength: float) -> float:
    """Filter strength used for the color components."""
    return max(MIN_COLOR_STRENGTH, strength - 2)


def denoise(raster: Raster, strength: float) -> Raster:
    """Remove luma and chroma noise while keeping edges.

    Args:
        raster: Input raster
        strength: Luma filter strength, clamped to 0-30

    Returns:
        Denoised raster with the same size and alpha
    """
    h = float(clamp(strength, 0, MAX_STRENGTH))
    # OpenCV expects BGR channel order here
    bgr = np.ascontiguousarray(raster.rgb[:, :, ::-1])
    denoised = cv2.fastNlMeansDenoisingColored(
        bgr,
        None,
        h,
        float(color_strength(h)),
        TEMPLATE_WINDOW,
        SEARCH_WINDOW,
    )
    return raster.with_rgb(np.ascontiguousarray(denoised[:, :, ::-1]))
