"""Unsharp-mask sharpener."""

import cv2

from photo_restore.models import clamp
from photo_restore.raster import Raster

MAX_AMOUNT = 2.0
BLUR_SIGMA = 1.0


def unsharp_mask(raster: Raster, amount: float) -> Raster:
    """Sharpen with ``in * (1 + amount) - blur(in) * amount``.

    The blur is Gaussian with sigma 1.0 on both axes; the result saturates
    to 0-255.

    Args:
        raster: Input raster
        amount: Sharpening weight, clamped to 0-2
    """
    weight = clamp(amount, 0, MAX_AMOUNT)
    rgb = raster.rgb
    blurred = cv2.GaussianBlur(
        rgb, (0, 0), BLUR_SIGMA, sigmaY=BLUR_SIGMA, borderType=cv2.BORDER_DEFAULT
    )
    sharpened = cv2.addWeighted(rgb, 1 + weight, blurred, -weight, 0)
    return raster.with_rgb(sharpened)
