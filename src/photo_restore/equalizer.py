"""Tonal equalizer: histogram equalization of the luma channel."""

import cv2
import numpy as np

from photo_restore.raster import Raster


def equalize_luma(raster: Raster) -> Raster:
    """Equalize the Y channel in YCrCb space, leaving Cr and Cb untouched.

    Recovers the contrast of washed-out prints without shifting hue. A
    single-valued luma histogram is left as is.
    """
    ycrcb = cv2.cvtColor(raster.rgb, cv2.COLOR_RGB2YCrCb)
    luma = np.ascontiguousarray(ycrcb[:, :, 0])
    ycrcb[:, :, 0] = cv2.equalizeHist(luma)
    return raster.with_rgb(cv2.cvtColor(ycrcb, cv2.COLOR_YCrCb2RGB))
