"""Scratch and dust removal: edge-based mask detection plus inpainting."""

from __future__ import annotations

from typing import TYPE_CHECKING

import cv2
import numpy as np

from photo_restore.models import clamp
from photo_restore.raster import Raster

if TYPE_CHECKING:
    from numpy.typing import NDArray


class DefectRemover:
    """Detect scratch-like artifacts and fill them from surrounding texture.

    The sensitivity value (0-100) maps linearly to the Canny thresholds:
    ``low = 50 + value`` and ``high = 2 * low``. Edges are found with the
    L2 gradient norm, which flags less fine texture than the L1
    approximation. A closing pass then joins the two edges of a line up to
    about ten pixels wide, so its interior is filled as well as its borders.
    """

    THRESHOLD_BASE = 50
    THRESHOLD_RATIO = 2
    APERTURE_SIZE = 3
    DILATE_KERNEL_SIZE = (2, 2)
    CLOSE_KERNEL_SIZE = (11, 11)
    MASK_THRESHOLD = 10
    INPAINT_RADIUS = 3

    def thresholds(self, sensitivity: float) -> tuple[float, float]:
        """Return the (low, high) Canny thresholds for a sensitivity value."""
        low = self.THRESHOLD_BASE + clamp(sensitivity, 0, 100)
        return low, self.THRESHOLD_RATIO * low

    def build_mask(self, raster: Raster, sensitivity: float) -> NDArray[np.uint8]:
        """Build the fill mask: 255 where a defect was found, 0 elsewhere."""
        gray = cv2.cvtColor(raster.rgb, cv2.COLOR_RGB2GRAY)
        low, high = self.thresholds(sensitivity)
        edges = cv2.Canny(gray, low, high, apertureSize=self.APERTURE_SIZE, L2gradient=True)

        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, self.DILATE_KERNEL_SIZE)
        dilated = cv2.dilate(edges, kernel)
        closing = cv2.getStructuringElement(cv2.MORPH_RECT, self.CLOSE_KERNEL_SIZE)
        joined = cv2.morphologyEx(dilated, cv2.MORPH_CLOSE, closing)
        _, mask = cv2.threshold(joined, self.MASK_THRESHOLD, 255, cv2.THRESH_BINARY)
        return mask

    def inpaint(self, raster: Raster, mask: NDArray[np.uint8]) -> Raster:
        """Fill the masked pixels with the Telea fast-marching method.

        Pixels outside the mask come back byte-identical. An empty mask
        returns an unchanged copy without inpainting.

        Raises:
            ValueError: If the mask does not match the raster size
        """
        if mask.shape != (raster.height, raster.width):
            raise ValueError(
                f"Mask of shape {mask.shape} does not match a "
                f"{raster.width}x{raster.height} raster"
            )

        fill = mask > 0
        if not fill.any():
            return raster.copy()

        rgb = raster.rgb
        binary = np.where(fill, 255, 0).astype(np.uint8)
        inpainted = cv2.inpaint(rgb, binary, self.INPAINT_RADIUS, cv2.INPAINT_TELEA)
        restored = np.where(fill[:, :, np.newaxis], inpainted, rgb).astype(np.uint8)
        return raster.with_rgb(restored)

    def remove(self, raster: Raster, sensitivity: float) -> Raster:
        """Detect defects at the given sensitivity (0-100) and inpaint them."""
        mask = self.build_mask(raster, sensitivity)
        return self.inpaint(raster, mask)
