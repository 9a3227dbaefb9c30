"""Decoding of input bytes into rasters and encoding of the result."""

from __future__ import annotations

import contextlib
import io

import numpy as np
import piexif
import pillow_heif
from PIL import Image

from photo_restore.errors import DecodeError, EncodeError
from photo_restore.models import DEFAULT_QUALITY, JPEG_MIME, EncodedImage
from photo_restore.raster import Raster

# Register HEIF opener with Pillow
pillow_heif.register_heif_opener()

# Pillow modes holding more than 8 bits per sample
HIGH_BIT_DEPTH_MODES = frozenset({"I", "I;16", "I;16B", "I;16L", "I;16N"})

# EXIF orientation -> transpose that brings the image upright
ORIENTATION_TRANSPOSE = {
    2: Image.Transpose.FLIP_LEFT_RIGHT,
    3: Image.Transpose.ROTATE_180,
    4: Image.Transpose.FLIP_TOP_BOTTOM,
    5: Image.Transpose.TRANSPOSE,
    6: Image.Transpose.ROTATE_270,
    7: Image.Transpose.TRANSVERSE,
    8: Image.Transpose.ROTATE_90,
}


def read_orientation(exif_blob: bytes | None) -> int:
    """Return the EXIF orientation tag, 1 (upright) when absent or unreadable."""
    if not exif_blob:
        return 1

    orientation = 1
    with contextlib.suppress(Exception):
        exif_dict = piexif.load(exif_blob)
        value = exif_dict.get("0th", {}).get(piexif.ImageIFD.Orientation)
        if isinstance(value, int) and 1 <= value <= 8:
            orientation = value
    return orientation


def _to_8bit(img: Image.Image) -> Image.Image:
    """Scale 16-bit samples down to 8 bits instead of letting convert() clip them."""
    if img.mode not in HIGH_BIT_DEPTH_MODES:
        return img
    samples = np.clip(np.asarray(img).astype(np.int64), 0, 65535) >> 8
    return Image.fromarray(samples.astype(np.uint8))


def decode_image(data: bytes | bytearray | memoryview) -> Raster:
    """Decode any image Pillow can read (plus HEIC/HEIF) into an RGBA raster.

    The EXIF orientation is applied so the raster is upright. 16-bit
    grayscale input is scaled to 8 bits.

    Args:
        data: Encoded image bytes

    Returns:
        Upright RGBA raster

    Raises:
        DecodeError: If the bytes are empty or not a readable image
    """
    if not data:
        raise DecodeError("Input image is empty")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            orientation = read_orientation(img.info.get("exif"))
            source = _to_8bit(img)
            rgba: Image.Image = source.convert("RGBA") if source.mode != "RGBA" else source
            transpose = ORIENTATION_TRANSPOSE.get(orientation)
            if transpose is not None:
                rgba = rgba.transpose(transpose)
            pixels = np.array(rgba, dtype=np.uint8)

        return Raster(pixels)

    except Exception as e:
        raise DecodeError(f"Failed to decode input image: {str(e)}") from e


def encode_image(raster: Raster, quality: int = DEFAULT_QUALITY) -> EncodedImage:
    """Encode a raster as JPEG. Alpha is dropped.

    Args:
        raster: Raster to encode
        quality: JPEG quality (0-100)

    Returns:
        EncodedImage with the JPEG bytes and MIME type

    Raises:
        EncodeError: If encoding fails
    """
    try:
        pil_image = Image.fromarray(raster.rgb)
        buffer = io.BytesIO()
        pil_image.save(buffer, format="JPEG", quality=quality, optimize=True)
        return EncodedImage(data=buffer.getvalue(), mime=JPEG_MIME)

    except Exception as e:
        raise EncodeError(f"Failed to encode JPEG: {str(e)}") from e
