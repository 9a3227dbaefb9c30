"""Pytest configuration and shared fixtures."""

import io

import numpy as np
import pytest
from PIL import Image


@pytest.fixture
def sample_config():
    """Provide a sample configuration for testing."""
    from photo_restore.models import PipelineConfig

    return PipelineConfig(
        quality=95,
        default_max_size=2000,
        max_workers=1,
        use_processes=False,
        verbose=False,
    )


@pytest.fixture
def neutral_options():
    """Options with every gated stage switched off."""
    from photo_restore.models import RestoreOptions

    return RestoreOptions()


@pytest.fixture
def gradient_raster():
    """A 64x48 RGBA raster with a smooth color gradient."""
    from photo_restore.raster import Raster

    height, width = 48, 64
    x = np.linspace(40, 200, width, dtype=np.float32)
    y = np.linspace(60, 180, height, dtype=np.float32)
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[:, :, 0] = x[np.newaxis, :].astype(np.uint8)
    pixels[:, :, 1] = y[:, np.newaxis].astype(np.uint8)
    pixels[:, :, 2] = ((x[np.newaxis, :] + y[:, np.newaxis]) / 2).astype(np.uint8)
    pixels[:, :, 3] = 255
    return Raster(pixels)


@pytest.fixture
def png_bytes():
    """Encode an RGB array as PNG bytes."""

    def _encode(array: np.ndarray) -> bytes:
        buffer = io.BytesIO()
        Image.fromarray(array).save(buffer, format="PNG")
        return buffer.getvalue()

    return _encode


@pytest.fixture
def sample_png(png_bytes):
    """PNG bytes of a 80x60 noisy mid-tone image."""
    rng = np.random.default_rng(7)
    array = rng.integers(60, 190, size=(60, 80, 3), dtype=np.uint8)
    return png_bytes(array)
