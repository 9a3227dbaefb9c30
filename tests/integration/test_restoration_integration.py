"""Integration tests for end-to-end restoration.

These tests run real images through decode, every stage and JPEG encode:
- Oversized input is capped to the configured long edge
- A scratched print has its defects filled while the rest is untouched
- Contrast on a flat image follows the gain formula after equalization
- Malformed input is reported against its request id
"""

import io

import numpy as np
from PIL import Image

from photo_restore.config import create_config
from photo_restore.defects import DefectRemover
from photo_restore.equalizer import equalize_luma
from photo_restore.models import DoneMessage, ErrorMessage, ProcessRequest, RestoreOptions
from photo_restore.pipeline import PipelineState, RestorationPipeline
from photo_restore.raster import Raster


def _decode_jpeg(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


class TestOversizedInput:
    """A 4000x3000 photo is capped to 2000x1500."""

    def test_restore_caps_long_edge(self):
        pipeline = RestorationPipeline(create_config())
        raster = Raster.filled(4000, 3000, (120, 110, 100, 255))

        result = pipeline.restore(raster, RestoreOptions(max_size=2000))

        assert result.size == (2000, 1500)

    def test_process_caps_long_edge(self):
        buffer = io.BytesIO()
        Image.new("RGB", (4000, 3000), color=(128, 100, 90)).save(buffer, format="JPEG")
        pipeline = RestorationPipeline(create_config())

        options = RestoreOptions.from_mapping({"maxSize": 2000})

        encoded = pipeline.process(buffer.getvalue(), options)

        with _decode_jpeg(encoded.data) as img:
            assert img.size == (2000, 1500)

    def test_portrait_uses_height_as_long_edge(self):
        pipeline = RestorationPipeline(create_config())
        raster = Raster.filled(300, 900, (10, 20, 30, 255))

        assert pipeline.restore(raster, RestoreOptions(max_size=300)).size == (100, 300)


class TestScratchedPrint:
    """A bright scratch on a smooth print is filled in."""

    def _scratched(self):
        x = np.linspace(70, 150, 120, dtype=np.float32)
        rgb = np.empty((90, 120, 3), dtype=np.uint8)
        rgb[:, :, 0] = x[np.newaxis, :].astype(np.uint8)
        rgb[:, :, 1] = (x[np.newaxis, :] * 0.9).astype(np.uint8)
        rgb[:, :, 2] = (x[np.newaxis, :] * 0.8).astype(np.uint8)
        rgb[44:46, 10:110] = 255
        return Raster.from_array(rgb)

    def test_only_detected_defects_change(self):
        pipeline = RestorationPipeline(create_config())
        scratched = self._scratched()
        equalized = equalize_luma(scratched.copy())
        mask = DefectRemover().build_mask(equalized, 35)
        trace = []

        result = pipeline.restore(scratched, RestoreOptions(scratch_removal=35), trace)

        assert trace[-1] is PipelineState.DEFECTS_REMOVED
        assert mask[44:46, 20:100].any()
        outside = mask == 0
        assert np.array_equal(result.rgb[outside], equalized.rgb[outside])

    def test_scratch_is_darkened(self):
        pipeline = RestorationPipeline(create_config())
        scratched = self._scratched()
        equalized = equalize_luma(scratched.copy())
        mask = DefectRemover().build_mask(equalized, 35)

        result = pipeline.restore(scratched, RestoreOptions(scratch_removal=35))

        filled = mask > 0
        before = equalized.rgb[filled].astype(np.float32).mean()
        after = result.rgb[filled].astype(np.float32).mean()
        assert after < before


class TestWideScratch:
    """A 10px bright line on flat gray is filled across its whole width."""

    def _wide_line(self):
        rgb = np.full((80, 80, 3), 100, dtype=np.uint8)
        rgb[:, 35:45] = 250
        return Raster.from_array(rgb)

    def test_interior_is_masked(self):
        equalized = equalize_luma(self._wide_line())

        mask = DefectRemover().build_mask(equalized, 50)

        assert np.all(mask[:, 36:44] == 255)
        assert not mask[:, :25].any()
        assert not mask[:, 55:].any()

    def test_line_is_filled_from_background(self):
        pipeline = RestorationPipeline(create_config())
        line = self._wide_line()
        equalized = equalize_luma(line.copy())
        mask = DefectRemover().build_mask(equalized, 50)

        result = pipeline.restore(line, RestoreOptions.from_mapping({"scratchRemoval": 50}))

        assert result.rgb[:, 36:44].max() < 128
        outside = mask == 0
        assert np.array_equal(result.rgb[outside], equalized.rgb[outside])


class TestFlatContrast:
    """Contrast +50 on a flat mid-gray gives 192 on every color sample."""

    def test_flat_gray_contrast(self):
        pipeline = RestorationPipeline(create_config())
        raster = Raster.filled(32, 32, (128, 128, 128, 255))

        result = pipeline.restore(raster, RestoreOptions(contrast=50))

        assert np.all(result.rgb == 192)
        assert np.all(result.alpha == 255)


class TestMalformedInput:
    """Bytes that are not an image come back as a decode error."""

    def test_error_carries_request_id(self):
        pipeline = RestorationPipeline(create_config())

        response = pipeline.handle_request(
            ProcessRequest(id="scan-17", buffer=b"\x89PNG\r\n\x1a\n broken")
        )

        assert isinstance(response, ErrorMessage)
        assert response.id == "scan-17"
        assert response.category == "decode"
        assert response.to_dict()["type"] == "error"

    def test_pipeline_usable_after_failure(self, sample_png):
        pipeline = RestorationPipeline(create_config())
        pipeline.handle_request(ProcessRequest(id="bad", buffer=b"nope"))

        response = pipeline.handle_request(ProcessRequest(id="good", buffer=sample_png))

        assert isinstance(response, DoneMessage)
        assert response.id == "good"
