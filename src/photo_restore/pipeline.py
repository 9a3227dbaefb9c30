"""Restoration pipeline orchestrator.

Runs the stages in a fixed order over one live raster:

    normalize -> equalize -> [denoise] -> [remove defects] -> [contrast]
    -> [saturation] -> [sharpen] -> encode

Bracketed stages only run when their option is off its neutral value.
Each stage's input is released as soon as its output is accepted, and
every raster of a run is released on every exit path.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from time import perf_counter
from typing import TYPE_CHECKING

from photo_restore.adjusters import adjust_contrast, adjust_saturation
from photo_restore.codec import decode_image, encode_image
from photo_restore.config import create_config
from photo_restore.defects import DefectRemover
from photo_restore.denoiser import denoise
from photo_restore.equalizer import equalize_luma
from photo_restore.errors import ErrorHandler, RestoreError, StageError
from photo_restore.geometry import normalize_size
from photo_restore.logging_config import (
    get_logger,
    log_operation_complete,
    log_operation_start,
    log_stage_transition,
)
from photo_restore.models import DoneMessage, EncodedImage, PipelineConfig, RestoreOptions
from photo_restore.raster import Raster, RasterScope
from photo_restore.runtime import VisionRuntime, get_runtime
from photo_restore.sharpener import unsharp_mask

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from photo_restore.models import ProcessRequest, ProcessResponse


class PipelineState(Enum):
    """States a raster passes through during one run."""

    NORMALIZED = "normalized"
    EQUALIZED = "equalized"
    DENOISED = "denoised"
    DEFECTS_REMOVED = "defects_removed"
    CONTRASTED = "contrasted"
    SATURATED = "saturated"
    SHARPENED = "sharpened"
    ENCODED = "encoded"


@dataclass(frozen=True)
class Stage:
    """One transform of the pipeline.

    Attributes:
        state: State reached once the stage has run
        name: Human-readable stage name used in logs and errors
        enabled: Gate deciding from the options whether the stage runs
        apply: Transform producing a new raster from the current one
    """

    state: PipelineState
    name: str
    enabled: Callable[[RestoreOptions], bool]
    apply: Callable[[Raster, RestoreOptions], Raster]


def _always(options: RestoreOptions) -> bool:
    return True


class RestorationPipeline:
    """Sequence the restoration stages over a single raster.

    The pipeline holds configuration only; every run gets its own buffers,
    so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        logger: logging.Logger | None = None,
        runtime: VisionRuntime | None = None,
    ):
        """Initialize pipeline with configuration.

        Args:
            config: Pipeline configuration (defaults from create_config())
            logger: Optional logger instance
            runtime: OpenCV runtime lifecycle (defaults to the process-wide one)
        """
        self.config = config or create_config()
        self.logger = logger or get_logger(__name__)
        self.runtime = runtime or get_runtime()
        self.error_handler = ErrorHandler(self.logger)
        self.defect_remover = DefectRemover()
        self.stages = self._build_stages()

    def _build_stages(self) -> tuple[Stage, ...]:
        return (
            Stage(
                PipelineState.NORMALIZED,
                "normalize",
                _always,
                lambda raster, options: normalize_size(raster, self._max_size(options)),
            ),
            Stage(
                PipelineState.EQUALIZED,
                "equalize",
                _always,
                lambda raster, options: equalize_luma(raster),
            ),
            Stage(
                PipelineState.DENOISED,
                "denoise",
                lambda options: options.denoise > 0,
                lambda raster, options: denoise(raster, options.denoise),
            ),
            Stage(
                PipelineState.DEFECTS_REMOVED,
                "scratch removal",
                lambda options: options.scratch_removal > 0,
                lambda raster, options: self.defect_remover.remove(
                    raster, options.scratch_removal
                ),
            ),
            Stage(
                PipelineState.CONTRASTED,
                "contrast",
                lambda options: options.contrast != 0,
                lambda raster, options: adjust_contrast(raster, options.contrast),
            ),
            Stage(
                PipelineState.SATURATED,
                "saturation",
                lambda options: options.saturation != 0,
                lambda raster, options: adjust_saturation(raster, options.saturation),
            ),
            Stage(
                PipelineState.SHARPENED,
                "sharpen",
                lambda options: options.sharpen > 0,
                lambda raster, options: unsharp_mask(raster, options.sharpen),
            ),
        )

    def _max_size(self, options: RestoreOptions) -> int:
        if options.max_size is not None and options.max_size > 0:
            return options.max_size
        return self.config.default_max_size

    def restore(
        self,
        raster: Raster,
        options: RestoreOptions,
        trace: list[PipelineState] | None = None,
    ) -> Raster:
        """Run every enabled stage over a raster.

        The pipeline takes ownership of ``raster``: it is released once a
        stage supersedes it. The returned raster belongs to the caller.

        Args:
            raster: Decoded input raster
            options: Restoration parameters
            trace: Optional list the visited states are appended to

        Returns:
            Restored raster

        Raises:
            RuntimeUnavailableError: If OpenCV cannot be initialized
            StageError: If a stage fails
        """
        self.runtime.ensure_ready()

        with RasterScope() as scope:
            work = scope.adopt(raster)
            for stage in self.stages:
                if not stage.enabled(options):
                    self.logger.debug(f"Skipping {stage.name}: option at neutral value")
                    continue
                work = scope.replace(work, self._run_stage(stage, work, options))
                if trace is not None:
                    trace.append(stage.state)
            return scope.detach(work)

    def _run_stage(self, stage: Stage, raster: Raster, options: RestoreOptions) -> Raster:
        """Apply one stage, turning any failure into a StageError."""
        start_time = perf_counter()
        try:
            produced = stage.apply(raster, options)
        except RestoreError:
            raise
        except Exception as e:
            raise StageError(stage.name, f"{type(e).__name__}: {e}") from e

        if stage.state is not PipelineState.NORMALIZED and produced.size != raster.size:
            produced.release()
            raise StageError(
                stage.name,
                f"output size {produced.width}x{produced.height} differs from "
                f"input size {raster.width}x{raster.height}",
            )

        log_stage_transition(
            self.logger, stage.name, stage.state.value, produced.size, perf_counter() - start_time
        )
        return produced

    def process(
        self,
        data: bytes | bytearray | memoryview,
        options: RestoreOptions,
        trace: list[PipelineState] | None = None,
    ) -> EncodedImage:
        """Decode, restore and encode one image.

        Args:
            data: Encoded input image
            options: Restoration parameters
            trace: Optional list the visited states are appended to

        Returns:
            EncodedImage holding JPEG bytes

        Raises:
            RuntimeUnavailableError: If OpenCV cannot be initialized
            DecodeError: If the input is not a readable image
            StageError: If a stage fails
            EncodeError: If the result cannot be encoded
        """
        self.runtime.ensure_ready()

        with RasterScope() as scope:
            decoded = scope.adopt(decode_image(data))
            self.logger.debug(f"Decoded {decoded.width}x{decoded.height} image")
            restored = scope.adopt(self.restore(decoded, options, trace))
            encoded = encode_image(restored, self.config.quality)

        if trace is not None:
            trace.append(PipelineState.ENCODED)
        return encoded

    def handle_request(self, request: ProcessRequest) -> ProcessResponse:
        """Serve one request. Never raises.

        The request's buffer is moved into the pipeline.

        Args:
            request: Processing request

        Returns:
            DoneMessage on success, ErrorMessage otherwise
        """
        start_time = perf_counter()

        try:
            log_operation_start(self.logger, "restoration", request_id=request.id)
            if self.config.verbose:
                self.logger.debug(f"Options for request {request.id}: {request.options.to_dict()}")
            encoded = self.process(request.take_buffer(), request.options)
            log_operation_complete(
                self.logger,
                "restoration",
                True,
                perf_counter() - start_time,
                request_id=request.id,
                bytes=len(encoded.data),
            )
            return DoneMessage(id=request.id, buffer=encoded.data, mime=encoded.mime)

        except Exception as e:
            return self.error_handler.handle_error(
                e,
                {
                    "request_id": request.id,
                    "operation": "restoration",
                    "processing_time": perf_counter() - start_time,
                },
            )
