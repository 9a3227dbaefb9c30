"""Photo Restore.

A restoration pipeline for scanned and photographed old prints: luminance
equalization, denoising, scratch removal, contrast, saturation and
sharpening over a single image, served through a background worker.
"""

__version__ = "0.1.0"

from photo_restore.config import create_config, get_max_size_from_env, get_quality_from_env
from photo_restore.errors import (
    DecodeError,
    EncodeError,
    ErrorCategory,
    ErrorHandler,
    ProcessingFailedError,
    RasterReleasedError,
    RestoreError,
    RuntimeUnavailableError,
    StageError,
)
from photo_restore.logging_config import (
    get_logger,
    log_operation_complete,
    log_operation_start,
    setup_logging,
)
from photo_restore.models import (
    DoneMessage,
    EncodedImage,
    ErrorMessage,
    MessageType,
    PipelineConfig,
    ProcessRequest,
    ReadyMessage,
    RestoreOptions,
)
from photo_restore.pipeline import PipelineState, RestorationPipeline
from photo_restore.raster import Raster, RasterScope
from photo_restore.runtime import VisionRuntime, ensure_runtime, get_runtime
from photo_restore.worker import RestoreWorker

__all__ = [
    "DecodeError",
    "DoneMessage",
    "EncodeError",
    "EncodedImage",
    "ErrorCategory",
    "ErrorHandler",
    "ErrorMessage",
    "MessageType",
    "PipelineConfig",
    "PipelineState",
    "ProcessRequest",
    "ProcessingFailedError",
    "Raster",
    "RasterReleasedError",
    "RasterScope",
    "ReadyMessage",
    "RestorationPipeline",
    "RestoreError",
    "RestoreOptions",
    "RestoreWorker",
    "RuntimeUnavailableError",
    "StageError",
    "VisionRuntime",
    "create_config",
    "ensure_runtime",
    "get_logger",
    "get_max_size_from_env",
    "get_quality_from_env",
    "get_runtime",
    "log_operation_complete",
    "log_operation_start",
    "setup_logging",
]
