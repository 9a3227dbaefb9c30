"""Logging setup and helpers for the photo_restore package.

Modules log through children of the ``photo_restore`` logger. Nothing is
configured on import; ``setup_logging`` attaches a console handler when a
host (or a verbose worker) asks for one.
"""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER_NAME = "photo_restore"

VERBOSE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class PlatformIndependentFormatter(logging.Formatter):
    """Formatter whose output always uses LF line endings."""

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        return formatted.replace("\r\n", "\n").replace("\r", "\n")


def setup_logging(level: int = logging.INFO, verbose: bool = False) -> logging.Logger:
    """Send photo_restore log records to stdout.

    Replaces any handler installed by an earlier call, so repeated calls do
    not duplicate output.

    Args:
        level: Logging level (default: INFO)
        verbose: Log at DEBUG with module and line information

    Returns:
        The package logger
    """
    effective_level = logging.DEBUG if verbose else level

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(effective_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(effective_level)
    handler.setFormatter(
        PlatformIndependentFormatter(
            VERBOSE_FORMAT if verbose else DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    logger.addHandler(handler)

    logger.debug(f"Logging configured at {logging.getLevelName(effective_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the photo_restore namespace."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def _format_context(context: dict[str, object]) -> str:
    return ", ".join(f"{key}={value}" for key, value in context.items())


def log_operation_start(logger: logging.Logger, operation: str, **context: object) -> None:
    """Log that an operation (e.g. "restoration") has started."""
    logger.info(f"Starting {operation}: {_format_context(context)}")


def log_operation_complete(
    logger: logging.Logger,
    operation: str,
    success: bool,
    duration: float | None = None,
    **context: object,
) -> None:
    """Log the outcome of an operation; failures go out at ERROR.

    Args:
        logger: Logger to write to
        operation: Name of the operation
        success: Whether the operation succeeded
        duration: Optional duration in seconds
        **context: Extra key/value pairs appended to the message
    """
    status = "completed successfully" if success else "failed"
    timing = f" in {duration:.2f}s" if duration is not None else ""
    message = f"{operation.capitalize()} {status}{timing}: {_format_context(context)}"

    logger.log(logging.INFO if success else logging.ERROR, message)


def log_stage_transition(
    logger: logging.Logger,
    stage: str,
    state: str,
    size: tuple[int, int],
    duration: float,
) -> None:
    """Log one pipeline stage at DEBUG.

    Args:
        logger: Logger to write to
        stage: Name of the stage that ran
        state: Pipeline state reached
        size: (width, height) of the stage output
        duration: Stage duration in seconds
    """
    if logger.isEnabledFor(logging.DEBUG):
        width, height = size
        logger.debug(f"Stage {stage} -> {state} ({width}x{height}) in {duration * 1000:.1f}ms")
