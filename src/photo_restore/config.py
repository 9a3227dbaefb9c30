"""Configuration handling for the photo restoration pipeline."""

import os

from .models import DEFAULT_MAX_SIZE, DEFAULT_QUALITY, PipelineConfig

QUALITY_ENV_VAR = "PHOTO_RESTORE_QUALITY"
MAX_SIZE_ENV_VAR = "PHOTO_RESTORE_MAX_SIZE"


def _int_from_env(name: str, minimum: int, maximum: int | None = None) -> int | None:
    value_str = os.getenv(name)
    if value_str is None:
        return None

    try:
        value = int(value_str)
    except ValueError:
        # Not a valid integer, will fall back to default
        return None

    if value < minimum or (maximum is not None and value > maximum):
        return None
    return value


def get_quality_from_env() -> int | None:
    """Get JPEG quality from the PHOTO_RESTORE_QUALITY environment variable.

    Returns:
        Quality value (0-100) if set and valid, None otherwise
    """
    return _int_from_env(QUALITY_ENV_VAR, 0, 100)


def get_max_size_from_env() -> int | None:
    """Get the default long-edge cap from PHOTO_RESTORE_MAX_SIZE.

    Returns:
        Positive pixel count if set and valid, None otherwise
    """
    return _int_from_env(MAX_SIZE_ENV_VAR, 1)


def create_config(
    quality: int | None = None,
    default_max_size: int | None = None,
    max_workers: int = 1,
    use_processes: bool = False,
    verbose: bool = False,
) -> PipelineConfig:
    """Create a PipelineConfig with environment variable fallback.

    Quality and the default long-edge cap are resolved in this order:
    1. Explicit parameter (if provided and valid)
    2. Environment variable (if set and valid)
    3. Built-in default (quality 95, long edge 2000)

    Args:
        quality: Explicit JPEG quality (0-100), or None to use environment/default
        default_max_size: Explicit long-edge cap, or None to use environment/default
        max_workers: Number of requests the worker runs concurrently
        use_processes: Run requests in worker processes
        verbose: Log request options and, once a worker starts, send DEBUG logs to stdout

    Returns:
        PipelineConfig with settings resolved according to priority

    Raises:
        ValueError: If max_workers is invalid
    """
    if quality is None or not 0 <= quality <= 100:
        env_quality = get_quality_from_env()
        quality = env_quality if env_quality is not None else DEFAULT_QUALITY

    if default_max_size is None or default_max_size < 1:
        env_max_size = get_max_size_from_env()
        default_max_size = env_max_size if env_max_size is not None else DEFAULT_MAX_SIZE

    return PipelineConfig(
        quality=quality,
        default_max_size=default_max_size,
        max_workers=max_workers,
        use_processes=use_processes,
        verbose=verbose,
    )
