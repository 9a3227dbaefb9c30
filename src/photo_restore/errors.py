"""Error definitions for the photo restoration pipeline."""

import logging
import traceback
from enum import Enum
from typing import Any

from .logging_config import get_logger
from .models import ErrorMessage


class RestoreError(Exception):
    """Base exception for restoration errors."""

    pass


class DecodeError(RestoreError):
    """Raised when the input bytes are not a readable image."""

    pass


class RuntimeUnavailableError(RestoreError):
    """Raised when the OpenCV runtime cannot be initialized."""

    pass


class StageError(RestoreError):
    """Raised when a pipeline stage fails.

    Attributes:
        stage: Name of the stage that failed
    """

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(message)
        self.stage = stage


class EncodeError(RestoreError):
    """Raised when the final raster cannot be encoded."""

    pass


class RasterReleasedError(RestoreError):
    """Raised when a released raster is accessed."""

    pass


class ProcessingFailedError(RestoreError):
    """Raised on the client side when a request comes back as an error.

    Attributes:
        request_id: Correlation identifier of the failed request
        category: Error category reported by the worker
    """

    def __init__(self, message: str, request_id: str | None = None, category: str = "unknown"):
        super().__init__(message)
        self.request_id = request_id
        self.category = category


class ErrorCategory(Enum):
    """Categories of errors for classification."""

    DECODE = "decode"
    RUNTIME = "runtime"
    STAGE = "stage"
    ENCODE = "encode"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ErrorHandler:
    """Turn exceptions raised during a restoration into error responses.

    Classifies the error, logs it with its context and builds a
    user-facing message. Never raises.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        """Initialize the error handler.

        Args:
            logger: Optional logger instance. If None, creates a default logger.
        """
        self.logger = logger or get_logger(__name__)

    def handle_error(self, error: Exception, context: dict[str, Any]) -> ErrorMessage:
        """Handle an error raised while serving a request.

        Args:
            error: The exception that occurred
            context: Context information (e.g., request_id, operation)

        Returns:
            ErrorMessage carrying the request id and a readable message
        """
        category = self._classify_error(error)
        user_message = self._generate_user_message(error, category, context)
        self._log_error(error, category, context)

        request_id = context.get("request_id")
        return ErrorMessage(
            id=str(request_id) if request_id is not None else None,
            message=user_message,
            category=category.value,
        )

    def _classify_error(self, error: Exception) -> ErrorCategory:
        """Classify error into category.

        Args:
            error: The exception to classify

        Returns:
            ErrorCategory indicating the type of error
        """
        if isinstance(error, DecodeError):
            return ErrorCategory.DECODE
        elif isinstance(error, RuntimeUnavailableError):
            return ErrorCategory.RUNTIME
        elif isinstance(error, StageError):
            return ErrorCategory.STAGE
        elif isinstance(error, EncodeError):
            return ErrorCategory.ENCODE
        elif isinstance(error, (ValueError, TypeError)):
            return ErrorCategory.CONFIGURATION
        else:
            return ErrorCategory.UNKNOWN

    def _generate_user_message(
        self, error: Exception, category: ErrorCategory, context: dict[str, Any]
    ) -> str:
        """Generate a clear error message for the caller.

        Args:
            error: The exception that occurred
            category: The error category
            context: Context information

        Returns:
            User-facing error message in English
        """
        base_message = str(error)

        if category == ErrorCategory.DECODE:
            return f"Could not read the image: {base_message}. Use a JPEG, PNG, WebP or HEIC file."

        elif category == ErrorCategory.RUNTIME:
            return f"Image processing engine is unavailable: {base_message}"

        elif category == ErrorCategory.STAGE:
            stage = getattr(error, "stage", None) or context.get("operation", "restoration")
            return f"Processing error during {stage}: {base_message}"

        elif category == ErrorCategory.ENCODE:
            return f"Could not encode the restored image: {base_message}"

        elif category == ErrorCategory.CONFIGURATION:
            return f"Invalid request: {base_message}"

        else:  # UNKNOWN
            return f"Unexpected error during restoration: {base_message or type(error).__name__}"

    def _log_error(
        self, error: Exception, category: ErrorCategory, context: dict[str, Any]
    ) -> None:
        """Log error with full context and stack trace.

        Args:
            error: The exception that occurred
            category: The error category
            context: Context information
        """
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())

        self.logger.error(
            f"Error [{category.value}]: {type(error).__name__}: {error}",
            extra={"context": context_str},
        )

        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(
                f"Stack trace for error in request {context.get('request_id', 'unknown')}:\n"
                f"{''.join(traceback.format_exception(type(error), error, error.__traceback__))}"
            )
