"""Background worker hosting the restoration pipeline.

The worker keeps restoration off the caller's thread. It speaks a small
message protocol:

- ``{"type": "process", "id", "buffer", "options"}`` from the caller
- ``{"type": "ready"}`` once, after the OpenCV runtime is initialized
- ``{"type": "done", "id", "buffer", "mime"}`` on success
- ``{"type": "error", "id", "message", "category"}`` on failure

Requests submitted before the ready signal are queued, never dropped.
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from photo_restore.config import create_config
from photo_restore.errors import ErrorHandler, ProcessingFailedError, RuntimeUnavailableError
from photo_restore.logging_config import get_logger, setup_logging
from photo_restore.models import (
    EncodedImage,
    ErrorMessage,
    MessageType,
    PipelineConfig,
    ProcessRequest,
    ReadyMessage,
    RestoreOptions,
)
from photo_restore.pipeline import RestorationPipeline
from photo_restore.runtime import ensure_runtime

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Mapping

    from photo_restore.models import ProcessResponse

    Message = ProcessResponse | ReadyMessage


def _initialize_runtime() -> str | None:
    """Initialize the runtime in the current process; return the error text on failure."""
    try:
        ensure_runtime()
    except RuntimeUnavailableError as e:
        return str(e)
    return None


def _handle_request_worker(
    request_id: str,
    buffer: bytes | bytearray | memoryview,
    options: RestoreOptions,
    config: PipelineConfig,
) -> ProcessResponse:
    """Run one request in a worker process.

    Module-level so ProcessPoolExecutor can pickle it.
    """
    pipeline = RestorationPipeline(config)
    return pipeline.handle_request(ProcessRequest(id=request_id, buffer=buffer, options=options))


class RestoreWorker:
    """Run restoration requests on background threads or processes.

    Each request runs once, on its own buffers. Responses are delivered
    both through the Future returned by ``submit`` and, as wire
    dictionaries, through the ``on_message`` callback.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        on_message: Callable[[dict[str, Any]], None] | None = None,
        logger: logging.Logger | None = None,
    ):
        """Initialize the worker. Nothing runs until start() or submit().

        Args:
            config: Pipeline configuration (defaults from create_config())
            on_message: Optional callback receiving every outgoing message
            logger: Optional logger instance
        """
        self.config = config or create_config()
        self.on_message = on_message
        self.logger = logger or get_logger(__name__)
        self.error_handler = ErrorHandler(self.logger)
        self.pipeline = RestorationPipeline(self.config, self.logger)

        self._lock = threading.Lock()
        self._pending: list[tuple[ProcessRequest, Future[ProcessResponse]]] = []
        self._ready_future: Future[ReadyMessage] = Future()
        self._is_ready = False
        self._started = False
        self._closed = False
        self._executor: ThreadPoolExecutor | None = None
        self._process_pool: ProcessPoolExecutor | None = None

    @property
    def ready(self) -> bool:
        """True once the ready signal has been emitted."""
        return self._ready_future.done()

    def wait_ready(self, timeout: float | None = None) -> ReadyMessage:
        """Block until the ready signal has been emitted."""
        return self._ready_future.result(timeout=timeout)

    def start(self) -> Future[ReadyMessage]:
        """Start runtime initialization in the background.

        Calling start() again returns the same future.

        Returns:
            Future resolved with the ReadyMessage
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("RestoreWorker has been shut down")
            if self._started:
                return self._ready_future
            self._started = True
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers, thread_name_prefix="photo-restore"
            )
            if self.config.use_processes:
                self._process_pool = ProcessPoolExecutor(max_workers=self.config.max_workers)
            executor = self._executor

        if self.config.verbose:
            setup_logging(verbose=True)
        self.logger.info(
            f"RestoreWorker starting with {self.config.max_workers} "
            f"{'process' if self.config.use_processes else 'thread'} worker(s)"
        )
        init_future = executor.submit(self._run_initialization)
        init_future.add_done_callback(self._on_initialized)
        return self._ready_future

    def _run_initialization(self) -> str | None:
        if self._process_pool is not None:
            return self._process_pool.submit(_initialize_runtime).result()
        return _initialize_runtime()

    def _on_initialized(self, init_future: Future[str | None]) -> None:
        try:
            error = init_future.result()
        except Exception as e:
            error = f"{type(e).__name__}: {e}"

        ready = ReadyMessage(error=error)
        if error is None:
            self.logger.info("RestoreWorker ready")
        else:
            self.logger.error(f"RestoreWorker ready without a usable runtime: {error}")

        self._emit(ready)
        self._ready_future.set_result(ready)

        with self._lock:
            self._is_ready = True
            pending, self._pending = self._pending, []

        for request, future in pending:
            self._dispatch(request, future)

    def submit(self, request: ProcessRequest) -> Future[ProcessResponse]:
        """Queue a request; it runs once the worker is ready.

        The request's buffer is moved into the worker.

        Args:
            request: Processing request

        Returns:
            Future resolved with a DoneMessage or ErrorMessage

        Raises:
            RuntimeError: If the worker has been shut down
        """
        self.start()
        future: Future[ProcessResponse] = Future()

        with self._lock:
            if self._closed:
                raise RuntimeError("RestoreWorker has been shut down")
            if not self._is_ready:
                self._pending.append((request, future))
                self.logger.debug(f"Queued request {request.id} until the runtime is ready")
                return future

        self._dispatch(request, future)
        return future

    def _dispatch(self, request: ProcessRequest, future: Future[ProcessResponse]) -> None:
        if self._executor is None:
            raise RuntimeError("RestoreWorker has not been started")

        try:
            buffer = request.take_buffer()
        except ValueError as e:
            error = self.error_handler.handle_error(
                e, {"request_id": request.id, "operation": "dispatch"}
            )
            self._resolve(future, error)
            return

        try:
            inner = self._executor.submit(self._execute, request.id, buffer, request.options)
        except RuntimeError as e:
            # Executor already shut down
            error = self.error_handler.handle_error(
                e, {"request_id": request.id, "operation": "dispatch"}
            )
            self._resolve(future, error)
            return

        inner.add_done_callback(lambda done: self._on_request_done(request.id, future, done))

    def _execute(
        self,
        request_id: str,
        buffer: bytes | bytearray | memoryview,
        options: RestoreOptions,
    ) -> ProcessResponse:
        if self._process_pool is not None:
            return self._process_pool.submit(
                _handle_request_worker, request_id, buffer, options, self.config
            ).result()
        return self.pipeline.handle_request(
            ProcessRequest(id=request_id, buffer=buffer, options=options)
        )

    def _on_request_done(
        self,
        request_id: str,
        future: Future[ProcessResponse],
        done: Future[ProcessResponse],
    ) -> None:
        try:
            response = done.result()
        except Exception as e:
            # Failure outside the pipeline, e.g. a broken process pool
            response = self.error_handler.handle_error(
                e, {"request_id": request_id, "operation": "dispatch"}
            )
        self._resolve(future, response)

    def _resolve(self, future: Future[ProcessResponse], response: ProcessResponse) -> None:
        self._emit(response)
        future.set_result(response)

    def _emit(self, message: Message) -> None:
        if self.on_message is None:
            return
        try:
            self.on_message(message.to_dict())
        except Exception:
            self.logger.exception("on_message callback raised")

    def post_message(self, message: Mapping[str, Any]) -> Future[ProcessResponse] | None:
        """Accept a message in wire form.

        Only ``process`` messages are understood; others are ignored with a
        warning. A malformed process message is answered with an error
        response instead of raising.

        Args:
            message: Wire message

        Returns:
            Future of the response, or None for ignored messages
        """
        message_type = message.get("type")
        if message_type != MessageType.PROCESS.value:
            self.logger.warning(f"Ignoring message of unknown type {message_type!r}")
            return None

        try:
            request = ProcessRequest.from_dict(message)
        except (ValueError, TypeError) as e:
            future: Future[ProcessResponse] = Future()
            error = self.error_handler.handle_error(
                e, {"request_id": message.get("id"), "operation": "parse_request"}
            )
            self._resolve(future, error)
            return future

        return self.submit(request)

    def process(
        self,
        data: bytes | bytearray | memoryview,
        options: RestoreOptions | None = None,
        timeout: float | None = None,
    ) -> EncodedImage:
        """Restore one image and wait for the result.

        Args:
            data: Encoded input image
            options: Restoration parameters (neutral when None)
            timeout: Optional seconds to wait for the result

        Returns:
            EncodedImage with the restored JPEG

        Raises:
            ProcessingFailedError: If the worker answers with an error
            TimeoutError: If the result does not arrive in time
        """
        request = ProcessRequest(
            id=uuid.uuid4().hex,
            buffer=data,
            options=options or RestoreOptions(),
        )
        response = self.submit(request).result(timeout=timeout)
        if isinstance(response, ErrorMessage):
            raise ProcessingFailedError(response.message, response.id, response.category)
        return EncodedImage(data=response.buffer, mime=response.mime)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker.

        Requests still waiting for the ready signal are answered with an
        error response.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending, self._pending = self._pending, []
            executor, process_pool = self._executor, self._process_pool

        for request, future in pending:
            cancelled = ErrorMessage(
                id=request.id,
                message="Worker shut down before the request could run",
                category="runtime",
            )
            self._resolve(future, cancelled)

        if executor is not None:
            executor.shutdown(wait=wait)
        if process_pool is not None:
            process_pool.shutdown(wait=wait)
        self.logger.info("RestoreWorker shut down")

    def __enter__(self) -> RestoreWorker:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
