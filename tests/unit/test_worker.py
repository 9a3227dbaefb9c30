"""Unit tests for the background restoration worker."""

import logging
import threading

import pytest

from photo_restore import worker as worker_module
from photo_restore.errors import ProcessingFailedError
from photo_restore.models import (
    DoneMessage,
    ErrorMessage,
    PipelineConfig,
    ProcessRequest,
    ReadyMessage,
    RestoreOptions,
)
from photo_restore.pipeline import RestorationPipeline
from photo_restore.worker import RestoreWorker

TIMEOUT = 30


class MessageLog:
    """Thread-safe collector for outgoing wire messages."""

    def __init__(self):
        self._lock = threading.Lock()
        self.messages = []

    def __call__(self, message):
        with self._lock:
            self.messages.append(message)

    def types(self):
        with self._lock:
            return [message["type"] for message in self.messages]


class FailingRuntime:
    def ensure_ready(self):
        from photo_restore.errors import RuntimeUnavailableError

        raise RuntimeUnavailableError("OpenCV build is missing required functions: Canny")


@pytest.fixture
def messages():
    return MessageLog()


@pytest.fixture
def gate(monkeypatch):
    """Hold runtime initialization until the test releases it."""
    release = threading.Event()

    def blocked():
        release.wait(TIMEOUT)
        return None

    monkeypatch.setattr(worker_module, "_initialize_runtime", blocked)
    yield release
    release.set()


@pytest.fixture
def restore_worker(sample_config, messages):
    worker = RestoreWorker(sample_config, on_message=messages)
    yield worker
    worker.shutdown()


class TestStartup:
    """Tests for worker start-up and the ready signal."""

    def test_emits_ready_once(self, restore_worker, messages):
        ready = restore_worker.start().result(TIMEOUT)

        assert isinstance(ready, ReadyMessage)
        assert ready.runtime_available
        assert restore_worker.ready
        assert messages.types() == ["ready"]

    def test_start_is_idempotent(self, restore_worker):
        assert restore_worker.start() is restore_worker.start()

    def test_not_ready_before_init_finishes(self, restore_worker, gate):
        restore_worker.start()

        assert not restore_worker.ready

        gate.set()
        restore_worker.wait_ready(TIMEOUT)
        assert restore_worker.ready

    def test_init_failure_still_emits_ready_with_error(self, restore_worker, messages, monkeypatch):
        monkeypatch.setattr(worker_module, "_initialize_runtime", lambda: "no opencv")

        ready = restore_worker.start().result(TIMEOUT)

        assert not ready.runtime_available
        assert messages.messages == [{"type": "ready", "error": "no opencv"}]

    def test_requests_fail_when_runtime_unavailable(self, sample_config, sample_png):
        worker = RestoreWorker(sample_config)
        worker.pipeline = RestorationPipeline(sample_config, runtime=FailingRuntime())

        with worker:
            response = worker.submit(ProcessRequest(id="r", buffer=sample_png)).result(TIMEOUT)

        assert isinstance(response, ErrorMessage)
        assert response.category == "runtime"

    def test_verbose_worker_enables_debug_logging(self):
        package_logger = logging.getLogger("photo_restore")
        try:
            with RestoreWorker(PipelineConfig(verbose=True)) as worker:
                worker.wait_ready(TIMEOUT)

            assert package_logger.level == logging.DEBUG
            assert len(package_logger.handlers) == 1
        finally:
            package_logger.handlers.clear()
            package_logger.setLevel(logging.NOTSET)


class TestQueueing:
    """Tests for requests submitted before the ready signal."""

    def test_request_before_ready_is_queued_then_served(
        self, restore_worker, messages, gate, sample_png
    ):
        future = restore_worker.submit(ProcessRequest(id="early", buffer=sample_png))

        assert not future.done()
        assert messages.types() == []

        gate.set()
        response = future.result(TIMEOUT)

        assert isinstance(response, DoneMessage)
        assert response.id == "early"
        assert messages.types() == ["ready", "done"]

    def test_queued_requests_keep_their_ids(self, restore_worker, gate, sample_png):
        futures = {
            request_id: restore_worker.submit(ProcessRequest(id=request_id, buffer=sample_png))
            for request_id in ("a", "b", "c")
        }

        gate.set()

        for request_id, future in futures.items():
            assert future.result(TIMEOUT).id == request_id

    def test_submit_moves_buffer(self, restore_worker, sample_png):
        request = ProcessRequest(id="r", buffer=sample_png)

        restore_worker.submit(request).result(TIMEOUT)

        assert request.buffer is None

    def test_shutdown_answers_queued_requests(self, sample_config, messages, gate, sample_png):
        worker = RestoreWorker(sample_config, on_message=messages)
        future = worker.submit(ProcessRequest(id="late", buffer=sample_png))

        worker.shutdown(wait=False)
        response = future.result(TIMEOUT)

        assert isinstance(response, ErrorMessage)
        assert response.id == "late"
        assert response.category == "runtime"

    def test_submit_after_shutdown_raises(self, sample_config, sample_png):
        worker = RestoreWorker(sample_config)
        worker.shutdown()

        with pytest.raises(RuntimeError, match="shut down"):
            worker.submit(ProcessRequest(id="r", buffer=sample_png))


class TestPostMessage:
    """Tests for the wire-form entry point."""

    def test_process_message(self, restore_worker, messages, sample_png):
        future = restore_worker.post_message(
            {"type": "process", "id": "w1", "buffer": sample_png, "options": {"contrast": 10}}
        )

        response = future.result(TIMEOUT)

        assert isinstance(response, DoneMessage)
        done = [m for m in messages.messages if m["type"] == "done"]
        assert done[0]["id"] == "w1"
        assert done[0]["mime"] == "image/jpeg"

    def test_unknown_type_is_ignored(self, restore_worker, caplog):
        assert restore_worker.post_message({"type": "cancel", "id": "x"}) is None
        assert "Ignoring message of unknown type 'cancel'" in caplog.text

    def test_missing_id_answers_with_error(self, restore_worker, messages):
        response = restore_worker.post_message({"type": "process", "buffer": b"x"}).result(TIMEOUT)

        assert isinstance(response, ErrorMessage)
        assert response.id is None
        assert response.category == "configuration"
        assert messages.messages[-1]["type"] == "error"

    def test_bad_options_answer_with_error(self, restore_worker):
        future = restore_worker.post_message(
            {"type": "process", "id": "bad", "buffer": b"x", "options": {"denoise": "much"}}
        )

        response = future.result(TIMEOUT)

        assert response.id == "bad"
        assert response.category == "configuration"

    def test_malformed_image_answers_with_decode_error(self, restore_worker):
        future = restore_worker.post_message(
            {"type": "process", "id": "junk", "buffer": b"not an image"}
        )

        response = future.result(TIMEOUT)

        assert isinstance(response, ErrorMessage)
        assert response.id == "junk"
        assert response.category == "decode"

    def test_callback_failure_does_not_break_worker(self, sample_config, sample_png):
        def broken(message):
            raise RuntimeError("listener gone")

        with RestoreWorker(sample_config, on_message=broken) as worker:
            response = worker.submit(ProcessRequest(id="r", buffer=sample_png)).result(TIMEOUT)

        assert isinstance(response, DoneMessage)


class TestProcess:
    """Tests for the blocking convenience call."""

    def test_returns_encoded_image(self, restore_worker, sample_png):
        encoded = restore_worker.process(sample_png, RestoreOptions(sharpen=0.5), timeout=TIMEOUT)

        assert encoded.mime == "image/jpeg"
        assert encoded.data[:2] == b"\xff\xd8"

    def test_raises_on_error_response(self, restore_worker):
        with pytest.raises(ProcessingFailedError) as exc_info:
            restore_worker.process(b"not an image", timeout=TIMEOUT)

        assert exc_info.value.category == "decode"
        assert exc_info.value.request_id
