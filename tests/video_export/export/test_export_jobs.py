from __future__ import annotations

from concurrent.futures import Executor, Future

import pytest

from video_export.config_manager import ExportSettings
from video_export.export import (
    ExportJobStatus,
    ExportOptions,
    ExportResult,
    VideoExportJobManager,
)
from video_export.progress import ExportPhase, ExportProgress

pytestmark = pytest.mark.export


class _DeferredExecutor(Executor):
    """Queues work until ``run_all`` is called."""

    def __init__(self) -> None:
        self.pending: list[tuple[Future, object, tuple]] = []

    def submit(self, fn, *args, **kwargs):
        future: Future = Future()
        self.pending.append((future, fn, args))
        return future

    def run_all(self) -> None:
        queued, self.pending = self.pending, []
        for future, fn, args in queued:
            if not future.set_running_or_notify_cancel():
                continue
            future.set_result(fn(*args))


class _StubService:
    def __init__(self, *results: ExportResult, error: Exception | None = None) -> None:
        self.settings = ExportSettings()
        self._results = list(results)
        self._error = error
        self.received: list[ExportOptions] = []

    def export_video(self, options: ExportOptions) -> ExportResult:
        self.received.append(options)
        options.on_progress(ExportProgress(ExportPhase.RENDERING_FRAMES, 25.0))
        if self._error is not None:
            raise self._error
        if options.cancel_event.is_set():
            return ExportResult(False, error="Export cancelled", error_code="video_export.cancelled")
        return self._results.pop(0)


@pytest.fixture
def executor() -> _DeferredExecutor:
    return _DeferredExecutor()


def test_successful_job_lifecycle(executor) -> None:
    service = _StubService(ExportResult(True, video_url="https://cdn.test/v.mp4", video_duration=40.0))
    manager = VideoExportJobManager(service, executor=executor)
    forwarded = []

    queued = manager.submit(ExportOptions(book_id=7, on_progress=forwarded.append))
    assert queued.status is ExportJobStatus.PENDING
    assert queued.started_at is None

    executor.run_all()
    finished = manager.get(queued.job_id)

    assert finished.status is ExportJobStatus.COMPLETED
    assert finished.is_terminal
    assert finished.result.video_url == "https://cdn.test/v.mp4"
    assert finished.progress.progress == 25.0
    assert [event.progress for event in forwarded] == [25.0]
    assert service.received[0].job_id == queued.job_id
    payload = finished.to_dict()
    assert payload["status"] == "completed"
    assert payload["result"]["videoUrl"] == "https://cdn.test/v.mp4"


def test_failed_and_crashed_jobs(executor) -> None:
    failing = VideoExportJobManager(
        _StubService(ExportResult(False, error="boom", error_code="video_export.encode.failed")),
        executor=executor,
    )
    crashing = VideoExportJobManager(_StubService(error=RuntimeError("worker died")), executor=executor)

    failed = failing.submit(ExportOptions(book_id=1))
    crashed = crashing.submit(ExportOptions(book_id=1))
    executor.run_all()

    assert failing.get(failed.job_id).status is ExportJobStatus.FAILED
    crash = crashing.get(crashed.job_id)
    assert crash.status is ExportJobStatus.FAILED
    assert crash.result.error == "worker died"


def test_cancelling_a_queued_job_skips_it(executor) -> None:
    service = _StubService(ExportResult(True))
    manager = VideoExportJobManager(service, executor=executor)
    job = manager.submit(ExportOptions(book_id=3))

    cancelled = manager.cancel(job.job_id)
    executor.run_all()

    assert cancelled.status is ExportJobStatus.CANCELLED
    assert manager.get(job.job_id).completed_at is not None
    assert service.received == []


def test_cancel_signals_a_running_job(executor) -> None:
    manager = VideoExportJobManager(_StubService(ExportResult(True)), executor=executor)
    job = manager.submit(ExportOptions(book_id=3))
    future, _, _ = executor.pending[0]
    future.set_running_or_notify_cancel()
    manager._jobs[job.job_id].status = ExportJobStatus.RUNNING

    assert manager.cancel(job.job_id).status is ExportJobStatus.RUNNING
    state = manager._jobs[job.job_id]
    assert state.cancel_event.is_set()

    manager._run_job(state)
    assert manager.get(job.job_id).status is ExportJobStatus.CANCELLED


def test_cancel_unknown_and_finished_jobs(executor) -> None:
    manager = VideoExportJobManager(_StubService(ExportResult(True)), executor=executor)
    assert manager.cancel("missing") is None

    job = manager.submit(ExportOptions(book_id=3))
    executor.run_all()

    assert manager.cancel(job.job_id).status is ExportJobStatus.COMPLETED


def test_list_filters_by_book_newest_first(executor) -> None:
    manager = VideoExportJobManager(_StubService(), executor=executor)
    first = manager.submit(ExportOptions(book_id=1))
    manager.submit(ExportOptions(book_id=2))
    third = manager.submit(ExportOptions(book_id=1))

    assert len(manager.list()) == 3
    listed = [job.job_id for job in manager.list(book_id=1)]
    assert set(listed) == {first.job_id, third.job_id}
    assert manager.list(book_id=1)[0].created_at >= manager.list(book_id=1)[1].created_at


def test_shutdown_signals_unfinished_jobs(executor) -> None:
    manager = VideoExportJobManager(_StubService(), executor=executor)
    job = manager.submit(ExportOptions(book_id=1))

    manager.shutdown(wait=False)

    assert manager._jobs[job.job_id].cancel_event.is_set()
