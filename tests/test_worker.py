"""Tests for the background processing worker."""
import threading
from pathlib import Path

import pytest

from lofi_converter.errors import ProcessingFailed, TrackBusyError, TrackNotFoundError
from lofi_converter.pipeline import EffectsPipeline
from lofi_converter.server.config import ErrorCode
from lofi_converter.server.worker import ProcessingWorker, TaskStatus
from lofi_converter.track_store import TrackStatus, TrackStore


class BlockingPipeline:
    """Pipeline stand-in that waits for a signal before writing its output."""

    def __init__(self, output_dir):
        self.output_dir = Path(output_dir)
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def transform(self, input_path, effects, seed=None, output_dir=None):
        self.calls += 1
        self.started.set()
        self.release.wait(timeout=10)
        out = self.output_dir / f"lofi_fake{self.calls}.wav"
        out.write_bytes(b"rendered")
        return str(out)


class FailingPipeline:
    def transform(self, input_path, effects, seed=None, output_dir=None):
        raise ProcessingFailed("decoder choked")


@pytest.fixture
def store():
    return TrackStore()


class TestProcessingWorker:
    """Tests for ProcessingWorker."""

    def test_renders_track(self, store, stereo_wav):
        worker = ProcessingWorker(store, EffectsPipeline())
        track = store.create(stereo_wav.name, str(stereo_wav), stereo_wav.stat().st_size, 2)
        try:
            result = worker.wait(worker.submit(track.id), timeout=60)
        finally:
            worker.shutdown()

        assert result.success
        done = store.get(track.id)
        assert done.status == TrackStatus.COMPLETED
        assert done.lofi_path == result.lofi_path
        assert Path(done.lofi_path).exists()

    def test_busy_track_is_refused(self, store, temp_dir):
        pipeline = BlockingPipeline(temp_dir)
        worker = ProcessingWorker(store, pipeline)
        track = store.create("a.wav", str(Path(temp_dir) / "a.wav"), 10)
        try:
            task_id = worker.submit(track.id)
            assert pipeline.started.wait(timeout=10)
            assert store.get(track.id).status == TrackStatus.PROCESSING

            with pytest.raises(TrackBusyError):
                worker.submit(track.id)

            pipeline.release.set()
            assert worker.wait(task_id, timeout=10).success
        finally:
            pipeline.release.set()
            worker.shutdown()

        assert pipeline.calls == 1
        # Once finished the track can be rendered again
        assert store.get(track.id).status == TrackStatus.COMPLETED

    def test_failure_sets_error_status(self, store):
        errors = []
        worker = ProcessingWorker(store, FailingPipeline(),
                                  error_callback=lambda code, msg: errors.append((code, msg)))
        track = store.create("a.wav", "/uploads/a.wav", 10)
        try:
            task_id = worker.submit(track.id)
            result = worker.wait(task_id, timeout=10)
        finally:
            worker.shutdown()

        assert not result.success
        assert result.error_code == ErrorCode.PROCESSING_FAILED
        assert worker.get_status(task_id) == TaskStatus.FAILED
        failed = store.get(track.id)
        assert failed.status == TrackStatus.ERROR
        assert failed.error_message == "decoder choked"
        assert errors == [(ErrorCode.PROCESSING_FAILED, "decoder choked")]

    def test_missing_input_reports_file_not_found(self, store, temp_dir):
        worker = ProcessingWorker(store, EffectsPipeline())
        track = store.create("gone.wav", str(Path(temp_dir) / "gone.wav"), 10)
        try:
            result = worker.wait(worker.submit(track.id), timeout=10)
        finally:
            worker.shutdown()

        assert result.error_code == ErrorCode.FILE_NOT_FOUND
        assert store.get(track.id).status == TrackStatus.ERROR

    def test_completion_callback(self, store, temp_dir):
        results = []
        pipeline = BlockingPipeline(temp_dir)
        pipeline.release.set()
        worker = ProcessingWorker(store, pipeline, completion_callback=results.append)
        track = store.create("a.wav", "/uploads/a.wav", 10)
        try:
            worker.wait(worker.submit(track.id), timeout=10)
        finally:
            worker.shutdown()

        assert len(results) == 1
        assert results[0].track_id == track.id
        assert results[0].to_dict()["success"] is True

    def test_track_deleted_mid_render(self, store, temp_dir):
        pipeline = BlockingPipeline(temp_dir)
        worker = ProcessingWorker(store, pipeline)
        track = store.create("a.wav", str(Path(temp_dir) / "a.wav"), 10)
        try:
            task_id = worker.submit(track.id)
            assert pipeline.started.wait(timeout=10)
            store.delete(track.id)
            pipeline.release.set()
            result = worker.wait(task_id, timeout=10)
        finally:
            pipeline.release.set()
            worker.shutdown()

        assert not result.success
        assert result.error_code == ErrorCode.TRACK_NOT_FOUND
        assert not (Path(temp_dir) / "lofi_fake1.wav").exists()

    def test_unknown_track(self, store):
        worker = ProcessingWorker(store, FailingPipeline())
        try:
            with pytest.raises(TrackNotFoundError):
                worker.submit(42)
        finally:
            worker.shutdown()

    def test_submit_after_shutdown(self, store):
        worker = ProcessingWorker(store, FailingPipeline())
        track = store.create("a.wav", "/uploads/a.wav", 10)
        worker.shutdown()
        assert worker.is_shutting_down
        with pytest.raises(RuntimeError):
            worker.submit(track.id)
        # Refused before the track was touched
        assert store.get(track.id).status == TrackStatus.UPLOADING
