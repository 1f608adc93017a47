"""
Background Worker Module

Runs lo-fi renders off the request thread. Uses ThreadPoolExecutor so
different tracks render concurrently, while status gating keeps each
track to at most one render in flight.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..effects import Effects
from ..errors import (
    EmptyOutputFailure,
    InputNotAccessible,
    InvalidUploadError,
    LofiError,
    PresetLoadError,
    TrackBusyError,
    TrackNotFoundError,
)
from ..pipeline import EffectsPipeline
from ..track_store import TrackStatus, TrackStore, remove_file
from .config import ErrorCode

logger = logging.getLogger(__name__)


class TaskStatus(Enum):
    """Status of a render task."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ProcessingResult:
    """
    Result of a finished render task.

    Attributes:
        task_id: Unique identifier for the task
        track_id: Track that was rendered
        success: Whether the render succeeded
        lofi_path: Rendered file (empty on failure)
        error_code: ErrorCode value if failed
        error_message: Error description if failed
        duration: Wall time spent rendering (seconds)
    """
    task_id: str
    track_id: int
    success: bool
    lofi_path: str = ""
    error_code: int = 0
    error_message: str = ""
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON transmission."""
        return {
            "task_id": self.task_id,
            "track_id": self.track_id,
            "success": self.success,
            "lofi_path": self.lofi_path,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "duration": self.duration,
        }


@dataclass
class Task:
    """
    Internal representation of a queued/running task.
    """
    id: str
    track_id: int
    status: TaskStatus = TaskStatus.PENDING
    future: Optional[Future] = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[ProcessingResult] = None


def error_code_for(exc: BaseException) -> int:
    """Map a domain exception to an ErrorCode."""
    if isinstance(exc, InputNotAccessible):
        return ErrorCode.FILE_NOT_FOUND
    if isinstance(exc, EmptyOutputFailure):
        return ErrorCode.EMPTY_OUTPUT
    if isinstance(exc, TrackBusyError):
        return ErrorCode.TRACK_BUSY
    if isinstance(exc, TrackNotFoundError):
        return ErrorCode.TRACK_NOT_FOUND
    if isinstance(exc, InvalidUploadError):
        return ErrorCode.INVALID_UPLOAD
    if isinstance(exc, PresetLoadError):
        return ErrorCode.PRESET_NOT_FOUND
    if isinstance(exc, LofiError):
        return ErrorCode.PROCESSING_FAILED
    return ErrorCode.UNKNOWN


class ProcessingWorker:
    """
    Background worker for non-blocking track rendering.

    Example:
        ```python
        worker = ProcessingWorker(store, EffectsPipeline())
        task_id = worker.submit(track.id)
        result = worker.wait(task_id)
        ```
    """

    def __init__(
        self,
        store: TrackStore,
        pipeline: Optional[EffectsPipeline] = None,
        max_workers: int = 2,
        completion_callback: Optional[Callable[[ProcessingResult], None]] = None,
        error_callback: Optional[Callable[[int, str], None]] = None,
    ):
        """
        Initialize the processing worker.

        Args:
            store: Track registry whose statuses the worker updates
            pipeline: Effect pipeline (default: renders next to the input)
            max_workers: Maximum concurrent renders
            completion_callback: Called with ProcessingResult on success
            error_callback: Called with (error_code, message) on failure
        """
        self.store = store
        self.pipeline = pipeline or EffectsPipeline()
        self.max_workers = max_workers
        self.completion_callback = completion_callback
        self.error_callback = error_callback

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="LofiRender-"
        )
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()
        self._shutdown_requested = False

    def submit(self, track_id: int, effects: Optional[Effects] = None) -> str:
        """
        Queue a render of the track.

        Args:
            track_id: Track to render
            effects: New effects to render with (default: the track's current ones)

        Returns:
            task_id: Unique identifier for tracking the task

        Raises:
            TrackNotFoundError: If the track does not exist
            TrackBusyError: If the track is already processing
            RuntimeError: If the worker is shutting down
        """
        if self._shutdown_requested:
            raise RuntimeError("Worker is shutting down")

        if self.store.begin_processing(track_id, effects) is None:
            raise TrackBusyError(f"Track {track_id} is already processing")

        task = Task(id=str(uuid.uuid4())[:8], track_id=track_id)
        with self._lock:
            self._tasks[task.id] = task

        task.future = self._executor.submit(self._execute_task, task)
        logger.debug("Queued task %s for track %d", task.id, track_id)
        return task.id

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_requested

    def get_status(self, task_id: str) -> Optional[TaskStatus]:
        """Get the status of a task."""
        with self._lock:
            task = self._tasks.get(task_id)
            return task.status if task else None

    def wait(self, task_id: str, timeout: Optional[float] = None) -> ProcessingResult:
        """
        Block until a task finishes.

        Raises:
            KeyError: If the task id is unknown
            concurrent.futures.TimeoutError: If the timeout expires
        """
        with self._lock:
            task = self._tasks[task_id]
        assert task.future is not None
        return task.future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the worker.

        Args:
            wait: Wait for queued renders to complete
        """
        self._shutdown_requested = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _execute_task(self, task: Task) -> ProcessingResult:
        """Render one track (runs in thread pool)."""
        start_time = time.time()
        task.status = TaskStatus.RUNNING
        task.started_at = datetime.now()

        try:
            track = self.store.get(task.track_id)
            lofi_path = self.pipeline.transform(track.original_path, track.effects)
            try:
                self.store.complete(task.track_id, lofi_path)
            except TrackNotFoundError:
                # Deleted mid-render: nothing owns the new file
                remove_file(lofi_path)
                raise

            result = ProcessingResult(
                task_id=task.id,
                track_id=task.track_id,
                success=True,
                lofi_path=lofi_path,
                duration=time.time() - start_time,
            )
            task.status = TaskStatus.COMPLETED
            logger.info("Lo-Fi processing complete for track %d", task.track_id)

            if self.completion_callback:
                self.completion_callback(result)

        except Exception as exc:
            if isinstance(exc, LofiError):
                logger.error("Error processing track %d: %s", task.track_id, exc)
            else:
                logger.exception("Unexpected error processing track %d", task.track_id)

            code = error_code_for(exc)
            message = str(exc) or type(exc).__name__
            self._mark_failed(task.track_id, message)

            result = ProcessingResult(
                task_id=task.id,
                track_id=task.track_id,
                success=False,
                error_code=code,
                error_message=message,
                duration=time.time() - start_time,
            )
            task.status = TaskStatus.FAILED

            if self.error_callback:
                self.error_callback(code, message)

        task.completed_at = datetime.now()
        task.result = result
        return result

    def _mark_failed(self, track_id: int, message: str) -> None:
        try:
            self.store.update_status(track_id, TrackStatus.ERROR, message)
        except LofiError:
            # Track deleted while rendering
            logger.debug("Track %d vanished before its failure was recorded", track_id)
