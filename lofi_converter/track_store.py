"""
In-memory track registry.

Holds uploaded tracks for the lifetime of the process. Tracks are replaced
as whole records on every update, so readers never see a half-applied
change.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .effects import Effects
from .errors import TrackNotFoundError

logger = logging.getLogger(__name__)


class TrackStatus(Enum):
    """Lifecycle of a track."""
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TrackStatus.COMPLETED, TrackStatus.ERROR)


@dataclass(frozen=True)
class Track:
    """
    One uploaded audio file and its lo-fi rendering.

    Attributes:
        id: Sequential identifier
        original_filename: Name the user uploaded
        original_path: Stored upload on disk
        file_size: Upload size in bytes
        duration: Probed duration in seconds
        effects: Current slider values
        lofi_path: Rendered file, once processing has completed
        status: Lifecycle state
        error_message: Cause of the last failure
        created_at: Registration time
    """
    id: int
    original_filename: str
    original_path: str
    file_size: int
    duration: int = 0
    effects: Effects = field(default_factory=Effects)
    lofi_path: Optional[str] = None
    status: TrackStatus = TrackStatus.UPLOADING
    error_message: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape used by the client."""
        return {
            "id": self.id,
            "originalFilename": self.original_filename,
            "originalPath": self.original_path,
            "lofiPath": self.lofi_path,
            "fileSize": self.file_size,
            "duration": self.duration,
            "status": self.status.value,
            "errorMessage": self.error_message,
            "effects": self.effects.to_dict(),
            "createdAt": self.created_at.isoformat(),
        }


class TrackStore:
    """
    Thread-safe keyed map of tracks.

    Example:
        ```python
        store = TrackStore()
        track = store.create("song.mp3", "/uploads/abc_song.mp3", 3_000_000, 188)
        store.update_status(track.id, TrackStatus.PROCESSING)
        ```
    """

    def __init__(self):
        self._tracks: Dict[int, Track] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def create(
        self,
        original_filename: str,
        original_path: str,
        file_size: int,
        duration: int = 0,
        effects: Optional[Effects] = None,
    ) -> Track:
        """Register a new upload with status ``uploading``."""
        with self._lock:
            track = Track(
                id=self._next_id,
                original_filename=original_filename,
                original_path=original_path,
                file_size=file_size,
                duration=duration,
                effects=effects or Effects(),
            )
            self._tracks[track.id] = track
            self._next_id += 1
        logger.debug("Registered track %d (%s)", track.id, original_filename)
        return track

    def get(self, track_id: int) -> Track:
        """
        Raises:
            TrackNotFoundError: If no track has this id
        """
        with self._lock:
            track = self._tracks.get(track_id)
        if track is None:
            raise TrackNotFoundError(f"Track {track_id} not found")
        return track

    def list(self) -> List[Track]:
        """All tracks, newest first."""
        with self._lock:
            tracks = list(self._tracks.values())
        return sorted(tracks, key=lambda t: (t.created_at, t.id), reverse=True)

    def _update(self, track_id: int, **changes: Any) -> Track:
        with self._lock:
            track = self._tracks.get(track_id)
            if track is None:
                raise TrackNotFoundError(f"Track {track_id} not found")
            updated = replace(track, **changes)
            self._tracks[track_id] = updated
        return updated

    def update_status(self, track_id: int, status: TrackStatus, error_message: str = "") -> Track:
        return self._update(track_id, status=status, error_message=error_message)

    def update_effects(self, track_id: int, effects: Effects) -> Track:
        """Replace a track's effects. Processing is scheduled by the caller."""
        return self._update(track_id, effects=effects)

    def begin_processing(self, track_id: int, effects: Optional[Effects] = None) -> Optional[Track]:
        """
        Atomically move a track to ``processing``.

        Args:
            track_id: Track to render
            effects: Replacement effects, applied only if the track is not busy

        Returns:
            The updated track, or None when it was already processing

        Raises:
            TrackNotFoundError: If no track has this id
        """
        with self._lock:
            track = self._tracks.get(track_id)
            if track is None:
                raise TrackNotFoundError(f"Track {track_id} not found")
            if track.status == TrackStatus.PROCESSING:
                return None
            changes: Dict[str, Any] = {"status": TrackStatus.PROCESSING, "error_message": ""}
            if effects is not None:
                changes["effects"] = effects
            updated = replace(track, **changes)
            self._tracks[track_id] = updated
        return updated

    def complete(self, track_id: int, lofi_path: str) -> Track:
        """
        Record a finished render and remove the previous one from disk.
        """
        previous = self.get(track_id).lofi_path
        track = self._update(
            track_id, lofi_path=lofi_path, status=TrackStatus.COMPLETED, error_message=""
        )
        if previous and previous != lofi_path:
            remove_file(previous)
        return track

    def delete(self, track_id: int) -> bool:
        """
        Remove a track and its files.

        Returns:
            False if the track did not exist
        """
        with self._lock:
            track = self._tracks.pop(track_id, None)
        if track is None:
            return False
        for path in (track.original_path, track.lofi_path):
            if path:
                remove_file(path)
        logger.info("Deleted track %d", track_id)
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)


def remove_file(path: str) -> None:
    """Delete a file, tolerating one that is already gone."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not delete %s: %s", path, exc)
