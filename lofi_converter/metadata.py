"""
Audio metadata extraction.

Duration is best-effort metadata: ``probe_duration`` never raises. It tries
a precise probe first (libsndfile header, then a full decode through
librosa) and falls back to estimating from file size and a typical bitrate
for the extension.
"""

import logging
import os
from pathlib import Path
from typing import Union

import librosa
import soundfile as sf

from .errors import DurationProbeFailure
from .utils import ASSUMED_BITRATES, DEFAULT_BITRATE, round_half_up

logger = logging.getLogger(__name__)


def _probe_precise(path: Path) -> float:
    """
    Exact duration in seconds.

    Raises:
        DurationProbeFailure: If neither soundfile nor librosa can read the file
    """
    try:
        return float(sf.info(str(path)).duration)
    except (sf.LibsndfileError, RuntimeError, TypeError) as exc:
        logger.debug("soundfile could not probe %s: %s", path.name, exc)

    try:
        return float(librosa.get_duration(path=str(path)))
    except Exception as exc:
        raise DurationProbeFailure(f"Could not decode {path.name}: {exc}") from exc


def estimate_duration(size_bytes: int, extension: str) -> int:
    """
    Estimate duration from file size assuming a typical bitrate.

    Args:
        size_bytes: File size
        extension: File extension including the dot (case-insensitive)

    Returns:
        Whole seconds, at least 1
    """
    bitrate = ASSUMED_BITRATES.get(extension.lower(), DEFAULT_BITRATE)
    return max(1, round_half_up(size_bytes * 8 / bitrate))


def probe_duration(path: Union[str, Path]) -> int:
    """
    Duration of an audio file in whole seconds.

    Args:
        path: Audio file

    Returns:
        Duration (>= 1 for any non-empty readable file), or 0 when the file
        is missing, unreadable or empty
    """
    target = Path(path)
    try:
        if not target.is_file() or not os.access(target, os.R_OK):
            logger.warning("Audio file not accessible: %s", target)
            return 0
        size = target.stat().st_size
    except OSError as exc:
        logger.warning("Could not stat %s: %s", target, exc)
        return 0

    if size == 0:
        logger.warning("Audio file has zero size: %s", target)
        return 0

    try:
        seconds = _probe_precise(target)
        if seconds > 0:
            return max(1, round_half_up(seconds))
        logger.debug("Precise probe of %s reported no frames", target.name)
    except DurationProbeFailure as exc:
        logger.debug("%s; estimating from size", exc)

    estimated = estimate_duration(size, target.suffix)
    logger.info("Estimated duration for %s: %d seconds", target.name, estimated)
    return estimated
