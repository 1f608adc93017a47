"""
Tempo-only time stretching.

Uses librosa's phase vocoder so the beat slows down without the pitch
dropping along with it. Resampling or duplicating samples would lower the
pitch and is deliberately not offered here.
"""

import logging

import librosa
import numpy as np

logger = logging.getLogger(__name__)


def stretched_length(num_samples: int, ratio: float) -> int:
    """Number of output samples for a stretch by ratio (< 1 slows down)."""
    return int(round(num_samples / ratio))


def time_stretch(audio: np.ndarray, ratio: float, n_fft: int = 2048) -> np.ndarray:
    """
    Change tempo by ratio while preserving pitch.

    Args:
        audio: Audio of shape (samples, channels)
        ratio: Playback speed factor; 0.8 makes the output 1.25x longer
        n_fft: STFT window size

    Returns:
        Stretched audio of shape (round(samples / ratio), channels)
    """
    if ratio <= 0:
        raise ValueError(f"Stretch ratio must be positive, got {ratio}")
    if audio.shape[0] == 0 or ratio == 1.0:
        return audio

    # librosa stretches along the last axis
    channels_first = np.ascontiguousarray(audio.T, dtype=np.float32)
    stretched = librosa.effects.time_stretch(channels_first, rate=ratio, n_fft=n_fft)

    target = stretched_length(audio.shape[0], ratio)
    stretched = librosa.util.fix_length(stretched, size=target, axis=-1)

    logger.debug("Time stretch x%.4f: %d -> %d samples", ratio, audio.shape[0], target)
    return stretched.T.astype(np.float64)
