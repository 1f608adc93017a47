"""
Noise Beds Module

Synthesizes the ambience layers of the lo-fi chain:

- Vinyl crackle (pink surface noise + sparse decaying pops)
- Background noise (brown noise, a low continuous rumble)

Beds are rendered short and looped to the length of the processed signal,
so their cost does not grow with the track. Every function takes an
explicit numpy Generator; nothing touches the global random state.
"""

import logging
from typing import Optional

import numpy as np
from scipy.signal import lfilter

from .utils import NOISE_BED_SECONDS

logger = logging.getLogger(__name__)


# =============================================================================
# FILTERS
# =============================================================================

def lowpass_filter(audio: np.ndarray, cutoff_hz: float, sample_rate: int) -> np.ndarray:
    """One-pole lowpass filter."""
    rc = 1.0 / (2.0 * np.pi * cutoff_hz)
    dt = 1.0 / sample_rate
    alpha = dt / (rc + dt)
    # y[n] = y[n-1] + alpha * (x[n] - y[n-1])
    return lfilter([alpha], [1.0, alpha - 1.0], audio)


def highpass_filter(audio: np.ndarray, cutoff_hz: float, sample_rate: int) -> np.ndarray:
    """One-pole highpass filter."""
    rc = 1.0 / (2.0 * np.pi * cutoff_hz)
    dt = 1.0 / sample_rate
    alpha = rc / (rc + dt)
    # y[n] = alpha * (y[n-1] + x[n] - x[n-1])
    return lfilter([alpha, -alpha], [1.0, -alpha], audio)


def bandpass_filter(
    audio: np.ndarray,
    low_cutoff: float,
    high_cutoff: float,
    sample_rate: int
) -> np.ndarray:
    """Bandpass filter using sequential LP and HP."""
    return highpass_filter(lowpass_filter(audio, high_cutoff, sample_rate), low_cutoff, sample_rate)


def normalize_audio(audio: np.ndarray, target_peak: float = 0.95) -> np.ndarray:
    """Normalize audio to target peak level."""
    peak = np.max(np.abs(audio)) if audio.size else 0.0
    if peak > 0:
        return audio * (target_peak / peak)
    return audio


# =============================================================================
# NOISE COLORS
# =============================================================================

def generate_pink_noise(num_samples: int, rng: np.random.Generator) -> np.ndarray:
    """Pink (1/f) noise by spectral shaping of white noise. Peak 1.0."""
    if num_samples == 0:
        return np.zeros(0)
    spectrum = np.fft.rfft(rng.standard_normal(num_samples))
    freqs = np.arange(len(spectrum), dtype=np.float64)
    freqs[0] = 1.0
    spectrum /= np.sqrt(freqs)
    spectrum[0] = 0.0
    return normalize_audio(np.fft.irfft(spectrum, n=num_samples), 1.0)


def generate_brown_noise(
    num_samples: int,
    rng: np.random.Generator,
    sample_rate: int
) -> np.ndarray:
    """Brown (1/f^2) noise from leaky integrated white noise. Peak 1.0."""
    if num_samples == 0:
        return np.zeros(0)
    brown = lfilter([1.0], [1.0, -0.998], rng.standard_normal(num_samples))
    # Remove sub-audio drift
    brown = highpass_filter(brown, 20.0, sample_rate)
    return normalize_audio(brown, 1.0)


# =============================================================================
# BEDS
# =============================================================================

def generate_vinyl_crackle(
    duration: float,
    level: float,
    rng: np.random.Generator,
    sample_rate: int
) -> np.ndarray:
    """
    Generate vinyl crackle texture.

    Combination of:
    - Low-level pink surface noise
    - Random impulses (pops), more of them as level rises

    Args:
        duration: Bed length in seconds
        level: Normalized crackle amount (0-1), scales both density and loudness
        rng: Random generator for this render
        sample_rate: Sample rate

    Returns:
        Mono bed, kept at a low level (not normalized)
    """
    num_samples = int(duration * sample_rate)
    if num_samples == 0:
        return np.zeros(0)

    surface = generate_pink_noise(num_samples, rng) * 0.02
    surface = bandpass_filter(surface, 200, min(4000, sample_rate * 0.45), sample_rate)

    # ~5 pops per second at low levels, up to ~30 at full
    num_pops = int(duration * (5 + 25 * level))
    pops = np.zeros(num_samples)
    for _ in range(num_pops):
        pos = int(rng.integers(0, num_samples))
        pop_len = int(rng.integers(10, 50))
        if pos + pop_len >= num_samples:
            continue
        impulse = rng.standard_normal(pop_len)
        impulse *= np.exp(-np.arange(pop_len) / (pop_len * 0.3))
        impulse = lowpass_filter(impulse, min(5000, sample_rate * 0.45), sample_rate)
        pops[pos:pos + pop_len] += impulse * rng.uniform(0.05, 0.2)

    return (surface + pops) * level


def generate_background_noise(
    duration: float,
    rng: np.random.Generator,
    sample_rate: int
) -> np.ndarray:
    """Continuous low-level brown noise bed (peak 0.1)."""
    num_samples = int(duration * sample_rate)
    bed = generate_brown_noise(num_samples, rng, sample_rate)
    return bed * 0.1


def loop_to_length(bed: np.ndarray, num_samples: int) -> np.ndarray:
    """
    Repeat a bed until it covers num_samples, then trim.

    Args:
        bed: Mono bed
        num_samples: Required length

    Returns:
        Mono array of exactly num_samples
    """
    if num_samples <= 0:
        return np.zeros(0)
    if len(bed) == 0:
        return np.zeros(num_samples)
    repeats = -(-num_samples // len(bed))
    return np.tile(bed, repeats)[:num_samples]


def bed_seconds_for(num_samples: int, sample_rate: int, bed_seconds: Optional[float] = None) -> float:
    """Bed length: the configured loop length, or the signal length if shorter."""
    loop = NOISE_BED_SECONDS if bed_seconds is None else bed_seconds
    return min(loop, num_samples / sample_rate)
