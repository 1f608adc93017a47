"""
Parametric EQ Module

Low shelf biquad from the Robert Bristow-Johnson Audio EQ Cookbook,
used for the bass boost stage.

References:
- W3C Audio EQ Cookbook: https://www.w3.org/TR/audio-eq-cookbook/
"""

import numpy as np
from typing import Tuple
from scipy.signal import lfilter

from .utils import BASS_SHELF_FREQ_HZ, BASS_SHELF_Q, BASS_BOOST_SKIP_DB


# =============================================================================
# BIQUAD COEFFICIENT CALCULATION
# =============================================================================

def low_shelf_coefficients(
    frequency: float,
    sample_rate: float,
    gain_db: float = 0.0,
    q: float = BASS_SHELF_Q,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Calculate low shelf biquad coefficients using RBJ Audio EQ Cookbook.

    Args:
        frequency: Corner frequency in Hz
        sample_rate: Sample rate in Hz
        gain_db: Shelf gain in dB
        q: Q factor (shelf slope)

    Returns:
        b, a: Numerator and denominator coefficients [b0, b1, b2], [1, a1, a2]
    """
    nyquist = sample_rate / 2
    frequency = float(np.clip(frequency, 1.0, nyquist * 0.99))

    A = 10 ** (gain_db / 40)
    w0 = 2 * np.pi * frequency / sample_rate
    cos_w0 = np.cos(w0)
    sin_w0 = np.sin(w0)
    alpha = sin_w0 / (2 * max(q, 0.001))

    sqrt_A = np.sqrt(A)
    sqrt_2A_alpha = 2 * sqrt_A * alpha

    b0 = A * ((A + 1) - (A - 1) * cos_w0 + sqrt_2A_alpha)
    b1 = 2 * A * ((A - 1) - (A + 1) * cos_w0)
    b2 = A * ((A + 1) - (A - 1) * cos_w0 - sqrt_2A_alpha)
    a0 = (A + 1) + (A - 1) * cos_w0 + sqrt_2A_alpha
    a1 = -2 * ((A - 1) + (A + 1) * cos_w0)
    a2 = (A + 1) + (A - 1) * cos_w0 - sqrt_2A_alpha

    b = np.array([b0 / a0, b1 / a0, b2 / a0])
    a = np.array([1.0, a1 / a0, a2 / a0])

    return b, a


# =============================================================================
# BASS BOOST
# =============================================================================

def apply_bass_boost(
    audio: np.ndarray,
    gain_db: float,
    sample_rate: float,
    frequency: float = BASS_SHELF_FREQ_HZ,
) -> np.ndarray:
    """
    Low shelf boost around 100 Hz.

    Gains below the skip threshold return the input untouched.

    Args:
        audio: Audio of shape (samples, channels) or (samples,)
        gain_db: Shelf gain in dB (0-12)
        sample_rate: Sample rate in Hz
        frequency: Shelf corner frequency

    Returns:
        Boosted audio, same shape
    """
    if gain_db < BASS_BOOST_SKIP_DB or audio.shape[0] == 0:
        return audio
    b, a = low_shelf_coefficients(frequency, sample_rate, gain_db, BASS_SHELF_Q)
    return lfilter(b, a, audio, axis=0)
