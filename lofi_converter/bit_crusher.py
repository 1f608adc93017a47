"""
Bit crusher: reduce amplitude resolution.

No dithering. The staircase distortion is the desired lo-fi texture.
"""

import numpy as np

from .utils import MAX_BIT_DEPTH, MIN_BIT_DEPTH


def bit_crush(audio: np.ndarray, bit_depth: int) -> np.ndarray:
    """
    Quantize samples to bit_depth bits.

    Args:
        audio: Float audio in [-1, 1], any shape
        bit_depth: Target resolution, clamped to 8-16. 16 is a passthrough.

    Returns:
        Quantized audio, same shape
    """
    bits = int(min(max(bit_depth, MIN_BIT_DEPTH), MAX_BIT_DEPTH))
    if bits >= MAX_BIT_DEPTH:
        return audio

    quant = 2.0 ** (bits - 1)
    return np.floor(audio * quant + 0.5) / quant
