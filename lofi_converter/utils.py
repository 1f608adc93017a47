"""
Utility functions and constants for the lo-fi converter.

Provides:
- Effect slider defaults and bounds
- Per-stage skip thresholds
- Bitrate table for duration estimation
- Collision-resistant output naming
"""

import math
import os
import uuid
from pathlib import Path
from typing import Optional, Union


# =============================================================================
# EFFECT SLIDERS
# =============================================================================

SLIDER_MIN = 0
SLIDER_MAX = 100

# Defaults applied to every freshly uploaded track
DEFAULT_VINYL_CRACKLE = 65
DEFAULT_REVERB = 40
DEFAULT_BEAT_SLOWDOWN = 25
DEFAULT_BASS_BOOST = 50
DEFAULT_BIT_CRUSHING = 20
DEFAULT_BACKGROUND_NOISE = 35


# =============================================================================
# NORMALIZATION RANGES
# =============================================================================

BEAT_SLOWDOWN_DIVISOR = 300.0   # ratio = 1 - raw / 300
MAX_BASS_BOOST_DB = 12.0        # 0-12 dB low shelf
MAX_BIT_DEPTH = 16
MIN_BIT_DEPTH = 8


# =============================================================================
# SKIP THRESHOLDS (stage is a passthrough at or below these)
# =============================================================================

TEMPO_SKIP_TOLERANCE = 0.001    # |1 - ratio| below this leaves tempo alone
BASS_BOOST_SKIP_DB = 0.5
REVERB_SKIP_LEVEL = 0.1
VINYL_CRACKLE_SKIP_LEVEL = 0.05
BACKGROUND_NOISE_SKIP_LEVEL = 0.05


# =============================================================================
# DSP CONSTANTS
# =============================================================================

BASS_SHELF_FREQ_HZ = 100.0
BASS_SHELF_Q = 0.707
REVERB_MAX_WET = 0.5
NOISE_BED_SECONDS = 8.0         # synthetic beds are looped, not rendered full-length
OUTPUT_PEAK_CEILING = 0.99
OUTPUT_TARGET_PEAK = 0.95


# =============================================================================
# DURATION ESTIMATION
# =============================================================================

# Typical bitrates (bits per second) by container
ASSUMED_BITRATES = {
    ".mp3": 128_000,
    ".wav": 1_411_000,   # CD quality PCM
    ".ogg": 160_000,
    ".flac": 900_000,
}
DEFAULT_BITRATE = 128_000


# =============================================================================
# HELPERS
# =============================================================================

def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def generate_output_path(
    input_path: Union[str, Path],
    output_dir: Optional[Union[str, Path]] = None,
    prefix: str = "lofi_",
) -> Path:
    """
    Pick an unused output path that keeps the input's extension.

    Args:
        input_path: Source audio file
        output_dir: Target directory (defaults to the input's directory)
        prefix: Filename prefix

    Returns:
        Path that did not exist at the time of the call
    """
    source = Path(input_path)
    directory = Path(output_dir) if output_dir else source.parent
    while True:
        candidate = directory / f"{prefix}{uuid.uuid4().hex[:12]}{source.suffix}"
        if not os.path.exists(candidate):
            return candidate


def temp_path_for(target: Path) -> Path:
    """Hidden sibling path used while a file is being written."""
    return target.with_name(f".{target.stem}.{uuid.uuid4().hex[:8]}.part{target.suffix}")
