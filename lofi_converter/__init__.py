"""
Lo-Fi Converter

Turns uploaded songs into lo-fi versions: slowed tempo, boosted bass,
reduced bit depth, room reverb, vinyl crackle and a bed of background
noise, each driven by a 0-100 slider.
"""

__version__ = "0.1.0"
__author__ = "Lo-Fi Converter Team"

from .effects import (
    Effects,
    NormalizedEffects,
    normalize_effects,
)
from .errors import (
    LofiError,
    InputNotAccessible,
    ProcessingFailed,
    EmptyOutputFailure,
    DurationProbeFailure,
    TrackNotFoundError,
    TrackBusyError,
    InvalidUploadError,
    PresetLoadError,
)
from .pipeline import EffectsPipeline, transform
from .metadata import probe_duration, estimate_duration
from .presets import PresetLoader
from .track_store import Track, TrackStatus, TrackStore

__all__ = [
    # Effects
    "Effects",
    "NormalizedEffects",
    "normalize_effects",

    # Errors
    "LofiError",
    "InputNotAccessible",
    "ProcessingFailed",
    "EmptyOutputFailure",
    "DurationProbeFailure",
    "TrackNotFoundError",
    "TrackBusyError",
    "InvalidUploadError",
    "PresetLoadError",

    # Processing
    "EffectsPipeline",
    "transform",
    "probe_duration",
    "estimate_duration",

    # Presets & tracks
    "PresetLoader",
    "Track",
    "TrackStatus",
    "TrackStore",
]
