"""
Error taxonomy for the lo-fi converter.

The pipeline surfaces exactly one exception per failed ``transform`` call.
Track bookkeeping and the server layer add their own errors on top.
"""


class LofiError(Exception):
    """Base error for the lo-fi converter."""


class InputNotAccessible(LofiError):
    """Raised when the source audio file is missing or unreadable."""


class ProcessingFailed(LofiError):
    """Raised when decoding, a DSP stage, or encoding fails."""


class EmptyOutputFailure(ProcessingFailed):
    """Raised when processing finished but left a missing or zero-byte file."""


class DurationProbeFailure(LofiError):
    """Raised internally when a precise duration probe cannot read a file."""


class TrackNotFoundError(LofiError):
    """Raised when a track id is not in the store."""


class TrackBusyError(LofiError):
    """Raised when a track already has a transformation in flight."""


class InvalidUploadError(LofiError):
    """Raised when a registered upload violates the accepted file rules."""


class PresetLoadError(LofiError):
    """Raised when an effects preset file cannot be loaded."""
