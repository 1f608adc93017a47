"""
Audio I/O for the effect chain.

Decodes any container libsndfile understands to float PCM and encodes the
processed signal back into the source's container. Writes go through a
hidden temporary file and are moved into place only once complete, so a
failed render never leaves a half-written output behind.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import soundfile as sf

from .errors import EmptyOutputFailure, InputNotAccessible, ProcessingFailed
from .utils import temp_path_for

logger = logging.getLogger(__name__)


@dataclass
class AudioFormat:
    """Container details carried from the decoded input to the encoded output."""
    format: str
    subtype: Optional[str]
    channels: int
    sample_rate: int


def check_readable(path: Union[str, Path]) -> Path:
    """
    Verify the file exists and can be opened for reading.

    Raises:
        InputNotAccessible: If the file is missing or unreadable
    """
    source = Path(path)
    if not source.is_file() or not os.access(source, os.R_OK):
        raise InputNotAccessible(f"Input file not accessible: {source}")
    return source


def load_audio(path: Union[str, Path]) -> Tuple[np.ndarray, AudioFormat]:
    """
    Decode an audio file to float64 PCM.

    Args:
        path: Audio file (wav, flac, ogg, mp3 where libsndfile supports it)

    Returns:
        (audio, fmt) where audio has shape (samples, channels)

    Raises:
        InputNotAccessible: If the file is missing or unreadable
        ProcessingFailed: If the file cannot be decoded
    """
    source = check_readable(path)
    try:
        info = sf.info(str(source))
        audio, sample_rate = sf.read(str(source), dtype="float64", always_2d=True)
    except (sf.LibsndfileError, RuntimeError, TypeError) as exc:
        raise ProcessingFailed(f"Could not decode {source.name}: {exc}") from exc

    if audio.shape[0] == 0:
        raise ProcessingFailed(f"{source.name} contains no audio frames")

    fmt = AudioFormat(
        format=info.format,
        subtype=info.subtype,
        channels=audio.shape[1],
        sample_rate=int(sample_rate),
    )
    logger.debug(
        "Decoded %s: %d frames, %d ch, %d Hz (%s/%s)",
        source.name, audio.shape[0], fmt.channels, fmt.sample_rate, fmt.format, fmt.subtype,
    )
    return audio, fmt


def _output_subtype(fmt: AudioFormat) -> Optional[str]:
    """Keep the input's subtype when libsndfile can write it, else use the default."""
    if fmt.subtype and sf.check_format(fmt.format, fmt.subtype):
        return fmt.subtype
    return None


def save_audio(audio: np.ndarray, target: Union[str, Path], fmt: AudioFormat) -> Path:
    """
    Encode audio into target atomically.

    Args:
        audio: Float audio, shape (samples, channels) or (samples,)
        target: Final output path
        fmt: Container details from load_audio

    Returns:
        The target path

    Raises:
        ProcessingFailed: If encoding fails
        EmptyOutputFailure: If the encoder produced nothing
    """
    target = Path(target)
    tmp = temp_path_for(target)
    clipped = np.clip(audio, -1.0, 1.0)

    try:
        sf.write(
            str(tmp),
            clipped,
            fmt.sample_rate,
            format=fmt.format,
            subtype=_output_subtype(fmt),
        )
        if not tmp.exists() or tmp.stat().st_size == 0:
            raise EmptyOutputFailure(f"Encoder produced an empty file for {target.name}")
        os.replace(tmp, target)
    except EmptyOutputFailure:
        _discard(tmp)
        raise
    except (sf.LibsndfileError, RuntimeError, TypeError, ValueError, OSError) as exc:
        _discard(tmp)
        raise ProcessingFailed(f"Could not encode {target.name}: {exc}") from exc

    return target


def copy_audio(source: Union[str, Path], target: Union[str, Path]) -> Path:
    """Byte-copy source to target atomically (no-op render path)."""
    target = Path(target)
    tmp = temp_path_for(target)
    try:
        with open(source, "rb") as src, open(tmp, "wb") as dst:
            while True:
                chunk = src.read(1 << 20)
                if not chunk:
                    break
                dst.write(chunk)
        os.replace(tmp, target)
    except OSError as exc:
        _discard(tmp)
        raise ProcessingFailed(f"Could not copy {Path(source).name}: {exc}") from exc
    return target


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove temporary file %s: %s", path, exc)
