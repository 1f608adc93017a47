"""
Effects Pipeline Module

Turns an uploaded track into its lo-fi version.

Chain (fixed order, each stage consumes the previous stage's output):
1. Beat slowdown  - pitch-preserving time stretch
2. Bass boost     - 100 Hz low shelf
3. Bit crushing   - sample resolution reduction
4. Reverb         - lo-fi convolution room
5. Vinyl crackle  - looped crackle bed, crossfaded against the signal
6. Background     - looped brown noise bed

Tempo runs first so the noise beds are sized to the final duration.
Stages whose slider sits at or below its skip threshold are passthroughs;
when every stage is a passthrough the input is copied unchanged.

Callers must not run two transformations for the same track at once.
The server worker enforces this by refusing to resubmit a track that is
still processing.
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

import numpy as np

from .audio_io import check_readable, copy_audio, load_audio, save_audio
from .bit_crusher import bit_crush
from .effects import Effects, NormalizedEffects, normalize_effects
from .errors import EmptyOutputFailure, LofiError, ProcessingFailed
from .noise_beds import (
    bed_seconds_for,
    generate_background_noise,
    generate_vinyl_crackle,
    loop_to_length,
    normalize_audio,
)
from .parametric_eq import apply_bass_boost
from .reverb import apply_reverb
from .time_stretch import time_stretch
from .utils import (
    NOISE_BED_SECONDS,
    OUTPUT_PEAK_CEILING,
    OUTPUT_TARGET_PEAK,
    generate_output_path,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class EffectsPipeline:
    """
    Renders lo-fi versions of audio files.

    Instances hold only configuration, so one pipeline can serve many
    concurrent tracks.

    Example:
        ```python
        pipeline = EffectsPipeline()
        out = pipeline.transform("uploads/song.wav", Effects(beat_slowdown=60))
        ```
    """

    def __init__(
        self,
        output_dir: Optional[PathLike] = None,
        bed_seconds: float = NOISE_BED_SECONDS,
    ):
        """
        Args:
            output_dir: Where rendered files go (default: next to the input)
            bed_seconds: Loop length of the synthetic noise beds
        """
        self.output_dir = Path(output_dir) if output_dir else None
        self.bed_seconds = bed_seconds

    # ------------------------------------------------------------------
    # File-level entry point
    # ------------------------------------------------------------------

    def transform(
        self,
        input_path: PathLike,
        effects: Union[Effects, Mapping[str, Any]],
        seed: Optional[int] = None,
        output_dir: Optional[PathLike] = None,
    ) -> str:
        """
        Render a lo-fi copy of input_path.

        Args:
            input_path: Source audio file
            effects: Effects, or a wire-shape dict of slider values
            seed: Seed for the noise beds (None = fresh entropy)
            output_dir: Overrides the pipeline's output directory

        Returns:
            Path of the new file, same extension as the input

        Raises:
            InputNotAccessible: Source missing or unreadable
            ProcessingFailed: Decode, DSP, or encode failure
            EmptyOutputFailure: Output missing or zero bytes
        """
        start_time = time.time()
        source = check_readable(input_path)

        if not isinstance(effects, Effects):
            effects = Effects.from_dict(effects)
        normalized = normalize_effects(effects)
        logger.info("Processing %s with effects: %s", source.name, json.dumps(normalized.to_dict()))

        directory = Path(output_dir) if output_dir else (self.output_dir or source.parent)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ProcessingFailed(f"Output directory not writable: {directory}: {exc}") from exc
        target = generate_output_path(source, directory)

        if not normalized.any_active:
            logger.info("All effects below threshold; copying %s unchanged", source.name)
            copy_audio(source, target)
        else:
            audio, fmt = load_audio(source)
            rng = np.random.default_rng(seed)
            try:
                processed, stages = self.render(audio, fmt.sample_rate, normalized, rng)
            except LofiError:
                raise
            except Exception as exc:
                logger.exception("Effect chain failed for %s", source.name)
                raise ProcessingFailed(f"Failed to process audio file: {exc}") from exc
            logger.debug("Applied stages: %s", ", ".join(stages))
            save_audio(processed, target, fmt)

        self._verify_output(target)
        logger.info(
            "Lo-fi render complete: %s -> %s (%.2fs)",
            source.name, target.name, time.time() - start_time,
        )
        return str(target)

    # ------------------------------------------------------------------
    # Array-level chain
    # ------------------------------------------------------------------

    def render(
        self,
        audio: np.ndarray,
        sample_rate: int,
        normalized: NormalizedEffects,
        rng: np.random.Generator,
    ) -> Tuple[np.ndarray, List[str]]:
        """
        Run the effect chain on decoded audio.

        Args:
            audio: Float audio, shape (samples, channels)
            sample_rate: Sample rate in Hz
            normalized: Engine parameters
            rng: Random generator for the noise beds

        Returns:
            (processed audio, names of the stages that ran)
        """
        stages: List[str] = []

        if normalized.tempo_active:
            audio = time_stretch(audio, normalized.beat_slowdown_ratio)
            stages.append("beat_slowdown")

        if normalized.bass_boost_active:
            audio = apply_bass_boost(audio, normalized.bass_boost_db, sample_rate)
            stages.append("bass_boost")

        if normalized.bit_crush_active:
            audio = bit_crush(audio, normalized.bit_depth)
            stages.append("bit_crushing")

        if normalized.reverb_active:
            audio = apply_reverb(audio, normalized.reverb, sample_rate)
            stages.append("reverb")

        num_samples = audio.shape[0]
        bed_seconds = bed_seconds_for(num_samples, sample_rate, self.bed_seconds)

        if normalized.vinyl_crackle_active:
            level = normalized.vinyl_crackle
            pre_mix_peak = float(np.max(np.abs(audio))) if num_samples else 0.0
            bed = generate_vinyl_crackle(bed_seconds, level, rng, sample_rate)
            bed = loop_to_length(bed, num_samples)
            audio = audio * (1.0 - level) + bed[:, None] * level
            # Crossfading pulls the music down; bring it back to its old peak
            if pre_mix_peak > 0:
                audio = normalize_audio(audio, min(pre_mix_peak, OUTPUT_TARGET_PEAK))
            stages.append("vinyl_crackle")

        if normalized.background_noise_active:
            bed = generate_background_noise(bed_seconds, rng, sample_rate)
            bed = loop_to_length(bed, num_samples)
            audio = audio + bed[:, None] * normalized.background_noise
            stages.append("background_noise")

        if stages:
            peak = float(np.max(np.abs(audio))) if num_samples else 0.0
            if peak > OUTPUT_PEAK_CEILING:
                audio = audio * (OUTPUT_PEAK_CEILING / peak)

        return audio, stages

    @staticmethod
    def _verify_output(target: Path) -> None:
        """Fail unless target exists with a non-zero size."""
        try:
            size = target.stat().st_size
        except FileNotFoundError:
            raise EmptyOutputFailure(f"Output file was not created: {target}") from None
        if size == 0:
            os.remove(target)
            raise EmptyOutputFailure(f"Output file has zero size: {target}")
        logger.debug("Output file size: %d bytes", size)


_DEFAULT_PIPELINE = EffectsPipeline()


def transform(
    input_path: PathLike,
    effects: Union[Effects, Mapping[str, Any]],
    *,
    seed: Optional[int] = None,
    output_dir: Optional[PathLike] = None,
) -> str:
    """Render a lo-fi copy of input_path with the default pipeline."""
    return _DEFAULT_PIPELINE.transform(input_path, effects, seed=seed, output_dir=output_dir)
