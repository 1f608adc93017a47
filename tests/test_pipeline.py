"""
Tests for the end-to-end effects pipeline.

Covers the no-op copy path, output naming, tempo and bit-depth effects
on real files, seeding, and the failure modes of transform().
"""

import os
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from lofi_converter.effects import Effects, normalize_effects
from lofi_converter.errors import EmptyOutputFailure, InputNotAccessible, ProcessingFailed
from lofi_converter.metadata import probe_duration
from lofi_converter.pipeline import EffectsPipeline, transform
from lofi_converter.time_stretch import stretched_length

from conftest import make_tone


def _listing(directory):
    return sorted(os.listdir(directory))


class TestTransform:
    """File-level behavior of EffectsPipeline.transform."""

    def test_all_zero_copies_input(self, stereo_wav):
        out = Path(EffectsPipeline().transform(stereo_wav, Effects.bypass()))
        assert out.read_bytes() == stereo_wav.read_bytes()
        assert out != stereo_wav

    def test_output_naming(self, stereo_wav):
        out = Path(EffectsPipeline().transform(stereo_wav, Effects(), seed=1))
        assert out.parent == stereo_wav.parent
        assert out.name.startswith("lofi_")
        assert out.suffix == ".wav"
        assert out.stat().st_size > 0

    def test_outputs_never_collide(self, stereo_wav):
        pipeline = EffectsPipeline()
        first = pipeline.transform(stereo_wav, Effects.bypass())
        second = pipeline.transform(stereo_wav, Effects.bypass())
        assert first != second
        assert Path(first).exists() and Path(second).exists()

    def test_accepts_wire_dict(self, stereo_wav):
        out = transform(stereo_wav, {"vinylCrackle": 0, "reverb": 0, "beatSlowdown": 0,
                                     "bassBoost": 0, "bitCrushing": 0, "backgroundNoise": 0})
        assert Path(out).read_bytes() == stereo_wav.read_bytes()

    def test_full_slowdown_lengthens_by_half(self, stereo_wav):
        info_in = sf.info(str(stereo_wav))
        effects = Effects.bypass().with_values(beat_slowdown=100)
        out = EffectsPipeline().transform(stereo_wav, effects)

        info_out = sf.info(out)
        ratio = normalize_effects(effects).beat_slowdown_ratio
        assert info_out.frames == stretched_length(info_in.frames, ratio)
        assert abs(info_out.frames - 1.5 * info_in.frames) <= 1
        assert info_out.samplerate == info_in.samplerate
        assert info_out.channels == info_in.channels

    def test_full_bit_crushing_quantizes_to_eight_bits(self, stereo_wav):
        effects = Effects.bypass().with_values(bit_crushing=100)
        out = EffectsPipeline().transform(stereo_wav, effects)

        audio, _ = sf.read(out, dtype="float64")
        steps = audio * 128
        assert np.allclose(steps, np.round(steps), atol=1e-6)
        assert len(np.unique(np.round(steps))) <= 256

    def test_default_effects_render(self, stereo_wav):
        info_in = sf.info(str(stereo_wav))
        out = EffectsPipeline().transform(stereo_wav, Effects(), seed=3)

        info_out = sf.info(out)
        ratio = normalize_effects(Effects()).beat_slowdown_ratio
        assert info_out.frames == stretched_length(info_in.frames, ratio)
        audio, _ = sf.read(out, dtype="float64")
        assert np.all(np.isfinite(audio))
        assert np.max(np.abs(audio)) <= 0.99 + 1e-4

    def test_same_seed_same_bytes(self, stereo_wav):
        pipeline = EffectsPipeline()
        a = pipeline.transform(stereo_wav, Effects(), seed=7)
        b = pipeline.transform(stereo_wav, Effects(), seed=7)
        assert Path(a).read_bytes() == Path(b).read_bytes()

    def test_different_seed_different_noise(self, stereo_wav):
        pipeline = EffectsPipeline()
        a = pipeline.transform(stereo_wav, Effects(), seed=1)
        b = pipeline.transform(stereo_wav, Effects(), seed=2)
        assert Path(a).read_bytes() != Path(b).read_bytes()

    def test_output_dir(self, stereo_wav, temp_dir):
        target_dir = Path(temp_dir) / "rendered" / "nested"
        out = Path(EffectsPipeline(output_dir=target_dir).transform(stereo_wav, Effects(), seed=0))
        assert out.parent == target_dir

    def test_mono_input_stays_mono(self, write_wav):
        src = write_wav("mono.wav", seconds=1.0, channels=1)
        out = EffectsPipeline().transform(src, Effects(), seed=0)
        assert sf.info(out).channels == 1

    def test_silent_input(self, write_wav):
        src = write_wav("silence.wav", seconds=1.0, amplitude=0.0)
        out = EffectsPipeline().transform(src, Effects(), seed=0)
        audio, _ = sf.read(out)
        assert np.all(np.isfinite(audio))

    def test_mp3_round_trip(self, temp_dir, sample_rate, mp3_supported):
        src = Path(temp_dir) / "song.mp3"
        sf.write(str(src), make_tone(sample_rate, 2.0), sample_rate, format="MP3")
        out = EffectsPipeline().transform(src, Effects(), seed=0)
        assert out.endswith(".mp3")
        assert sf.info(out).format == "MP3"

    def test_mp3_default_effects_duration(self, temp_dir, sample_rate, mp3_supported):
        seconds = 30.0
        src = Path(temp_dir) / "long.mp3"
        sf.write(str(src), make_tone(sample_rate, seconds), sample_rate, format="MP3")
        out = EffectsPipeline().transform(src, Effects(), seed=0)

        expected = seconds / normalize_effects(Effects()).beat_slowdown_ratio
        assert probe_duration(out) == pytest.approx(expected, rel=0.05)


class TestTransformFailures:
    """Failure modes leave no output behind."""

    def test_missing_input(self, temp_dir):
        before = _listing(temp_dir)
        with pytest.raises(InputNotAccessible):
            EffectsPipeline().transform(Path(temp_dir) / "nope.wav", Effects())
        assert _listing(temp_dir) == before

    def test_undecodable_input(self, temp_dir):
        bad = Path(temp_dir) / "bad.wav"
        bad.write_bytes(b"definitely not audio" * 100)
        with pytest.raises(ProcessingFailed) as exc_info:
            EffectsPipeline().transform(bad, Effects())
        assert not isinstance(exc_info.value, EmptyOutputFailure)
        assert _listing(temp_dir) == ["bad.wav"]

    def test_encoder_failure_cleans_up(self, stereo_wav, monkeypatch):
        def failing_write(file, data, samplerate, **kwargs):
            Path(file).write_bytes(b"partial")
            raise RuntimeError("encoder exploded")

        monkeypatch.setattr(sf, "write", failing_write)
        with pytest.raises(ProcessingFailed, match="encoder exploded"):
            EffectsPipeline().transform(stereo_wav, Effects(), seed=0)
        assert _listing(stereo_wav.parent) == [stereo_wav.name]

    def test_empty_encoder_output(self, stereo_wav, monkeypatch):
        def empty_write(file, data, samplerate, **kwargs):
            Path(file).write_bytes(b"")

        monkeypatch.setattr(sf, "write", empty_write)
        with pytest.raises(EmptyOutputFailure):
            EffectsPipeline().transform(stereo_wav, Effects(), seed=0)
        assert _listing(stereo_wav.parent) == [stereo_wav.name]

    def test_dsp_failure_is_wrapped(self, stereo_wav, monkeypatch):
        def broken_stretch(audio, ratio, n_fft=2048):
            raise ValueError("stft went sideways")

        monkeypatch.setattr("lofi_converter.pipeline.time_stretch", broken_stretch)
        with pytest.raises(ProcessingFailed, match="stft went sideways"):
            EffectsPipeline().transform(stereo_wav, Effects(), seed=0)
        assert _listing(stereo_wav.parent) == [stereo_wav.name]


class TestRender:
    """Array-level chain."""

    def test_stage_order(self, sample_rate):
        audio = make_tone(sample_rate, 1.0)
        _, stages = EffectsPipeline().render(
            audio, sample_rate, normalize_effects(Effects()), np.random.default_rng(0)
        )
        assert stages == [
            "beat_slowdown", "bass_boost", "bit_crushing",
            "reverb", "vinyl_crackle", "background_noise",
        ]

    def test_peak_ceiling(self, sample_rate):
        audio = make_tone(sample_rate, 1.0, freq=60, amplitude=0.99)
        effects = Effects.bypass().with_values(bass_boost=100, background_noise=100)
        out, _ = EffectsPipeline().render(
            audio, sample_rate, normalize_effects(effects), np.random.default_rng(0)
        )
        assert np.max(np.abs(out)) <= 0.99 + 1e-9

    def test_vinyl_mix_restores_level(self, sample_rate):
        audio = make_tone(sample_rate, 1.0, amplitude=0.5)
        effects = Effects.bypass().with_values(vinyl_crackle=80)
        out, stages = EffectsPipeline().render(
            audio, sample_rate, normalize_effects(effects), np.random.default_rng(0)
        )
        assert stages == ["vinyl_crackle"]
        assert np.max(np.abs(out)) == pytest.approx(0.5)
