"""
Unit tests for the DSP stages

Tests bit crushing, the bass shelf, pitch-preserving time stretch,
convolution reverb and the synthetic noise beds.
"""

import pytest
import numpy as np

from lofi_converter.bit_crusher import bit_crush
from lofi_converter.parametric_eq import apply_bass_boost, low_shelf_coefficients
from lofi_converter.time_stretch import stretched_length, time_stretch
from lofi_converter.reverb import ConvolutionReverb, IR_PRESETS, apply_reverb
from lofi_converter.noise_beds import (
    bed_seconds_for,
    generate_background_noise,
    generate_vinyl_crackle,
    loop_to_length,
)

from conftest import make_tone


def _rms(x):
    return float(np.sqrt(np.mean(np.square(x))))


def _dominant_frequency(mono, sample_rate):
    spectrum = np.abs(np.fft.rfft(mono * np.hanning(len(mono))))
    freqs = np.fft.rfftfreq(len(mono), 1 / sample_rate)
    return freqs[np.argmax(spectrum)]


class TestBitCrusher:
    """Tests for sample resolution reduction."""

    def test_sixteen_bits_is_passthrough(self):
        audio = np.random.default_rng(0).uniform(-1, 1, (100, 2))
        assert bit_crush(audio, 16) is audio

    def test_eight_bit_grid(self):
        audio = np.random.default_rng(1).uniform(-1, 1, (1000, 2))
        crushed = bit_crush(audio, 8)
        steps = crushed * 128
        assert np.allclose(steps, np.round(steps))
        assert np.max(np.abs(crushed - audio)) <= 0.5 / 128 + 1e-12

    def test_depth_below_floor_is_clamped(self):
        audio = np.linspace(-1, 1, 513)
        assert np.array_equal(bit_crush(audio, 2), bit_crush(audio, 8))

    def test_shape_preserved(self):
        audio = np.zeros((10, 2))
        assert bit_crush(audio, 10).shape == (10, 2)


class TestBassBoost:
    """Tests for the 100 Hz low shelf."""

    def test_low_shelf_dc_gain_matches_requested_gain(self):
        b, a = low_shelf_coefficients(100, 44100, 12.0, 0.707)
        dc_gain = np.sum(b) / np.sum(a)
        assert dc_gain == pytest.approx(10 ** (12 / 20), rel=1e-6)

    def test_below_threshold_is_passthrough(self, sample_rate):
        audio = make_tone(sample_rate, 0.5)
        assert apply_bass_boost(audio, 0.3, sample_rate) is audio

    def test_boosts_lows_and_leaves_highs(self, sample_rate):
        low = make_tone(sample_rate, 1.0, freq=40, amplitude=0.1)
        high = make_tone(sample_rate, 1.0, freq=5000, amplitude=0.1)

        low_gain = _rms(apply_bass_boost(low, 12.0, sample_rate)[sample_rate // 2:]) / _rms(low)
        high_gain = _rms(apply_bass_boost(high, 12.0, sample_rate)[sample_rate // 2:]) / _rms(high)

        assert low_gain > 2.5
        assert 0.9 < high_gain < 1.15

    def test_shape_preserved(self, sample_rate):
        audio = make_tone(sample_rate, 0.2)
        assert apply_bass_boost(audio, 6.0, sample_rate).shape == audio.shape


class TestTimeStretch:
    """Tests for tempo-only stretching."""

    def test_output_length(self, sample_rate):
        audio = make_tone(sample_rate, 1.0)
        ratio = 1 - 25 / 300
        out = time_stretch(audio, ratio)
        assert out.shape == (stretched_length(len(audio), ratio), 2)

    def test_full_slowdown_is_one_and_a_half_times_longer(self, sample_rate):
        audio = make_tone(sample_rate, 1.0)
        out = time_stretch(audio, 1 - 100 / 300)
        assert abs(len(out) - 1.5 * len(audio)) <= 1

    def test_pitch_is_preserved(self, sample_rate):
        audio = make_tone(sample_rate, 2.0, freq=440, channels=1)
        out = time_stretch(audio, 0.75)
        # Ignore edges where the STFT window is only partly filled
        middle = out[sample_rate // 2: -sample_rate // 2, 0]
        assert _dominant_frequency(middle, sample_rate) == pytest.approx(440, abs=10)

    def test_unit_ratio_is_passthrough(self, sample_rate):
        audio = make_tone(sample_rate, 0.2)
        assert time_stretch(audio, 1.0) is audio

    def test_invalid_ratio(self, sample_rate):
        with pytest.raises(ValueError):
            time_stretch(make_tone(sample_rate, 0.1), 0.0)


class TestReverb:
    """Tests for the lo-fi convolution reverb."""

    def test_preset_ir_is_deterministic(self):
        a = ConvolutionReverb(sample_rate=22050).get_preset_ir("lofi_room")
        b = ConvolutionReverb(sample_rate=22050).get_preset_ir("lofi_room")
        assert np.array_equal(a, b)

    def test_preset_ir_is_cached(self):
        reverb = ConvolutionReverb(sample_rate=22050)
        assert reverb.get_preset_ir("tight_room") is reverb.get_preset_ir("tight_room")

    def test_ir_shape_and_level(self):
        ir = ConvolutionReverb(sample_rate=22050).generate_ir(IR_PRESETS["lofi_room"])
        assert ir.ndim == 2 and ir.shape[1] == 2
        assert np.max(np.abs(ir)) <= 0.3 + 1e-9

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            ConvolutionReverb().get_preset_ir("cathedral")

    def test_below_threshold_is_passthrough(self, sample_rate):
        audio = make_tone(sample_rate, 0.2)
        assert apply_reverb(audio, 0.05, sample_rate) is audio

    def test_adds_a_tail(self, sample_rate):
        audio = np.zeros((sample_rate, 2))
        audio[0] = 0.9
        out = apply_reverb(audio, 1.0, sample_rate)
        assert out.shape == audio.shape
        assert np.max(np.abs(out[sample_rate // 50:])) > 0
        assert np.max(np.abs(out)) <= 0.99 + 1e-9

    def test_mono_input(self, sample_rate):
        audio = make_tone(sample_rate, 0.2, channels=1)
        assert apply_reverb(audio, 0.5, sample_rate).shape == audio.shape


class TestNoiseBeds:
    """Tests for crackle and background beds."""

    def test_vinyl_crackle_is_seeded(self, sample_rate):
        a = generate_vinyl_crackle(1.0, 0.65, np.random.default_rng(5), sample_rate)
        b = generate_vinyl_crackle(1.0, 0.65, np.random.default_rng(5), sample_rate)
        c = generate_vinyl_crackle(1.0, 0.65, np.random.default_rng(6), sample_rate)
        assert np.array_equal(a, b)
        assert not np.array_equal(a, c)

    def test_vinyl_crackle_length_and_level(self, sample_rate):
        bed = generate_vinyl_crackle(0.5, 1.0, np.random.default_rng(0), sample_rate)
        assert len(bed) == sample_rate // 2
        assert np.any(bed != 0)
        assert np.all(np.isfinite(bed))

    def test_zero_level_crackle_is_silent(self, sample_rate):
        bed = generate_vinyl_crackle(0.5, 0.0, np.random.default_rng(0), sample_rate)
        assert not np.any(bed)

    def test_background_noise_peak(self, sample_rate):
        bed = generate_background_noise(1.0, np.random.default_rng(0), sample_rate)
        assert np.max(np.abs(bed)) == pytest.approx(0.1)

    def test_loop_to_length(self):
        bed = np.arange(4, dtype=float)
        assert loop_to_length(bed, 10).tolist() == [0, 1, 2, 3, 0, 1, 2, 3, 0, 1]
        assert len(loop_to_length(bed, 3)) == 3

    def test_loop_empty_bed(self):
        assert np.array_equal(loop_to_length(np.zeros(0), 5), np.zeros(5))
        assert len(loop_to_length(np.ones(3), 0)) == 0

    def test_bed_seconds_never_exceed_signal(self):
        assert bed_seconds_for(22050, 22050, 8.0) == pytest.approx(1.0)
        assert bed_seconds_for(22050 * 20, 22050, 8.0) == pytest.approx(8.0)
