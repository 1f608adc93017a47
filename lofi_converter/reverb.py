"""
Convolution Reverb - FFT-based reverb with procedural impulse responses.

Provides the small, colored room sound of the lo-fi chain through
convolution with generated impulse responses.
"""

from dataclasses import dataclass
from typing import Dict, Optional
import logging
import threading

import numpy as np
from scipy import signal

from .utils import REVERB_MAX_WET, REVERB_SKIP_LEVEL

logger = logging.getLogger(__name__)


@dataclass
class IRConfig:
    """Impulse response generation configuration."""
    ir_type: str = "room"           # "room", "lofi"
    decay_seconds: float = 1.5      # RT60 decay time
    damping: float = 0.5            # High frequency absorption (0-1)
    size: float = 0.5               # Room size factor (0-1)
    diffusion: float = 0.7          # Echo density (0-1)
    pre_delay_ms: float = 0.0       # Initial delay before reverb
    seed: int = 42                  # IRs are fixed per preset


@dataclass
class ReverbConfig:
    """Reverb effect configuration."""
    wet_dry: float = 0.3            # Wet/dry mix (0=dry, 1=wet)
    pre_delay_ms: float = 20.0      # Pre-delay in ms
    low_cut_hz: float = 80.0        # High-pass on wet signal
    high_cut_hz: float = 12000.0    # Low-pass on wet signal


class ConvolutionReverb:
    """
    FFT-based convolution reverb.

    Usage:
        reverb = ConvolutionReverb(sample_rate=44100)
        wet = reverb.process(audio, preset="lofi_room")
    """

    def __init__(self, sample_rate: int = 44100):
        self.sample_rate = sample_rate
        self._ir_cache: Dict[str, np.ndarray] = {}
        self._lock = threading.Lock()

    def generate_ir(self, config: IRConfig) -> np.ndarray:
        """
        Generate a procedural stereo impulse response.

        - room: Exponential decay with early reflections
        - lofi: Short, truncated, saturated; a cheap spring/box sound

        Args:
            config: IR generation configuration

        Returns:
            Impulse response of shape (samples, 2)
        """
        rng = np.random.default_rng(config.seed)

        early = self.generate_early_reflections(config.size, rng, num_reflections=12)
        late = self.generate_late_reverb(config.decay_seconds, config.diffusion, rng)

        max_len = max(len(early), len(late))
        early = np.pad(early, ((0, max_len - len(early)), (0, 0)))
        late = np.pad(late, ((0, max_len - len(late)), (0, 0)))

        if config.ir_type == "lofi":
            ir = early * 0.7 + late * 0.3
            lofi_length = int(config.decay_seconds * self.sample_rate * 0.5)
            if lofi_length < len(ir):
                ir = ir[:lofi_length]
            # Grit
            ir = np.tanh(ir * 1.5) * 0.8
        else:
            ir = early * 0.4 + late * 0.6

        if config.damping > 0:
            ir = self._apply_damping(ir, config.damping)

        if config.pre_delay_ms > 0:
            pre_delay_samples = int(config.pre_delay_ms * self.sample_rate / 1000)
            ir = np.pad(ir, ((pre_delay_samples, 0), (0, 0)))

        # RMS normalization keeps energy consistent between presets
        rms = np.sqrt(np.mean(ir ** 2))
        if rms > 0:
            ir = ir / rms * 0.1

        peak = np.max(np.abs(ir))
        if peak > 0.3:
            ir = ir / peak * 0.3

        return ir

    def _apply_damping(self, ir: np.ndarray, damping: float) -> np.ndarray:
        """High-frequency rolloff that deepens along the tail."""
        damping_curve = np.linspace(0, damping, len(ir))
        nyquist = self.sample_rate / 2
        for i in range(0, len(ir), 512):
            chunk_end = min(i + 512, len(ir))
            avg_damping = np.mean(damping_curve[i:chunk_end])
            cutoff = 20000 * (1 - avg_damping * 0.8)  # 20kHz to 4kHz
            if cutoff < nyquist:
                sos = signal.butter(2, cutoff, btype='low', fs=self.sample_rate, output='sos')
                ir[i:chunk_end] = signal.sosfilt(sos, ir[i:chunk_end], axis=0)
        return ir

    def generate_early_reflections(
        self,
        size: float,
        rng: np.random.Generator,
        num_reflections: int = 12
    ) -> np.ndarray:
        """Generate discrete early reflections based on room size."""
        max_delay_ms = 80 * size  # 0 to 80ms
        max_delay_samples = int(max_delay_ms * self.sample_rate / 1000)

        ir_length = max(max_delay_samples + 1000, 2000)
        ir = np.zeros((ir_length, 2))
        ir[0] = [1.0, 1.0]

        for i in range(num_reflections):
            # Clustered early, then spread out
            if i < num_reflections // 2:
                delay_ms = rng.uniform(5, max(max_delay_ms * 0.5, 5.0))
            else:
                delay_ms = rng.uniform(max_delay_ms * 0.5, max(max_delay_ms, 5.0))

            delay_samples = int(delay_ms * self.sample_rate / 1000)
            amplitude = 0.7 ** (i + 1)

            if delay_samples < ir_length:
                ir[delay_samples, 0] += amplitude * rng.uniform(0.8, 1.0)
                ir[delay_samples, 1] += amplitude * rng.uniform(0.8, 1.0)

        return ir

    def generate_late_reverb(
        self,
        decay_seconds: float,
        diffusion: float,
        rng: np.random.Generator
    ) -> np.ndarray:
        """Generate diffuse late reverb tail (velvet noise)."""
        length_samples = int(decay_seconds * self.sample_rate * 1.2)
        ir = np.zeros((length_samples, 2))

        t = np.arange(length_samples) / self.sample_rate
        decay_curve = np.exp(-t * (6.91 / decay_seconds))  # -60dB at decay_seconds

        num_echoes = int(decay_seconds * 1000 * diffusion)
        echo_idx = (np.sort(rng.uniform(0, decay_seconds, num_echoes)) * self.sample_rate).astype(int)
        echo_idx = echo_idx[echo_idx < length_samples]
        # Random polarity per echo reduces modal resonances
        polarity = rng.choice([-1.0, 1.0], size=(len(echo_idx), 2))
        np.add.at(ir, echo_idx, polarity * decay_curve[echo_idx, None])

        if diffusion > 0.5:
            window = np.hanning(int(0.005 * self.sample_rate))  # 5ms smoothing
            window = window / np.sum(window)
            ir[:, 0] = np.convolve(ir[:, 0], window, mode='same')
            ir[:, 1] = np.convolve(ir[:, 1], window, mode='same')

        return ir

    def convolve(
        self,
        audio: np.ndarray,
        ir: np.ndarray,
        config: ReverbConfig
    ) -> np.ndarray:
        """
        Apply convolution reverb to audio.

        Args:
            audio: Input audio, shape (samples, channels)
            ir: Impulse response, shape (samples, 2)
            config: Reverb configuration

        Returns:
            Processed audio, same shape as the input
        """
        if len(audio) == 0:
            return audio

        original_length = len(audio)
        channels = audio.shape[1]

        wet = np.empty_like(audio)
        for ch in range(channels):
            full = signal.fftconvolve(audio[:, ch], ir[:, ch % ir.shape[1]], mode='full')
            wet[:, ch] = full[:original_length]

        wet = self.apply_pre_eq(wet, config.low_cut_hz, config.high_cut_hz)

        if config.pre_delay_ms > 0:
            pre_delay_samples = int(config.pre_delay_ms * self.sample_rate / 1000)
            if pre_delay_samples < original_length:
                wet = np.roll(wet, pre_delay_samples, axis=0)
                wet[:pre_delay_samples] = 0

        output = audio * (1 - config.wet_dry) + wet * config.wet_dry

        if config.wet_dry > 0:
            peak = np.max(np.abs(output))
            if peak > 0.99:
                output = output * (0.99 / peak)

        return output

    def apply_pre_eq(
        self,
        audio: np.ndarray,
        low_cut_hz: float,
        high_cut_hz: float
    ) -> np.ndarray:
        """Apply EQ to reverb signal (cut lows/highs)."""
        if len(audio) == 0:
            return audio

        result = audio
        nyquist = self.sample_rate / 2

        if 20 < low_cut_hz < nyquist:
            sos = signal.butter(2, low_cut_hz, btype='high', fs=self.sample_rate, output='sos')
            result = signal.sosfilt(sos, result, axis=0)

        if high_cut_hz < nyquist:
            sos = signal.butter(2, high_cut_hz, btype='low', fs=self.sample_rate, output='sos')
            result = signal.sosfilt(sos, result, axis=0)

        return result

    def get_preset_ir(self, name: str) -> np.ndarray:
        """Get a preset IR by name, generating it on first use."""
        if name not in IR_PRESETS:
            raise ValueError(f"Unknown preset: {name}. Available: {list(IR_PRESETS)}")
        with self._lock:
            if name not in self._ir_cache:
                logger.debug("Generating %s impulse response at %d Hz", name, self.sample_rate)
                self._ir_cache[name] = self.generate_ir(IR_PRESETS[name])
            return self._ir_cache[name]

    def process(
        self,
        audio: np.ndarray,
        preset: str = "lofi_room",
        config: Optional[ReverbConfig] = None
    ) -> np.ndarray:
        """Process audio with a preset reverb."""
        if config is None:
            config = ReverbConfig()
        ir = self.get_preset_ir(preset)
        return self.convolve(audio, ir, config)


# Pre-defined IR configurations
IR_PRESETS: Dict[str, IRConfig] = {
    "tight_room": IRConfig(
        ir_type="room",
        decay_seconds=0.3,
        damping=0.7,
        size=0.2,
        diffusion=0.5
    ),
    "lofi_room": IRConfig(
        ir_type="lofi",
        decay_seconds=0.6,
        damping=0.8,
        size=0.3,
        diffusion=0.5
    ),
}

# One reverb per sample rate; IRs are deterministic so they can be shared
_REVERBS: Dict[int, ConvolutionReverb] = {}
_REVERBS_LOCK = threading.Lock()


def get_reverb(sample_rate: int) -> ConvolutionReverb:
    """Shared reverb instance for a sample rate."""
    with _REVERBS_LOCK:
        if sample_rate not in _REVERBS:
            _REVERBS[sample_rate] = ConvolutionReverb(sample_rate=sample_rate)
        return _REVERBS[sample_rate]


def apply_reverb(
    audio: np.ndarray,
    amount: float,
    sample_rate: int = 44100,
    preset: str = "lofi_room",
) -> np.ndarray:
    """
    Lo-fi reverb with wet level proportional to amount.

    Args:
        audio: Input audio, shape (samples, channels)
        amount: Normalized reverb slider (0-1); below 0.1 is a passthrough
        sample_rate: Sample rate
        preset: IR preset name

    Returns:
        Audio with reverb
    """
    if amount < REVERB_SKIP_LEVEL:
        return audio
    config = ReverbConfig(wet_dry=amount * REVERB_MAX_WET, high_cut_hz=6000)
    return get_reverb(sample_rate).process(audio, preset=preset, config=config)
