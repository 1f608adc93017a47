"""
Pytest fixtures for lofi_converter tests.
"""
import pytest
import sys
from pathlib import Path
import tempfile
import shutil

import numpy as np
import soundfile as sf

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def sample_rate():
    """Sample rate for generated test audio (kept low for speed)."""
    return 22050


@pytest.fixture
def temp_dir():
    """Create temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def temp_yaml_file(temp_dir):
    """Create temporary YAML file path for preset tests."""
    yaml_path = Path(temp_dir) / "test_presets.yaml"
    return yaml_path


def make_tone(sample_rate, seconds=2.0, freq=440.0, amplitude=0.5, channels=2):
    """Sine tone of shape (samples, channels)."""
    t = np.arange(int(sample_rate * seconds)) / sample_rate
    mono = amplitude * np.sin(2 * np.pi * freq * t)
    return np.tile(mono[:, None], (1, channels))


@pytest.fixture
def write_wav(temp_dir, sample_rate):
    """Factory writing a tone WAV into temp_dir."""
    def _write(name="song.wav", seconds=2.0, freq=440.0, amplitude=0.5, channels=2):
        path = Path(temp_dir) / name
        sf.write(str(path), make_tone(sample_rate, seconds, freq, amplitude, channels),
                 sample_rate, subtype="PCM_16")
        return path
    return _write


@pytest.fixture
def stereo_wav(write_wav):
    """Two-second stereo 440 Hz WAV."""
    return write_wav()


@pytest.fixture
def mp3_supported():
    """Skip unless libsndfile can write MP3."""
    if "MP3" not in sf.available_formats():
        pytest.skip("libsndfile built without MP3 support")
    return True
