"""Pytest configuration and fixtures."""

from pathlib import Path

import numpy as np
import pytest
import soundfile as sf


@pytest.fixture
def test_config():
    """Provide test configuration."""
    from fragmatch.config import FragmatchConfig, LoggingConfig

    return FragmatchConfig(logging=LoggingConfig(level="DEBUG"))


@pytest.fixture
def write_wav(tmp_path):
    """Provide a helper writing float samples to a WAV file in tmp_path."""

    def _write(
        name: str,
        samples: np.ndarray,
        sample_rate: int = 44100,
        subtype: str = "PCM_16",
    ) -> Path:
        path = tmp_path / name
        sf.write(str(path), samples, sample_rate, subtype=subtype)
        return path

    return _write


@pytest.fixture
def noise():
    """Provide a helper generating reproducible white noise."""

    def _noise(seconds: float, seed: int = 0, sample_rate: int = 44100) -> np.ndarray:
        rng = np.random.default_rng(seed)
        return np.clip(rng.standard_normal(int(seconds * sample_rate)) * 0.25, -0.99, 0.99)

    return _noise
