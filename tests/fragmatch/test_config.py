"""Tests for configuration module."""

from pathlib import Path

import pytest

from fragmatch.config import (
    FingerprintConfig,
    FragmatchConfig,
    LoggingConfig,
    MatchConfig,
    SpectralConfig,
    load_config,
)
from fragmatch.constants import HashStrategy, Mode


class TestSpectralConfig:
    """Test SpectralConfig validation."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = SpectralConfig()
        assert config.sample_rate == 44100
        assert config.fft_size == 2048
        assert config.frame_size == 1764

    def test_fft_size_must_be_power_of_two(self) -> None:
        with pytest.raises(ValueError):
            SpectralConfig(fft_size=2000, frame_size=1000)

    def test_frame_must_fit_window(self) -> None:
        with pytest.raises(ValueError):
            SpectralConfig(fft_size=1024, frame_size=1764)


class TestMatchConfig:
    """Test MatchConfig."""

    def test_default_values(self) -> None:
        config = MatchConfig()
        assert config.error_threshold == 8
        assert config.error_density == pytest.approx(4.3)
        assert config.min_match_frames == 140
        assert config.bitrate_mismatch_multiplier == pytest.approx(1.5)
        assert config.collision_floor == 42

    def test_density_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            MatchConfig(error_density=0)

    def test_multiplier_cannot_shrink_budget(self) -> None:
        with pytest.raises(ValueError):
            MatchConfig(bitrate_mismatch_multiplier=0.5)


class TestFingerprintConfig:
    """Test FingerprintConfig validation."""

    def test_default_strategy(self) -> None:
        assert FingerprintConfig().strategy == HashStrategy.BARK_DELTA

    def test_strategy_from_string(self) -> None:
        assert FingerprintConfig(strategy="peak_triplet").strategy == HashStrategy.PEAK_TRIPLET

    def test_triplet_needs_four_edges(self) -> None:
        with pytest.raises(ValueError):
            FingerprintConfig(triplet_band_edges=[10, 20, 60])

    def test_edges_must_increase(self) -> None:
        with pytest.raises(ValueError):
            FingerprintConfig(triplet_band_edges=[10, 60, 20, 120])

    def test_packed_edges_fit_one_byte(self) -> None:
        with pytest.raises(ValueError):
            FingerprintConfig(packed_band_edges=[2, 10, 20, 60, 300])


class TestLoggingConfig:
    """Test LoggingConfig."""

    def test_default_values(self) -> None:
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.file is None

    def test_level_is_normalized(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValueError):
            LoggingConfig(level="WARN1")


class TestFragmatchConfig:
    """Test full configuration."""

    def test_normal_mode(self) -> None:
        config = FragmatchConfig()
        assert config.mode == Mode.NORMAL
        assert config.overlap
        assert config.frame_seconds == pytest.approx(0.02)
        assert config.active_match is config.match

    def test_fast_mode(self) -> None:
        config = FragmatchConfig().with_mode("fast")
        assert config.mode == Mode.FAST
        assert not config.overlap
        assert config.frame_seconds == pytest.approx(0.04)
        assert config.active_match.error_density == pytest.approx(8.0)
        assert config.active_match.min_match_frames == 70

    def test_with_mode_returns_copy(self) -> None:
        config = FragmatchConfig()
        config.with_mode(Mode.FAST)
        assert config.mode == Mode.NORMAL


class TestLoadConfig:
    """Test load_config()."""

    def test_load_from_file(self, tmp_path: Path) -> None:
        """Test loading configuration from a YAML file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "mode: fast\n"
            "min_duration_seconds: 3\n"
            "match:\n"
            "  error_threshold: 10\n"
            "fingerprint:\n"
            "  strategy: peak_packed\n"
            "logging:\n"
            "  level: DEBUG\n"
        )

        config = load_config(config_file)
        assert config.mode == Mode.FAST
        assert config.min_duration_seconds == 3
        assert config.match.error_threshold == 10
        assert config.match.error_density == pytest.approx(4.3)
        assert config.fingerprint.strategy == HashStrategy.PEAK_PACKED
        assert config.logging.level == "DEBUG"

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        assert load_config(config_file) == FragmatchConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_values(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("spectral:\n  fft_size: 1000\n")
        with pytest.raises(ValueError):
            load_config(config_file)

    def test_bundled_config_is_valid(self) -> None:
        """The sample configuration shipped with the project loads."""
        bundled = Path(__file__).parent.parent.parent / "config" / "config.yaml"
        config = load_config(bundled)
        assert config.spectral.fft_size == 2048
        assert config.fast_match.min_match_frames == 70
