"""Configuration management using Pydantic and YAML."""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from fragmatch.constants import BARK_EDGES_HZ, CANONICAL_SAMPLE_RATE, HashStrategy, Mode


class SpectralConfig(BaseModel):
    """FFT window and analysis frame configuration."""

    sample_rate: int = Field(gt=0, default=CANONICAL_SAMPLE_RATE)
    fft_size: int = Field(ge=2, default=2048)
    frame_size: int = Field(ge=2, default=1764)  # 40ms at 44.1kHz
    chunk_frames: int = Field(ge=1, default=32)  # Streaming chunk, in frames

    @field_validator("fft_size")
    @classmethod
    def _power_of_two(cls, value: int) -> int:
        if value & (value - 1):
            raise ValueError(f"fft_size must be a power of two, got {value}")
        return value

    @model_validator(mode="after")
    def _frame_fits_window(self) -> "SpectralConfig":
        if self.frame_size > self.fft_size:
            raise ValueError(
                f"frame_size ({self.frame_size}) must not exceed fft_size ({self.fft_size})"
            )
        return self


class MatchConfig(BaseModel):
    """Fragment search tuning.

    These values are tuned empirically against real audio; they are not
    protocol constants.
    """

    error_threshold: int = Field(ge=0, default=8)
    error_density: float = Field(gt=0, default=4.3)
    min_match_frames: int = Field(ge=1, default=140)
    bitrate_mismatch_multiplier: float = Field(ge=1.0, default=1.5)
    min_collisions_for_match: int | None = Field(ge=0, default=None)

    @property
    def collision_floor(self) -> int:
        """Smallest collision count worth running the run search on."""
        if self.min_collisions_for_match is not None:
            return self.min_collisions_for_match
        return self.error_threshold + int(self.min_match_frames / self.error_density) + 2


class FingerprintConfig(BaseModel):
    """Hash strategy selection and its band layout."""

    strategy: HashStrategy = HashStrategy.BARK_DELTA
    triplet_band_edges: list[int] = [10, 20, 60, 120]
    packed_band_edges: list[int] = [2, 10, 20, 60, 120]
    bark_edges_hz: list[float] = list(BARK_EDGES_HZ)

    @field_validator("triplet_band_edges")
    @classmethod
    def _three_bands(cls, value: list[int]) -> list[int]:
        return _check_edges(value, 4)

    @field_validator("packed_band_edges")
    @classmethod
    def _four_bands(cls, value: list[int]) -> list[int]:
        edges = _check_edges(value, 5)
        if edges[-1] > 256:
            raise ValueError("packed_band_edges must stay within one byte (<= 256)")
        return edges


def _check_edges(value: list[int], count: int) -> list[int]:
    if len(value) != count:
        raise ValueError(f"expected {count} band edges, got {len(value)}")
    if value[0] < 0 or any(lo >= hi for lo, hi in zip(value, value[1:])):
        raise ValueError(f"band edges must be non-negative and increasing: {value}")
    return value


class DecoderConfig(BaseModel):
    """External decoder commands for compressed sources."""

    mp3_command: list[str] = ["lame", "--quiet", "--decode", "{input}", "{output}"]
    ogg_command: list[str] = ["oggdec", "--quiet", "--bits", "16", "--output", "{output}", "{input}"]
    temp_dir: Path | None = None
    max_workers: int = Field(ge=1, default=4)


class WholeFileConfig(BaseModel):
    """Legacy RMS whole-file comparator configuration."""

    fft_size: int = Field(ge=2, default=1024)
    window_frames: int = Field(ge=1, default=215)  # ~5s of 1024-sample frames
    distance_threshold: int = Field(ge=0, default=200)
    upper_distance_threshold: int = Field(ge=0, default=2100)
    fragment_tolerance: float = Field(ge=0, default=10.0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = None

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if not isinstance(logging.getLevelName(value.upper()), int):
            raise ValueError(f"unknown logging level: {value}")
        return value.upper()


class FragmatchConfig(BaseModel):
    """Main application configuration."""

    mode: Mode = Mode.NORMAL
    min_duration_seconds: int = Field(ge=0, default=5)
    spectral: SpectralConfig = Field(default_factory=SpectralConfig)
    match: MatchConfig = Field(default_factory=MatchConfig)
    fast_match: MatchConfig = Field(
        default_factory=lambda: MatchConfig(error_density=8.0, min_match_frames=70)
    )
    fingerprint: FingerprintConfig = Field(default_factory=FingerprintConfig)
    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    whole_file: WholeFileConfig = Field(default_factory=WholeFileConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def with_mode(self, mode: Mode | str) -> "FragmatchConfig":
        """Copy of this configuration running in another analysis mode."""
        return self.model_copy(update={"mode": Mode(mode)})

    @property
    def overlap(self) -> bool:
        """Whether frames are analyzed with 50% overlap."""
        return self.mode == Mode.NORMAL

    @property
    def active_match(self) -> MatchConfig:
        """Match tuning for the configured mode."""
        return self.match if self.mode == Mode.NORMAL else self.fast_match

    @property
    def frame_seconds(self) -> float:
        """Seconds between consecutive frame indices."""
        hop = self.spectral.frame_size / 2 if self.overlap else self.spectral.frame_size
        return hop / self.spectral.sample_rate


def load_config(config_path: Path | None = None) -> FragmatchConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, searches the default
            locations and falls back to built-in defaults.

    Returns:
        FragmatchConfig instance

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ValueError: If config file is invalid
    """
    if config_path is None:
        possible_paths = [
            Path(__file__).parent.parent / "config" / "config.yaml",
            Path.home() / ".config" / "fragmatch" / "config.yaml",
            Path.home() / ".fragmatch" / "config.yaml",
        ]

        for path in possible_paths:
            if path.exists():
                config_path = path
                break
        else:
            return FragmatchConfig()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return FragmatchConfig(**data)
