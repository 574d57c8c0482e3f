"""Fingerprint store and hash extraction from FFT frames.

Every analysis frame is reduced to a small integer key. The fingerprint of a
recording maps each key to the frame indices where it occurred; two
recordings sharing keys at many nearby indices are likely to share audio.

Strategies (``HashStrategy``):
- PEAK_TRIPLET: strongest bin in three fixed sub-ranges, positional weighting
- PEAK_PACKED: strongest bin in four sub-ranges, one byte each
- BARK_DELTA: rising-edge bitmap over critical-band magnitudes
- RMS: legacy real-valued vector, see ``rms_vector``
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np

from .config import FingerprintConfig
from .constants import CANONICAL_SAMPLE_RATE, HashStrategy
from .errors import ConfigError

logger = logging.getLogger(__name__)

_ALL_BITS = 0xFFFFFFFF


def to_int32(value: int) -> int:
    """Reinterpret the low 32 bits of ``value`` as a signed integer."""
    value &= _ALL_BITS
    return value - (1 << 32) if value & 0x80000000 else value


class Fingerprint:
    """Mapping from hash key to the frame indices where it occurred.

    Built incrementally while a stream is analyzed, then frozen: once
    ``freeze()`` has been called the fingerprint is read-only.
    """

    def __init__(self) -> None:
        self._buckets: dict[int, list[int]] = {}
        self._frozen = False

    def add(self, key: int, frame_index: int) -> None:
        """Record that ``key`` occurred at ``frame_index``."""
        if self._frozen:
            raise RuntimeError("Fingerprint is read-only once analysis has completed")
        bucket = self._buckets.get(key)
        if bucket is None:
            self._buckets[key] = [frame_index]
        else:
            bucket.append(frame_index)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def occurrences(self) -> int:
        """Total number of (key, frame_index) entries."""
        return sum(len(indices) for indices in self._buckets.values())

    def get(self, key: int) -> list[int] | None:
        return self._buckets.get(key)

    def keys(self):
        return self._buckets.keys()

    def items(self):
        return self._buckets.items()

    def __getitem__(self, key: int) -> list[int]:
        return self._buckets[key]

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

    def __iter__(self) -> Iterator[int]:
        return iter(self._buckets)

    def __len__(self) -> int:
        return len(self._buckets)

    def __repr__(self) -> str:
        return f"Fingerprint(keys={len(self)}, occurrences={self.occurrences}, frozen={self._frozen})"


@dataclass(frozen=True)
class AnalyzedAudio:
    """The durable result of analyzing one recording.

    Attributes:
        name: Short file name, used in reports
        bit_depth: Bits per sample of the source (8 or 16)
        fingerprint: Frozen hash -> frame indices mapping
        frame_seconds: Seconds between consecutive frame indices
        duration_seconds: Duration reported by the source
        frame_count: Number of analyzed frames
    """

    name: str
    bit_depth: int
    fingerprint: Fingerprint
    frame_seconds: float
    duration_seconds: int = 0
    frame_count: int = 0


def power_spectrum(spectrum: np.ndarray, fft_size: int, bins: int | None = None) -> np.ndarray:
    """Squared magnitude ``re**2 + im**2`` of the first ``bins`` bins."""
    count = fft_size if bins is None else bins
    real = spectrum[:count]
    imag = spectrum[fft_size:fft_size + count]
    return real * real + imag * imag


def rms_vector(spectrum: np.ndarray, fft_size: int) -> np.ndarray:
    """Legacy RMS fingerprint of one FFT frame.

    Splits the frame's squared magnitudes into four quarter-frame sub-blocks
    and returns, for each, the RMS of the block normalized by its mean. An
    all-zero block yields 0.

    Args:
        spectrum: FFT output (real parts, then imaginary parts)
        fft_size: FFT window size the spectrum was computed with

    Returns:
        Array of four float values
    """
    if fft_size % 4:
        raise ConfigError(f"RMS fingerprint needs an FFT size divisible by 4, got {fft_size}")
    blocks = power_spectrum(spectrum, fft_size).reshape(4, fft_size // 4)
    means = blocks.mean(axis=1)
    result = np.zeros(4, dtype=np.float64)
    nonzero = means > 0
    normalized = blocks[nonzero] / means[nonzero, np.newaxis]
    result[nonzero] = np.sqrt(np.mean(normalized * normalized, axis=1))
    return result


class FingerprintExtractor:
    """Turns FFT frames into hash keys and records them in a Fingerprint."""

    def __init__(
        self,
        config: FingerprintConfig | None = None,
        fft_size: int = 2048,
        sample_rate: int = CANONICAL_SAMPLE_RATE,
    ):
        """Initialize extractor.

        Args:
            config: Strategy selection and band layout (defaults if None)
            fft_size: FFT window size of the spectra that will be fed in
            sample_rate: Sampling rate of the analyzed audio (Hz)
        """
        self.config = config or FingerprintConfig()
        self.strategy = self.config.strategy
        self.fft_size = fft_size
        self.sample_rate = sample_rate
        self.usable_bins = fft_size // 2 + 1

        self._hashers = {
            HashStrategy.PEAK_TRIPLET: self._peak_triplet_hash,
            HashStrategy.PEAK_PACKED: self._peak_packed_hash,
            HashStrategy.BARK_DELTA: self._bark_delta_hash,
        }
        for edges in (self.config.triplet_band_edges, self.config.packed_band_edges):
            if edges[-1] > self.usable_bins:
                raise ConfigError(
                    f"Band edge {edges[-1]} exceeds the {self.usable_bins} usable bins "
                    f"of a {fft_size}-point FFT"
                )
        self._band_of_bin, self._band_bins, self._band_count = self._bark_layout()
        logger.debug(
            "[FingerprintExtractor] strategy=%s, %d critical bands",
            self.strategy.value,
            len(self._band_count),
        )

    def _bark_layout(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Map every usable bin to its critical band (or drop it)."""
        nyquist = self.sample_rate / 2
        edges = [edge for edge in self.config.bark_edges_hz if edge <= nyquist]
        if len(edges) < 2:
            raise ConfigError(f"No critical band fits below {nyquist} Hz")

        freqs = np.arange(self.usable_bins) * self.sample_rate / self.fft_size
        band_of_bin = np.searchsorted(edges, freqs, side="right") - 1
        keep = (band_of_bin >= 0) & (band_of_bin < len(edges) - 1)
        band_bins = np.flatnonzero(keep)
        band_of_bin = band_of_bin[keep]
        counts = np.bincount(band_of_bin, minlength=len(edges) - 1)
        return band_of_bin, band_bins, counts

    def hash(self, spectrum: np.ndarray) -> int:
        """Compute the hash key of one FFT frame with the configured strategy."""
        hasher = self._hashers.get(self.strategy)
        if hasher is None:
            raise ConfigError(f"{self.strategy.value} does not produce hash keys")
        return hasher(spectrum)

    def update(self, spectrum: np.ndarray, frame_index: int, fingerprint: Fingerprint) -> int:
        """Hash one FFT frame and append ``frame_index`` to its bucket.

        Returns:
            The hash key that was recorded
        """
        key = self.hash(spectrum)
        fingerprint.add(key, frame_index)
        return key

    def band_peaks(self, spectrum: np.ndarray, edges: list[int]) -> list[int]:
        """Bin index of maximum power within each ``[edges[i], edges[i+1])``.

        Ties keep the lower bin index.
        """
        power = power_spectrum(spectrum, self.fft_size, edges[-1])
        return [lo + int(np.argmax(power[lo:hi])) for lo, hi in zip(edges, edges[1:])]

    def band_magnitudes(self, spectrum: np.ndarray) -> np.ndarray:
        """Average magnitude within each critical band."""
        power = power_spectrum(spectrum, self.fft_size, self.usable_bins)
        magnitude = np.sqrt(power[self._band_bins])
        totals = np.bincount(self._band_of_bin, weights=magnitude, minlength=len(self._band_count))
        averages = np.zeros(len(self._band_count), dtype=np.float64)
        filled = self._band_count > 0
        averages[filled] = totals[filled] / self._band_count[filled]
        return averages

    def _peak_triplet_hash(self, spectrum: np.ndarray) -> int:
        f1, f2, f3 = self.band_peaks(spectrum, self.config.triplet_band_edges)
        return f1 * 100000 + f2 * 1000 + f3

    def _peak_packed_hash(self, spectrum: np.ndarray) -> int:
        packed = 0
        for peak in self.band_peaks(spectrum, self.config.packed_band_edges):
            packed = (packed << 8) | (peak & 0xFF)
        return to_int32(packed)

    def _bark_delta_hash(self, spectrum: np.ndarray) -> int:
        bands = self.band_magnitudes(spectrum)
        # Bit i is cleared when band i rises above band i - 1
        rising = np.flatnonzero(bands[:-1] < bands[1:]) + 1
        key = _ALL_BITS
        for bit in rising:
            key &= ~(1 << int(bit))
        return to_int32(key)
