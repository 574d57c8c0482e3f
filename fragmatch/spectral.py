"""Precomputed spectral tables and the iterative FFT engine.

The FFT runs once per analysis frame, always with the same window size, so
everything that depends only on the size (bit-reversal permutation, per-stage
twiddle factors, Hann window) is computed once by ``SpectralPrecomputer`` and
handed to the engine as an explicit ``SpectralTables`` value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy.signal import windows

from .errors import ConfigError

logger = logging.getLogger(__name__)


def _log2(fft_size: int) -> int:
    if not isinstance(fft_size, (int, np.integer)) or fft_size < 2 or fft_size & (fft_size - 1):
        raise ConfigError(f"FFT size must be a power of two >= 2, got {fft_size!r}")
    return int(fft_size).bit_length() - 1


@dataclass(frozen=True, eq=False)
class SpectralTables:
    """Size-dependent tables shared by every frame of a run.

    Attributes:
        fft_size: FFT window size N (power of two)
        frame_size: Analysis frame length (<= N), the Hann window length
        depth: log2(N), the number of butterfly stages
        bit_reverse: bit_reverse[i] is i with its ``depth`` low bits reversed
        twiddle_factors: N * depth values; the first half holds real parts,
            the second half imaginary parts. Stage s (1-based) occupies the
            N/2 entries starting at (s - 1) * N/2 within each half.
        hann_window: Hann coefficients for ``frame_size`` samples
    """

    fft_size: int
    frame_size: int
    depth: int
    bit_reverse: np.ndarray
    twiddle_factors: np.ndarray
    hann_window: np.ndarray

    @classmethod
    def build(cls, fft_size: int, frame_size: int) -> SpectralTables:
        """Compute all tables for a window/frame size pair.

        Raises:
            ConfigError: If fft_size is not a power of two or frame_size is
                outside [2, fft_size]
        """
        depth = _log2(fft_size)
        if not isinstance(frame_size, (int, np.integer)) or not 2 <= frame_size <= fft_size:
            raise ConfigError(
                f"Frame size must be between 2 and the FFT size ({fft_size}), got {frame_size!r}"
            )

        bit_reverse = _bit_reverse_table(fft_size, depth)
        twiddle_factors = _twiddle_table(fft_size, depth)
        hann_window = windows.hann(frame_size, sym=True).astype(np.float64)

        for table in (bit_reverse, twiddle_factors, hann_window):
            table.setflags(write=False)

        return cls(
            fft_size=int(fft_size),
            frame_size=int(frame_size),
            depth=depth,
            bit_reverse=bit_reverse,
            twiddle_factors=twiddle_factors,
            hann_window=hann_window,
        )


def _bit_reverse_table(fft_size: int, depth: int) -> np.ndarray:
    indices = np.arange(fft_size, dtype=np.uint32)
    table = np.zeros(fft_size, dtype=np.uint32)
    for bit in range(depth):
        table |= ((indices >> bit) & 1) << (depth - 1 - bit)
    return table


def _twiddle_table(fft_size: int, depth: int) -> np.ndarray:
    real_parts = []
    imag_parts = []
    for stage in range(1, depth + 1):
        m = 1 << stage
        angles = -2.0 * np.pi * np.arange(m >> 1) / m
        groups = fft_size // m
        real_parts.append(np.tile(np.cos(angles), groups))
        imag_parts.append(np.tile(np.sin(angles), groups))
    return np.concatenate(real_parts + imag_parts)


class SpectralPrecomputer:
    """Owns the cached ``SpectralTables`` for one pipeline.

    ``initialize()`` rebuilds the tables only when the requested configuration
    differs from the cached one.
    """

    def __init__(self) -> None:
        self._tables: SpectralTables | None = None

    @property
    def is_initialized(self) -> bool:
        return self._tables is not None

    @property
    def tables(self) -> SpectralTables:
        """The cached tables.

        Raises:
            ConfigError: If initialize() has not been called yet
        """
        if self._tables is None:
            raise ConfigError("SpectralPrecomputer must be initialized before use")
        return self._tables

    def initialize(self, fft_size: int, frame_size: int) -> SpectralTables:
        """Configure the tables for a window/frame size pair.

        Idempotent: returns the cached tables when already configured with the
        same sizes.
        """
        cached = self._tables
        if cached is not None and cached.fft_size == fft_size and cached.frame_size == frame_size:
            return cached

        self._tables = SpectralTables.build(fft_size, frame_size)
        logger.debug(
            "[SpectralPrecomputer] Built tables for fft_size=%d frame_size=%d (depth=%d)",
            fft_size,
            frame_size,
            self._tables.depth,
        )
        return self._tables


class FFTEngine:
    """Iterative radix-2 Cooley-Tukey FFT over precomputed tables.

    Output layout: ``result[i]`` is the real part and ``result[i + N]`` the
    imaginary part of bin ``i``, for ``i`` in ``0..N``.
    """

    def __init__(self, tables: SpectralTables):
        self.tables = tables

    @classmethod
    def from_precomputer(cls, precomputer: SpectralPrecomputer) -> FFTEngine:
        """Build an engine from an initialized precomputer.

        Raises:
            ConfigError: If the precomputer has not been initialized
        """
        return cls(precomputer.tables)

    def transform(self, samples: np.ndarray) -> np.ndarray:
        """Transform one real-valued frame of exactly ``fft_size`` samples.

        Args:
            samples: Time-domain samples (imaginary parts implicitly zero)

        Returns:
            Array of length 2 * fft_size: real parts, then imaginary parts

        Raises:
            ConfigError: If the frame length does not match the tables
        """
        tables = self.tables
        n = tables.fft_size
        samples = np.asarray(samples, dtype=np.float64)
        if samples.shape != (n,):
            raise ConfigError(
                f"FFT engine configured for {n} samples, got frame of shape {samples.shape}"
            )

        buffer = np.zeros(n << 1, dtype=np.float64)
        buffer[tables.bit_reverse] = samples
        real = buffer[:n]
        imag = buffer[n:]

        half_table = tables.twiddle_factors.size >> 1
        stage_len = n >> 1
        for stage in range(tables.depth):
            m = 2 << stage
            half_m = m >> 1
            groups = n // m
            start = stage * stage_len
            wr = tables.twiddle_factors[start:start + stage_len].reshape(groups, half_m)
            wi = tables.twiddle_factors[half_table + start:half_table + start + stage_len].reshape(
                groups, half_m
            )

            re = real.reshape(groups, m)
            im = imag.reshape(groups, m)
            ur = re[:, :half_m].copy()
            ui = im[:, :half_m].copy()
            vr = re[:, half_m:]
            vi = im[:, half_m:]
            tr = vr * wr - vi * wi
            ti = vr * wi + vi * wr
            re[:, :half_m] = ur + tr
            im[:, :half_m] = ui + ti
            re[:, half_m:] = ur - tr
            im[:, half_m:] = ui - ti

        return buffer
