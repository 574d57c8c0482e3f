"""Per-file analysis: sample source -> frames -> spectra -> fingerprint."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import numpy as np

from .config import FragmatchConfig
from .constants import HashStrategy
from .decoder import ExternalDecoder
from .errors import ConfigError, InsufficientDataError
from .fingerprint import AnalyzedAudio, Fingerprint, FingerprintExtractor, rms_vector
from .segmenter import FrameSegmenter
from .sources import SampleSource, open_source
from .spectral import FFTEngine, SpectralPrecomputer
from .whole_file import RmsFingerprint

logger = logging.getLogger(__name__)


class Analyzer:
    """Drives sample sources through the spectral pipeline.

    One analyzer can process any number of files in sequence; the spectral
    tables are built on first use and reused afterwards.
    """

    def __init__(
        self,
        config: FragmatchConfig | None = None,
        precomputer: SpectralPrecomputer | None = None,
    ):
        """Initialize analyzer.

        Args:
            config: Application configuration (defaults if None)
            precomputer: Shared table cache (a private one if None)
        """
        self.config = config or FragmatchConfig()
        self.precomputer = precomputer or SpectralPrecomputer()
        self._rms_precomputer = SpectralPrecomputer()
        self._decoder: ExternalDecoder | None = None

    @property
    def decoder(self) -> ExternalDecoder:
        if self._decoder is None:
            self._decoder = ExternalDecoder(self.config.decoder)
        return self._decoder

    def close(self) -> None:
        """Stop the background decoder threads, if any were started."""
        if self._decoder is not None:
            self._decoder.shutdown()

    def analyze_path(self, path: Path) -> AnalyzedAudio:
        """Open and analyze one audio file."""
        return self.analyze(open_source(Path(path), self.config, self.decoder))

    def analyze(self, source: SampleSource) -> AnalyzedAudio:
        """Fingerprint a whole sample source.

        The source is always closed, even on error.

        Args:
            source: Stream of mono samples at the configured rate

        Returns:
            AnalyzedAudio with a frozen fingerprint

        Raises:
            InsufficientDataError: If the source holds fewer samples than one
                FFT window
            ConfigError: If the configured strategy does not produce hash keys
        """
        spectral = self.config.spectral
        if self.config.fingerprint.strategy == HashStrategy.RMS:
            source.close()
            raise ConfigError("The RMS strategy is only available through analyze_rms()")

        tables = self.precomputer.initialize(spectral.fft_size, spectral.frame_size)
        segmenter = FrameSegmenter(tables, overlap=self.config.overlap)
        engine = FFTEngine(tables)
        extractor = FingerprintExtractor(self.config.fingerprint, tables.fft_size, spectral.sample_rate)
        fingerprint = Fingerprint()

        chunk_len = spectral.chunk_frames * spectral.frame_size
        consumed = 0
        frame_index = 0
        start_time = time.time()

        try:
            name = source.short_name
            bit_depth = source.bit_depth
            duration = source.duration_seconds
            while source.has_next():
                chunk = source.next(chunk_len)
                if len(chunk) == 0:
                    break
                consumed += len(chunk)
                for frame in segmenter.feed(chunk):
                    extractor.update(engine.transform(frame), frame_index, fingerprint)
                    frame_index += 1
        finally:
            source.close()

        if consumed < tables.fft_size:
            raise InsufficientDataError(
                f"{name}: {consumed} samples, need at least {tables.fft_size}"
            )

        fingerprint.freeze()
        logger.info(
            "[Analyzer] %s: %d frames, %d distinct hashes in %.2fs",
            name,
            frame_index,
            len(fingerprint),
            time.time() - start_time,
        )
        return AnalyzedAudio(
            name=name,
            bit_depth=bit_depth,
            fingerprint=fingerprint,
            frame_seconds=segmenter.hop / spectral.sample_rate,
            duration_seconds=duration,
            frame_count=frame_index,
        )

    def analyze_rms(self, source: SampleSource) -> RmsFingerprint:
        """Build the legacy RMS fingerprint of a sample source.

        Uses non-overlapping windows of ``whole_file.fft_size`` samples,
        Hann-windowed over the full window.

        Raises:
            InsufficientDataError: If the source holds fewer samples than one
                window
        """
        fft_size = self.config.whole_file.fft_size
        tables = self._rms_precomputer.initialize(fft_size, fft_size)
        segmenter = FrameSegmenter(tables, overlap=False)
        engine = FFTEngine(tables)
        vectors: list[np.ndarray] = []
        consumed = 0

        try:
            name = source.short_name
            bit_depth = source.bit_depth
            while source.has_next():
                chunk = source.next(self.config.spectral.chunk_frames * fft_size)
                if len(chunk) == 0:
                    break
                consumed += len(chunk)
                for frame in segmenter.feed(chunk):
                    vectors.append(rms_vector(engine.transform(frame), fft_size))
        finally:
            source.close()

        if consumed < fft_size:
            raise InsufficientDataError(f"{name}: {consumed} samples, need at least {fft_size}")

        logger.debug("[Analyzer] %s: %d RMS frames", name, len(vectors))
        return RmsFingerprint(
            name=name,
            bit_depth=bit_depth,
            values=np.vstack(vectors),
            frame_seconds=fft_size / self.config.spectral.sample_rate,
        )
