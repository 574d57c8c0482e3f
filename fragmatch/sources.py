"""Sample sources: where analysis reads its audio from.

Every source yields mono float samples at the canonical 44.1 kHz rate, in
chunks of at most ``max_len`` samples, and reports the bit depth and duration
of the underlying recording.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from pathlib import Path
from typing import Protocol

import numpy as np
import soundfile as sf

from .config import FragmatchConfig
from .constants import CANONICAL_SAMPLE_RATE, SUPPORTED_EXTENSIONS, SUPPORTED_SAMPLE_RATES
from .decoder import ExternalDecoder
from .errors import UnsupportedFormatError

logger = logging.getLogger(__name__)

_BIT_DEPTHS = {
    "PCM_U8": 8,
    "PCM_S8": 8,
    "PCM_16": 16,
}


class SampleSource(Protocol):
    """A finite stream of mono samples at the canonical rate."""

    def has_next(self) -> bool:
        ...

    def next(self, max_len: int) -> np.ndarray:
        ...

    def close(self) -> None:
        ...

    @property
    def bit_depth(self) -> int:
        ...

    @property
    def duration_seconds(self) -> int:
        ...

    @property
    def short_name(self) -> str:
        ...


class ArraySource:
    """Samples already held in memory."""

    def __init__(
        self,
        samples: np.ndarray,
        bit_depth: int = 16,
        name: str = "<array>",
        sample_rate: int = CANONICAL_SAMPLE_RATE,
    ) -> None:
        self._samples = np.asarray(samples, dtype=np.float64)
        self._position = 0
        self._bit_depth = bit_depth
        self._name = name
        self._sample_rate = sample_rate
        self.closed = False

    def has_next(self) -> bool:
        return not self.closed and self._position < len(self._samples)

    def next(self, max_len: int) -> np.ndarray:
        chunk = self._samples[self._position:self._position + max_len].copy()
        self._position += len(chunk)
        return chunk

    def close(self) -> None:
        self.closed = True

    @property
    def bit_depth(self) -> int:
        return self._bit_depth

    @property
    def duration_seconds(self) -> int:
        return len(self._samples) // self._sample_rate

    @property
    def short_name(self) -> str:
        return self._name


class WavSource:
    """Streams a PCM WAV file as mono 44.1 kHz samples.

    Stereo is averaged to mono. 44.1 kHz files are streamed directly;
    11.025, 22.05 and 48 kHz files are read in full and resampled.
    """

    def __init__(self, path: Path, name: str | None = None) -> None:
        """Open a WAV file.

        Args:
            path: WAV file to read
            name: Short name to report instead of the file name

        Raises:
            FileNotFoundError: If the file doesn't exist
            UnsupportedFormatError: If the file isn't 8/16 bit PCM, mono or
                stereo, at a supported sampling rate
        """
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"Audio file not found: {self.path}")

        try:
            self._file = sf.SoundFile(str(self.path))
        except sf.LibsndfileError as e:
            raise UnsupportedFormatError(f"{self.path.name} is not a readable WAV file: {e}") from e

        try:
            self._check_format()
        except UnsupportedFormatError:
            self._file.close()
            raise

        self._name = name or self.path.name
        self._bit_depth = _BIT_DEPTHS[self._file.subtype]
        self._duration = int(self._file.frames / self._file.samplerate)
        self._position = 0
        self._resampled: np.ndarray | None = None

        if self._file.samplerate != CANONICAL_SAMPLE_RATE:
            self._resampled = self._load_resampled()

    def _check_format(self) -> None:
        info = self._file
        if info.channels not in (1, 2):
            raise UnsupportedFormatError(
                f"The file {self.path.name} has {info.channels} channels, only mono and stereo are supported"
            )
        if info.subtype not in _BIT_DEPTHS:
            raise UnsupportedFormatError(
                f"The file {self.path.name} uses {info.subtype}, only 8 and 16 bit PCM are supported"
            )
        if info.samplerate not in SUPPORTED_SAMPLE_RATES:
            raise UnsupportedFormatError(
                f"The file {self.path.name} is sampled at {info.samplerate} Hz, "
                f"supported rates are {', '.join(map(str, SUPPORTED_SAMPLE_RATES))}"
            )

    def _load_resampled(self) -> np.ndarray:
        import librosa

        rate = self._file.samplerate
        data = self._file.read(dtype="float64", always_2d=True).mean(axis=1)
        self._file.close()
        logger.debug("[WavSource] Resampling %s from %d Hz", self._name, rate)
        return librosa.resample(data, orig_sr=rate, target_sr=CANONICAL_SAMPLE_RATE)

    def has_next(self) -> bool:
        if self._resampled is not None:
            return self._position < len(self._resampled)
        return not self._file.closed and self._position < self._file.frames

    def next(self, max_len: int) -> np.ndarray:
        if self._resampled is not None:
            chunk = self._resampled[self._position:self._position + max_len].copy()
        else:
            chunk = self._file.read(frames=max_len, dtype="float64", always_2d=True).mean(axis=1)
        self._position += len(chunk)
        return chunk

    def close(self) -> None:
        self._resampled = None
        if not self._file.closed:
            self._file.close()

    @property
    def bit_depth(self) -> int:
        return self._bit_depth

    @property
    def duration_seconds(self) -> int:
        return self._duration

    @property
    def short_name(self) -> str:
        return self._name


class DecodedSource:
    """A compressed file decoded to WAV in the background.

    The decode is submitted when the source is created; the first call that
    needs samples or metadata waits for it. Decode failures surface there as
    ``UnsupportedFormatError``.
    """

    def __init__(self, path: Path, decoder: ExternalDecoder) -> None:
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"Audio file not found: {self.path}")
        self._decoder = decoder
        self._future: Future[Path] = decoder.decode_async(self.path)
        self._wav: WavSource | None = None
        self._output: Path | None = None

    def _source(self) -> WavSource:
        if self._wav is None:
            self._output = self._future.result()
            self._wav = WavSource(self._output, name=self.path.name)
        return self._wav

    def has_next(self) -> bool:
        return self._source().has_next()

    def next(self, max_len: int) -> np.ndarray:
        return self._source().next(max_len)

    def close(self) -> None:
        if self._wav is not None:
            self._wav.close()
        elif not self._future.cancel():
            # Still need the output path to remove it
            if self._future.exception() is None:
                self._output = self._future.result()
        if self._output is not None:
            self._decoder.cleanup(self._output)
            self._output = None

    @property
    def bit_depth(self) -> int:
        return self._source().bit_depth

    @property
    def duration_seconds(self) -> int:
        return self._source().duration_seconds

    @property
    def short_name(self) -> str:
        return self.path.name


def open_source(
    path: Path,
    config: FragmatchConfig | None = None,
    decoder: ExternalDecoder | None = None,
) -> SampleSource:
    """Open the right sample source for a file, by extension.

    Args:
        path: Audio file
        config: Application configuration (decoder settings)
        decoder: Shared decoder for compressed files (created if None)

    Raises:
        UnsupportedFormatError: If the extension is not supported
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".wav":
        return WavSource(path)
    if suffix in SUPPORTED_EXTENSIONS:
        if decoder is None:
            decoder = ExternalDecoder((config or FragmatchConfig()).decoder)
        return DecodedSource(path, decoder)
    raise UnsupportedFormatError(f"The file {path.name} is of a format which is not supported")


def collect_paths(path: Path, directory: bool = False) -> list[Path]:
    """Expand one command line input into the files it names.

    Args:
        path: File or directory
        directory: Whether ``path`` names a directory of audio files

    Returns:
        ``[path]`` for a file, or the directory's supported audio files sorted
        by name

    Raises:
        FileNotFoundError: If the file doesn't exist or the directory holds no
            audio files
        NotADirectoryError: If a directory was expected but ``path`` is not one
    """
    path = Path(path)
    if not directory:
        if not path.is_file():
            raise FileNotFoundError(f"Audio file not found: {path}")
        return [path]

    if not path.is_dir():
        raise NotADirectoryError(f"Not a directory: {path}")

    files = sorted(
        entry
        for entry in path.iterdir()
        if entry.is_file() and entry.suffix.lower() in SUPPORTED_EXTENSIONS
    )
    if not files:
        raise FileNotFoundError(f"No audio files in directory: {path}")
    return files
