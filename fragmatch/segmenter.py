"""Frame segmentation of a streamed sample sequence."""

from __future__ import annotations

from collections.abc import Iterator

import numpy as np

from .spectral import SpectralTables


class FrameSegmenter:
    """Cuts a chunked sample stream into Hann-windowed, zero-padded frames.

    Each step advances by ``frame_size`` samples. With ``overlap`` enabled a
    step yields two frames (offsets 0 and frame_size // 2), giving 50%
    overlap; otherwise a step yields one frame. A step is only taken when all
    of its frames fit in the buffer; what is left after the last full step is
    kept as the carry-over tail and prepended to the next chunk, so frames
    never straddle a chunk boundary and frame order is preserved.

    One segmenter serves exactly one stream and must be fed in order.
    """

    def __init__(self, tables: SpectralTables, overlap: bool = True):
        self.tables = tables
        self.overlap = overlap
        self._tail = np.zeros(0, dtype=np.float64)

        frame_size = tables.frame_size
        self._offsets = (0, frame_size // 2) if overlap else (0,)
        # Samples needed past a step's start for all of its frames to fit
        self._span = self._offsets[-1] + frame_size

    @property
    def frames_per_step(self) -> int:
        return len(self._offsets)

    @property
    def hop(self) -> float:
        """Average number of samples between consecutive frames."""
        return self.tables.frame_size / self.frames_per_step

    @property
    def pending(self) -> int:
        """Number of samples held in the carry-over tail."""
        return len(self._tail)

    def reset(self) -> None:
        """Drop the carry-over tail (start of a new stream)."""
        self._tail = np.zeros(0, dtype=np.float64)

    def feed(self, chunk: np.ndarray) -> Iterator[np.ndarray]:
        """Append a chunk and yield every complete frame it makes available.

        Frames are produced lazily; each yielded array is freshly allocated
        and safe to hand to the FFT engine. The generator must be exhausted
        before the next call, since the tail is only updated at its end.

        Args:
            chunk: Next samples of the stream (any length)

        Yields:
            Windowed frames of length fft_size
        """
        chunk = np.asarray(chunk, dtype=np.float64)
        data = np.concatenate((self._tail, chunk)) if len(self._tail) else chunk

        frame_size = self.tables.frame_size
        start = 0
        while start + self._span <= len(data):
            for offset in self._offsets:
                yield self._window(data, start + offset)
            start += frame_size

        self._tail = data[start:].copy()

    def _window(self, data: np.ndarray, start: int) -> np.ndarray:
        tables = self.tables
        frame = np.zeros(tables.fft_size, dtype=np.float64)
        frame[:tables.frame_size] = data[start:start + tables.frame_size] * tables.hann_window
        return frame
