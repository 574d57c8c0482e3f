"""Tests for fragmatch.segmenter."""

from __future__ import annotations

import numpy as np
import pytest

from fragmatch.segmenter import FrameSegmenter
from fragmatch.spectral import SpectralTables


@pytest.fixture
def tables() -> SpectralTables:
    """Small tables: 16-point FFT, 8-sample frames."""
    return SpectralTables.build(16, 8)


def _feed_in_chunks(segmenter: FrameSegmenter, signal: np.ndarray, chunk: int) -> list[np.ndarray]:
    frames = []
    for start in range(0, len(signal), chunk):
        frames.extend(segmenter.feed(signal[start:start + chunk]))
    return frames


class TestFrameSegmenter:
    """Test FrameSegmenter.feed()."""

    def test_overlap_yields_two_frames_per_step(self, tables: SpectralTables) -> None:
        """Steps at 0 and 8 fit in 24 samples; each yields frames at +0 and +4."""
        segmenter = FrameSegmenter(tables, overlap=True)
        frames = list(segmenter.feed(np.arange(24, dtype=np.float64)))

        assert segmenter.frames_per_step == 2
        assert len(frames) == 4
        assert segmenter.pending == 8

        window = tables.hann_window
        np.testing.assert_allclose(frames[0][:8], np.arange(0, 8) * window)
        np.testing.assert_allclose(frames[1][:8], np.arange(4, 12) * window)
        np.testing.assert_allclose(frames[2][:8], np.arange(8, 16) * window)
        np.testing.assert_allclose(frames[3][:8], np.arange(12, 20) * window)

    def test_frames_are_zero_padded(self, tables: SpectralTables) -> None:
        """Samples past frame_size are zero."""
        segmenter = FrameSegmenter(tables)
        for frame in segmenter.feed(np.ones(40)):
            assert frame.shape == (16,)
            assert not frame[8:].any()

    def test_fast_mode_yields_one_frame_per_step(self, tables: SpectralTables) -> None:
        """Without overlap each step yields one frame."""
        segmenter = FrameSegmenter(tables, overlap=False)
        frames = list(segmenter.feed(np.arange(100, dtype=np.float64)))

        assert segmenter.frames_per_step == 1
        assert segmenter.hop == 8
        assert len(frames) == 12
        assert segmenter.pending == 4

    def test_chunking_does_not_change_frames(self, tables: SpectralTables) -> None:
        """Frames are identical whatever the chunk boundaries."""
        signal = np.random.default_rng(3).standard_normal(100)

        whole = list(FrameSegmenter(tables).feed(signal))
        for chunk in (1, 7, 8, 13, 50):
            pieces = _feed_in_chunks(FrameSegmenter(tables), signal, chunk)
            assert len(pieces) == len(whole) == 24
            for a, b in zip(whole, pieces):
                np.testing.assert_array_equal(a, b)

    def test_short_chunk_is_kept_as_tail(self, tables: SpectralTables) -> None:
        """A chunk smaller than one step yields nothing and is kept."""
        segmenter = FrameSegmenter(tables)
        assert list(segmenter.feed(np.ones(5))) == []
        assert segmenter.pending == 5

        frames = list(segmenter.feed(np.ones(7)))
        assert len(frames) == 2
        assert segmenter.pending == 4

    def test_reset_drops_tail(self, tables: SpectralTables) -> None:
        """reset() starts a new stream."""
        segmenter = FrameSegmenter(tables)
        list(segmenter.feed(np.ones(10)))
        segmenter.reset()
        assert segmenter.pending == 0

    def test_silence_yields_zero_frames(self, tables: SpectralTables) -> None:
        """Silent input produces all-zero frames."""
        frames = list(FrameSegmenter(tables).feed(np.zeros(64)))
        assert frames
        assert all(not frame.any() for frame in frames)

    def test_hop_in_overlap_mode(self) -> None:
        """Normal mode advances half a frame per frame."""
        segmenter = FrameSegmenter(SpectralTables.build(2048, 1764))
        assert segmenter.hop == 882
