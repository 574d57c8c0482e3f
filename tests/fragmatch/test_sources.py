"""Tests for fragmatch.sources."""

from __future__ import annotations

from concurrent.futures import Future
from unittest.mock import MagicMock

import numpy as np
import pytest

from fragmatch.decoder import ExternalDecoder
from fragmatch.errors import UnsupportedFormatError
from fragmatch.sources import (
    ArraySource,
    DecodedSource,
    WavSource,
    collect_paths,
    open_source,
)


def _drain(source, chunk: int = 1000) -> np.ndarray:
    parts = []
    while source.has_next():
        parts.append(source.next(chunk))
    source.close()
    return np.concatenate(parts) if parts else np.zeros(0)


def _decoder_returning(result: Future) -> MagicMock:
    decoder = MagicMock(spec=ExternalDecoder)
    decoder.decode_async.return_value = result
    return decoder


class TestArraySource:
    """Test ArraySource."""

    def test_chunks(self) -> None:
        source = ArraySource(np.arange(10), bit_depth=8, name="x")
        assert source.next(4).tolist() == [0, 1, 2, 3]
        assert source.next(4).tolist() == [4, 5, 6, 7]
        assert source.next(4).tolist() == [8, 9]
        assert not source.has_next()
        assert source.bit_depth == 8
        assert source.short_name == "x"

    def test_duration(self) -> None:
        assert ArraySource(np.zeros(44100 * 3 + 100)).duration_seconds == 3

    def test_closed_source_is_exhausted(self) -> None:
        source = ArraySource(np.zeros(10))
        source.close()
        assert not source.has_next()


class TestWavSource:
    """Test WavSource."""

    def test_mono_16_bit(self, write_wav, noise) -> None:
        samples = noise(1.5)
        source = WavSource(write_wav("a.wav", samples))

        assert source.bit_depth == 16
        assert source.duration_seconds == 1
        assert source.short_name == "a.wav"
        np.testing.assert_allclose(_drain(source), samples, atol=1e-4)

    def test_stereo_is_averaged(self, write_wav, noise) -> None:
        left = noise(1.0)
        stereo = np.column_stack((left, np.zeros_like(left)))
        data = _drain(WavSource(write_wav("s.wav", stereo)))
        np.testing.assert_allclose(data, left / 2, atol=1e-4)

    def test_8_bit(self, write_wav, noise) -> None:
        source = WavSource(write_wav("b.wav", noise(1.0), subtype="PCM_U8"))
        assert source.bit_depth == 8
        assert len(_drain(source)) == 44100

    @pytest.mark.parametrize("rate", [11025, 22050, 48000])
    def test_resampled_to_44100(self, write_wav, noise, rate: int) -> None:
        source = WavSource(write_wav("r.wav", noise(1.0, sample_rate=rate), sample_rate=rate))
        assert source.duration_seconds == 1
        assert abs(len(_drain(source)) - 44100) <= 1

    def test_unsupported_rate(self, write_wav, noise) -> None:
        path = write_wav("r.wav", noise(1.0, sample_rate=8000), sample_rate=8000)
        with pytest.raises(UnsupportedFormatError):
            WavSource(path)

    def test_unsupported_channels(self, write_wav) -> None:
        path = write_wav("c.wav", np.zeros((44100, 3)))
        with pytest.raises(UnsupportedFormatError):
            WavSource(path)

    def test_unsupported_sample_format(self, write_wav, noise) -> None:
        path = write_wav("f.wav", noise(1.0), subtype="FLOAT")
        with pytest.raises(UnsupportedFormatError):
            WavSource(path)

    def test_not_audio(self, tmp_path) -> None:
        path = tmp_path / "bad.wav"
        path.write_text("not a wav file")
        with pytest.raises(UnsupportedFormatError):
            WavSource(path)

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            WavSource(tmp_path / "missing.wav")


class TestDecodedSource:
    """Test DecodedSource with a stubbed decoder."""

    def test_reads_decoded_wav(self, tmp_path, write_wav, noise) -> None:
        """Samples come from the decoded WAV; the name from the original file."""
        mp3 = tmp_path / "song.mp3"
        mp3.touch()
        wav = write_wav("decoded.wav", noise(1.0))
        future: Future = Future()
        future.set_result(wav)
        decoder = _decoder_returning(future)

        source = DecodedSource(mp3, decoder)
        assert source.short_name == "song.mp3"
        assert source.bit_depth == 16
        assert len(_drain(source)) == 44100
        decoder.cleanup.assert_called_once_with(wav)

    def test_decode_failure_surfaces_on_first_read(self, tmp_path) -> None:
        ogg = tmp_path / "song.ogg"
        ogg.touch()
        future: Future = Future()
        future.set_exception(UnsupportedFormatError("decode failed"))
        decoder = _decoder_returning(future)

        source = DecodedSource(ogg, decoder)
        with pytest.raises(UnsupportedFormatError):
            source.has_next()
        source.close()
        decoder.cleanup.assert_not_called()

    def test_close_without_reading_cleans_up(self, tmp_path) -> None:
        mp3 = tmp_path / "song.mp3"
        mp3.touch()
        output = tmp_path / "tmpdir" / "song.wav"
        future: Future = Future()
        future.set_result(output)
        decoder = _decoder_returning(future)

        DecodedSource(mp3, decoder).close()
        decoder.cleanup.assert_called_once_with(output)


class TestOpenSource:
    """Test open_source() dispatch."""

    def test_wav(self, write_wav, noise) -> None:
        source = open_source(write_wav("a.wav", noise(1.0)))
        assert isinstance(source, WavSource)
        source.close()

    def test_compressed_uses_decoder(self, tmp_path) -> None:
        mp3 = tmp_path / "a.mp3"
        mp3.touch()
        decoder = _decoder_returning(Future())
        source = open_source(mp3, decoder=decoder)
        assert isinstance(source, DecodedSource)
        decoder.decode_async.assert_called_once_with(mp3)

    def test_unsupported_extension(self, tmp_path) -> None:
        path = tmp_path / "a.flac"
        path.touch()
        with pytest.raises(UnsupportedFormatError):
            open_source(path)


class TestCollectPaths:
    """Test collect_paths()."""

    def test_single_file(self, tmp_path) -> None:
        path = tmp_path / "a.wav"
        path.touch()
        assert collect_paths(path) == [path]

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            collect_paths(tmp_path / "missing.wav")

    def test_directory_lists_audio_files_sorted(self, tmp_path) -> None:
        for name in ("b.mp3", "a.wav", "notes.txt", "c.OGG"):
            (tmp_path / name).touch()
        (tmp_path / "sub.wav").mkdir()

        paths = collect_paths(tmp_path, directory=True)
        assert [p.name for p in paths] == ["a.wav", "b.mp3", "c.OGG"]

    def test_not_a_directory(self, tmp_path) -> None:
        path = tmp_path / "a.wav"
        path.touch()
        with pytest.raises(NotADirectoryError):
            collect_paths(path, directory=True)

    def test_empty_directory(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            collect_paths(tmp_path, directory=True)
