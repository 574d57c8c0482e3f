"""Shared constants for fragmatch."""

from enum import Enum


class Mode(str, Enum):
    """Analysis modes.

    NORMAL analyzes two 50%-overlapping frames per step (better accuracy),
    FAST analyzes one non-overlapping frame per step (half the work).
    """

    NORMAL = "normal"
    FAST = "fast"


class HashStrategy(str, Enum):
    """Fingerprint hash strategies, selected once per run."""

    PEAK_TRIPLET = "peak_triplet"
    PEAK_PACKED = "peak_packed"
    BARK_DELTA = "bark_delta"
    RMS = "rms"  # Legacy real-valued fingerprint, whole-file comparison only


CANONICAL_SAMPLE_RATE = 44100
"""Every sample source is converted to this rate (Hz)."""

SUPPORTED_SAMPLE_RATES = (11025, 22050, 44100, 48000)
"""Source sampling rates that can be converted to the canonical rate (Hz)."""

SUPPORTED_BIT_DEPTHS = (8, 16)
"""PCM sample widths accepted from WAV sources."""

LOW_BIT_DEPTH = 8
"""Bit depth whose quantization noise widens the matching error budget."""

BARK_EDGES_HZ = (
    0, 100, 200, 300, 400, 510, 630, 770, 920, 1080, 1270, 1480,
    1720, 2000, 2320, 2700, 3150, 3700, 4400, 5300, 6400, 7700,
    9500, 12000, 15500,
)
"""Critical band (Bark scale) edges (Hz)."""

SUPPORTED_EXTENSIONS = (".wav", ".mp3", ".ogg")
"""File extensions accepted on the command line."""

MATCH_LINE = "MATCH {name_a} {name_b} {offset_a:.1f} {offset_b:.1f}"
"""Output line printed for each matching pair."""
