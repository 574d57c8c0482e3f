"""Legacy whole-file comparison over RMS fingerprints.

Predates the hash-based fragment matcher. Each FFT window is reduced to four
normalized RMS values; two recordings of equal duration match when the
average per-window distance is small, and a sliding-window search finds the
first aligned stretch of about five seconds where both agree.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from .config import WholeFileConfig
from .errors import InsufficientDataError
from .matcher import MatchResult, bitrate_mismatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class RmsFingerprint:
    """Per-window RMS vectors of one recording.

    Attributes:
        name: Short file name, used in reports
        bit_depth: Bits per sample of the source (8 or 16)
        values: Array of shape (frame_count, 4)
        frame_seconds: Seconds between consecutive windows
    """

    name: str
    bit_depth: int
    values: np.ndarray
    frame_seconds: float

    @property
    def frame_count(self) -> int:
        return len(self.values)


class WholeFileComparator:
    """Distance test and fragment search over two RMS fingerprints."""

    def __init__(self, config: WholeFileConfig | None = None):
        self.config = config or WholeFileConfig()

    def distance(self, a: RmsFingerprint, b: RmsFingerprint) -> int:
        """Summed absolute difference, scaled by 1000 per window.

        Only the common prefix of both fingerprints is compared.

        Raises:
            InsufficientDataError: If either fingerprint is empty
        """
        count = min(a.frame_count, b.frame_count)
        if count == 0:
            raise InsufficientDataError(f"Cannot compare {a.name} and {b.name}: no RMS frames")
        total = np.abs(a.values[:count] - b.values[:count]).sum()
        return int(total * 1000 / count)

    def threshold_for(self, a: RmsFingerprint, b: RmsFingerprint) -> int:
        if bitrate_mismatch(a.bit_depth, b.bit_depth):
            return self.config.upper_distance_threshold
        return self.config.distance_threshold

    def is_match(self, a: RmsFingerprint, b: RmsFingerprint) -> bool:
        """True when the two recordings are perceptually the same."""
        dist = self.distance(a, b)
        threshold = self.threshold_for(a, b)
        logger.debug("[WholeFile] %s / %s: distance %d (threshold %d)", a.name, b.name, dist, threshold)
        return dist < threshold

    def match_position(self, a: RmsFingerprint, b: RmsFingerprint) -> MatchResult | None:
        """First aligned window pair whose RMS vectors agree.

        Reports the lowest start ``i`` in A, then the lowest ``j`` in B. A
        pair matches when the mean absolute difference over ``window_frames``
        windows, times 100, is within ``fragment_tolerance``.

        Returns:
            MatchResult with offsets rounded up to whole seconds, or None
        """
        window = self.config.window_frames
        if a.frame_count < window or b.frame_count < window:
            return None

        # Window sums along each diagonal b[k + shift] ~ a[k] via a running sum
        limit = self.config.fragment_tolerance * window * a.values.shape[1] / 100
        best: tuple[int, int] | None = None
        for shift in range(window - a.frame_count, b.frame_count - window + 1):
            start = max(0, -shift)
            stop = min(a.frame_count, b.frame_count - shift)
            costs = np.abs(a.values[start:stop] - b.values[start + shift:stop + shift]).sum(axis=1)
            running = np.concatenate(([0.0], np.cumsum(costs)))
            hits = np.flatnonzero(running[window:] - running[:-window] <= limit)
            if len(hits):
                i = start + int(hits[0])
                if best is None or (i, i + shift) < best:
                    best = (i, i + shift)

        if best is None:
            return None
        i, j = best
        return MatchResult(
            offset_a=float(math.ceil(a.frame_seconds * i)),
            offset_b=float(math.ceil(b.frame_seconds * j)),
        )
