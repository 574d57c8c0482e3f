"""Fragment matching between two fingerprints.

Pipeline
--------
1. Collect, for every hash key present in both fingerprints, the frame
   indices on each side (``collect_collisions``).
2. Reject cheaply when either side has too few colliding frames.
3. On each side independently, look for the longest quasi-contiguous run of
   colliding frames (``find_longest_run``). Gaps between consecutive indices
   count as errors, and the error budget grows with the run length.
4. Report where the run starts in each recording, in seconds.

The two sides are searched independently: the result says where the shared
segment begins in A and where it begins in B, not a common global offset.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import MatchConfig
from .constants import LOW_BIT_DEPTH
from .fingerprint import AnalyzedAudio, Fingerprint

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Where a shared segment starts in each recording."""

    offset_a: float  # Seconds from the start of recording A
    offset_b: float  # Seconds from the start of recording B


def bitrate_mismatch(bitrate_a: int, bitrate_b: int) -> bool:
    """True when exactly one side is low bit depth audio."""
    return (bitrate_a == LOW_BIT_DEPTH) != (bitrate_b == LOW_BIT_DEPTH)


class FragmentMatcher:
    """Decide whether two fingerprints share a long enough segment."""

    def __init__(self, config: MatchConfig | None = None, frame_seconds: float = 0.02):
        """Initialize matcher.

        Args:
            config: Match tuning (error budget, minimum run length)
            frame_seconds: Seconds between consecutive frame indices
        """
        self.config = config or MatchConfig()
        self.frame_seconds = frame_seconds

    @property
    def min_collisions_for_match(self) -> int:
        return self.config.collision_floor

    def match(self, a: AnalyzedAudio, b: AnalyzedAudio) -> MatchResult | None:
        """Match two analyzed recordings."""
        result = self.match_fragment(a.fingerprint, b.fingerprint, a.bit_depth, b.bit_depth)
        if result is not None:
            logger.debug(
                "[Matcher] %s / %s: match at %.2fs / %.2fs",
                a.name,
                b.name,
                result.offset_a,
                result.offset_b,
            )
        return result

    def match_fragment(
        self,
        fp_a: Fingerprint,
        fp_b: Fingerprint,
        bitrate_a: int = 16,
        bitrate_b: int = 16,
    ) -> MatchResult | None:
        """Find where a shared segment starts in each fingerprint.

        Args:
            fp_a: Fingerprint of recording A
            fp_b: Fingerprint of recording B
            bitrate_a: Bit depth of recording A
            bitrate_b: Bit depth of recording B

        Returns:
            MatchResult with both start offsets, or None if no qualifying
            run exists on at least one side
        """
        s_a, s_b = self.collect_collisions(fp_a, fp_b)

        floor = self.min_collisions_for_match
        if min(len(s_a), len(s_b)) < floor:
            logger.debug(
                "[Matcher] Rejected: %d/%d colliding frames, need %d",
                len(s_a),
                len(s_b),
                floor,
            )
            return None

        tolerance = 1.0
        if bitrate_mismatch(bitrate_a, bitrate_b):
            tolerance = self.config.bitrate_mismatch_multiplier

        start_a = self.find_longest_run(s_a, tolerance)
        if start_a is None:
            return None
        start_b = self.find_longest_run(s_b, tolerance)
        if start_b is None:
            return None

        return MatchResult(
            offset_a=start_a * self.frame_seconds,
            offset_b=start_b * self.frame_seconds,
        )

    @staticmethod
    def collect_collisions(fp_a: Fingerprint, fp_b: Fingerprint) -> tuple[set[int], set[int]]:
        """Frame indices, per side, of every key present in both fingerprints."""
        s_a: set[int] = set()
        s_b: set[int] = set()
        small, large = (fp_a, fp_b) if len(fp_a) <= len(fp_b) else (fp_b, fp_a)
        for key, indices in small.items():
            other = large.get(key)
            if other is None:
                continue
            if small is fp_a:
                s_a.update(indices)
                s_b.update(other)
            else:
                s_a.update(other)
                s_b.update(indices)
        return s_a, s_b

    def find_longest_run(self, indices: set[int] | list[int], tolerance: float = 1.0) -> int | None:
        """Start of the longest quasi-contiguous run spanning the minimum duration.

        Walks the sorted indices with a two-pointer window. Each step adds the
        gap to the next index to the window span; gaps larger than one frame
        also count as errors. The window stays valid while::

            errors < (error_threshold + error_density * run_length) * tolerance

        and otherwise drops elements from its front until it is valid again.
        A window whose span exceeds ``min_match_frames`` becomes the candidate
        when its run length beats the best so far; ties keep the earliest.

        Args:
            indices: Colliding frame indices of one side
            tolerance: Error budget multiplier (> 1 for bit depth mismatch)

        Returns:
            The frame index where the best run starts, or None
        """
        sequence = sorted(indices)
        count = len(sequence)
        if count < 2:
            return None

        threshold = self.config.error_threshold
        density = self.config.error_density
        min_span = self.config.min_match_frames

        gaps = [sequence[i + 1] - sequence[i] for i in range(count - 1)]
        anchor = 0
        span = 0
        errors = 0
        best_length = 0
        best_start: int | None = None

        for i, gap in enumerate(gaps):
            span += gap
            if gap > 1:
                errors += gap

            # Window holds gaps[anchor..i], i.e. elements anchor..i+1
            while anchor <= i and errors >= (threshold + density * (i + 1 - anchor)) * tolerance:
                dropped = gaps[anchor]
                span -= dropped
                if dropped > 1:
                    errors -= dropped
                anchor += 1

            length = i + 1 - anchor
            if span > min_span and length > best_length:
                best_length = length
                best_start = sequence[anchor]

        return best_start
