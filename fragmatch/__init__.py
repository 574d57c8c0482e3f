"""Fragmatch - Perceptual fragment matching between audio recordings.

Detects recordings that share a perceptually identical segment, even when
they are encoded differently (WAV, MP3, OGG), resampled, or only partially
overlapping.

Pipeline:
- Hann-windowed, 50%-overlapping frames of a streamed mono signal
- Iterative radix-2 FFT over precomputed tables
- One small integer hash per frame (Bark band rising edges by default)
- Error-tolerant longest-run search over colliding frame indices

References:
- "A Highly Robust Audio Fingerprinting System" (Haitsma & Kalker, 2002)
"""

__version__ = "0.1.0"

from .analysis import Analyzer
from .fingerprint import AnalyzedAudio, Fingerprint, FingerprintExtractor
from .matcher import FragmentMatcher, MatchResult

__all__ = [
    "Analyzer",
    "AnalyzedAudio",
    "Fingerprint",
    "FingerprintExtractor",
    "FragmentMatcher",
    "MatchResult",
]
