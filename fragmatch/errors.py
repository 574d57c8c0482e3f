"""Exception hierarchy for fragmatch.

Per-file errors (``InsufficientDataError``, ``UnsupportedFormatError``) are
caught by the batch driver, which excludes the offending file and keeps going.
``ConfigError`` signals a caller contract violation and is never swallowed.
"""


class FragmatchError(Exception):
    """Base class for all fragmatch errors."""


class ConfigError(FragmatchError, ValueError):
    """The spectral engine was used before, or with mismatched, initialization."""


class InsufficientDataError(FragmatchError):
    """The input holds fewer samples than one FFT window."""


class UnsupportedFormatError(FragmatchError):
    """The source has a format, channel count or sampling rate we cannot read."""
