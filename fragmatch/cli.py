"""Command-line interface for fragmatch.

Usage:
    fragmatch <-f|-d> <path> <-f|-d> <path> [-fast] [options]

Every file of the first input is compared with every file of the second;
one ``MATCH <nameA> <nameB> <offsetA> <offsetB>`` line is printed per pair
sharing a segment. The exit status is 1 when the command line is invalid or
any file could not be processed.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path

import yaml

from .analysis import Analyzer
from .config import FragmatchConfig, load_config
from .constants import MATCH_LINE, HashStrategy, Mode
from .errors import ConfigError
from .fingerprint import AnalyzedAudio
from .logger import setup_logging
from .matcher import FragmentMatcher
from .sources import collect_paths, open_source
from .whole_file import RmsFingerprint, WholeFileComparator

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = max(1, (os.cpu_count() or 2) - 1)


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser exiting with status 1 and an ERROR line."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        self.exit(1, f"ERROR: incorrect command line: {message}\n")


class _InputAction(argparse.Action):
    """Collect ``-f``/``-d`` inputs in command line order."""

    def __call__(self, parser, namespace, values, option_string=None):
        inputs = list(getattr(namespace, self.dest, None) or [])
        inputs.append((option_string == "-d", Path(values)))
        setattr(namespace, self.dest, inputs)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="fragmatch",
        description="Detect audio recordings that share a perceptually identical segment",
    )
    parser.add_argument(
        "-f",
        dest="inputs",
        action=_InputAction,
        metavar="FILE",
        help="Audio file (.wav, .mp3, .ogg)",
    )
    parser.add_argument(
        "-d",
        dest="inputs",
        action=_InputAction,
        metavar="DIR",
        help="Directory of audio files",
    )
    parser.add_argument(
        "-fast", "--fast",
        action="store_true",
        help="Analyze non-overlapping frames (about twice as fast, less accurate)",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to a YAML configuration file",
    )
    parser.add_argument(
        "--strategy", "-s",
        choices=[strategy.value for strategy in HashStrategy],
        help="Fingerprint strategy (rms uses the legacy whole-file comparator)",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"Number of parallel analysis workers (default: {DEFAULT_WORKERS})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def _analyze_file(
    args: tuple[Path, FragmatchConfig],
) -> tuple[Path, AnalyzedAudio | RmsFingerprint | None, str | None]:
    """Analyze a single file (worker function for multiprocessing).

    Args:
        args: Tuple of (filepath, config)

    Returns:
        Tuple of (filepath, analysis or None, error or None). Both are None
        when the file is too short to match.
    """
    filepath, config = args
    analyzer = Analyzer(config)

    try:
        source = open_source(filepath, config, analyzer.decoder)
        if source.duration_seconds < config.min_duration_seconds:
            source.close()
            logger.info(
                "[CLI] Skipping %s: %ds is shorter than %ds",
                filepath.name,
                source.duration_seconds,
                config.min_duration_seconds,
            )
            return (filepath, None, None)

        if config.fingerprint.strategy == HashStrategy.RMS:
            return (filepath, analyzer.analyze_rms(source), None)
        return (filepath, analyzer.analyze(source), None)
    except ConfigError:
        raise
    except Exception as e:
        return (filepath, None, str(e))
    finally:
        analyzer.close()


def analyze_files(
    paths: list[Path],
    config: FragmatchConfig,
    workers: int = 1,
) -> tuple[dict[Path, AnalyzedAudio | RmsFingerprint], int]:
    """Analyze every file, inline or with a process pool.

    Returns:
        Tuple of (analysis per successfully analyzed path, error count)
    """
    results: dict[Path, AnalyzedAudio | RmsFingerprint] = {}
    errors = 0

    def collect(outcome: tuple[Path, AnalyzedAudio | RmsFingerprint | None, str | None]) -> None:
        nonlocal errors
        filepath, analysis, error = outcome
        if error is not None:
            errors += 1
            logger.error("[CLI] %s: %s", filepath.name, error)
        elif analysis is not None:
            results[filepath] = analysis

    if workers <= 1 or len(paths) == 1:
        for path in paths:
            collect(_analyze_file((path, config)))
    else:
        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(_analyze_file, (path, config)) for path in paths]
            for future in as_completed(futures):
                collect(future.result())

    return results, errors


def compare_groups(
    group_a: list[AnalyzedAudio | RmsFingerprint],
    group_b: list[AnalyzedAudio | RmsFingerprint],
    config: FragmatchConfig,
) -> list[str]:
    """Compare every (A, B) pair and format one line per match."""
    if config.fingerprint.strategy == HashStrategy.RMS:
        match = WholeFileComparator(config.whole_file).match_position
    else:
        match = FragmentMatcher(config.active_match, config.frame_seconds).match

    lines = []
    for a in group_a:
        for b in group_b:
            result = match(a, b)
            if result is not None:
                lines.append(
                    MATCH_LINE.format(
                        name_a=a.name,
                        name_b=b.name,
                        offset_a=result.offset_a,
                        offset_b=result.offset_b,
                    )
                )
    return lines


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if len(args.inputs or []) != 2:
        parser.error("expected exactly two -f/-d inputs")
    if args.workers < 1:
        parser.error("--workers must be at least 1")

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 1

    if args.fast:
        config = config.with_mode(Mode.FAST)
    if args.strategy:
        fingerprint = config.fingerprint.model_copy(update={"strategy": HashStrategy(args.strategy)})
        config = config.model_copy(update={"fingerprint": fingerprint})

    setup_logging(config.logging, verbose=args.verbose)

    groups: list[list[Path]] = []
    for directory, path in args.inputs:
        try:
            groups.append(collect_paths(path, directory))
        except OSError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    paths = list(dict.fromkeys(groups[0] + groups[1]))
    logger.info("[CLI] Analyzing %d files with %d workers (%s mode)", len(paths), args.workers, config.mode.value)

    start = time.time()
    try:
        analyses, errors = analyze_files(paths, config, args.workers)
        lines = compare_groups(
            [analyses[p] for p in groups[0] if p in analyses],
            [analyses[p] for p in groups[1] if p in analyses],
            config,
        )
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    for line in lines:
        print(line)

    logger.info("[CLI] Completed in %.1fs: %d matches, %d errors", time.time() - start, len(lines), errors)
    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
