"""Logging utilities."""

import logging

from fragmatch.config import LoggingConfig


def setup_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Setup application logging.

    Args:
        config: Logging configuration
        verbose: Force DEBUG level regardless of the configured level
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(logging.FileHandler(config.file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
