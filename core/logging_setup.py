"""Root logger configuration for depatch commands."""

from __future__ import annotations

import logging
from pathlib import Path

from core.config import LoggingConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure the root logger from the logging configuration.

    Diagnostics go to stderr; when ``log_file`` is set they are also appended
    to that file. Operator-facing messages are printed by the CLI console and
    are not routed through logging.

    Args:
        config: Logging configuration with level and optional log file.
        verbose: Force DEBUG level regardless of the configured level.
    """
    level = logging.DEBUG if verbose else getattr(logging, config.level.upper())
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Drop handlers left by a previous invocation in the same process
    for handler in list(root_logger.handlers):
        if getattr(handler, "_depatch_handler", False):
            root_logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    stream_handler._depatch_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(stream_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler._depatch_handler = True  # type: ignore[attr-defined]
        root_logger.addHandler(file_handler)
