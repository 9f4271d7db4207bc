"""Logging setup shared by the CLI, the pipeline passes and the service."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

_LOGGER_NAME = "frontend_ir"
_CONSOLE_FORMAT = "[frontend-ir] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger below ``frontend_ir`` (``frontend_ir.react``, ``frontend_ir.cli``...)."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def _console_level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send frontend_ir records to stderr and, when given, to ``log_file`` at DEBUG."""
    console_level = _console_level(verbose, quiet)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else console_level)
    logger.propagate = False

    # main() may run several times in one process (tests, the service worker).
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(console_level)
    stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


@contextmanager
def log_pass(logger: logging.Logger, name: str) -> Iterator[None]:
    """Log the wall-clock duration of one extraction pass at DEBUG."""
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("Pass %s finished in %.1f ms", name, (time.perf_counter() - started) * 1000)


__all__ = ["configure_logging", "get_logger", "log_pass"]
