# log.py
# SPDX-License-Identifier: MIT
"""Package-wide logging helpers.

A NullHandler is installed on the ``licensegate`` logger so that library use
stays silent until the host application configures logging. Detectors log
through :class:`ModuleLogAdapter` so every line names the module version it
concerns.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from contextlib import contextmanager
from typing import Any

__all__ = [
    "PACKAGE_LOGGER_NAME",
    "get_logger",
    "module_logger",
    "ModuleLogAdapter",
    "configure_logging",
    "temp_level",
]

PACKAGE_LOGGER_NAME = "licensegate"

logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a named logger scoped to licensegate.

    Args:
        name (str | None): Fully qualified logger name. Defaults to the
            package logger when omitted.

    Returns:
        logging.Logger: Logger instance for the requested name.
    """
    return logging.getLogger(name or PACKAGE_LOGGER_NAME)


class ModuleLogAdapter(logging.LoggerAdapter):
    """Prefix log messages with ``module@version``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = self.extra or {}
        return f"{extra.get('module')}@{extra.get('version')}: {msg}", kwargs


def module_logger(name: str, module_path: str, version: str) -> ModuleLogAdapter:
    """Return an adapter over ``name`` that tags records with a module version."""
    return ModuleLogAdapter(get_logger(name), {"module": module_path, "version": version})


def _coerce_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream=None,
    fmt: str | None = None,
    datefmt: str | None = None,
    propagate: bool | None = None,
    logger_name: str = PACKAGE_LOGGER_NAME,
) -> logging.Logger:
    """Configure a stream handler for a licensegate logger.

    Args:
        level (int | str): Logging level or level name. Defaults to
            logging.INFO.
        stream (IO[str] | None): Target stream; defaults to sys.stderr.
        fmt (str | None): Log format string.
        datefmt (str | None): Date format string for the handler.
        propagate (bool | None): Whether records bubble up to ancestor
            loggers. None keeps propagation on so pytest's caplog sees them.
        logger_name (str): Logger to configure. Defaults to the package
            logger.

    Returns:
        logging.Logger: Logger configured with a single StreamHandler.
    """
    logger = get_logger(logger_name or PACKAGE_LOGGER_NAME)
    logger.setLevel(_coerce_level(level))
    logger.propagate = True if propagate is None else bool(propagate)

    if stream is None:
        stream = sys.stderr
    if fmt is None:
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    # One StreamHandler per logger; closed streams are swapped for the new one.
    has_stream = False
    for handler in logger.handlers:
        if not isinstance(handler, logging.StreamHandler):
            continue
        has_stream = True
        if getattr(getattr(handler, "stream", None), "closed", False):
            handler.stream = stream
    if not has_stream:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        logger.addHandler(handler)

    return logger


@contextmanager
def temp_level(level: int | str, name: str | None = None):
    """Temporarily set a logger level inside a ``with`` block.

    Yields:
        logging.Logger: Logger with the temporary level applied.
    """
    logger = get_logger(name or PACKAGE_LOGGER_NAME)
    old = logger.level
    logger.setLevel(_coerce_level(level))
    try:
        yield logger
    finally:
        logger.setLevel(old)
