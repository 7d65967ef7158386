#!/usr/bin/env python3
"""
Logging configuration for the statespace package.

The package logger stays silent unless the application opts in, either by
configuring the standard ``logging`` module itself or by calling
:func:`configure_logging`. Filters and smoothers log problem dimensions at
DEBUG, the YAML reader logs at INFO and reports failures at ERROR.
"""

import logging
import sys
from typing import Dict, Iterable, Optional, Union

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

PACKAGE_LOGGER = "statespace"

# NullHandler and WARNING level: no output on import.
_pkg_logger = logging.getLogger(PACKAGE_LOGGER)
_pkg_logger.addHandler(logging.NullHandler())
_pkg_logger.setLevel(logging.WARNING)


def _as_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level {level!r}")
        return resolved
    return int(level)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    format_str: Optional[str] = None,
    handlers: Optional[Union[Dict[str, logging.Handler], Iterable[logging.Handler]]] = None,
    propagate: bool = False,
) -> logging.Logger:
    """
    Send statespace log records to the given handlers (stderr by default).

    Args:
        level: Logging level, as a number or a name such as ``"DEBUG"``
        format_str: Record format (default: timestamp, logger name, level, message)
        handlers: Handlers to install, as a dict (values are used) or an iterable;
            replaces any handlers already on the package logger
        propagate: Whether records also reach the root logger

    Returns:
        The package logger
    """
    level = _as_level(level)
    formatter = logging.Formatter(format_str or DEFAULT_FORMAT)

    if handlers is None:
        handlers = [logging.StreamHandler(sys.stderr)]
    elif isinstance(handlers, dict):
        handlers = list(handlers.values())
    else:
        handlers = list(handlers)

    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in pkg_logger.handlers[:]:
        pkg_logger.removeHandler(handler)

    pkg_logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        pkg_logger.addHandler(handler)
    pkg_logger.propagate = propagate

    pkg_logger.debug(f"Logging configured at level {logging.getLevelName(pkg_logger.level)}")
    return pkg_logger


def get_logger(name: str) -> logging.Logger:
    """Logger ``statespace.<name>`` for a module of the package."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


__all__ = ["configure_logging", "get_logger", "DEFAULT_FORMAT"]
