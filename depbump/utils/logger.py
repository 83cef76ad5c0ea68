"""
Logging setup for depbump.

Every module logs under the ``depbump`` namespace through
:func:`get_logger`. The CLI calls :func:`setup_logging` once per
invocation with the number of ``-v`` flags it was given:

- none: warnings and errors only;
- ``-v``: progress such as the manifest read and packages queried;
- ``-vv``: debug output with timestamps and logger names;
- ``-vvv``: also the request log of ``httpx`` and ``httpcore``.

Records always go to stderr, so ``--json-upgraded`` and ``--format lines``
output on stdout stays machine-readable.
"""

from __future__ import annotations

import os
import logging
from typing import IO, Optional, Sequence

from depbump.constants import (
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_VERBOSE_FORMAT,
)

_ROOT_LOGGER = "depbump"

#: Level for each ``-v`` count; extra flags keep the last one.
_LEVELS: Sequence[int] = (logging.WARNING, logging.INFO, logging.DEBUG)

#: Verbosity at which the HTTP libraries' own loggers are shown.
WIRE_VERBOSITY = 3

#: Third-party loggers that share the depbump handler at ``WIRE_VERBOSITY``.
_WIRE_LOGGERS: Sequence[str] = ("httpx", "httpcore")

_wire_handler: Optional[logging.Handler] = None


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name with ANSI escapes."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str,
        *,
        datefmt: Optional[str] = None,
        use_color: bool = False,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname) if self.use_color else None
        if color is None:
            return super().format(record)
        # Other handlers (and the httpx loggers) must keep the plain name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def level_for(verbosity: int) -> int:
    """Return the logging level for a count of ``-v`` flags."""
    return _LEVELS[min(max(verbosity, 0), len(_LEVELS) - 1)]


def setup_logging(
    verbosity: int = 0,
    *,
    color: Optional[bool] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """Send depbump log records to *stream*.

    Calling again replaces the previous handler, so several CLI
    invocations in one process do not stack output.

    Args:
        verbosity: Number of ``-v`` flags.
        color: Force colored level names on or off. ``None`` colors only
            when *stream* is a terminal and ``NO_COLOR`` is unset.
        stream: Output stream; defaults to ``sys.stderr``.
    """
    global _wire_handler

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        ColoredFormatter(
            LOG_VERBOSE_FORMAT if verbosity >= 2 else LOG_DEFAULT_FORMAT,
            datefmt=LOG_DATE_FORMAT,
            use_color=_use_color(handler.stream) if color is None else color,
        )
    )

    root_logger = logging.getLogger(_ROOT_LOGGER)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level_for(verbosity))
    root_logger.propagate = False

    show_wire = verbosity >= WIRE_VERBOSITY
    for name in _WIRE_LOGGERS:
        wire_logger = logging.getLogger(name)
        if _wire_handler is not None:
            wire_logger.removeHandler(_wire_handler)
        if show_wire:
            wire_logger.addHandler(handler)
        wire_logger.setLevel(logging.DEBUG if show_wire else logging.NOTSET)
    _wire_handler = handler if show_wire else None


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger within the depbump namespace.

    Args:
        name: ``"registry.npm"`` and ``"depbump.registry.npm"`` name the
            same logger.
    """
    if not name or name == _ROOT_LOGGER:
        logger = logging.getLogger(_ROOT_LOGGER)
    elif name.startswith(f"{_ROOT_LOGGER}."):
        logger = logging.getLogger(name)
    else:
        logger = logging.getLogger(f"{_ROOT_LOGGER}.{name}")

    # Library use without setup_logging stays silent
    if not logger.handlers and (not logger.parent or not logger.parent.handlers):
        logger.addHandler(logging.NullHandler())

    return logger


def _use_color(stream: IO[str]) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False
