"""
Console output utilities for depbump using Rich.

This module provides user-facing output helpers for CLI commands.
For diagnostic or debug output, use :mod:`depbump.utils.logger`.

Guidelines:
- print_success / print_error / print_warning: status messages
- print_plain / print_json: machine-readable output, printed verbatim
- print_table / print_heading / confirm: structured or interactive output
"""

from __future__ import annotations

import os
import sys
import json
import threading
from typing import Any, Dict, List, Optional

from rich.table import Table
from rich.theme import Theme
from rich.console import Console

# ---------------------------------------------------------------------------
# Theme configuration
# ---------------------------------------------------------------------------

DEPBUMP_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "info": "bold cyan",
        "heading": "bold underline",
        "dim": "dim",
    }
)

#: Colour of each semver update type.
UPDATE_TYPE_COLORS: Dict[str, str] = {
    "major": "red",
    "minor": "cyan",
    "patch": "green",
    "prerelease": "magenta",
    "new": "blue",
    "downgrade": "red",
}

# ---------------------------------------------------------------------------
# Console lifecycle management
# ---------------------------------------------------------------------------

_console: Optional[Console] = None
_err_console: Optional[Console] = None
_console_lock = threading.Lock()


def _should_use_color() -> bool:
    """Return True if colored output should be enabled."""
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


def _get_console(*, stderr: bool = False) -> Console:
    """Return the singleton stdout (or stderr) Rich Console."""
    global _console, _err_console

    if (_err_console if stderr else _console) is None:
        with _console_lock:
            use_color = _should_use_color()
            if stderr and _err_console is None:
                _err_console = Console(
                    theme=DEPBUMP_THEME, no_color=not use_color, stderr=True
                )
            elif not stderr and _console is None:
                _console = Console(
                    theme=DEPBUMP_THEME,
                    no_color=not use_color,
                    highlight=use_color,
                )
    return _err_console if stderr else _console  # type: ignore[return-value]


def reconfigure_console() -> None:
    """Drop the cached consoles so NO_COLOR changes take effect."""
    global _console, _err_console
    with _console_lock:
        _console = None
        _err_console = None


# ---------------------------------------------------------------------------
# Status message helpers
# ---------------------------------------------------------------------------


def print_success(message: str, *, prefix: str = "[OK]") -> None:
    """Print a success message."""
    _get_console().print(f"{prefix} {message}", style="success")


def print_error(message: str, *, prefix: str = "[ERROR]") -> None:
    """Print an error message to stderr.

    Markup and wrapping are disabled so literal messages survive intact.
    """
    _get_console(stderr=True).print(
        f"{prefix} {message}",
        style="error",
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def print_warning(message: str, *, prefix: str = "[WARNING]") -> None:
    """Print a warning message to stderr."""
    _get_console(stderr=True).print(
        f"{prefix} {message}",
        style="warning",
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


# ---------------------------------------------------------------------------
# Machine-readable output
# ---------------------------------------------------------------------------


def print_plain(line: str) -> None:
    """Print *line* exactly as given: no markup, highlighting or wrapping."""
    _get_console().print(line, markup=False, highlight=False, soft_wrap=True)


def print_json(data: Any) -> None:
    """Print *data* as indented JSON."""
    print_plain(json.dumps(data, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Structured output
# ---------------------------------------------------------------------------


def print_heading(text: str) -> None:
    """Print a section heading."""
    _get_console().print(text, style="heading")


def print_table(
    data: List[Dict[str, Any]],
    *,
    headers: Optional[List[str]] = None,
    title: Optional[str] = None,
    column_styles: Optional[Dict[str, Dict[str, Any]]] = None,
) -> None:
    """Render structured data as a Rich table.

    Args:
        data: List of row dictionaries.
        headers: Column order. Defaults to keys of the first row.
        title: Optional table title.
        column_styles: Per-column style configuration.
    """
    if not data:
        return

    if headers is None:
        headers = list(data[0].keys())

    table = Table(title=title, show_header=True, header_style="bold")

    column_styles = column_styles or {}
    for header in headers:
        config = column_styles.get(header, {})
        table.add_column(
            header,
            style=config.get("style"),
            justify=config.get("justify", "default"),
            no_wrap=config.get("no_wrap", False),
            overflow=config.get("overflow", "fold"),
        )

    for row in data:
        table.add_row(*(str(row.get(h, "")) for h in headers))

    _get_console().print(table)


# ---------------------------------------------------------------------------
# User interaction
# ---------------------------------------------------------------------------


def confirm(message: str, *, default: bool = False) -> bool:
    """Prompt the user for a yes/no confirmation.

    ``y``/``yes`` confirm and ``n``/``no`` decline; anything else,
    including an empty answer, returns *default*. Ctrl+C or EOF declines.
    """
    console = _get_console()
    suffix = " [Y/n]: " if default else " [y/N]: "
    console.print(f"{message}{suffix}", end="", style="info")

    try:
        response = input().strip().lower()
    except (KeyboardInterrupt, EOFError):
        console.print()
        return False

    if response in ("y", "yes"):
        return True
    if response in ("n", "no"):
        return False
    return default


def colorize_update_type(update_type: str) -> str:
    """Return *update_type* wrapped in its Rich colour markup."""
    color = UPDATE_TYPE_COLORS.get(update_type.lower())
    return f"[{color}]{update_type}[/{color}]" if color else update_type
