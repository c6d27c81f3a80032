"""Human-readable progress output.

Progress is diagnostic output: every helper writes to stderr unless a stream
is given. Informational lines are dropped in quiet mode; warnings and errors
never are.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import TextIO

from .env_auth import env_flag

_QUIET = False


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


def set_quiet(quiet: bool) -> None:
    global _QUIET  # noqa: PLW0603
    _QUIET = quiet


def is_quiet() -> bool:
    return _QUIET or env_flag("SPECSYNC_QUIET")


def _supports_color(stream: TextIO | None = None) -> bool:
    stream = stream or sys.stderr
    if os.environ.get("NO_COLOR"):
        return False
    if not hasattr(stream, "isatty") or not stream.isatty():
        return False
    return os.environ.get("TERM") != "dumb"


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    """Apply color to text if terminal supports it."""
    if not _supports_color(stream):
        return text
    prefix = (Colors.BOLD if bold else "") + color
    return f"{prefix}{text}{Colors.RESET}"


def _emit(icon: str, color: str, message: str, stream: TextIO | None) -> None:
    stream = stream or sys.stderr
    print(colorize(icon, color, bold=True, stream=stream) + " " + message, file=stream)


def print_info(message: str, stream: TextIO | None = None) -> None:
    if not is_quiet():
        _emit("ℹ", Colors.BLUE, message, stream)


def print_success(message: str, stream: TextIO | None = None) -> None:
    if not is_quiet():
        _emit("✓", Colors.GREEN, message, stream)


def print_warning(message: str, stream: TextIO | None = None) -> None:
    _emit("⚠", Colors.YELLOW, message, stream)


def print_error(message: str, stream: TextIO | None = None) -> None:
    _emit("✗", Colors.RED, message, stream)


def print_summary_box(
    title: str, items: Sequence[tuple[str, str | int]], stream: TextIO | None = None
) -> None:
    """Print a formatted summary box with key-value pairs."""
    if is_quiet():
        return
    stream = stream or sys.stderr
    max_key_len = max((len(k) for k, _ in items), default=0)

    print(colorize(f"\n{title}", Colors.CYAN, bold=True, stream=stream), file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)
    for key, value in items:
        value_str = str(value)
        if isinstance(value, int) and value > 0:
            value_str = colorize(value_str, Colors.GREEN, bold=True, stream=stream)
        print(f"  {key.ljust(max_key_len)}  {value_str}", file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)


__all__ = [
    "Colors",
    "colorize",
    "set_quiet",
    "is_quiet",
    "print_info",
    "print_success",
    "print_warning",
    "print_error",
    "print_summary_box",
]
