"""Terminal output helpers for the workout-batch CLI.

ANSI colors are disabled when stdout is not a TTY or when ``NO_COLOR``
is set.
"""

from __future__ import annotations

import os
import sys


def _supports_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_COLOR = _supports_color()


def _ansi(code: str, text: str) -> str:
    if not _COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def bold(text: str) -> str:
    return _ansi("1", text)


def dim(text: str) -> str:
    return _ansi("2", text)


def _green(text: str) -> str:
    return _ansi("32", text)


def _yellow(text: str) -> str:
    return _ansi("33", text)


def _red(text: str) -> str:
    return _ansi("31", text)


# ── Structured output ───────────────────────────────────────────────


def header(title: str) -> None:
    print(f"\n{bold(title)}")


def success(msg: str) -> None:
    print(f"  {_green('✓')} {msg}")


def warn(msg: str) -> None:
    print(f"  {_yellow('!')} {msg}")


def error(msg: str) -> None:
    print(f"  {_red('✗')} {msg}")


def info(msg: str) -> None:
    print(f"  {msg}")


def kv(key: str, value: object, indent: int = 2) -> None:
    pad = " " * indent
    print(f"{pad}{dim(str(key) + ':')}  {value}")


def counts(ok: int, failed: int, total: int) -> str:
    """``"3/5 ok, 2 failed"`` with the failure part colored when non-zero."""
    text = f"{ok}/{total} ok"
    if failed:
        text += ", " + _red(f"{failed} failed")
    return text


def next_step(command: str, description: str = "") -> None:
    desc = f"  {dim(description)}" if description else ""
    print(f"    {_ansi('36', command)}{desc}")
