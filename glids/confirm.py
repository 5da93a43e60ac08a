"""Interactive yes/no confirmation prompts for potentially large fetches."""

from __future__ import annotations

import os
import sys
from typing import TextIO

try:
    import termios
    import tty
except ImportError:  # pragma: no cover - platforms without POSIX terminals
    termios = None  # type: ignore[assignment]
    tty = None  # type: ignore[assignment]

_CLEAR_LINE = "\r\x1b[K"
_CTRL_C = 3


def _is_terminal(stream: object) -> bool:
    try:
        return bool(stream.isatty())  # type: ignore[attr-defined]
    except (AttributeError, ValueError, OSError):
        return False


def read_line_confirmation(stdin: TextIO | None = None, stderr: TextIO | None = None) -> bool:
    """Read one full line and accept 'y' or 'yes' (case-insensitive, trimmed).

    A line that does not end in a newline counts as a read error: the error
    is reported on ``stderr`` and the answer is no.
    """
    source = stdin if stdin is not None else sys.stdin
    errors = stderr if stderr is not None else sys.stderr
    try:
        response = source.readline()
    except (OSError, ValueError) as exc:
        print("\nError reading input line:", exc, file=errors)
        return False
    if not response.endswith("\n"):
        print("\nError reading input line: EOF", file=errors)
        return False
    return response.strip().lower() in ("y", "yes")


def _read_single_key(stdin: TextIO, stderr: TextIO) -> bool:
    """Read a single keypress in raw mode; fall back to line input if that fails."""
    fd = stdin.fileno()
    try:
        old_state = termios.tcgetattr(fd)
        tty.setraw(fd)
    except (termios.error, OSError) as exc:
        print("\nError setting raw mode, please press Enter after y/n:", exc, file=stderr)
        return read_line_confirmation(stdin, stderr)

    try:
        try:
            data = os.read(fd, 1)
        except OSError as exc:
            print("\nError reading input:", exc, file=stderr)
            return False
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_state)

    if not data:
        print("\nError reading input: EOF", file=stderr)
        return False

    byte = data[0]
    if byte == _CTRL_C:
        print("^C\nOperation cancelled by user.", file=stderr)
        return False

    char = chr(byte)
    print(char, file=stderr)
    return char.lower() == "y"


def default_confirm(message: str) -> bool:
    """Ask ``message`` on standard error and return whether the user agreed.

    When both standard input and standard error are terminals a single key
    is read without waiting for Enter; otherwise a full line is read.
    """
    stdin = sys.stdin
    stderr = sys.stderr
    stderr_is_terminal = _is_terminal(stderr)

    if stderr_is_terminal:
        stderr.write(_CLEAR_LINE)
    else:
        stderr.write("\n")
    stderr.write(f"{message} (y/n): ")
    stderr.flush()

    if termios is not None and stderr_is_terminal and _is_terminal(stdin):
        return _read_single_key(stdin, stderr)
    return read_line_confirmation(stdin, stderr)