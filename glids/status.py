"""An animated one-line status indicator for long-running fetches."""

from __future__ import annotations

import sys
import threading
from types import TracebackType
from typing import TextIO

CLEAR_LINE = "\r\x1b[K"
SPINNER_FRAMES = ("|", "/", "-", "\\")
DEFAULT_INTERVAL = 0.1


def _is_terminal(stream: object) -> bool:
    try:
        return bool(stream.isatty())  # type: ignore[attr-defined]
    except (AttributeError, ValueError, OSError):
        return False


class StatusIndicator:
    """Shows a message with a spinner on a terminal line until stopped.

    On a stream that is not a terminal the message is written once,
    followed by '...', and nothing is animated.
    """

    def __init__(
        self,
        message: str,
        stream: TextIO | None = None,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self.message = message
        self.stream = stream if stream is not None else sys.stderr
        self.interval = interval
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None
        self._paused = False
        self._frame = 0

    @property
    def running(self) -> bool:
        """Whether the animation thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def start(self) -> StatusIndicator:
        """Begin showing the status; starting twice has no further effect."""
        if self._thread is not None or self._stopped.is_set():
            return self
        if not _is_terminal(self.stream):
            self._write(f"{self.message}...\n")
            self._stopped.set()
            return self
        self._thread = threading.Thread(target=self._animate, daemon=True)
        self._thread.start()
        return self

    def _animate(self) -> None:
        try:
            while not self._stopped.wait(self.interval):
                with self._lock:
                    if self._paused:
                        continue
                    char = SPINNER_FRAMES[self._frame % len(SPINNER_FRAMES)]
                    self._write(CLEAR_LINE)
                    self._write(f"\r{self.message} {char}")
                    self._frame += 1
        finally:
            with self._lock:
                self._write(CLEAR_LINE)

    def pause(self) -> None:
        """Clear the line and hold the animation, e.g. while prompting."""
        if not self.running or self._stopped.is_set():
            return
        with self._lock:
            self._paused = True
            self._write(CLEAR_LINE)

    def resume(self) -> None:
        """Redraw the message and continue the animation."""
        if not self.running or self._stopped.is_set():
            return
        with self._lock:
            self._paused = False
            self._write(CLEAR_LINE)
            self._write(f"\r{self.message}  ")

    def stop(self) -> None:
        """Stop the animation and clear the line; safe to call more than once."""
        self._stopped.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def __enter__(self) -> StatusIndicator:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()