"""Terminal progress indicator shown while connecting to a database."""
from __future__ import annotations

import itertools
import sys
import threading
from typing import Callable, Optional, TextIO

import typer

FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


class Spinner:
    """Animated indicator running on a daemon thread.

    Only terminals get the animation; `start()` on any other stream is a
    no-op so piped output stays clean.
    """

    def __init__(
        self,
        text: str,
        stream: Optional[TextIO] = None,
        interval: float = 0.1,
    ) -> None:
        self.text = text
        self.stream = stream or sys.stderr
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stop.is_set()

    def _is_tty(self) -> bool:
        isatty = getattr(self.stream, "isatty", None)
        return bool(isatty and isatty())

    def start(self) -> None:
        if self._thread is not None or not self._is_tty():
            return
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._thread.start()

    def _spin(self) -> None:
        for frame in itertools.cycle(FRAMES):
            if self._stop.is_set():
                break
            self.stream.write(f"\r{typer.style(frame, fg=typer.colors.CYAN)} {self.text}")
            self.stream.flush()
            self._stop.wait(self.interval)

    def stop(self) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            # wipe the spinner line
            self.stream.write("\r" + " " * (len(self.text) + 2) + "\r")
            self.stream.flush()


class ConnectionNotifier:
    """Single-fire wrapper around the "connected" callback.

    `fire()` runs the callback on its first call only and returns whether
    this call was the one that ran it.
    """

    def __init__(self, callback: Optional[Callable[[], None]] = None) -> None:
        self._callback = callback
        self._lock = threading.Lock()
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def fire(self) -> bool:
        with self._lock:
            if self._fired:
                return False
            self._fired = True
        if self._callback is not None:
            self._callback()
        return True
