"""
cloudstore/duration.py - Operation timing and sample statistics
"""

import logging
import threading
import time
from typing import TextIO


def human_time(millis: int) -> str:
    """Format milliseconds as ``m:ss.SSS``."""
    seconds = millis // 1000
    minutes = seconds // 60
    return f"{minutes}:{seconds % 60:02d}.{millis % 1000:03d}"


def _now_millis() -> int:
    return time.monotonic_ns() // 1_000_000


class StoreDurationInfo:
    """
    Time an operation; usable as a context manager.

    When a logger is given, start and end are logged at INFO; when an output
    stream is given they are printed there instead. With neither it is a
    silent stopwatch.

    Example:
        >>> with StoreDurationInfo(logger, "listing %s", path):
        ...     await list_everything()
    """

    def __init__(
        self,
        log: logging.Logger | None = None,
        text: str = "",
        *args,
        out: TextIO | None = None,
    ):
        self.text = text % args if args else text
        self.log = log
        self.out = out
        self.started = _now_millis()
        self.finished_at = self.started
        self.is_finished = False
        self._lock = threading.Lock()
        if log is not None:
            log.info("Starting: %s", self.text)
        elif out is not None:
            print(f"Starting: {self.text}", file=out, flush=True)

    def finished(self) -> None:
        """Stop the clock; only the first call counts."""
        with self._lock:
            if not self.is_finished:
                self.finished_at = _now_millis()
                self.is_finished = True

    def value(self) -> int:
        """Elapsed milliseconds; live until finished() is called."""
        end = self.finished_at if self.is_finished else _now_millis()
        return end - self.started

    def duration_string(self) -> str:
        return human_time(self.value())

    def __str__(self) -> str:
        return self.duration_string()

    def close(self) -> None:
        self.finished()
        if self.log is not None:
            self.log.info("Duration of %s: %s", self.text, self)
        elif self.out is not None:
            print(f"Duration of {self.text}: {self}", file=self.out, flush=True)

    def __enter__(self) -> "StoreDurationInfo":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MinMeanMax:
    """Thread-safe min/mean/max of a series of samples."""

    def __init__(self, name: str):
        self.name = name
        self._min: int | None = None
        self._max: int | None = None
        self._sum = 0
        self._samples = 0
        self._lock = threading.Lock()

    def add(self, value: int) -> None:
        with self._lock:
            self._min = value if self._min is None else min(self._min, value)
            self._max = value if self._max is None else max(self._max, value)
            self._sum += value
            self._samples += 1

    def min(self) -> int:
        return self._min if self._min is not None else 0

    def max(self) -> int:
        return self._max if self._max is not None else 0

    def samples(self) -> int:
        return self._samples

    def sum(self) -> int:
        return self._sum

    def mean(self) -> float:
        return self._sum / self._samples if self._samples else 0.0
