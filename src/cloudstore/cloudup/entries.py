"""
cloudstore/cloudup/entries.py - Upload work items, their outcomes and ordering
"""

import random
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from cloudstore.duration import human_time
from cloudstore.utils import commas


class UploadState(str, Enum):
    READY = "ready"
    QUEUED = "queued"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class UploadEntry:
    """One file to copy from ``source`` to ``dest``."""

    source: str
    size: int
    dest: str = ""
    state: UploadState = UploadState.READY
    start_time: int = 0
    end_time: int = 0
    exception: Exception | None = field(default=None, repr=False)

    def in_state(self, state: UploadState) -> bool:
        return self.state == state

    def started(self) -> None:
        self.start_time = time.monotonic_ns() // 1_000_000

    def ended(self, state: UploadState, exception: Exception | None = None) -> None:
        self.end_time = time.monotonic_ns() // 1_000_000
        self.state = state
        self.exception = exception

    @property
    def duration(self) -> int:
        """Milliseconds spent copying; 0 until the copy ends."""
        return max(self.end_time - self.start_time, 0) if self.end_time else 0

    @property
    def size_str(self) -> str:
        return commas(self.size)

    def __str__(self) -> str:
        text = f"UploadEntry{{source={self.source}, dest={self.dest}, size={self.size_str}, state={self.state.value}"
        if self.end_time:
            text += f", duration={human_time(self.duration)}"
        return text + "}"


@dataclass(frozen=True)
class Outcome:
    """The result of one upload; ``executed`` is false if it never started."""

    executed: bool
    upload: UploadEntry
    bytes_uploaded: int = 0
    exception: Exception | None = None

    @classmethod
    def not_executed(cls, upload: UploadEntry) -> "Outcome":
        return cls(False, upload)

    @classmethod
    def succeeded(cls, upload: UploadEntry) -> "Outcome":
        return cls(True, upload, upload.size)

    @classmethod
    def failed(cls, upload: UploadEntry, exception: Exception) -> "Outcome":
        return cls(True, upload, 0, exception)

    def maybe_raise(self) -> None:
        if self.exception is not None:
            raise self.exception


def plan_uploads(
    entries: Iterable[UploadEntry],
    largest: int,
    rng: random.Random | None = None,
) -> list[UploadEntry]:
    """
    Order uploads so the ``largest`` biggest files go first, biggest of all
    first, followed by every other file in random order.

    Starting the big files early keeps them from becoming the tail of the
    whole job; shuffling the rest spreads load across the store's key space.

    Args:
        entries: the uploads
        largest: how many of the largest files to put at the front
        rng: random source for the shuffle; seed one for repeatable plans

    Returns:
        Every entry exactly once, in submission order
    """
    ordered = sorted(entries, key=lambda e: e.size, reverse=True)
    count = min(max(largest, 0), len(ordered))
    head, rest = ordered[:count], ordered[count:]
    (rng or random.Random()).shuffle(rest)
    return head + rest
