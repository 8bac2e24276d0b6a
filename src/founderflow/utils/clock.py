"""Epoch-millisecond time helpers."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Callable

Clock = Callable[[], int]

MINUTE_MS = 60_000


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def to_ms(value: datetime) -> int:
    """Convert a (local, naive or aware) datetime to epoch milliseconds."""
    return int(value.timestamp() * 1000)


def from_ms(value: int) -> datetime:
    """Local naive datetime for an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(value / 1000)
