"""
Server-authoritative section clock.

The server hands out `sectionStartedAt` and its own `serverTime`; clients
compute an offset once per section start and count down locally from there.
The same arithmetic is used server-side to decide whether a section expired.
"""
from __future__ import annotations

import math
import time
from datetime import datetime, timezone as dt_timezone
from typing import Callable, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime


def to_millis(value) -> float:
    """Epoch milliseconds from a datetime, ISO string or number."""
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f"Invalid timestamp: {value!r}")
        value = parsed
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            value = timezone.make_aware(value, dt_timezone.utc)
        return value.timestamp() * 1000
    raise TypeError(f"Unsupported timestamp: {value!r}")


def wall_clock_ms() -> float:
    return time.time() * 1000


def compute_server_offset(server_time, local_now_ms: float) -> float:
    return to_millis(server_time) - local_now_ms


def elapsed_seconds(server_offset_ms: float, start_timestamp, now_fn: Callable[[], float] = wall_clock_ms) -> int:
    now = now_fn() + server_offset_ms
    return max(0, math.floor((now - to_millis(start_timestamp)) / 1000))


def remaining(
    server_offset_ms: float,
    start_timestamp,
    duration_seconds: int,
    now_fn: Callable[[], float] = wall_clock_ms,
) -> int:
    """Seconds left in a section, never negative."""
    return max(0, duration_seconds - elapsed_seconds(server_offset_ms, start_timestamp, now_fn))


class SectionClock:
    """
    Local countdown for the active section.

    `sync()` takes the server's view of the section (start + server time).
    The offset is recomputed and the expiry latch reset only when the start
    timestamp changes. `tick()` may be called at any rate; `on_expire` fires
    once per start timestamp.
    """

    def __init__(self, duration_seconds: int, on_expire: Optional[Callable] = None,
                 now_fn: Callable[[], float] = wall_clock_ms):
        self.duration_seconds = duration_seconds
        self.on_expire = on_expire
        self.now_fn = now_fn
        self.section_started_at = None
        self.server_offset_ms = 0.0
        self._expired_for = None

    def sync(self, section_started_at, server_time, duration_seconds: Optional[int] = None):
        if duration_seconds is not None:
            self.duration_seconds = duration_seconds
        if section_started_at == self.section_started_at:
            return
        self.section_started_at = section_started_at
        self._expired_for = None
        if section_started_at is not None and server_time is not None:
            self.server_offset_ms = compute_server_offset(server_time, self.now_fn())
        else:
            self.server_offset_ms = 0.0

    @property
    def has_expired(self) -> bool:
        return self.section_started_at is not None and self._expired_for == self.section_started_at

    def tick(self) -> Optional[int]:
        if self.section_started_at is None:
            return None
        left = remaining(self.server_offset_ms, self.section_started_at, self.duration_seconds, self.now_fn)
        if left == 0 and self._expired_for != self.section_started_at:
            self._expired_for = self.section_started_at
            if self.on_expire:
                self.on_expire(self.section_started_at)
        return left
