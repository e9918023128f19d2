"""Epoch-millisecond helpers shared by the rate limiter and the HTTP layer."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)

# Range datetime can represent; to_iso8601 clamps to it instead of overflowing.
MIN_EPOCH_MS = (datetime.min.replace(tzinfo=timezone.utc) - _EPOCH) // _ONE_MS
MAX_EPOCH_MS = (datetime.max.replace(tzinfo=timezone.utc) - _EPOCH) // _ONE_MS


def now_ms() -> int:
    """Current UNIX time in whole milliseconds."""
    return time.time_ns() // 1_000_000


def to_iso8601(epoch_ms: int) -> str:
    """Format epoch milliseconds as UTC ISO-8601 with millisecond precision.

    Values outside the years 1 to 9999 are clamped to the nearest
    representable instant.

    Examples:
        >>> to_iso8601(0)
        '1970-01-01T00:00:00.000Z'
        >>> to_iso8601(1_005_000)
        '1970-01-01T00:16:45.000Z'
    """
    clamped = min(max(epoch_ms, MIN_EPOCH_MS), MAX_EPOCH_MS)
    moment = _EPOCH + timedelta(milliseconds=clamped)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
