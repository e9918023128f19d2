"""Rate limiter value types and the window store interface.

The limiter should depend on AbstractWindowStore (not the concrete
implementation) so we can swap storage backends later with minimal changes.

All timestamps are integer milliseconds since the UNIX epoch.
"""

from __future__ import annotations

import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

# Longest accepted window: one leap year.
MAX_WINDOW_MS = 366 * 24 * 60 * 60 * 1000


@dataclass
class WindowEntry:
    """Accounting state of one identifier for its current window.

    Attributes:
        count: Requests admitted in the current window (starts at 1).
        reset_at: Epoch milliseconds at which the window expires.
    """

    count: int
    reset_at: int


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable quota: at most ``max_requests`` per ``window_ms``.

    Raises:
        ValueError: If window_ms or max_requests is not a positive integer, or
            window_ms exceeds MAX_WINDOW_MS.
    """

    window_ms: int
    max_requests: int
    name: str = "custom"

    def __post_init__(self) -> None:
        if isinstance(self.window_ms, bool) or not isinstance(self.window_ms, int):
            raise ValueError("window_ms must be an integer")
        if isinstance(self.max_requests, bool) or not isinstance(self.max_requests, int):
            raise ValueError("max_requests must be an integer")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if self.window_ms > MAX_WINDOW_MS:
            raise ValueError(f"window_ms must be <= {MAX_WINDOW_MS}")
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max requests per window for the applied policy.
        remaining: Requests left in the current window (0 when denied).
        reset_at: Epoch milliseconds when the current window resets.
        checked_at: Epoch milliseconds at which the decision was taken.
        reason: Human-readable explanation, set only on denial.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    checked_at: int
    reason: str | None = None

    @property
    def retry_after_seconds(self) -> int | None:
        """Whole seconds the caller should wait before retrying, if denied."""
        if self.allowed:
            return None
        return max(0, math.ceil((self.reset_at - self.checked_at) / 1000))


class AbstractWindowStore(ABC):
    """Interface for per-identifier window storage.

    Implementations expose a re-entrant ``lock``. Callers that need to read,
    compare and write an entry atomically must hold it for the whole sequence;
    the store's own methods acquire it as well.
    """

    lock: threading.RLock

    @abstractmethod
    def get(self, identifier: str) -> WindowEntry | None:
        """Return the entry for identifier, or None when absent."""
        raise NotImplementedError

    @abstractmethod
    def set(self, identifier: str, entry: WindowEntry) -> None:
        """Store (or replace) the entry for identifier."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, identifier: str) -> None:
        """Drop the entry for identifier; missing identifiers are ignored."""
        raise NotImplementedError

    @abstractmethod
    def sweep(self, now: int) -> int:
        """Remove every entry whose reset_at is strictly before now.

        Args:
            now: Epoch milliseconds.

        Returns:
            Number of entries removed.
        """
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries."""
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError
