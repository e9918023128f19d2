"""Fixed-window rate limiter.

Each identifier gets a window that opens on its first request and lasts
``policy.window_ms``. Up to ``policy.max_requests`` requests are admitted in
that window; later ones are denied until the window lapses, at which point
the next request opens a fresh window.

Known limitation: windows are not sliding, so a caller can get up to
``2 * max_requests`` through around a window boundary (a full quota at the end
of one window, another at the start of the next).

The limiter owns its store and a background sweeper thread that purges
expired windows. Build one per application (see app_factory) and call
``close()`` on shutdown.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractWindowStore,
    RateLimitDecision,
    RateLimitPolicy,
    WindowEntry,
)
from app.adapters.rate_limit.in_memory import InMemoryWindowStore
from app.core.logging import fingerprint
from app.utils.timestamps import now_ms, to_iso8601

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0


class FixedWindowRateLimiter:
    """Decide whether requests are admitted under a RateLimitPolicy.

    Attributes:
        store: Window store holding per-identifier state.
    """

    def __init__(
        self,
        *,
        store: AbstractWindowStore | None = None,
        clock: Callable[[], int] = now_ms,
        sweep_interval_seconds: float | None = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the limiter and start its sweeper.

        Args:
            store: Window store; a fresh InMemoryWindowStore when omitted.
            clock: Time source returning epoch milliseconds.
            sweep_interval_seconds: Period of the background sweep. None
                disables the sweeper (sweep() can still be called manually).

        Raises:
            ValueError: If sweep_interval_seconds is not positive.
        """
        if sweep_interval_seconds is not None and sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")

        self.store = store if store is not None else InMemoryWindowStore()
        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

        if sweep_interval_seconds is not None:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                name="rate-limit-sweeper",
                daemon=True,
            )
            self._sweeper.start()

    def __enter__(self) -> "FixedWindowRateLimiter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def check(
        self,
        identifier: str,
        policy: RateLimitPolicy,
        now: int | None = None,
    ) -> RateLimitDecision:
        """Consume one request from identifier's quota under policy.

        Look-up, comparison and mutation happen under the store lock, so two
        concurrent calls can never both take the last slot of a window.

        Args:
            identifier: Rate limit key, e.g. ``user:42`` or ``ip:10.0.0.1``.
            policy: Quota to apply.
            now: Epoch milliseconds; defaults to the limiter clock.

        Returns:
            RateLimitDecision. Denial is a normal result, never an exception.
        """
        if now is None:
            now = self._clock()

        with self.store.lock:
            entry = self.store.get(identifier)

            if entry is None or entry.reset_at <= now:
                entry = WindowEntry(count=1, reset_at=now + policy.window_ms)
                self.store.set(identifier, entry)
                return RateLimitDecision(
                    allowed=True,
                    limit=policy.max_requests,
                    remaining=policy.max_requests - 1,
                    reset_at=entry.reset_at,
                    checked_at=now,
                )

            if entry.count >= policy.max_requests:
                logger.debug(
                    "rate_limit.window_exhausted",
                    extra={
                        "key_hash": fingerprint(identifier),
                        "policy": policy.name,
                        "count": entry.count,
                    },
                )
                return RateLimitDecision(
                    allowed=False,
                    limit=policy.max_requests,
                    remaining=0,
                    reset_at=entry.reset_at,
                    checked_at=now,
                    reason=f"Rate limit exceeded. Try again after {to_iso8601(entry.reset_at)}",
                )

            entry.count += 1
            self.store.set(identifier, entry)
            return RateLimitDecision(
                allowed=True,
                limit=policy.max_requests,
                remaining=policy.max_requests - entry.count,
                reset_at=entry.reset_at,
                checked_at=now,
            )

    def peek(
        self,
        identifier: str,
        policy: RateLimitPolicy,
        now: int | None = None,
    ) -> RateLimitDecision:
        """Report what check() would return for the quota, without consuming it.

        ``allowed`` tells whether a request made now would be admitted and
        ``remaining`` is the quota left before that request.
        """
        if now is None:
            now = self._clock()

        with self.store.lock:
            entry = self.store.get(identifier)
            if entry is None or entry.reset_at <= now:
                return RateLimitDecision(
                    allowed=True,
                    limit=policy.max_requests,
                    remaining=policy.max_requests,
                    reset_at=now + policy.window_ms,
                    checked_at=now,
                )

            remaining = max(0, policy.max_requests - entry.count)
            return RateLimitDecision(
                allowed=remaining > 0,
                limit=policy.max_requests,
                remaining=remaining,
                reset_at=entry.reset_at,
                checked_at=now,
                reason=None if remaining else (
                    f"Rate limit exceeded. Try again after {to_iso8601(entry.reset_at)}"
                ),
            )

    def reset(self, identifier: str) -> None:
        """Forget identifier's window (e.g. after a successful login)."""
        self.store.delete(identifier)

    def sweep(self, now: int | None = None) -> int:
        """Purge windows that expired before now.

        Returns:
            Number of entries removed.
        """
        if now is None:
            now = self._clock()
        removed = self.store.sweep(now)
        if removed:
            logger.debug(
                "rate_limit.sweep",
                extra={"removed": removed, "entries": len(self.store)},
            )
        return removed

    def close(self) -> None:
        """Stop the background sweeper. Safe to call more than once."""
        self._stop_event.set()
        sweeper = self._sweeper
        if sweeper is not None and sweeper.is_alive() and sweeper is not threading.current_thread():
            sweeper.join(timeout=5)
        self._sweeper = None

    def _sweep_loop(self) -> None:
        interval = self._sweep_interval
        if interval is None:
            return
        while not self._stop_event.wait(interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
