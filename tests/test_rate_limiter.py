"""Unit tests for the fixed-window rate limiter."""

import threading
import time

import pytest

from app.adapters.rate_limit.base import (
    MAX_WINDOW_MS,
    RateLimitDecision,
    RateLimitPolicy,
    WindowEntry,
)
from app.adapters.rate_limit.in_memory import InMemoryWindowStore
from app.services.rate_limiter import FixedWindowRateLimiter
from app.utils.timestamps import MAX_EPOCH_MS


def _policy(window_ms: int = 1_000, max_requests: int = 3) -> RateLimitPolicy:
    return RateLimitPolicy(window_ms=window_ms, max_requests=max_requests)


class TestCheck:
    """Admission decisions within and across windows."""

    def test_first_calls_allowed_with_decreasing_remaining(self, limiter, clock) -> None:
        policy = _policy(max_requests=5)

        remaining = [limiter.check("u1", policy).remaining for _ in range(5)]

        assert remaining == [4, 3, 2, 1, 0]

    def test_call_over_limit_is_denied_and_not_counted(self, limiter, clock) -> None:
        policy = _policy(max_requests=2)
        limiter.check("u1", policy)
        limiter.check("u1", policy)

        denied = limiter.check("u1", policy)
        denied_again = limiter.check("u1", policy)

        assert denied.allowed is False
        assert denied.remaining == 0
        assert denied.reason is not None
        assert "Rate limit exceeded" in denied.reason
        assert denied_again.allowed is False
        assert limiter.store.get("u1").count == 2

    def test_denial_keeps_window_reset_time(self, limiter, clock) -> None:
        policy = _policy(window_ms=1_000, max_requests=1)
        first = limiter.check("u1", policy)

        clock.advance(400)
        denied = limiter.check("u1", policy)

        assert denied.reset_at == first.reset_at == 1_001_000

    def test_fresh_window_reset_at_is_now_plus_window(self, limiter) -> None:
        decision = limiter.check("u1", _policy(window_ms=5_000, max_requests=1), now=1_000_000)

        assert decision.allowed is True
        assert decision.reset_at == 1_005_000

    def test_reset_at_is_stable_within_window(self, limiter, clock) -> None:
        policy = _policy(window_ms=1_000, max_requests=3)
        first = limiter.check("u1", policy)
        clock.advance(700)
        second = limiter.check("u1", policy)

        assert second.reset_at == first.reset_at

    def test_window_lapses_exactly_at_reset_at(self, limiter, clock) -> None:
        policy = _policy(window_ms=1_000, max_requests=1)
        limiter.check("u1", policy)
        assert limiter.check("u1", policy, now=1_000_999).allowed is False

        decision = limiter.check("u1", policy, now=1_001_000)

        assert decision.allowed is True
        assert decision.remaining == 0
        assert decision.reset_at == 1_002_000
        assert limiter.store.get("u1") == WindowEntry(count=1, reset_at=1_002_000)

    def test_new_window_after_denials(self, limiter, clock) -> None:
        policy = _policy(window_ms=1_000, max_requests=2)
        for _ in range(6):
            limiter.check("u1", policy)

        clock.advance(1_001)
        decision = limiter.check("u1", policy)

        assert decision.allowed is True
        assert decision.remaining == 1
        assert limiter.store.get("u1").count == 1

    def test_identifiers_are_independent(self, limiter) -> None:
        policy = _policy(max_requests=2)
        limiter.check("user:1", policy)
        limiter.check("user:1", policy)
        assert limiter.check("user:1", policy).allowed is False

        other = limiter.check("user:2", policy)

        assert other.allowed is True
        assert other.remaining == 1

    def test_limit_reports_policy_max_requests(self, limiter) -> None:
        decision = limiter.check("u1", _policy(max_requests=7))

        assert decision.limit == 7

    def test_uses_injected_clock_when_now_omitted(self, limiter, clock) -> None:
        clock.current = 42_000

        decision = limiter.check("u1", _policy(window_ms=1_000))

        assert decision.checked_at == 42_000
        assert decision.reset_at == 43_000

    def test_denial_past_representable_dates_does_not_raise(self, limiter) -> None:
        policy = _policy(window_ms=60_000, max_requests=1)
        now = MAX_EPOCH_MS - 10
        limiter.check("u1", policy, now=now)

        denied = limiter.check("u1", policy, now=now)
        status = limiter.peek("u1", policy, now=now)

        assert denied.allowed is False
        assert denied.remaining == 0
        assert denied.reset_at == now + 60_000
        assert "9999-12-31T23:59:59.999Z" in denied.reason
        assert status.allowed is False

    def test_expired_unswept_entry_is_treated_as_absent(self, clock) -> None:
        store = InMemoryWindowStore()
        store.set("u1", WindowEntry(count=99, reset_at=500))
        limiter = FixedWindowRateLimiter(store=store, clock=clock, sweep_interval_seconds=None)

        decision = limiter.check("u1", _policy(max_requests=3))

        assert decision.allowed is True
        assert decision.remaining == 2


class TestConcreteScenarios:
    """Scenarios taken from the original behaviour."""

    def test_three_per_second(self, limiter) -> None:
        policy = RateLimitPolicy(window_ms=1_000, max_requests=3)
        now = 1_000_000

        results = [limiter.check("u1", policy, now=now) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

        after = limiter.check("u1", policy, now=1_001_001)
        assert after.allowed is True
        assert after.remaining == 2

    def test_single_request_window_reset_time(self, limiter) -> None:
        policy = RateLimitPolicy(window_ms=5_000, max_requests=1)

        assert limiter.check("u1", policy, now=1_000_000).reset_at == 1_005_000

    def test_boundary_burst_is_allowed(self, limiter) -> None:
        # Fixed windows admit a full quota on each side of a boundary.
        policy = RateLimitPolicy(window_ms=1_000, max_requests=3)
        end_of_window = [limiter.check("u1", policy, now=1_000_000 + (999 if i else 0)) for i in range(3)]
        start_of_next = [limiter.check("u1", policy, now=1_001_000) for _ in range(3)]

        assert all(r.allowed for r in end_of_window + start_of_next)


class TestDecision:
    def test_retry_after_is_none_when_allowed(self) -> None:
        decision = RateLimitDecision(
            allowed=True, limit=1, remaining=0, reset_at=2_000, checked_at=1_000
        )

        assert decision.retry_after_seconds is None

    def test_retry_after_rounds_up_to_whole_seconds(self, limiter, clock) -> None:
        policy = _policy(window_ms=60_000, max_requests=1)
        limiter.check("u1", policy)
        clock.advance(500)

        denied = limiter.check("u1", policy)

        assert denied.retry_after_seconds == 60


class TestPolicyValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"window_ms": 0, "max_requests": 1},
            {"window_ms": -1_000, "max_requests": 1},
            {"window_ms": 1_000, "max_requests": 0},
            {"window_ms": 1_000, "max_requests": -5},
            {"window_ms": 1.5, "max_requests": 1},
            {"window_ms": 1_000, "max_requests": True},
            {"window_ms": 10**15, "max_requests": 1},
            {"window_ms": MAX_WINDOW_MS + 1, "max_requests": 1},
        ],
    )
    def test_invalid_policy_fails_fast(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            RateLimitPolicy(**kwargs)

    def test_longest_window_is_accepted(self, limiter) -> None:
        policy = RateLimitPolicy(window_ms=MAX_WINDOW_MS, max_requests=1)

        limiter.check("u1", policy, now=1_000_000)
        denied = limiter.check("u1", policy, now=1_000_000)

        assert denied.allowed is False
        assert denied.reset_at == 1_000_000 + MAX_WINDOW_MS

    def test_policy_is_immutable(self) -> None:
        policy = _policy()

        with pytest.raises(AttributeError):
            policy.max_requests = 100  # type: ignore[misc]

    def test_invalid_sweep_interval(self) -> None:
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(sweep_interval_seconds=0)


class TestPeekAndReset:
    def test_peek_does_not_consume(self, limiter) -> None:
        policy = _policy(max_requests=2)

        before = limiter.peek("u1", policy)
        assert before.remaining == 2
        assert limiter.store.get("u1") is None

        limiter.check("u1", policy)
        after = limiter.peek("u1", policy)

        assert after.remaining == 1
        assert after.allowed is True
        assert limiter.store.get("u1").count == 1

    def test_peek_reports_exhausted_window(self, limiter) -> None:
        policy = _policy(max_requests=1)
        limiter.check("u1", policy)

        status = limiter.peek("u1", policy)

        assert status.allowed is False
        assert status.remaining == 0
        assert status.reason is not None

    def test_reset_forgets_identifier(self, limiter) -> None:
        policy = _policy(max_requests=1)
        limiter.check("u1", policy)
        assert limiter.check("u1", policy).allowed is False

        limiter.reset("u1")

        assert limiter.check("u1", policy).allowed is True


class TestConcurrency:
    def test_concurrent_checks_never_exceed_quota(self, clock) -> None:
        limiter = FixedWindowRateLimiter(clock=clock, sweep_interval_seconds=None)
        policy = _policy(window_ms=60_000, max_requests=25)
        results: list[bool] = []
        results_lock = threading.Lock()
        start = threading.Barrier(100)

        def _worker() -> None:
            start.wait()
            decision = limiter.check("shared", policy)
            with results_lock:
                results.append(decision.allowed)

        threads = [threading.Thread(target=_worker) for _ in range(100)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 100
        assert results.count(True) == 25
        assert limiter.store.get("shared").count == 25


class TestSweep:
    def test_manual_sweep_removes_only_expired(self, limiter, clock) -> None:
        limiter.check("short", _policy(window_ms=100))
        limiter.check("long", _policy(window_ms=10_000))

        removed = limiter.sweep(now=clock.current + 101)

        assert removed == 1
        assert limiter.store.get("short") is None
        assert limiter.store.get("long") is not None

    def test_background_sweeper_purges_and_stops_on_close(self, clock) -> None:
        limiter = FixedWindowRateLimiter(clock=clock, sweep_interval_seconds=0.01)
        try:
            assert limiter.sweeper_running is True
            limiter.check("u1", _policy(window_ms=100))
            clock.advance(1_000)

            deadline = time.monotonic() + 5
            while len(limiter.store) and time.monotonic() < deadline:
                time.sleep(0.01)

            assert len(limiter.store) == 0
        finally:
            limiter.close()

        assert limiter.sweeper_running is False

    def test_close_is_idempotent(self) -> None:
        limiter = FixedWindowRateLimiter(sweep_interval_seconds=60)

        limiter.close()
        limiter.close()

        assert limiter.sweeper_running is False

    def test_context_manager_closes_sweeper(self) -> None:
        with FixedWindowRateLimiter(sweep_interval_seconds=60) as limiter:
            assert limiter.sweeper_running is True

        assert limiter.sweeper_running is False

    def test_no_sweeper_when_disabled(self, limiter) -> None:
        assert limiter.sweeper_running is False

    def test_sweep_loop_exits_immediately_without_interval(self, limiter) -> None:
        limiter.store.set("old", WindowEntry(count=1, reset_at=1))

        limiter._sweep_loop()

        assert "old" in limiter.store
