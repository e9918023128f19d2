"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before anything imports the settings module.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("APP_RATE_LIMIT_INCLUDE_HEADERS", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from app.services.rate_limiter import FixedWindowRateLimiter


class FakeClock:
    """Deterministic millisecond clock for limiter tests."""

    def __init__(self, start: int = 1_000_000) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> Iterator[FixedWindowRateLimiter]:
    """Fresh limiter with a fake clock and no background sweeper."""
    rate_limiter = FixedWindowRateLimiter(clock=clock, sweep_interval_seconds=None)
    yield rate_limiter
    rate_limiter.close()


@pytest.fixture
def client(limiter: FixedWindowRateLimiter) -> Iterator[TestClient]:
    """Test client over an app that owns the fixture limiter."""
    with TestClient(create_app(rate_limiter=limiter)) as test_client:
        yield test_client
