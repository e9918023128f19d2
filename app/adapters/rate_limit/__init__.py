"""Rate limiting adapters.

The window store sits behind a small abstraction so the in-memory store can
later be replaced by Redis or another shared store (needed as soon as the API
runs with more than one worker process) without touching the limiter.
"""

from app.adapters.rate_limit.base import (
    AbstractWindowStore,
    RateLimitDecision,
    RateLimitPolicy,
    WindowEntry,
)
from app.adapters.rate_limit.in_memory import InMemoryWindowStore

__all__ = [
    "AbstractWindowStore",
    "InMemoryWindowStore",
    "RateLimitDecision",
    "RateLimitPolicy",
    "WindowEntry",
]
