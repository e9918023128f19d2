"""Named rate limit presets.

Endpoints reference these by name instead of repeating window sizes and
quotas. Values are part of the public contract (clients see them in
X-RateLimit-Limit) and must not drift.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from app.adapters.rate_limit.base import RateLimitPolicy

# AI analysis is expensive: 10 requests per hour
AI_ANALYSIS = RateLimitPolicy(window_ms=60 * 60 * 1000, max_requests=10, name="AI_ANALYSIS")

# General API requests: 60 requests per minute
API_REQUEST = RateLimitPolicy(window_ms=60 * 1000, max_requests=60, name="API_REQUEST")

# Authentication attempts: 5 per 15 minutes
AUTH = RateLimitPolicy(window_ms=15 * 60 * 1000, max_requests=5, name="AUTH")

RATE_LIMIT_POLICIES: Mapping[str, RateLimitPolicy] = MappingProxyType(
    {policy.name: policy for policy in (AI_ANALYSIS, API_REQUEST, AUTH)}
)


def get_policy(name: str) -> RateLimitPolicy:
    """Look up a preset by name (case-insensitive).

    Args:
        name: Preset name, e.g. "AI_ANALYSIS" or "api_request".

    Returns:
        The matching RateLimitPolicy.

    Raises:
        KeyError: If no preset has that name.
    """
    try:
        return RATE_LIMIT_POLICIES[name.strip().upper()]
    except KeyError:
        known = ", ".join(sorted(RATE_LIMIT_POLICIES))
        raise KeyError(f"Unknown rate limit policy {name!r} (known: {known})") from None
