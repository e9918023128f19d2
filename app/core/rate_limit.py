"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiter into the HTTP layer.

Design goals:
- No module-level limiter: the app factory builds one and stores it on
  ``app.state.rate_limiter``; routes reach it through get_rate_limiter().
- Routes depend on ``rate_limit(<policy>)`` only and never touch the store.
- Denials are rendered by the global exception handler as HTTP 429.

Identifier strategy:
- ``user:<id>`` when the upstream auth gateway forwarded an authenticated
  user id (X-User-ID by default).
- Otherwise ``ip:<address>`` from the first X-Forwarded-For entry, or
  ``ip:unknown`` when the header is missing.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response

from app.adapters.rate_limit.base import RateLimitDecision, RateLimitPolicy
from app.core.config import settings
from app.core.errors import RateLimitExceededError
from app.core.logging import fingerprint
from app.core.rate_limit_policies import get_policy
from app.services.rate_limiter import FixedWindowRateLimiter
from app.utils.timestamps import to_iso8601

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    """Return the limiter owned by the running application.

    Raises:
        RuntimeError: If the app was not built by create_app().
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("No rate limiter on app.state; build the app with create_app()")
    return limiter


def get_rate_limit_identifier(request: Request, user_id: str | None = None) -> str:
    """Derive the principal identifier for the current request.

    Args:
        request: FastAPI request.
        user_id: Authenticated principal id, when the caller already knows it.

    Returns:
        str: ``user:<id>`` or ``ip:<address>``.
    """

    if user_id:
        return f"user:{user_id}"

    header_user = (request.headers.get(settings.app.user_id_header) or "").strip()
    if header_user:
        return f"user:{header_user}"

    forwarded = request.headers.get(settings.app.forwarded_for_header)
    client_ip = forwarded.split(",")[0].strip() if forwarded else ""
    return f"ip:{client_ip or UNKNOWN_CLIENT}"


def rate_limit_key(policy: RateLimitPolicy, identifier: str) -> str:
    """Scope an identifier to a policy so presets never share a window.

    Examples:
        >>> from app.core.rate_limit_policies import AUTH
        >>> rate_limit_key(AUTH, "user:42")
        'AUTH:user:42'
    """

    return f"{policy.name}:{identifier}"


def build_rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    """Render a decision as X-RateLimit-* headers (plus Retry-After on denial)."""

    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": to_iso8601(decision.reset_at),
    }
    if decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


def rate_limit(
    policy: RateLimitPolicy | str,
) -> Callable[[Request, Response], Awaitable[RateLimitDecision | None]]:
    """Create a dependency that consumes one request under ``policy``.

    Usage:
        @router.get("/things", dependencies=[Depends(rate_limit("API_REQUEST"))])

    Args:
        policy: A RateLimitPolicy or the name of a preset.

    Returns:
        Async FastAPI dependency. It returns the decision when admitted (None
        when rate limiting is disabled) and raises RateLimitExceededError
        otherwise.

    Raises:
        KeyError: If a preset name is unknown.
    """

    resolved = get_policy(policy) if isinstance(policy, str) else policy

    async def enforce_rate_limit(request: Request, response: Response) -> RateLimitDecision | None:
        if not settings.app.rate_limit_enabled:
            return None

        limiter = get_rate_limiter(request)
        identifier = get_rate_limit_identifier(request)
        key_type = identifier.split(":", 1)[0]
        decision = limiter.check(rate_limit_key(resolved, identifier), resolved)

        log_fields = {
            "policy": resolved.name,
            "key_type": key_type,
            "key_hash": fingerprint(identifier),
            "limit": decision.limit,
            "remaining": decision.remaining,
            "window_s": resolved.window_seconds,
        }

        if decision.allowed:
            logger.info("rate_limit.allowed", extra=log_fields)
            if settings.app.rate_limit_include_headers:
                response.headers.update(build_rate_limit_headers(decision))
            return decision

        retry_after = decision.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={**log_fields, "retry_after_s": retry_after},
        )
        raise RateLimitExceededError(
            code="rate_limit_exceeded",
            message=decision.reason or "Rate limit exceeded",
            details={
                "policy": resolved.name,
                "limit": decision.limit,
                "remaining": decision.remaining,
                "reset_at": to_iso8601(decision.reset_at),
                "retry_after": retry_after,
            },
        )

    return enforce_rate_limit
