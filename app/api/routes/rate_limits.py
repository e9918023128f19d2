from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from app.core.errors import ValidationAppError
from app.core.rate_limit import (
    get_rate_limit_identifier,
    get_rate_limiter,
    rate_limit,
    rate_limit_key,
)
from app.core.rate_limit_policies import API_REQUEST, RATE_LIMIT_POLICIES, get_policy
from app.schemas.rate_limit import RateLimitPolicyOut, RateLimitStatus
from app.utils.timestamps import to_iso8601

router = APIRouter(tags=["Rate limits"])


@router.get(
    "/rate-limits",
    response_model=list[RateLimitPolicyOut],
    dependencies=[Depends(rate_limit(API_REQUEST))],
)
async def list_policies() -> list[RateLimitPolicyOut]:
    """List the named rate limit presets."""

    return [
        RateLimitPolicyOut(
            name=policy.name,
            window_ms=policy.window_ms,
            max_requests=policy.max_requests,
        )
        for policy in RATE_LIMIT_POLICIES.values()
    ]


@router.get("/rate-limits/status", response_model=RateLimitStatus)
async def quota_status(
    request: Request,
    policy: str = Query("API_REQUEST", description="Preset name, e.g. AI_ANALYSIS"),
) -> RateLimitStatus:
    """Report the caller's remaining quota under a preset without consuming it.

    Raises:
        ValidationAppError: 400 when the preset name is unknown.
    """

    try:
        resolved = get_policy(policy)
    except KeyError as exc:
        raise ValidationAppError(
            code="unknown_rate_limit_policy",
            message=f"Unknown rate limit policy: {policy}",
            details={"field": "policy", "hint": ", ".join(sorted(RATE_LIMIT_POLICIES))},
        ) from exc

    limiter = get_rate_limiter(request)
    key = rate_limit_key(resolved, get_rate_limit_identifier(request))
    decision = limiter.peek(key, resolved)
    return RateLimitStatus(
        policy=resolved.name,
        limit=decision.limit,
        remaining=decision.remaining,
        reset_at=to_iso8601(decision.reset_at),
        allowed=decision.allowed,
    )
