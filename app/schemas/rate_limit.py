"""Pydantic schemas for rate limit introspection endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitPolicyOut(BaseModel):
    """A named rate limit preset."""

    name: str
    window_ms: int = Field(..., description="Window width in milliseconds.")
    max_requests: int = Field(..., description="Requests admitted per window.")


class RateLimitStatus(BaseModel):
    """Caller's current quota under one policy (nothing is consumed)."""

    policy: str
    limit: int
    remaining: int
    reset_at: str = Field(..., description="ISO-8601 UTC time the window resets.")
    allowed: bool = Field(..., description="Whether a request made now would be admitted.")
