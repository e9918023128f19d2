"""Application-level exception types.

This module defines domain errors used across services and the HTTP layer,
enabling consistent error handling, logging, and API responses.

Note that the rate limiter core never raises: a denial is a normal decision.
RateLimitExceededError exists only so the HTTP dependency can short-circuit a
request and let the global handler render the 429 response.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; each error fills the subset that applies to it.
    """

    field: str
    hint: str
    limit: int
    remaining: int
    reset_at: str
    retry_after: int
    policy: str


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input fails validation."""


class RateLimitExceededError(AppError):
    """Raised by the HTTP layer when a caller has exhausted its quota."""
