from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns a simple status response to verify the API is operational, plus
    the size of the in-memory rate limit store.

    Returns:
        dict: "status" set to "ok" and a "rate_limiter" summary when the app
            owns a limiter.
    """

    body: dict = {"status": "ok"}
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is not None:
        body["rate_limiter"] = {
            "entries": len(limiter.store),
            "sweeper_running": limiter.sweeper_running,
        }
    return body
