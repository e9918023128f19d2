"""HTTP middleware for request ID propagation and access logging.

Every request/response pair carries a request id (taken from the incoming
header or generated) so log lines emitted while serving it, including
rate limit decisions, can be correlated.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a request id to the context, the logs and the response.

    If the client sends the configured header (X-Request-ID by default) its
    value is reused; otherwise a UUID4 is generated.

    Side Effects:
        - Sets request_id in contextvars for the duration of the request
        - Logs one ``request.completed`` line with status and duration
        - Adds X-Request-ID and X-Request-Duration-ms response headers
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request.completed",
            extra={
                "method": request.method,
                "route": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
