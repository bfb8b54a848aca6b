"""HTTP middleware for request correlation and access logging.

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
    """Tag the request with a correlation id and log its completion.

    The id comes from the configured request id header (X-Request-ID by
    default) or is generated as a UUID4. It is stored in contextvars for the
    lifetime of the request so every log line carries it, and echoed back on
    the response together with an X-Request-Duration-ms header.

    Args:
        request: The incoming HTTP request.
        call_next: The next middleware/route handler in the stack.

    Returns:
        The downstream response with correlation headers added.
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
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
