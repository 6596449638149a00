"""
Request ID middleware.

Every request gets an X-Request-ID (the client's, if it sent one). The id
is put on request.state, echoed in the response and bound to the logging
context var so every log line of the request carries it.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from clearance.logging_config import get_logger, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000
# Bundle uploads are expected to take a while
SLOW_UPLOAD_MS = 10000


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assign a request ID and log request completion."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000
            response.headers[REQUEST_ID_HEADER] = request_id

            threshold = SLOW_UPLOAD_MS if request.method == "POST" else SLOW_REQUEST_MS
            fields = {
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 1),
            }
            if duration_ms > threshold:
                logger.warning("Slow request", extra=fields)
            else:
                logger.debug("Request completed", extra=fields)
            return response
        finally:
            request_id_var.reset(token)
