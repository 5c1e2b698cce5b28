"""
HTTP request logging with a per-request id.

The id is taken from an incoming ``X-Request-ID`` header when present,
otherwise generated, and echoed back on the response.
"""

import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "http %s %s -> %d (%s bytes, %.1fms) req_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            response.headers.get("content-length", "-"),
            (time.perf_counter() - start) * 1000,
            request_id,
        )
        return response
