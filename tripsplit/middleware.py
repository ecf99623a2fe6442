import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("tripsplit")

REQUEST_ID_HEADER = "X-Request-ID"
SKIP_LOG_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs method, path, status and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000)
        response.headers[REQUEST_ID_HEADER] = request_id

        path = request.url.path
        if path in SKIP_LOG_PATHS:
            return response

        logger.info(
            f"{request.method} {path} {response.status_code}",
            extra={"extra_data": {
                "method": request.method,
                "path": path,
                "query": str(request.url.query) or None,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "request_id": request_id,
            }},
        )
        return response
