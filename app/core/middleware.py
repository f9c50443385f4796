"""Request correlation and access logging."""

import time
import uuid
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import get_logger, request_id_ctx

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = frozenset({"/health", "/health/ready"})


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Propagate X-Request-ID and log each request with its duration.

    Probe paths are logged at debug level so they do not flood the access log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        path = request.url.path
        log = logger.debug if path in QUIET_PATHS else logger.info
        started = time.perf_counter()

        try:
            log(
                "http.request_started",
                method=request.method,
                path=path,
                query=str(request.url.query) if request.url.query else None,
                owner_id=request.headers.get("X-Owner-ID"),
            )

            response = await call_next(request)

            log(
                "http.request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )

            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_ctx.reset(token)
