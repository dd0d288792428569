"""Request correlation middleware."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from coverspot.infrastructure.observability.logging import set_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# Hey future me - this sets the correlation id for everything the request logs (cover
# management, the queue submit) and echoes it back in the response header. Stored cover
# files under the static prefix are served without a log line, there are a lot of them.
class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Sets a per-request correlation id and logs API calls at DEBUG."""

    def __init__(self, app: ASGIApp, quiet_prefixes: tuple[str, ...] = ()) -> None:
        super().__init__(app)
        self.quiet_prefixes = quiet_prefixes

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
        path = request.url.path
        quiet = any(path.startswith(prefix) for prefix in self.quiet_prefixes)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s %s failed", request.method, path)
            raise

        if not quiet:
            logger.debug(
                "%s %s -> %d (%.1f ms)",
                request.method,
                path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
            )
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
