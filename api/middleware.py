import time
import logging

from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request; crawl requests can run for minutes, so duration is in seconds."""

    async def dispatch(self, request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        logger.info(
            "%s %s from %s -> %d (%.2fs)",
            request.method,
            request.url.path,
            request.client.host if request.client else "unknown",
            response.status_code,
            time.monotonic() - start,
        )
        return response
