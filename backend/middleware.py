import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request: method, path, status and time taken."""

    def __init__(self, app, *, skip_paths: set[str] | None = None):
        super().__init__(app)
        self.skip_paths = skip_paths or {"/docs", "/openapi.json", "/"}

    async def dispatch(self, request, call_next):
        if request.url.path in self.skip_paths:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} in {elapsed_ms:.0f}ms"
        )
        return response
