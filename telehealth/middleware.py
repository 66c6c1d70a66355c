import time
import logging
from collections import defaultdict, deque
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .core.config import settings
from .exceptions import create_error_response

logger = logging.getLogger(__name__)

RATE_WINDOW_SECONDS = 60


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limit: int = None):
        super().__init__(app)
        self.requests = defaultdict(deque)
        self.rate_limit = limit if limit is not None else settings.RATE_LIMIT_PER_MINUTE
        self._last_sweep = time.time()

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        if not self._hit(client_ip, time.time()):
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            return JSONResponse(
                status_code=429,
                content=create_error_response("Rate limit exceeded. Please try again later.", 429),
            )
        return await call_next(request)

    def _hit(self, client_ip: str, now: float) -> bool:
        if now - self._last_sweep >= RATE_WINDOW_SECONDS:
            self._sweep(now)
        hits = self.requests[client_ip]
        self._expire(hits, now)
        if len(hits) >= self.rate_limit:
            return False
        hits.append(now)
        return True

    def _sweep(self, now: float) -> None:
        # Forget clients with no hits left in the window
        for client_ip in list(self.requests):
            hits = self.requests[client_ip]
            self._expire(hits, now)
            if not hits:
                del self.requests[client_ip]
        self._last_sweep = now

    @staticmethod
    def _expire(hits: deque, now: float) -> None:
        while hits and now - hits[0] >= RATE_WINDOW_SECONDS:
            hits.popleft()


class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Booking pages carry patient data
        response.headers["Cache-Control"] = "no-store"
        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Request: {request.method} {request.url.path} from {client_host}")

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(f"Response: {request.method} {request.url.path} -> {response.status_code} in {duration:.3f}s")
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {request.url.path}: {e}", exc_info=True)
            message = f"Internal server error: {e}" if settings.DEBUG else "Internal server error"
            return JSONResponse(status_code=500, content=create_error_response(message, 500))


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, max_size: int = None):
        super().__init__(app)
        self.max_size = max_size if max_size is not None else settings.MAX_REQUEST_SIZE

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content=create_error_response("Invalid Content-Length header", 400),
                )
            if size > self.max_size:
                logger.warning(f"Rejected {size} byte request to {request.url.path}")
                return JSONResponse(
                    status_code=413,
                    content=create_error_response("Request entity too large", 413),
                )
        return await call_next(request)
