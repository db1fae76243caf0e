import logging
import threading
import time
import uuid
from collections import defaultdict, deque

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .exceptions import create_error_response

logger = logging.getLogger(__name__)

# Scheduling link tokens travel in these paths
PUBLIC_LINK_PREFIX = "/appointment-links/public/"
RATE_LIMIT_EXEMPT = ("/health",)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _loggable_path(path: str) -> str:
    if path.startswith(PUBLIC_LINK_PREFIX):
        return PUBLIC_LINK_PREFIX + "***"
    return path


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding one-minute window per client IP. A limit of 0 turns it off."""

    def __init__(self, app: ASGIApp, per_minute: int = None):
        super().__init__(app)
        self.per_minute = settings.RATE_LIMIT_PER_MINUTE if per_minute is None else per_minute
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()

    def _allow(self, ip: str) -> bool:
        now = time.monotonic()
        with self._lock:
            hits = self._hits[ip]
            while hits and now - hits[0] >= 60:
                hits.popleft()
            if len(hits) >= self.per_minute:
                return False
            hits.append(now)
            return True

    async def dispatch(self, request: Request, call_next):
        if self.per_minute <= 0 or request.url.path in RATE_LIMIT_EXEMPT:
            return await call_next(request)
        ip = _client_ip(request)
        if not self._allow(ip):
            logger.warning(f"Rate limit exceeded for IP: {ip}")
            return JSONResponse(
                status_code=429,
                content=create_error_response("Rate limit exceeded. Please try again later.", "rate_limited"),
                headers={"Retry-After": "60"},
            )
        return await call_next(request)


class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if request.url.path.startswith(PUBLIC_LINK_PREFIX):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Referrer-Policy"] = "no-referrer"
        else:
            response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        started = time.perf_counter()
        logger.info(f"[{request_id}] {request.method} {_loggable_path(request.url.path)} from {_client_ip(request)}")
        response = await call_next(request)
        elapsed = time.perf_counter() - started
        logger.info(f"[{request_id}] {response.status_code} in {elapsed:.3f}s")
        response.headers["X-Request-ID"] = request_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {_loggable_path(request.url.path)}: {e}", exc_info=True)
            message = f"Internal server error: {e}" if settings.DEBUG else "Internal server error"
            return JSONResponse(status_code=500, content=create_error_response(message, "internal_error"))


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies whose declared Content-Length exceeds MAX_REQUEST_BYTES."""

    async def dispatch(self, request: Request, call_next):
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > settings.MAX_REQUEST_BYTES:
            return JSONResponse(
                status_code=413,
                content=create_error_response("Request entity too large", "payload_too_large"),
            )
        return await call_next(request)
