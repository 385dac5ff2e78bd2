"""API Middleware for request processing"""

import time
import re
from typing import Callable
from uuid import uuid4
import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from billing_resources.core.config import settings
from billing_resources.core.logging_config import get_logger
from billing_resources.core.monitoring import track_request_metrics


logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add unique request ID to each request.

    Generates a UUID for each request and adds it to:
    - Request state (accessible in route handlers)
    - Response headers (X-Request-ID)
    - Log context, so every log line of the request carries it
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and add request ID"""
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all requests and responses with correlation IDs.

    Logs structured information including:
    - Request ID (correlation ID)
    - HTTP method and path
    - Request/response timing
    - Status code
    - Sensitive data redaction

    Request count and latency are recorded for /metrics on the way out.
    """

    # Patterns for sensitive data redaction
    SENSITIVE_PATTERNS = [
        (re.compile(r'"password"\s*:\s*"[^"]*"'), '"password": "[REDACTED]"'),
        (re.compile(r'"token"\s*:\s*"[^"]*"'), '"token": "[REDACTED]"'),
        (re.compile(r'"secret"\s*:\s*"[^"]*"'), '"secret": "[REDACTED]"'),
        (re.compile(r'"authorization"\s*:\s*"[^"]*"', re.IGNORECASE), '"authorization": "[REDACTED]"'),
        (re.compile(r'Bearer\s+[A-Za-z0-9\-._~+/]+=*', re.IGNORECASE), 'Bearer [REDACTED]'),
    ]

    # Paths to exclude from detailed logging (health checks, metrics, etc.)
    EXCLUDED_PATHS = {
        "/health",
        "/metrics",
        "/favicon.ico",
        "/robots.txt"
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details"""
        request_id = getattr(request.state, "request_id", "unknown")

        skip_detailed_logging = (
            request.url.path in self.EXCLUDED_PATHS and
            not settings.LOG_HEALTH_CHECKS
        )

        start_time = time.time()

        if not skip_detailed_logging or settings.DEBUG:
            logger.info(
                "request_started",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                query_params=str(request.query_params),
                client_host=request.client.host if request.client else None,
            )

        try:
            response = await call_next(request)

            response_time = time.time() - start_time
            track_request_metrics(
                request.method, self._endpoint(request), response.status_code, response_time
            )

            if not skip_detailed_logging or settings.DEBUG or response.status_code >= 400:
                logger.info(
                    "request_completed",
                    request_id=request_id,
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    response_time_ms=int(response_time * 1000),
                )

            return response

        except Exception as e:
            response_time = time.time() - start_time
            track_request_metrics(request.method, self._endpoint(request), 500, response_time)

            # Always log errors, even for health checks
            logger.error(
                "request_failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                error_type=type(e).__name__,
                error_message=self._redact_sensitive_data(str(e)),
                response_time_ms=int(response_time * 1000),
                exc_info=True
            )

            raise

    @staticmethod
    def _endpoint(request: Request) -> str:
        """Route template rather than the raw path, to keep label cardinality low"""
        route = request.scope.get("route")
        return getattr(route, "path", request.url.path)

    @classmethod
    def _redact_sensitive_data(cls, text: str) -> str:
        """
        Redact sensitive data from text.

        Replaces passwords, tokens and other sensitive information with
        [REDACTED] placeholder.
        """
        for pattern, replacement in cls.SENSITIVE_PATTERNS:
            text = pattern.sub(replacement, text)
        return text
