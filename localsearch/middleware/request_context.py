"""Request context middleware: correlation IDs and response timing."""

import time
import uuid
from typing import Callable

import logfire
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a correlation ID and report how long it took.

    The correlation ID is taken from the incoming header when present so
    callers can trace a crawl or search across services.
    """

    def __init__(
        self,
        app: ASGIApp,
        header_name: str = "X-Correlation-ID",
        timing_header: str = "X-Response-Time",
    ):
        """
        Initialize request context middleware.

        Args:
            app: ASGI application
            header_name: HTTP header name for correlation ID
            timing_header: HTTP header carrying elapsed milliseconds
        """
        super().__init__(app)
        self.header_name = header_name
        self.timing_header = timing_header

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(self.header_name.lower()) or str(
            uuid.uuid4()
        )
        request.state.correlation_id = correlation_id

        start_time = time.perf_counter()
        with logfire.span(
            "request",
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        ):
            response = await call_next(request)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        response.headers[self.header_name] = correlation_id
        response.headers[self.timing_header] = f"{elapsed_ms:.2f}ms"
        return response
