"""
Correlation ID management for request tracing.
"""

import uuid
from contextvars import ContextVar
from typing import Any, Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id_var.get()


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Extract or generate a correlation ID for each request.

    The ID is taken from ``X-Correlation-ID`` (or ``X-Request-ID``), generated
    when absent, exposed to log records for the request and echoed back on
    the response.
    """

    def __init__(
        self,
        app: Any,
        header_name: str = CORRELATION_ID_HEADER,
        generator: Callable[[], str] = generate_correlation_id,
    ):
        super().__init__(app)
        self.header_name = header_name
        self.generator = generator

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        correlation_id = request.headers.get(self.header_name)
        if not correlation_id:
            correlation_id = request.headers.get(REQUEST_ID_HEADER)
        if not correlation_id:
            correlation_id = self.generator()

        token = _correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
            response.headers[self.header_name] = correlation_id
            return response
        finally:
            _correlation_id_var.reset(token)
