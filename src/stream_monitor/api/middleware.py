"""Correlation ID middleware for request tracing."""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from stream_monitor.logging import (
    LogEventType,
    clear_correlation_id,
    get_logger,
    set_correlation_id,
)

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Takes the correlation id from the request header, or generates one, makes
    it available to log records for the duration of the request and echoes it
    in the response headers.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_ID_HEADER)
        if not correlation_id:
            correlation_id = str(uuid.uuid4())

        set_correlation_id(correlation_id)
        logger.debug(
            "Request received",
            event_type=LogEventType.REQUEST_IN,
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()
