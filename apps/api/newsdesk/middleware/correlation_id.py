from __future__ import annotations

import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from newsdesk.context import correlation_scope, normalize_correlation_id

CORRELATION_HEADERS = ("x-correlation-id", "x-request-id")


def incoming_correlation_id(request: Request) -> str | None:
    """First usable id among the propagated headers, clipped to the stored length."""

    for header in CORRELATION_HEADERS:
        correlation_id = normalize_correlation_id(request.headers.get(header))
        if correlation_id:
            return correlation_id
    return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = incoming_correlation_id(request) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)

        with correlation_scope(correlation_id):
            response = await call_next(request)

        response.headers["x-correlation-id"] = correlation_id
        return response
