"""Request tracing and latency middleware"""

import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from rentverse_bookings.infrastructure.observability.metrics import request_duration_histogram

REQUEST_ID_HEADER = "X-Request-ID"


def route_template(request: Request) -> str:
    """Matched route path such as /v1/bookings/{booking_id}; the raw path when nothing matched"""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagate the caller's X-Request-ID, or mint one, and echo it on the response"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Latency histogram labelled by method, route template and status"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)

        request_duration_histogram.labels(
            method=request.method,
            endpoint=route_template(request),
            status=str(response.status_code),
        ).observe(time.perf_counter() - started)
        return response
