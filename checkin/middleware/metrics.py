"""Prometheus metrics middleware: count, time and gauge every request.

The endpoint label is the matched route template ("/v1/guests/{credential_id}"),
not the raw path.  Raw paths would put every credential id into a label
value and create one time series per guest.  Requests that match no
route are labelled "unmatched".
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from checkin.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

_UNINSTRUMENTED = frozenset({"/metrics"})


def _endpoint_label(request: Request) -> str:
    # The router stores the matched route in the shared scope while handling
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def _observe(request: Request, status_code: int, started: float) -> None:
    endpoint = _endpoint_label(request)
    REQUEST_COUNT.labels(
        method=request.method, endpoint=endpoint, status_code=str(status_code)
    ).inc()
    REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(
        time.monotonic() - started
    )


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _UNINSTRUMENTED:
            return await call_next(request)

        started = time.monotonic()
        with ACTIVE_REQUESTS.track_inprogress():
            try:
                response = await call_next(request)
            except Exception:
                # Starlette turns an unhandled exception into a 500
                _observe(request, 500, started)
                raise
        _observe(request, response.status_code, started)
        return response
