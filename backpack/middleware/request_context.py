"""Request correlation for the backpack API.

Every request gets an ID: the caller's X-Request-ID when it sends one,
otherwise a fresh UUID.  The ID lives in a ContextVar so that log lines
emitted anywhere below the handler (the fetcher talking to an issuer,
the award engine writing a badge) carry it without it being passed
around.  It is echoed back on the response so an uploader can quote it
when reporting a failed upload.

One summary line is logged per request.  The path is logged as the
route template when one matched (``/backpack/badges/{body_hash}``) so
that badge hashes do not end up in the access log.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class _RequestIdFilter(logging.Filter):
    """Stamp the current request ID onto every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


def install_request_id_filter() -> None:
    # Filters on a logger only see records logged directly to it, so the
    # filter goes on the root handlers.
    root = logging.getLogger()
    targets: list[logging.Filterer] = [root, *root.handlers]
    for target in targets:
        if not any(isinstance(f, _RequestIdFilter) for f in target.filters):
            target.addFilter(_RequestIdFilter())


def route_path(request: Request) -> str:
    """The matched route template, or the raw path when nothing matched."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_var.set(req_id)

        start = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        path = route_path(request)
        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers[REQUEST_ID_HEADER] = req_id
        return response
