from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from chatorder.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_QUIET_PATHS = {"/health"}


def _incoming_request_id(request: Request) -> str:
    supplied = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    # ids longer than this are client noise, not correlation ids
    if supplied and len(supplied) <= 128:
        return supplied
    return uuid.uuid4().hex


def _tenant_hint(request: Request) -> str | None:
    tenant = request.path_params.get("tenant_id") or request.query_params.get("tenant_id")
    return str(tenant) if tenant else None


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Request id propagation plus one access log line per HTTP call."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = _incoming_request_id(request)
        request.state.request_id = request_id
        set_request_context(request_id=request_id)
        started = time.perf_counter()

        response: Response | None = None
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            self._access_log(request, response, started)
            clear_request_context()

    @staticmethod
    def _access_log(request: Request, response: Response | None, started: float) -> None:
        status_code = response.status_code if response is not None else 500
        path = request.url.path
        if path in _QUIET_PATHS and status_code < 400:
            level = logging.DEBUG
        elif status_code >= 500:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "%s %s -> %s",
            request.method,
            path,
            status_code,
            extra={
                "tenant_id": _tenant_hint(request),
                "endpoint": path,
                "method": request.method,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
