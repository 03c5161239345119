"""Access log with per-request correlation ids.

An X-Request-ID supplied by an upstream proxy is reused when it looks sane,
otherwise a short one is minted. Either way it lands on request.state (so
success_response() echoes it in the envelope) and on the response headers.

Health probes are logged at DEBUG; 4xx at WARNING, 5xx at ERROR.
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("pt.request")

REQUEST_ID_HEADER = "X-Request-ID"
_QUIET_PATHS = frozenset({"/health"})
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9_.\-]{1,64}$")


def _request_id_for(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "")
    if _VALID_REQUEST_ID.match(incoming):
        return incoming
    return f"req_{uuid.uuid4().hex[:12]}"


def _level_for(path: str, status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    if path in _QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id_for(request)
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - started) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.log(
            _level_for(request.url.path, response.status_code),
            "%s %s %d %.1fms rid=%s",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request_id,
        )
        return response
