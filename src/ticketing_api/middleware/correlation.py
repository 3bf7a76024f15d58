"""Per-request correlation IDs.

A caller-supplied ``X-Correlation-ID`` is reused when it is a short token of
safe characters; anything else is replaced by a UUID4 so header values never
reach log lines verbatim. The ID is bound for logging, stored on
``request.state.correlation_id`` and echoed on the response.
"""

import re

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ticketing.utils.logging import clear_correlation_id, set_correlation_id

CORRELATION_ID_HEADER = "X-Correlation-ID"

_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def incoming_correlation_id(request: Request) -> str | None:
    candidate = request.headers.get(CORRELATION_ID_HEADER, "").strip()
    return candidate if _SAFE_ID.match(candidate) else None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.correlation_id = set_correlation_id(incoming_correlation_id(request))
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers[CORRELATION_ID_HEADER] = request.state.correlation_id
        return response
