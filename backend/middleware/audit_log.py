"""
Audit Logging Middleware

One log line per report request with status and latency, tagged with a
request id that is echoed back in the X-Request-ID header. Request bodies
carry Brink tokens and are never logged.
"""

import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("audit")

REQUEST_ID_HEADER = "X-Request-ID"

# Probes are polled constantly; logging them drowns out real traffic
QUIET_PATHS = {"/health", "/health/ready", "/favicon.ico"}


def client_address(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class AuditLogMiddleware(BaseHTTPMiddleware):
    """Request/response audit trail for the reporting API."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        request.state.request_id = request_id
        started = time.monotonic()

        try:
            response = await call_next(request)
        except Exception as exc:
            self._log(request, request_id, 500, started, error=repr(exc))
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        self._log(request, request_id, response.status_code, started)
        return response

    @staticmethod
    def _log(request: Request, request_id: str, status_code: int, started: float, error: str | None = None):
        latency_ms = round((time.monotonic() - started) * 1000, 2)
        fields = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": status_code,
            "latency_ms": latency_ms,
            "client_ip": client_address(request),
            "user_agent": request.headers.get("user-agent", ""),
        }
        if error:
            fields["error"] = error

        message = f"{request.method} {request.url.path} -> {status_code} in {latency_ms}ms [{request_id}]"
        if status_code >= 500:
            logger.error(message, extra=fields)
        elif status_code >= 400:
            logger.warning(message, extra=fields)
        else:
            logger.info(message, extra=fields)
