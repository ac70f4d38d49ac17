"""Request context middleware: request id, timing and structured request logs.

Responsibilities (all handled in one pass):
- Generate or propagate ``X-Request-ID`` header
- Measure request duration
- Log every request/response as structured JSON, tagged with the caller's
  account id when the identity header is present
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..core.config import settings
from ..core.logging_config import redact, request_id_var

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Single middleware handling request-id, timing and logging."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # --- Request ID ---
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)

        # --- Timing ---
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        # --- Response headers ---
        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        # --- Structured request log ---
        path = redact(request.url.path)
        extra = {
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        user_id = request.headers.get(settings.identity_header)
        if user_id:
            extra["user_id"] = user_id
        logger.info(f"{request.method} {path} {response.status_code}", extra=extra)

        return response
