from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from needflow.core.request_context import set_request_context, set_user

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_request_context(rid, request.url.path, request.method)
        set_user(None)

        started = time.monotonic()
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        logger.info(
            "request handled",
            extra={"status_code": response.status_code, "duration_ms": round((time.monotonic() - started) * 1000, 1)},
        )
        return response
