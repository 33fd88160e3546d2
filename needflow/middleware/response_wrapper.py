from __future__ import annotations

import json
from typing import Any

# Paths whose JSON is consumed by tooling and must stay untouched
_UNWRAPPED_PATHS = {"/openapi.json", "/health"}


def _content_type(headers: list[tuple[bytes, bytes]]) -> str:
    for k, v in headers:
        if k.lower() == b"content-type":
            return v.decode("latin-1").lower()
    return ""


class ResponseWrapperMiddleware:
    """Wraps successful JSON bodies as ``{"success": true, "data": ...}``.

    Error responses already carry the ``success: false`` envelope built by the
    exception handlers and are passed through as-is.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http" or scope.get("path") in _UNWRAPPED_PATHS:
            await self.app(scope, receive, send)
            return

        passthrough = False
        status_code = 200
        headers: list[tuple[bytes, bytes]] = []
        body_chunks: list[bytes] = []

        async def send_wrapper(message):
            nonlocal passthrough, status_code, headers

            if message["type"] == "http.response.start":
                status_code = int(message.get("status") or 0)
                headers = list(message.get("headers") or [])
                passthrough = (
                    status_code < 200
                    or status_code >= 300
                    or status_code in (204, 304)
                    or "application/json" not in _content_type(headers)
                )
                if passthrough:
                    await send(message)
                return

            if message["type"] != "http.response.body" or passthrough:
                await send(message)
                return

            body_chunks.append(message.get("body", b"") or b"")
            if message.get("more_body", False):
                return

            body = b"".join(body_chunks)
            try:
                decoded = json.loads(body.decode("utf-8")) if body else None
            except (UnicodeDecodeError, json.JSONDecodeError):
                decoded = None

            if decoded is not None and not (isinstance(decoded, dict) and "success" in decoded):
                wrapped: dict[str, Any] = {"success": True, "data": decoded}
                body = json.dumps(wrapped, ensure_ascii=False).encode("utf-8")

            out_headers = [(k, v) for k, v in headers if k.lower() != b"content-length"]
            out_headers.append((b"content-length", str(len(body)).encode("ascii")))

            await send({"type": "http.response.start", "status": status_code, "headers": out_headers})
            await send({"type": "http.response.body", "body": body, "more_body": False})

        await self.app(scope, receive, send_wrapper)
