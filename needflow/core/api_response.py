from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse


def fail(*, status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    payload: dict[str, Any] = {"success": False, "error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=payload)


def validation_details(errors: list[dict]) -> list[dict]:
    """Flatten pydantic error dicts into ``{path, message}`` pairs."""
    out = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        out.append({"path": ".".join(loc), "message": err.get("msg", "")})
    return out
