"""Response envelope and request helpers shared by the routers."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from notifier.errors import ValidationError
from notifier.services import Services


def ok(data: Any = None, status: int = 200) -> JSONResponse:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    return JSONResponse(body, status_code=status)


def fail(error: str, status: int, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse({"success": False, "error": error}, status_code=status, headers=headers)


def get_services(request: Request) -> Services:
    return request.app.state.services


async def read_json(request: Request) -> Dict[str, Any]:
    """Request body as a JSON object; anything else is a ValidationError."""
    raw = await request.body()
    if not raw:
        raise ValidationError("Request body must be a JSON object")
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body is not valid JSON") from None
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def parse_id(value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid ID") from None


def parse_int(value: Optional[str], default: int) -> int:
    """Lenient query-string int: unparsable values fall back to ``default``."""
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValidationError(f"Invalid boolean value {value!r}")


def parse_number(value: Any, name: str, integer: bool = False) -> Optional[float]:
    """Optional non-negative JSON number; booleans and strings are rejected."""
    if value is None:
        return None
    allowed = int if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, allowed) or value < 0:
        kind = "a non-negative integer" if integer else "a non-negative number"
        raise ValidationError(f"{name} must be {kind}")
    return value
