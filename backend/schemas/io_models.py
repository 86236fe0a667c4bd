"""Shared API envelope helpers.

Every endpoint answers ``{"success": bool, "message"?: str, "data"?: ...}``;
dictionaries built by the services use snake_case keys and are converted to
the camelCase the POS frontend reads.
"""
from pydantic import BaseModel
from typing import Any, Optional


class ErrorResponse(BaseModel):
    success: bool = False
    message: str


def to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camelize(value: Any) -> Any:
    """Recursively rename dict keys from snake_case to camelCase."""
    if isinstance(value, dict):
        return {to_camel(k) if isinstance(k, str) else k: camelize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [camelize(v) for v in value]
    return value


def ok(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body
