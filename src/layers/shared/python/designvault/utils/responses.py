"""API response helper functions."""

import json
import os
from datetime import datetime
from typing import Any

from pydantic import BaseModel as PydanticBaseModel

from designvault.utils.exceptions import DesignVaultError

# Comma-separated list of builder sites allowed to embed the widget.
# Empty means any origin (server-to-server and local development).
_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("ALLOWED_ORIGINS", "").split(",")
    if origin.strip()
]


def _get_cors_origin(request_origin: str | None = None) -> str:
    """Get the appropriate CORS origin for the response."""
    if not _ALLOWED_ORIGINS:
        return request_origin or "*"
    if request_origin and request_origin in _ALLOWED_ORIGINS:
        return request_origin
    return _ALLOWED_ORIGINS[0]


def get_cors_headers(request_origin: str | None = None) -> dict:
    """Get CORS headers with the appropriate origin."""
    return {
        "Access-Control-Allow-Origin": _get_cors_origin(request_origin),
        "Access-Control-Allow-Headers": "Content-Type,Authorization",
        "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
        "Access-Control-Allow-Credentials": "true",
        "Content-Type": "application/json",
    }


CORS_HEADERS = get_cors_headers()


def _json_serializer(obj: Any) -> Any:
    """JSON serializer for objects not serializable by default."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, PydanticBaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _serialize(data: Any) -> str:
    """Serialize data to JSON string."""
    return json.dumps(data, default=_json_serializer)


def success(data: Any, status_code: int = 200, headers: dict | None = None) -> dict:
    """Create a successful API response.

    Args:
        data: Response data (dict, list, or Pydantic model).
        status_code: HTTP status code (default 200).
        headers: Extra headers merged over the CORS defaults.

    Returns:
        API Gateway response dict.
    """
    if isinstance(data, PydanticBaseModel):
        body = data.model_dump(mode="json", by_alias=True)
    else:
        body = data

    return {
        "statusCode": status_code,
        "headers": {**CORS_HEADERS, **(headers or {})},
        "body": _serialize(body),
    }


def created(data: Any) -> dict:
    """Create a 201 Created response."""
    return success(data, status_code=201)


def error(
    message: str,
    status_code: int = 500,
    error_code: str | None = None,
    details: dict | None = None,
) -> dict:
    """Create an error API response.

    Args:
        message: Error message.
        status_code: HTTP status code.
        error_code: Machine-readable error code.
        details: Additional error details.

    Returns:
        API Gateway response dict.
    """
    body: dict[str, Any] = {
        "error": True,
        "message": message,
    }

    if error_code:
        body["error_code"] = error_code
    if details:
        body["details"] = details

    return {
        "statusCode": status_code,
        "headers": CORS_HEADERS,
        "body": _serialize(body),
    }


def from_exception(exc: DesignVaultError) -> dict:
    """Create an error response from a DesignVaultError."""
    return {
        "statusCode": exc.status_code,
        "headers": CORS_HEADERS,
        "body": _serialize(exc.to_dict()),
    }


def validation_error(errors: list[dict]) -> dict:
    """Create a validation error response.

    Args:
        errors: List of validation errors with field and message.

    Returns:
        API Gateway response dict.
    """
    return error(
        message="Validation failed",
        status_code=400,
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


def options() -> dict:
    """Create a CORS preflight response."""
    return {
        "statusCode": 204,
        "headers": CORS_HEADERS,
        "body": "",
    }


def parse_body(event: dict) -> dict:
    """Parse the JSON body of an API Gateway event.

    Raises:
        ValueError: If the body is not a JSON object.
    """
    raw = event.get("body") or "{}"
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise ValueError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body
