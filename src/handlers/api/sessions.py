"""Design session API handler (public, called by the embedded widget)."""

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from designvault.models.design_session import CreateSessionRequest
from designvault.services.identity_resolver import IdentityResolver
from designvault.utils.exceptions import DesignVaultError, ValidationError
from designvault.utils.responses import created, error, from_exception, options, parse_body, success

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle design session requests.

    Routes:
        POST /api/sessions               - Start a session for a plan
        GET  /api/sessions/{session_id}  - Get the visitor's usage snapshot
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path_params = event.get("pathParameters", {}) or {}
        session_id = path_params.get("session_id")

        if http_method == "OPTIONS":
            return options()
        if http_method == "POST" and not session_id:
            return create_session(event)
        if http_method == "GET" and session_id:
            return get_session(session_id)
        return error("Not found", 404)

    except DesignVaultError as e:
        return from_exception(e)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Sessions handler error", error=str(e))
        return error("Internal server error", 500)


def create_session(event: dict) -> dict:
    """Start a session when the visitor opens a plan."""
    body = parse_body(event)

    try:
        request = CreateSessionRequest.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)

    snapshot = IdentityResolver().create_session(
        plan_id=request.plan_id,
        builder_slug=request.builder_slug,
        anonymous_id=request.anonymous_id,
    )
    return created(snapshot)


def get_session(session_id: str) -> dict:
    """Return the authoritative count, capture flag and remaining quota."""
    snapshot = IdentityResolver().get_snapshot(session_id)
    return success(snapshot)
