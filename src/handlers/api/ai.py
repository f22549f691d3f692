"""AI API handler for metered design operations.

Provides endpoints for:
- Style swaps (preset restyle of a plan rendering)
- Floor plan edits (free-text instruction)
- Prompt enhancement and wishlist notes (not metered)

Metered responses always carry remainingFree so the widget can reconcile
its local counter, including on refusals and generation failures.
"""

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from designvault.models.operation import (
    EnhancePromptRequest,
    OperationKind,
    OperationRequest,
    WishlistRequest,
)
from designvault.services.ai_gateway import get_ai_gateway
from designvault.utils.exceptions import (
    CaptureRequiredError,
    DesignVaultError,
    ExternalServiceError,
    GenerationFailedError,
    LimitReachedError,
    SessionNotFoundError,
    ValidationError,
)
from designvault.utils.rate_limiter import (
    AI_REQUESTS_PER_HOUR,
    AI_REQUESTS_PER_MINUTE,
    check_rate_limit,
    get_client_ip,
    rate_limit_response,
)
from designvault.utils.responses import error, from_exception, options, parse_body, success, validation_error

logger = structlog.get_logger()

OPERATION_ROUTES = {
    "/api/style-swap": OperationKind.STYLE_SWAP,
    "/api/floor-plan-edit": OperationKind.FLOOR_PLAN_EDIT,
}


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle AI API requests.

    Routes:
        POST /api/style-swap        - Restyle a rendering (metered)
        POST /api/floor-plan-edit   - Edit a floor plan (metered)
        POST /api/enhance-prompt    - Rewrite an edit instruction
        POST /api/wishlist          - Record a wishlist note
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "").rstrip("/")

        if http_method == "OPTIONS":
            return options()
        if http_method != "POST":
            return error("Not found", 404)

        if path in OPERATION_ROUTES:
            return perform_operation(OPERATION_ROUTES[path], event)
        if path == "/api/enhance-prompt":
            return enhance_prompt(event)
        if path == "/api/wishlist":
            return add_wishlist_item(event)
        return error("Not found", 404)

    except ValidationError as e:
        return validation_error(e.errors)
    except DesignVaultError as e:
        return from_exception(e)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("AI handler error", error=str(e))
        return error("Internal server error", 500)


def _operation_response(
    status_code: int,
    remaining_free: int,
    result_url: str | None = None,
    cached: bool = False,
    error_key: str | None = None,
    message: str | None = None,
    **extra: Any,
) -> dict:
    body: dict[str, Any] = {
        "success": error_key is None,
        "resultUrl": result_url,
        "remainingFree": remaining_free,
        "cached": cached,
    }
    if error_key:
        body["error"] = error_key
        body["message"] = message
    body.update(extra)
    return success(body, status_code=status_code)


def perform_operation(kind: OperationKind, event: dict) -> dict:
    """Run a metered operation and map its outcome to the widget's wire format."""
    client_ip = get_client_ip(event)
    rate_check = check_rate_limit(
        identifier=client_ip,
        action="ai",
        requests_per_minute=AI_REQUESTS_PER_MINUTE,
        requests_per_hour=AI_REQUESTS_PER_HOUR,
    )
    if not rate_check.allowed:
        return rate_limit_response(rate_check.retry_after or 60)

    body = parse_body(event)
    try:
        request = OperationRequest.model_validate(body)
    except PydanticValidationError as e:
        return validation_error(ValidationError.from_pydantic(e).errors)

    gateway = get_ai_gateway()
    try:
        result = gateway.perform_operation(request.session_id, kind, request)
    except CaptureRequiredError as e:
        return _operation_response(403, 0, error_key="needsCapture", message=e.message)
    except LimitReachedError as e:
        return _operation_response(429, 0, error_key="limitReached", message=e.message)
    except GenerationFailedError as e:
        return _operation_response(
            502,
            e.details.get("remaining_free", 0),
            error_key="generationFailed",
            message=e.message,
        )
    except SessionNotFoundError as e:
        return _operation_response(404, 0, error_key="sessionNotFound", message=e.message)

    return _operation_response(
        200,
        result.remaining_free,
        result_url=result.result_url,
        cached=result.cached,
        operationId=result.modification.id,
    )


def enhance_prompt(event: dict) -> dict:
    """Rewrite a floor plan edit instruction before it is submitted."""
    client_ip = get_client_ip(event)
    rate_check = check_rate_limit(
        identifier=client_ip,
        action="enhance",
        requests_per_minute=AI_REQUESTS_PER_MINUTE,
        requests_per_hour=AI_REQUESTS_PER_HOUR * 3,
    )
    if not rate_check.allowed:
        return rate_limit_response(rate_check.retry_after or 60)

    try:
        request = EnhancePromptRequest.model_validate(parse_body(event))
    except PydanticValidationError as e:
        return validation_error(ValidationError.from_pydantic(e).errors)

    try:
        enhanced = get_ai_gateway().enhance_prompt(request.prompt, request.image_url)
    except ExternalServiceError as e:
        logger.warning("Prompt enhancement unavailable", error=e.message)
        enhanced = request.prompt

    return success({"enhancedPrompt": enhanced})


def add_wishlist_item(event: dict) -> dict:
    """Record a wishlist note against a session."""
    try:
        request = WishlistRequest.model_validate(parse_body(event))
    except PydanticValidationError as e:
        return validation_error(ValidationError.from_pydantic(e).errors)

    session = get_ai_gateway().add_wishlist_item(request.session_id, request.note)
    return success({
        "success": True,
        "sessionId": session.id,
        "modificationCount": len(session.modifications),
    })
