"""Lead capture API handler (public, no authentication required)."""

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from designvault.models.lead import CaptureRequest
from designvault.services.capture_coordinator import get_capture_coordinator
from designvault.utils.exceptions import DesignVaultError, ValidationError
from designvault.utils.rate_limiter import (
    CAPTURE_REQUESTS_PER_HOUR,
    CAPTURE_REQUESTS_PER_MINUTE,
    check_rate_limit,
    get_client_ip,
    rate_limit_response,
)
from designvault.utils.responses import error, from_exception, options, parse_body, success, validation_error

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle lead capture requests.

    Routes:
        POST /api/save-design  - Capture contact info and unlock more operations
    """
    try:
        http_method = event.get("httpMethod", "").upper()

        if http_method == "OPTIONS":
            return options()
        if http_method == "POST":
            return save_design(event)
        return error("Not found", 404)

    except ValidationError as e:
        return validation_error(e.errors)
    except DesignVaultError as e:
        return from_exception(e)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Leads handler error", error=str(e))
        return error("Internal server error", 500)


def save_design(event: dict) -> dict:
    """Capture the visitor's contact details.

    Invalid contact fields come back as a 400 with one entry per field in
    details.errors, keyed by the form field name (firstName, phone, ...).
    """
    client_ip = get_client_ip(event)
    rate_check = check_rate_limit(
        identifier=client_ip,
        action="capture",
        requests_per_minute=CAPTURE_REQUESTS_PER_MINUTE,
        requests_per_hour=CAPTURE_REQUESTS_PER_HOUR,
    )
    if not rate_check.allowed:
        return rate_limit_response(rate_check.retry_after or 60)

    try:
        request = CaptureRequest.model_validate(parse_body(event))
    except PydanticValidationError as e:
        return validation_error(ValidationError.from_pydantic(e).errors)

    headers = event.get("headers", {}) or {}
    lead_data = dict(request.lead_data)
    lead_data.setdefault("client_user_agent", headers.get("User-Agent") or headers.get("user-agent"))

    result = get_capture_coordinator().capture(
        request.session_id,
        lead_data,
        client_ip=client_ip if client_ip != "unknown" else None,
    )

    return success({"success": True, "alreadyCaptured": result.already_captured})
