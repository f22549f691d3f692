"""Custom exception classes for DesignVault."""


class DesignVaultError(Exception):
    """Base exception for all DesignVault errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
    ):
        """Initialize DesignVaultError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP status code for API responses.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API response."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(DesignVaultError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        """Initialize NotFoundError.

        Args:
            resource_type: Type of resource (e.g., "Session", "Lead").
            resource_id: ID of the resource that was not found.
            message: Optional custom message.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=message or f"{resource_type} with ID '{resource_id}' not found",
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class SessionNotFoundError(NotFoundError):
    """Raised when a session id does not resolve to a persisted session.

    The client should start a new session rather than retry.
    """

    def __init__(self, session_id: str):
        super().__init__(
            "Session",
            session_id,
            message="This design session has expired. Please reopen the plan.",
        )
        self.error_code = "SESSION_NOT_FOUND"


class ValidationError(DesignVaultError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[dict] | None = None,
    ):
        """Initialize ValidationError.

        Args:
            message: Error message.
            errors: List of validation errors with field and message.
        """
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
        )

    @property
    def fields(self) -> dict[str, str]:
        """Map of field name to first error message."""
        result: dict[str, str] = {}
        for err in self.errors:
            result.setdefault(err["field"], err["message"])
        return result

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Create ValidationError from Pydantic ValidationError."""
        errors = []
        if hasattr(exc, "errors"):
            for error in exc.errors():
                message = error.get("msg", "Invalid value")
                # Strip pydantic's prefix from custom validator messages
                if message.startswith("Value error, "):
                    message = message[len("Value error, "):]
                errors.append(
                    {
                        "field": ".".join(str(loc) for loc in error.get("loc", [])),
                        "message": message,
                        "type": error.get("type", "unknown"),
                    }
                )
        return cls(message="Validation failed", errors=errors)


class ConflictError(DesignVaultError):
    """Raised when there's a conflict (e.g., duplicate write, lost conditional update)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        conflict_type: str | None = None,
    ):
        """Initialize ConflictError."""
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details={"conflict_type": conflict_type} if conflict_type else None,
        )


class RateLimitError(DesignVaultError):
    """Raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
    ):
        """Initialize RateLimitError."""
        details = {}
        if retry_after:
            details["retry_after_seconds"] = retry_after

        super().__init__(
            message=message,
            error_code="RATE_LIMIT_EXCEEDED",
            status_code=429,
            details=details if details else None,
        )


class ExternalServiceError(DesignVaultError):
    """Raised when an external service call fails."""

    def __init__(
        self,
        service: str,
        message: str | None = None,
        original_error: str | None = None,
        error_code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        """Initialize ExternalServiceError."""
        self.service = service
        super().__init__(
            message=message or f"External service '{service}' returned an error",
            error_code=error_code,
            status_code=502,
            details={
                "service": service,
                "original_error": original_error,
            },
        )


class GenerationFailedError(ExternalServiceError):
    """Image generation failed: transport error, non-2xx status, or no usable result.

    Never consumes quota; the client may retry immediately.
    """

    def __init__(self, reason: str, original_error: str | None = None):
        self.reason = reason
        super().__init__(
            service="n8n",
            message="Design generation failed. Please try again.",
            original_error=original_error or reason,
            error_code="GENERATION_FAILED",
        )


class CrmForwardingFailed(ExternalServiceError):
    """Builder CRM webhook rejected or never received a lead.

    Logged by the capture flow, never raised to the caller.
    """

    def __init__(self, builder_slug: str, original_error: str | None = None):
        self.builder_slug = builder_slug
        super().__init__(
            service="crm",
            message=f"Lead forwarding to '{builder_slug}' CRM failed",
            original_error=original_error,
            error_code="CRM_FORWARDING_FAILED",
        )


class CaptureRequiredError(DesignVaultError):
    """The free quota is used up; the visitor must submit contact info, then retry."""

    def __init__(self, session_id: str, aggregate_count: int):
        self.session_id = session_id
        self.aggregate_count = aggregate_count
        super().__init__(
            message="Save your design to unlock more AI tools.",
            error_code="CAPTURE_REQUIRED",
            status_code=403,
            details={"aggregate_count": aggregate_count},
        )


class LimitReachedError(DesignVaultError):
    """The hard ceiling for this visitor and builder is reached. Terminal."""

    def __init__(self, session_id: str, aggregate_count: int, hard_limit: int):
        self.session_id = session_id
        self.aggregate_count = aggregate_count
        self.hard_limit = hard_limit
        super().__init__(
            message="You've used all of your AI design credits. Book a consultation to keep designing.",
            error_code="LIMIT_REACHED",
            status_code=429,
            details={"aggregate_count": aggregate_count, "hard_limit": hard_limit},
        )
