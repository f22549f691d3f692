"""Utility functions and helpers."""

from designvault.utils.exceptions import (
    CaptureRequiredError,
    ConflictError,
    CrmForwardingFailed,
    DesignVaultError,
    ExternalServiceError,
    GenerationFailedError,
    LimitReachedError,
    NotFoundError,
    SessionNotFoundError,
    ValidationError,
)
from designvault.utils.responses import created, error, from_exception, success, validation_error

__all__ = [
    # Response helpers
    "success",
    "created",
    "error",
    "from_exception",
    "validation_error",
    # Exceptions
    "CaptureRequiredError",
    "ConflictError",
    "CrmForwardingFailed",
    "DesignVaultError",
    "ExternalServiceError",
    "GenerationFailedError",
    "LimitReachedError",
    "NotFoundError",
    "SessionNotFoundError",
    "ValidationError",
]
