"""Pydantic models for DesignVault entities."""

from designvault.models.base import BaseModel, TimestampMixin
from designvault.models.builder import BuilderConfig
from designvault.models.design_cache import DesignCacheEntry
from designvault.models.design_session import (
    CreateSessionRequest,
    DesignSession,
    Modification,
    ModificationType,
    SessionSnapshot,
)
from designvault.models.lead import CaptureRequest, ContactInfo, Lead
from designvault.models.operation import (
    EnhancePromptRequest,
    OperationKind,
    OperationRequest,
    WishlistRequest,
)

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    # Builder
    "BuilderConfig",
    # Design cache
    "DesignCacheEntry",
    # Design session
    "CreateSessionRequest",
    "DesignSession",
    "Modification",
    "ModificationType",
    "SessionSnapshot",
    # Lead
    "CaptureRequest",
    "ContactInfo",
    "Lead",
    # Operations
    "EnhancePromptRequest",
    "OperationKind",
    "OperationRequest",
    "WishlistRequest",
]
