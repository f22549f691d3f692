"""Service classes for business logic."""

from designvault.services.ai_gateway import AIOperationGateway, OperationResult, get_ai_gateway
from designvault.services.builders import get_builder, get_metering_config
from designvault.services.capture_coordinator import (
    CaptureCoordinator,
    CaptureResult,
    get_capture_coordinator,
)
from designvault.services.identity_resolver import IdentityResolver
from designvault.services.image_generator import ImageGenerator, extract_result_url, get_image_generator
from designvault.services.lead_forwarder import LeadForwarder
from designvault.services.metering_policy import (
    MeteringConfig,
    MeteringDecision,
    compute_remaining,
    decide,
)

__all__ = [
    "AIOperationGateway",
    "CaptureCoordinator",
    "CaptureResult",
    "IdentityResolver",
    "ImageGenerator",
    "LeadForwarder",
    "MeteringConfig",
    "MeteringDecision",
    "OperationResult",
    "compute_remaining",
    "decide",
    "extract_result_url",
    "get_ai_gateway",
    "get_builder",
    "get_capture_coordinator",
    "get_image_generator",
    "get_metering_config",
]
