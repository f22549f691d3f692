"""AI operation gateway: resolve, meter, generate, record.

The ledger is only written after a result URL is in hand, so a failed or
abandoned generation never consumes quota. Two requests from the same
visitor racing through the metering check may both be allowed; quota is a
UX nudge, not a security boundary, and no locking is attempted.
"""

import hashlib
from dataclasses import dataclass

import structlog
from botocore.exceptions import ClientError

from designvault.models.design_cache import DesignCacheEntry
from designvault.models.design_session import DesignSession, Modification, ModificationType
from designvault.models.operation import OperationKind, OperationRequest
from designvault.repositories.design_cache import DesignCacheRepository
from designvault.repositories.design_session import DesignSessionRepository
from designvault.services.builders import get_metering_config
from designvault.services.identity_resolver import IdentityResolver
from designvault.services.image_generator import (
    FLOOR_PLAN_EDIT_WEBHOOK_PATH,
    STYLE_SWAP_WEBHOOK_PATH,
    ImageGenerator,
)
from designvault.services.metering_policy import (
    MeteringConfig,
    MeteringDecision,
    compute_remaining,
    decide_for,
)
from designvault.services.style_presets import build_style_prompt, is_known_preset
from designvault.utils.exceptions import (
    CaptureRequiredError,
    GenerationFailedError,
    LimitReachedError,
    ValidationError,
)

logger = structlog.get_logger()


@dataclass
class OperationResult:
    """Outcome of a successful metered operation."""

    modification: Modification
    remaining_free: int
    cached: bool
    session: DesignSession
    replayed: bool = False

    @property
    def result_url(self) -> str:
        return self.modification.result_url


def style_cache_params(preset: str, image_type: str, source_image_url: str) -> str:
    """Cache sort-key suffix for a style swap of one source image."""
    fingerprint = hashlib.sha1(source_image_url.encode("utf-8")).hexdigest()[:12]
    return f"{preset}#{image_type}#{fingerprint}"


def _validate_request(kind: OperationKind, request: OperationRequest) -> None:
    errors = []
    if kind == OperationKind.STYLE_SWAP:
        if not request.preset:
            errors.append({"field": "preset", "message": "This field is required"})
        elif not is_known_preset(request.preset):
            errors.append({"field": "preset", "message": f"Unknown style preset '{request.preset}'"})
    elif not (request.prompt or "").strip():
        errors.append({"field": "prompt", "message": "This field is required"})

    if errors:
        raise ValidationError(errors=errors)


class AIOperationGateway:
    """Entry point for metered AI operations."""

    def __init__(
        self,
        resolver: IdentityResolver | None = None,
        session_repo: DesignSessionRepository | None = None,
        generator: ImageGenerator | None = None,
        cache_repo: DesignCacheRepository | None = None,
    ):
        """Initialize the gateway.

        Args:
            resolver: Identity resolver (shares session_repo when omitted).
            session_repo: Usage ledger.
            generator: n8n image generation client.
            cache_repo: Design cache for style swaps.
        """
        self.session_repo = session_repo or DesignSessionRepository()
        self.resolver = resolver or IdentityResolver(self.session_repo)
        self.generator = generator or ImageGenerator()
        self.cache_repo = cache_repo or DesignCacheRepository()

    def perform_operation(
        self,
        session_id: str,
        kind: OperationKind | str,
        request: OperationRequest,
    ) -> OperationResult:
        """Run one metered AI operation.

        A retry carrying an operation ID the ledger already holds returns the
        recorded modification without generating or counting again.

        Args:
            session_id: Session the operation belongs to.
            kind: style_swap or floor_plan_edit.
            request: Operation parameters.

        Returns:
            OperationResult with the recorded modification.

        Raises:
            ValidationError: If the parameters do not fit the operation kind.
            SessionNotFoundError: If the session does not exist.
            CaptureRequiredError: If the free quota is used up.
            LimitReachedError: If the hard limit is reached.
            GenerationFailedError: If generation failed; quota is not consumed.
        """
        kind = OperationKind(kind)
        _validate_request(kind, request)

        session = self.resolver.resolve_session(session_id)
        count = self.session_repo.sum_interaction_count(session.anonymous_id, session.builder_slug)
        config = get_metering_config(session.builder_slug)

        if request.operation_id:
            recorded = session.find_modification(request.operation_id)
            if recorded is not None:
                return self._replay(session, recorded, count, config)

        decision = decide_for(count, session.is_captured, config)
        if decision == MeteringDecision.REQUIRE_CAPTURE:
            logger.info("Capture required", session_id=session.id, aggregate_count=count)
            raise CaptureRequiredError(session.id, count)
        if decision == MeteringDecision.DENY:
            logger.info(
                "Interaction limit reached",
                session_id=session.id,
                aggregate_count=count,
                hard_limit=config.hard_limit,
            )
            raise LimitReachedError(session.id, count, config.hard_limit)

        try:
            if kind == OperationKind.STYLE_SWAP:
                result_url, cached = self._style_swap(session, request)
            else:
                result_url = self.generator.generate_image(
                    FLOOR_PLAN_EDIT_WEBHOOK_PATH,
                    {
                        "currentFloorPlanUrl": request.source_image_url,
                        "editPrompt": request.prompt.strip(),
                    },
                )
                cached = False
        except GenerationFailedError as e:
            logger.warning(
                "Generation failed, quota not consumed",
                session_id=session.id,
                operation=kind.value,
                reason=e.reason,
            )
            e.details["remaining_free"] = compute_remaining(count, session.is_captured, config)
            raise

        modification = Modification(
            type=kind.value,
            style_preset=request.preset if kind == OperationKind.STYLE_SWAP else None,
            prompt=request.prompt.strip() if kind == OperationKind.FLOOR_PLAN_EDIT else None,
            result_url=result_url,
            original_url=request.source_image_url,
            **({"id": request.operation_id} if request.operation_id else {}),
        )

        try:
            updated = self.session_repo.append_modification_and_increment(session.id, modification)
        except ClientError:
            # The image exists but the ledger does not know about it
            logger.error(
                "Ledger write failed after generation",
                session_id=session.id,
                operation_id=modification.id,
                result_url=result_url,
            )
            raise

        recorded = updated.find_modification(modification.id) if request.operation_id else None
        if recorded is not None and recorded.timestamp != modification.timestamp:
            # A concurrent request with the same operation ID was recorded first
            current = self.session_repo.sum_interaction_count(session.anonymous_id, session.builder_slug)
            return self._replay(updated, recorded, current, config)

        remaining = compute_remaining(count + 1, session.is_captured, config)

        logger.info(
            "AI operation completed",
            session_id=session.id,
            operation=kind.value,
            cached=cached,
            aggregate_count=count + 1,
            remaining_free=remaining,
        )

        return OperationResult(
            modification=modification,
            remaining_free=remaining,
            cached=cached,
            session=updated,
        )

    def _replay(
        self,
        session: DesignSession,
        recorded: Modification,
        count: int,
        config: MeteringConfig,
    ) -> OperationResult:
        """Answer a retried operation with what the ledger already holds."""
        remaining = compute_remaining(count, session.is_captured, config)
        logger.info(
            "Operation replayed",
            session_id=session.id,
            operation_id=recorded.id,
            aggregate_count=count,
            remaining_free=remaining,
        )
        return OperationResult(
            modification=recorded,
            remaining_free=remaining,
            cached=False,
            session=session,
            replayed=True,
        )

    def _style_swap(self, session: DesignSession, request: OperationRequest) -> tuple[str, bool]:
        """Serve a style swap from the design cache or generate it.

        Returns:
            (result_url, cached)
        """
        params = style_cache_params(request.preset, request.image_type, request.source_image_url)
        entry = self.cache_repo.lookup(session.plan_id, OperationKind.STYLE_SWAP.value, params)
        if entry is not None:
            self.cache_repo.record_hit(entry)
            logger.info("Design cache hit", plan_id=session.plan_id, preset=request.preset)
            return entry.result_url, True

        result_url = self.generator.generate_image(
            STYLE_SWAP_WEBHOOK_PATH,
            {
                "imageUrl": request.source_image_url,
                "prompt": build_style_prompt(request.preset, request.image_type),
                "planId": session.plan_id,
                "preset": request.preset,
                "imageType": request.image_type,
            },
        )

        try:
            self.cache_repo.store(
                DesignCacheEntry(
                    plan_id=session.plan_id,
                    action_type=OperationKind.STYLE_SWAP.value,
                    action_params=params,
                    result_url=result_url,
                )
            )
        except ClientError as e:
            logger.warning("Failed to cache design", plan_id=session.plan_id, error=str(e))

        return result_url, False

    def add_wishlist_item(self, session_id: str, note: str) -> DesignSession:
        """Record a wishlist note. Not metered.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = self.resolver.resolve_session(session_id)
        modification = Modification(type=ModificationType.WISHLIST_ITEM, prompt=note.strip())
        updated = self.session_repo.append_modification(session.id, modification)
        logger.info("Wishlist item added", session_id=session.id)
        return updated

    def enhance_prompt(self, prompt: str, image_url: str | None = None) -> str:
        """Rewrite a floor plan edit instruction. Not metered."""
        return self.generator.enhance_prompt(prompt, image_url)


def get_ai_gateway() -> AIOperationGateway:
    """Factory function for AIOperationGateway."""
    return AIOperationGateway()
