"""Design session model: one visitor browsing one plan for one builder.

A session is the unit the usage ledger meters. Sessions that share an
(anonymous_id, builder_slug) pair belong to the same visitor and are
aggregated for quota purposes.

DynamoDB keys:
    PK: SESSION#{id}
    SK: META
    GSI1PK: BUILDER#{builder_slug}#ANON#{anonymous_id}
    GSI1SK: SESSION#{created_at}#{id}
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from designvault.models.base import BaseModel, generate_ulid, utc_now


class ModificationType(str, Enum):
    """Kinds of recorded session modifications."""

    STYLE_SWAP = "style_swap"
    FLOOR_PLAN_EDIT = "floor_plan_edit"
    WISHLIST_ITEM = "wishlist_item"


class Modification(PydanticBaseModel):
    """One recorded outcome of an AI operation or a wishlist note.

    Immutable once appended to a session.
    """

    id: str = Field(default_factory=generate_ulid, description="Operation ID (idempotency key)")
    type: ModificationType
    prompt: str | None = None
    style_preset: str | None = None
    result_url: str = ""
    original_url: str = ""
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(
        frozen=True,
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


def visitor_index_key(anonymous_id: str, builder_slug: str) -> str:
    """GSI1 partition key grouping every session of one visitor on one builder site."""
    return f"BUILDER#{builder_slug}#ANON#{anonymous_id}"


class DesignSession(BaseModel):
    """Browsing session persisted in the usage ledger."""

    _pk_prefix: ClassVar[str] = "SESSION#"
    _sk_prefix: ClassVar[str] = "META"

    anonymous_id: str = Field(..., min_length=1, max_length=200)
    builder_slug: str = Field(..., min_length=1, max_length=100)
    plan_id: str = Field(..., min_length=1, max_length=200)

    interaction_count: int = Field(default=0, ge=0)
    is_captured: bool = False
    contact_id: str | None = None
    captured_at: datetime | None = None

    modifications: list[Modification] = Field(default_factory=list)

    def get_pk(self) -> str:
        """Get partition key: SESSION#{id}."""
        return f"SESSION#{self.id}"

    def get_sk(self) -> str:
        """Get sort key: META."""
        return "META"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for visitor-level aggregation."""
        return {
            "GSI1PK": visitor_index_key(self.anonymous_id, self.builder_slug),
            "GSI1SK": f"SESSION#{self.created_at.isoformat()}#{self.id}",
        }

    def find_modification(self, operation_id: str) -> Modification | None:
        """Get a recorded modification by its operation ID."""
        return next((mod for mod in self.modifications if mod.id == operation_id), None)


class CreateSessionRequest(PydanticBaseModel):
    """Request body for POST /api/sessions."""

    plan_id: str = Field(..., alias="planId", min_length=1, max_length=200)
    builder_slug: str = Field(..., alias="builderSlug", min_length=1, max_length=100)
    anonymous_id: str = Field(..., alias="anonymousId", min_length=1, max_length=200)

    model_config = {"populate_by_name": True}


class SessionSnapshot(PydanticBaseModel):
    """Authoritative usage state returned to the client.

    The widget keeps its own counter for responsive UI; this snapshot is what
    it reconciles against.
    """

    session_id: str = Field(..., serialization_alias="sessionId")
    total_interaction_count: int = Field(..., serialization_alias="totalInteractionCount")
    is_captured: bool = Field(..., serialization_alias="isCaptured")
    remaining_free: int = Field(..., serialization_alias="remainingFree")
