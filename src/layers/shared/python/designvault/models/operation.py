"""Request models for AI operations and wishlist notes."""

from enum import Enum

from pydantic import AliasChoices, BaseModel as PydanticBaseModel, Field, field_validator

IMAGE_TYPES = ("exterior", "interior")


class OperationKind(str, Enum):
    """Metered AI operations."""

    STYLE_SWAP = "style_swap"
    FLOOR_PLAN_EDIT = "floor_plan_edit"


class OperationRequest(PydanticBaseModel):
    """Request body for POST /api/style-swap and POST /api/floor-plan-edit."""

    session_id: str = Field(..., alias="sessionId", min_length=1)
    source_image_url: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("sourceImageUrl", "imageUrl", "currentFloorPlanUrl"),
    )
    preset: str | None = None
    image_type: str = Field(default="exterior", alias="imageType")
    prompt: str | None = Field(None, max_length=2000)
    # Client-generated operation ID; replays with the same ID are recorded once
    operation_id: str | None = Field(None, alias="operationId", max_length=64)

    model_config = {"populate_by_name": True}

    @field_validator("image_type")
    @classmethod
    def validate_image_type(cls, v: str) -> str:
        if v not in IMAGE_TYPES:
            raise ValueError(f"Must be one of: {', '.join(IMAGE_TYPES)}")
        return v


class WishlistRequest(PydanticBaseModel):
    """Request body for POST /api/wishlist."""

    session_id: str = Field(..., alias="sessionId", min_length=1)
    note: str = Field(..., min_length=1, max_length=1000)

    model_config = {"populate_by_name": True}

    @field_validator("note")
    @classmethod
    def require_note(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("This field is required")
        return v


class EnhancePromptRequest(PydanticBaseModel):
    """Request body for POST /api/enhance-prompt."""

    prompt: str = Field(..., min_length=1, max_length=2000)
    image_url: str | None = Field(None, alias="imageUrl")

    model_config = {"populate_by_name": True}
