"""Builder (tenant) configuration model."""

from pydantic import BaseModel as PydanticBaseModel, Field


class BuilderConfig(PydanticBaseModel):
    """Per-builder settings for the embedded widget.

    Not persisted; builders are registered in code and tuned by environment.
    """

    slug: str
    name: str
    webhook_url: str | None = Field(None, description="Builder CRM lead webhook")
    webhook_api_key: str | None = Field(None, description="Sent as x-api-key when set")
    brand_color: str = "#000000"
    max_free_interactions: int | None = Field(
        None, ge=0, description="Overrides MAX_FREE_INTERACTIONS for this builder"
    )
