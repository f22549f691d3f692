"""Lead model for captured visitor contact information."""

import re
from typing import ClassVar

from pydantic import BaseModel as PydanticBaseModel, Field, field_validator

from designvault.models.base import BaseModel

EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

MIN_PHONE_DIGITS = 10

LEAD_SOURCE = "floor_plan_archive"


def phone_digits(phone: str) -> str:
    """Strip everything but digits from a phone number."""
    return re.sub(r"\D", "", phone or "")


class Lead(BaseModel):
    """Captured contact for one builder.

    The lead id is the contact reference stamped onto captured sessions.

    Key Pattern:
        PK: BUILDER#{builder_slug}
        SK: LEAD#{id}
        GSI1PK: BUILDER#{builder_slug}#EMAIL
        GSI1SK: {email}
    """

    _pk_prefix: ClassVar[str] = "BUILDER#"
    _sk_prefix: ClassVar[str] = "LEAD#"

    builder_slug: str
    anonymous_id: str
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    email: str
    phone: str
    source: str = LEAD_SOURCE

    # Ad attribution forwarded from the widget
    fbclid: str | None = None
    fbp: str | None = None
    fbc: str | None = None
    client_user_agent: str | None = None
    client_ip_address: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase for consistent lookups."""
        return v.strip().lower()

    def get_pk(self) -> str:
        """Get partition key: BUILDER#{builder_slug}."""
        return f"BUILDER#{self.builder_slug}"

    def get_sk(self) -> str:
        """Get sort key: LEAD#{id}."""
        return f"LEAD#{self.id}"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for email lookup."""
        return {
            "GSI1PK": f"BUILDER#{self.builder_slug}#EMAIL",
            "GSI1SK": self.email,
        }

    @property
    def full_name(self) -> str:
        """Get full name of the lead."""
        return f"{self.first_name} {self.last_name}".strip()


class ContactInfo(PydanticBaseModel):
    """Contact fields submitted through the capture form.

    Validation errors are reported per field so the widget can show them
    inline next to the offending input.
    """

    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: str
    phone: str

    # Optional attribution and browsing context
    fbclid: str | None = None
    fbp: str | None = None
    fbc: str | None = None
    client_user_agent: str | None = None
    favorites: list[str] = Field(default_factory=list)
    style_pref: str | None = Field(None, alias="stylePref")
    session_duration: int = Field(default=0, alias="sessionDuration", ge=0)

    model_config = {"populate_by_name": True}

    @field_validator("first_name", "last_name")
    @classmethod
    def require_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("This field is required")
        if len(v) > 100:
            raise ValueError("Must be 100 characters or fewer")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not EMAIL_REGEX.match(v):
            raise ValueError("Enter a valid email address")
        return v.lower()

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        v = v.strip()
        if len(phone_digits(v)) < MIN_PHONE_DIGITS:
            raise ValueError(f"Phone number must have at least {MIN_PHONE_DIGITS} digits")
        return v


class CaptureRequest(PydanticBaseModel):
    """Request body for POST /api/save-design."""

    session_id: str = Field(..., alias="sessionId", min_length=1)
    builder_slug: str | None = Field(None, alias="builderSlug")
    lead_data: dict = Field(..., alias="leadData")

    model_config = {"populate_by_name": True}
