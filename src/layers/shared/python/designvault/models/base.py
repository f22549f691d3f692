"""Base Pydantic models with DynamoDB serialization."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, ClassVar, Self

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field
from ulid import ULID

# Only these attributes are parsed back into datetimes; free-text fields such
# as prompts must round-trip as plain strings.
_DATETIME_SUFFIXES = ("_at", "timestamp")


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class TimestampMixin(PydanticBaseModel):
    """Mixin for created_at and updated_at timestamps."""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class BaseModel(TimestampMixin):
    """Base model for persisted entities.

    Subclasses define their key pattern through get_pk()/get_sk() and,
    where they are reachable through the secondary index, get_gsi1_keys().
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
    )

    id: str = Field(default_factory=generate_ulid)

    _pk_prefix: ClassVar[str] = ""
    _sk_prefix: ClassVar[str] = ""

    def to_dynamodb(self) -> dict[str, Any]:
        """Serialize model to a DynamoDB item (keys included)."""
        data = self.model_dump(mode="json")
        item = self._serialize_value(data)
        item.update(self.get_keys())
        gsi_keys = self.get_gsi1_keys()
        if gsi_keys:
            item.update(gsi_keys)
        return item

    @classmethod
    def _serialize_value(cls, value: Any) -> Any:
        """Recursively serialize values for DynamoDB.

        Drops None values, converts floats to Decimal and datetimes to ISO strings.
        """
        if isinstance(value, dict):
            return {k: cls._serialize_value(v) for k, v in value.items() if v is not None}
        if isinstance(value, list):
            return [cls._serialize_value(item) for item in value]
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    @classmethod
    def from_dynamodb(cls, item: dict[str, Any]) -> Self:
        """Deserialize a DynamoDB item, ignoring key attributes."""
        data = {
            k: v
            for k, v in item.items()
            if k not in ("PK", "SK", "GSI1PK", "GSI1SK")
        }
        return cls.model_validate(cls._deserialize_value(data))

    @classmethod
    def _deserialize_value(cls, value: Any, key: str = "") -> Any:
        """Recursively deserialize values from DynamoDB.

        Converts Decimals back to int/float, sets to sorted lists and
        timestamp attributes back to datetimes.
        """
        if isinstance(value, dict):
            return {k: cls._deserialize_value(v, k) for k, v in value.items()}
        if isinstance(value, (list, set)):
            items = sorted(value) if isinstance(value, set) else value
            return [cls._deserialize_value(item, key) for item in items]
        if isinstance(value, Decimal):
            if value % 1 == 0:
                return int(value)
            return float(value)
        if isinstance(value, str) and key.endswith(_DATETIME_SUFFIXES):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return value
        return value

    def get_pk(self) -> str:
        """Get the partition key for this entity."""
        raise NotImplementedError("Subclasses must implement get_pk()")

    def get_sk(self) -> str:
        """Get the sort key for this entity."""
        raise NotImplementedError("Subclasses must implement get_sk()")

    def get_keys(self) -> dict[str, str]:
        """Get both PK and SK as a dictionary."""
        return {"PK": self.get_pk(), "SK": self.get_sk()}

    def get_gsi1_keys(self) -> dict[str, str] | None:
        """Get GSI1 keys, if this entity is indexed."""
        return None

    def update_timestamp(self) -> None:
        """Update the updated_at timestamp to now."""
        self.updated_at = utc_now()
