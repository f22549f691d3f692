"""Design cache model for reusable style-swap results.

DynamoDB keys:
    PK: PLAN#{plan_id}
    SK: CACHE#{action_type}#{action_params}
"""

from typing import ClassVar

from pydantic import Field

from designvault.models.base import BaseModel


class DesignCacheEntry(BaseModel):
    """A generated image that can be served again for the same plan and preset."""

    _pk_prefix: ClassVar[str] = "PLAN#"
    _sk_prefix: ClassVar[str] = "CACHE#"

    plan_id: str
    action_type: str
    action_params: str
    result_url: str = Field(..., min_length=1)
    hit_count: int = 0

    def get_pk(self) -> str:
        """Get partition key: PLAN#{plan_id}."""
        return f"PLAN#{self.plan_id}"

    def get_sk(self) -> str:
        """Get sort key: CACHE#{action_type}#{action_params}."""
        return f"CACHE#{self.action_type}#{self.action_params}"
