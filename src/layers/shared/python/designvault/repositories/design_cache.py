"""Design cache repository for reusable style-swap results."""

import structlog
from botocore.exceptions import ClientError

from designvault.models.design_cache import DesignCacheEntry
from designvault.repositories.base import BaseRepository
from designvault.utils.exceptions import ConflictError

logger = structlog.get_logger()


class DesignCacheRepository(BaseRepository[DesignCacheEntry]):
    """Repository for DesignCacheEntry entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize design cache repository."""
        super().__init__(DesignCacheEntry, table_name)

    def lookup(self, plan_id: str, action_type: str, action_params: str) -> DesignCacheEntry | None:
        """Get a cached result for a plan and action."""
        return self.get(
            pk=f"PLAN#{plan_id}",
            sk=f"CACHE#{action_type}#{action_params}",
            consistent=False,
        )

    def store(self, entry: DesignCacheEntry) -> None:
        """Store a result; an entry written concurrently for the same key wins."""
        try:
            self.create(entry)
        except ConflictError:
            logger.debug("Cache entry already present", plan_id=entry.plan_id, params=entry.action_params)

    def record_hit(self, entry: DesignCacheEntry) -> None:
        """Increment the hit counter. Failures are logged and ignored."""
        try:
            self.table.update_item(
                Key=entry.get_keys(),
                UpdateExpression="ADD hit_count :one",
                ExpressionAttributeValues={":one": 1},
            )
        except ClientError as e:
            logger.warning("Failed to record cache hit", plan_id=entry.plan_id, error=str(e))
