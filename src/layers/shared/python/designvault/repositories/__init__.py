"""Repository classes for DynamoDB data access."""

from designvault.repositories.base import BaseRepository
from designvault.repositories.design_cache import DesignCacheRepository
from designvault.repositories.design_session import DesignSessionRepository
from designvault.repositories.lead import LeadRepository

__all__ = [
    "BaseRepository",
    "DesignCacheRepository",
    "DesignSessionRepository",
    "LeadRepository",
]
