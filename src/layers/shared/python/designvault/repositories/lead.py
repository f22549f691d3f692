"""Lead repository for DynamoDB operations."""

import structlog
from boto3.dynamodb.conditions import Attr

from designvault.models.lead import Lead
from designvault.repositories.base import BaseRepository

logger = structlog.get_logger()


class LeadRepository(BaseRepository[Lead]):
    """Repository for Lead entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize lead repository."""
        super().__init__(Lead, table_name)

    def get_by_email(self, builder_slug: str, email: str) -> Lead | None:
        """Get lead by email using GSI1.

        Args:
            builder_slug: The builder slug.
            email: The email address.

        Returns:
            Lead or None if not found.
        """
        email = email.strip().lower()
        items, _ = self.query_gsi1(
            f"BUILDER#{builder_slug}#EMAIL",
            sk_begins_with=email,
            filter_expression=Attr("email").eq(email),
        )
        return Lead.from_dynamodb(items[0]) if items else None

    def upsert_by_email(self, lead: Lead) -> Lead:
        """Create a lead, or refresh the existing lead with the same email.

        The existing lead keeps its id so every capture by the same person
        references one contact.

        Args:
            lead: Lead built from the submitted contact info.

        Returns:
            The stored lead.
        """
        existing = self.get_by_email(lead.builder_slug, lead.email)
        if existing is None:
            stored = self.create(lead)
            logger.info("Lead created", lead_id=stored.id, builder_slug=stored.builder_slug)
            return stored

        refreshed = lead.model_copy(update={"id": existing.id, "created_at": existing.created_at})
        self.put(refreshed)
        logger.info("Lead updated", lead_id=refreshed.id, builder_slug=refreshed.builder_slug)
        return refreshed
