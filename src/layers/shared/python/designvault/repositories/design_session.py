"""Design session repository: the usage ledger.

All mutation of session state goes through the conditional UpdateItem calls
in this module, so each write is atomic per session item. There is no
cross-item transaction: an aggregate read may miss an increment that lands
concurrently on a sibling session.
"""

from datetime import datetime

import structlog
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from designvault.models.base import BaseModel, utc_now
from designvault.models.design_session import DesignSession, Modification, visitor_index_key
from designvault.repositories.base import BaseRepository, is_conditional_check_failure
from designvault.utils.exceptions import SessionNotFoundError

logger = structlog.get_logger()


def _serialize_modification(modification: Modification) -> dict:
    """Convert a modification into a DynamoDB map."""
    return BaseModel._serialize_value(modification.model_dump(mode="json"))


class DesignSessionRepository(BaseRepository[DesignSession]):
    """Repository for DesignSession entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize design session repository."""
        super().__init__(DesignSession, table_name)

    def _key(self, session_id: str) -> dict[str, str]:
        return {"PK": f"SESSION#{session_id}", "SK": "META"}

    def get_session(self, session_id: str) -> DesignSession | None:
        """Get a session by ID (strongly consistent).

        Args:
            session_id: The session ID.

        Returns:
            DesignSession or None if not found.
        """
        return self.get(pk=f"SESSION#{session_id}", sk="META")

    def create_session(self, session: DesignSession) -> DesignSession:
        """Persist a new session.

        Args:
            session: The session to create.

        Returns:
            The created session.
        """
        created = self.create(session)
        logger.info(
            "Design session created",
            session_id=session.id,
            builder_slug=session.builder_slug,
            plan_id=session.plan_id,
            is_captured=session.is_captured,
        )
        return created

    def list_visitor_sessions(self, anonymous_id: str, builder_slug: str) -> list[DesignSession]:
        """List every session of one visitor on one builder site, oldest first."""
        items = self.query_gsi1_all(visitor_index_key(anonymous_id, builder_slug))
        return [DesignSession.from_dynamodb(item) for item in items]

    def sum_interaction_count(self, anonymous_id: str, builder_slug: str) -> int:
        """Sum interaction_count over all sessions of a visitor on a builder site.

        Reads through GSI1, so the total may lag a write made a moment ago.

        Args:
            anonymous_id: Visitor's anonymous ID.
            builder_slug: Builder slug.

        Returns:
            Aggregate interaction count.
        """
        items = self.query_gsi1_all(
            visitor_index_key(anonymous_id, builder_slug),
            projection="interaction_count",
        )
        return sum(int(item.get("interaction_count", 0)) for item in items)

    def find_captured_sibling(
        self,
        anonymous_id: str,
        builder_slug: str,
        exclude_session_id: str | None = None,
    ) -> DesignSession | None:
        """Find the earliest captured session of a visitor on a builder site.

        Args:
            anonymous_id: Visitor's anonymous ID.
            builder_slug: Builder slug.
            exclude_session_id: Session to skip (usually the caller's own).

        Returns:
            The captured session, or None if the visitor never converted.
        """
        items = self.query_gsi1_all(
            visitor_index_key(anonymous_id, builder_slug),
            filter_expression=Attr("is_captured").eq(True),
        )
        for item in items:
            if item.get("id") != exclude_session_id:
                return DesignSession.from_dynamodb(item)
        return None

    def append_modification_and_increment(
        self,
        session_id: str,
        modification: Modification,
    ) -> DesignSession:
        """Append one modification and add 1 to interaction_count atomically.

        Idempotent per modification.id: replaying the same operation returns
        the stored session without a second increment.

        Args:
            session_id: The session ID.
            modification: The modification to append.

        Returns:
            The updated session.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        return self._append(session_id, modification, metered=True)

    def append_modification(self, session_id: str, modification: Modification) -> DesignSession:
        """Append a modification without touching interaction_count."""
        return self._append(session_id, modification, metered=False)

    def _append(self, session_id: str, modification: Modification, metered: bool) -> DesignSession:
        update_expr = (
            "SET modifications = list_append(if_not_exists(modifications, :empty), :mod), "
            "updated_at = :now ADD operation_ids :op_set"
        )
        expr_values = {
            ":empty": [],
            ":mod": [_serialize_modification(modification)],
            ":now": utc_now().isoformat(),
            ":op_set": {modification.id},
            ":op_id": modification.id,
        }
        if metered:
            update_expr += ", interaction_count :one"
            expr_values[":one"] = 1

        try:
            response = self.table.update_item(
                Key=self._key(session_id),
                UpdateExpression=update_expr,
                ConditionExpression="attribute_exists(PK) AND NOT contains(operation_ids, :op_id)",
                ExpressionAttributeValues=expr_values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if not is_conditional_check_failure(e):
                logger.error(
                    "DynamoDB append modification failed",
                    session_id=session_id,
                    operation_id=modification.id,
                    error=str(e),
                )
                raise
            existing = self.get_session(session_id)
            if existing is None:
                raise SessionNotFoundError(session_id)
            logger.warning(
                "Duplicate operation ignored",
                session_id=session_id,
                operation_id=modification.id,
            )
            return existing

        return DesignSession.from_dynamodb(response["Attributes"])

    def mark_captured(self, session_id: str, contact_id: str | None, captured_at: datetime) -> bool:
        """Mark one session captured. Never overwrites an earlier capture.

        Args:
            session_id: The session ID.
            contact_id: Captured contact reference.
            captured_at: Capture timestamp.

        Returns:
            True if this call captured the session, False if it already was.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        try:
            self.table.update_item(
                Key=self._key(session_id),
                UpdateExpression=(
                    "SET is_captured = :true, contact_id = :cid, "
                    "captured_at = :at, updated_at = :now"
                ),
                ConditionExpression="attribute_exists(PK) AND is_captured = :false",
                ExpressionAttributeValues={
                    ":true": True,
                    ":false": False,
                    ":cid": contact_id,
                    ":at": captured_at.isoformat(),
                    ":now": utc_now().isoformat(),
                },
            )
        except ClientError as e:
            if not is_conditional_check_failure(e):
                logger.error("DynamoDB mark captured failed", session_id=session_id, error=str(e))
                raise
            if self.get_session(session_id) is None:
                raise SessionNotFoundError(session_id)
            return False

        logger.info("Session captured", session_id=session_id, contact_id=contact_id)
        return True

    def backfill_captured(
        self,
        anonymous_id: str,
        builder_slug: str,
        contact_id: str | None,
        captured_at: datetime,
    ) -> int:
        """Copy capture status onto every not-yet-captured sibling session.

        Args:
            anonymous_id: Visitor's anonymous ID.
            builder_slug: Builder slug.
            contact_id: Captured contact reference.
            captured_at: Original capture timestamp.

        Returns:
            Number of sessions updated.
        """
        items = self.query_gsi1_all(
            visitor_index_key(anonymous_id, builder_slug),
            filter_expression=Attr("is_captured").eq(False),
            projection="PK",
        )

        updated = 0
        for item in items:
            session_id = item["PK"].split("#", 1)[1]
            if self.mark_captured(session_id, contact_id, captured_at):
                updated += 1

        logger.info(
            "Capture backfilled",
            builder_slug=builder_slug,
            anonymous_id=anonymous_id[:12],
            sessions_updated=updated,
        )
        return updated
