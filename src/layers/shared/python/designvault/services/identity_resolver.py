"""Visitor identity and session resolution.

A visitor is the (anonymous_id, builder_slug) pair; each plan they open
gets its own session. Capture achieved on any one session unlocks all of
them, so resolution checks siblings and copies capture status forward.
"""

import structlog

from designvault.models.base import utc_now
from designvault.models.design_session import DesignSession, SessionSnapshot
from designvault.repositories.design_session import DesignSessionRepository
from designvault.services.builders import get_metering_config
from designvault.services.metering_policy import compute_remaining
from designvault.utils.exceptions import SessionNotFoundError

logger = structlog.get_logger()


class IdentityResolver:
    """Resolves sessions and merges capture status across a visitor's sessions."""

    def __init__(self, session_repo: DesignSessionRepository | None = None):
        """Initialize the resolver.

        Args:
            session_repo: Optional repository (created lazily if not provided).
        """
        self._session_repo = session_repo

    @property
    def session_repo(self) -> DesignSessionRepository:
        if self._session_repo is None:
            self._session_repo = DesignSessionRepository()
        return self._session_repo

    def resolve_session(self, session_id: str) -> DesignSession:
        """Load a session, discovering capture made on a sibling session.

        Args:
            session_id: The session ID.

        Returns:
            The session, with capture status back-filled when a sibling
            session of the same visitor already captured.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = self.session_repo.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        if session.is_captured:
            return session

        sibling = self.session_repo.find_captured_sibling(
            session.anonymous_id,
            session.builder_slug,
            exclude_session_id=session.id,
        )
        if sibling is None:
            return session

        self.session_repo.mark_captured(
            session.id,
            sibling.contact_id,
            sibling.captured_at or utc_now(),
        )
        logger.info(
            "Capture discovered on sibling session",
            session_id=session.id,
            sibling_session_id=sibling.id,
            contact_id=sibling.contact_id,
        )

        # Re-read: a concurrent capture may have won the conditional write
        return self.session_repo.get_session(session.id) or session

    def create_session(self, plan_id: str, builder_slug: str, anonymous_id: str) -> SessionSnapshot:
        """Start a session when a visitor first opens a plan.

        Inherits capture status from any earlier captured session of the
        same visitor on the same builder site.

        Args:
            plan_id: Plan being viewed.
            builder_slug: Builder site.
            anonymous_id: Client-held visitor ID.

        Returns:
            Snapshot with the new session ID and the visitor's usage.
        """
        sibling = self.session_repo.find_captured_sibling(anonymous_id, builder_slug)

        session = DesignSession(
            anonymous_id=anonymous_id,
            builder_slug=builder_slug,
            plan_id=plan_id,
            is_captured=sibling is not None,
            contact_id=sibling.contact_id if sibling else None,
            captured_at=(sibling.captured_at or utc_now()) if sibling else None,
        )
        self.session_repo.create_session(session)

        return self._snapshot(session)

    def get_snapshot(self, session_id: str) -> SessionSnapshot:
        """Get the authoritative usage state of a session's visitor.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        return self._snapshot(self.resolve_session(session_id))

    def _snapshot(self, session: DesignSession) -> SessionSnapshot:
        total = self.session_repo.sum_interaction_count(session.anonymous_id, session.builder_slug)
        config = get_metering_config(session.builder_slug)
        return SessionSnapshot(
            session_id=session.id,
            total_interaction_count=total,
            is_captured=session.is_captured,
            remaining_free=compute_remaining(total, session.is_captured, config),
        )
