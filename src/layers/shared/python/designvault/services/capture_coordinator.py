"""Lead capture: the Uncaptured -> Captured transition for a visitor.

Capture is two ledger writes, mark_captured on the submitting session and
backfill_captured on its siblings. They are not wrapped in a transaction.
A reader that sees the first without the second treats the visitor as
captured anyway (IdentityResolver discovers the captured sibling), and a
repeated capture call completes the backfill.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from designvault.models.base import utc_now
from designvault.models.design_session import DesignSession
from designvault.models.lead import ContactInfo, Lead
from designvault.repositories.design_session import DesignSessionRepository
from designvault.repositories.lead import LeadRepository
from designvault.services.builders import get_builder
from designvault.services.lead_forwarder import LeadForwarder
from designvault.utils.exceptions import SessionNotFoundError, ValidationError

logger = structlog.get_logger()


@dataclass
class CaptureResult:
    """Outcome of a capture request."""

    session_id: str
    contact_id: str | None
    captured_at: datetime | None
    already_captured: bool = False
    crm_forwarded: bool = False
    sessions_backfilled: int = 0


def validate_contact_info(data: ContactInfo | dict[str, Any]) -> ContactInfo:
    """Validate submitted contact fields.

    Raises:
        ValidationError: With one entry per invalid field.
    """
    if isinstance(data, ContactInfo):
        return data
    try:
        return ContactInfo.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


class CaptureCoordinator:
    """Marks a visitor captured and unlocks the extended quota."""

    def __init__(
        self,
        session_repo: DesignSessionRepository | None = None,
        lead_repo: LeadRepository | None = None,
        forwarder: LeadForwarder | None = None,
    ):
        self._session_repo = session_repo
        self._lead_repo = lead_repo
        self._forwarder = forwarder

    @property
    def session_repo(self) -> DesignSessionRepository:
        if self._session_repo is None:
            self._session_repo = DesignSessionRepository()
        return self._session_repo

    @property
    def lead_repo(self) -> LeadRepository:
        if self._lead_repo is None:
            self._lead_repo = LeadRepository()
        return self._lead_repo

    @property
    def forwarder(self) -> LeadForwarder:
        if self._forwarder is None:
            self._forwarder = LeadForwarder()
        return self._forwarder

    def capture(
        self,
        session_id: str,
        contact_info: ContactInfo | dict[str, Any],
        client_ip: str | None = None,
    ) -> CaptureResult:
        """Capture contact information for the visitor owning a session.

        A capture by a visitor who already converted, on this session or any
        sibling, is a no-op success: captured_at and the stored contact are
        left alone, only the sibling backfill is re-run.

        Args:
            session_id: Session the form was submitted from.
            contact_info: Submitted contact fields.
            client_ip: Client IP, forwarded to the CRM for ad attribution.

        Returns:
            CaptureResult.

        Raises:
            ValidationError: If any contact field is invalid.
            SessionNotFoundError: If the session does not exist.
        """
        info = validate_contact_info(contact_info)

        session = self.session_repo.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        if session.is_captured:
            prior = session
        else:
            prior = self.session_repo.find_captured_sibling(
                session.anonymous_id,
                session.builder_slug,
                exclude_session_id=session.id,
            )

        if prior is not None:
            captured_at = prior.captured_at or utc_now()
            backfilled = self.session_repo.backfill_captured(
                session.anonymous_id, session.builder_slug, prior.contact_id, captured_at
            )
            logger.info(
                "Capture repeated for captured visitor",
                session_id=session.id,
                captured_session_id=prior.id,
                sessions_backfilled=backfilled,
            )
            return CaptureResult(
                session_id=session.id,
                contact_id=prior.contact_id,
                captured_at=captured_at,
                already_captured=True,
                sessions_backfilled=backfilled,
            )

        lead = self.lead_repo.upsert_by_email(
            Lead(
                builder_slug=session.builder_slug,
                anonymous_id=session.anonymous_id,
                first_name=info.first_name,
                last_name=info.last_name,
                email=info.email,
                phone=info.phone,
                fbclid=info.fbclid,
                fbp=info.fbp,
                fbc=info.fbc,
                client_user_agent=info.client_user_agent,
                client_ip_address=client_ip,
            )
        )

        crm_forwarded = self._forward(session, lead, info)

        contact_id: str | None = lead.id
        captured_at: datetime | None = utc_now()
        already_captured = False
        if not self.session_repo.mark_captured(session.id, contact_id, captured_at):
            # A concurrent capture won the conditional write; keep its contact
            winner = self.session_repo.get_session(session.id)
            contact_id = winner.contact_id if winner else contact_id
            captured_at = (winner.captured_at if winner else None) or captured_at
            already_captured = True

        backfilled = self.session_repo.backfill_captured(
            session.anonymous_id, session.builder_slug, contact_id, captured_at
        )

        logger.info(
            "Lead captured",
            session_id=session.id,
            builder_slug=session.builder_slug,
            contact_id=contact_id,
            crm_forwarded=crm_forwarded,
            sessions_backfilled=backfilled,
        )

        return CaptureResult(
            session_id=session.id,
            contact_id=contact_id,
            captured_at=captured_at,
            already_captured=already_captured,
            crm_forwarded=crm_forwarded,
            sessions_backfilled=backfilled,
        )

    def _forward(self, session: DesignSession, lead: Lead, info: ContactInfo) -> bool:
        """Send the lead and the visitor's browsing summary downstream."""
        sessions = self.session_repo.list_visitor_sessions(session.anonymous_id, session.builder_slug)
        modifications = [
            mod.model_dump(mode="json", by_alias=True)
            for s in sessions
            for mod in s.modifications
        ]
        plans_viewed = list(dict.fromkeys(s.plan_id for s in sessions))

        payload = {
            "first_name": lead.first_name,
            "last_name": lead.last_name,
            "email": lead.email,
            "phone": lead.phone,
            "source": lead.source,
            "anonymous_id": lead.anonymous_id,
            "metadata": {
                "planId": session.plan_id,
                "modifications": modifications,
                "favorites": info.favorites,
                "stylePref": info.style_pref,
                "sessionDuration": info.session_duration,
                "plansViewed": plans_viewed,
            },
        }
        for field in ("fbclid", "fbp", "fbc", "client_user_agent", "client_ip_address"):
            value = getattr(lead, field)
            if value:
                payload[field] = value

        forwarded = self.forwarder.forward_to_crm(get_builder(session.builder_slug), payload)
        self.forwarder.notify_design_saved({
            "first_name": lead.first_name,
            "last_name": lead.last_name,
            "email": lead.email,
            "phone": lead.phone,
            "plan_id": session.plan_id,
            "modifications": modifications,
            "plans_viewed": plans_viewed,
            "session_id": session.id,
            "builder_slug": session.builder_slug,
        })
        return forwarded


def get_capture_coordinator() -> CaptureCoordinator:
    """Factory function for CaptureCoordinator."""
    return CaptureCoordinator()
