"""Tests for the lead capture flow."""

import json
from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest

from designvault.models.design_session import Modification, ModificationType
from designvault.services.capture_coordinator import CaptureCoordinator, validate_contact_info
from designvault.services.identity_resolver import IdentityResolver
from designvault.services.lead_forwarder import LeadForwarder
from designvault.utils.exceptions import SessionNotFoundError, ValidationError

BUILDER_SLUG = "barnhaus"
ANONYMOUS_ID = "anon-test-123"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it answered."""

    def __init__(self, status_code: int = 200):
        self.requests: list[httpx.Request] = []

        def _handle(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(status_code, json={"ok": status_code < 400})

        super().__init__(_handle)


@pytest.fixture
def crm_transport():
    return RecordingTransport()


@pytest.fixture
def coordinator(session_repo, lead_repo, crm_transport):
    return CaptureCoordinator(
        session_repo=session_repo,
        lead_repo=lead_repo,
        forwarder=LeadForwarder(design_saved_url="", transport=crm_transport),
    )


class TestValidateContactInfo:
    """Tests for per-field contact validation."""

    def test_valid_contact(self, contact_info):
        """Valid fields are normalized."""
        info = validate_contact_info(contact_info)

        assert info.first_name == "Jane"
        assert info.email == "jane.doe@example.com"

    def test_short_phone(self, contact_info):
        """A 7-digit phone number is rejected on the phone field."""
        contact_info["phone"] = "555-123"

        with pytest.raises(ValidationError) as exc_info:
            validate_contact_info(contact_info)

        assert exc_info.value.fields == {"phone": "Phone number must have at least 10 digits"}

    def test_multiple_invalid_fields(self):
        """Every invalid field is reported."""
        with pytest.raises(ValidationError) as exc_info:
            validate_contact_info({
                "firstName": "  ",
                "lastName": "Doe",
                "email": "not-an-email",
                "phone": "5125550142",
            })

        fields = exc_info.value.fields
        assert fields["firstName"] == "This field is required"
        assert fields["email"] == "Enter a valid email address"
        assert "lastName" not in fields

    def test_missing_field(self):
        """A missing field is reported by its form name."""
        with pytest.raises(ValidationError) as exc_info:
            validate_contact_info({"firstName": "Jane", "lastName": "Doe", "email": "jane@example.com"})

        assert "phone" in exc_info.value.fields


class TestCapture:
    """Tests for CaptureCoordinator.capture."""

    def test_capture_marks_session(self, coordinator, session_repo, lead_repo, make_session, contact_info):
        """A valid capture stores the lead and marks the session captured."""
        session = make_session()

        result = coordinator.capture(session.id, contact_info, client_ip="1.2.3.4")

        assert result.already_captured is False
        assert result.crm_forwarded is True
        stored = session_repo.get_session(session.id)
        assert stored.is_captured is True
        assert stored.contact_id == result.contact_id
        lead = lead_repo.get_by_email(BUILDER_SLUG, "jane.doe@example.com")
        assert lead is not None
        assert lead.id == result.contact_id
        assert lead.client_ip_address == "1.2.3.4"

    def test_capture_backfills_siblings(self, coordinator, session_repo, make_session, contact_info):
        """Capturing on session A unlocks session B."""
        a = make_session(plan_id="plan-a")
        b = make_session(plan_id="plan-b")

        result = coordinator.capture(a.id, contact_info)

        assert result.sessions_backfilled == 1
        resolved = IdentityResolver(session_repo).resolve_session(b.id)
        assert resolved.is_captured is True
        assert resolved.contact_id == result.contact_id

    def test_invalid_phone_leaves_ledger_untouched(
        self, coordinator, session_repo, make_session, contact_info, crm_transport
    ):
        """A rejected form changes nothing and forwards nothing."""
        session = make_session()
        contact_info["phone"] = "555-123"

        with pytest.raises(ValidationError) as exc_info:
            coordinator.capture(session.id, contact_info)

        assert "phone" in exc_info.value.fields
        assert session_repo.get_session(session.id).is_captured is False
        assert crm_transport.requests == []

    def test_missing_session(self, coordinator, contact_info):
        """Capturing against an unknown session raises SessionNotFoundError."""
        with pytest.raises(SessionNotFoundError):
            coordinator.capture("missing", contact_info)

    def test_second_capture_is_noop(self, coordinator, session_repo, lead_repo, make_session, contact_info, crm_transport):
        """Capturing twice keeps the first capture and does not forward again."""
        session = make_session()
        first = coordinator.capture(session.id, contact_info)
        first_stored = session_repo.get_session(session.id)

        contact_info["email"] = "someone.else@example.com"
        second = coordinator.capture(session.id, contact_info)

        assert second.already_captured is True
        assert second.contact_id == first.contact_id
        stored = session_repo.get_session(session.id)
        assert stored.captured_at == first_stored.captured_at
        assert lead_repo.get_by_email(BUILDER_SLUG, "someone.else@example.com") is None
        assert len(crm_transport.requests) == 1

    def test_retry_completes_interrupted_backfill(self, coordinator, session_repo, make_session, contact_info):
        """A session captured without its siblings is completed on retry."""
        a = make_session(plan_id="plan-a")
        b = make_session(plan_id="plan-b")
        session_repo.mark_captured(a.id, "lead-1", a.created_at)

        result = coordinator.capture(a.id, contact_info)

        assert result.already_captured is True
        assert result.sessions_backfilled == 1
        assert session_repo.get_session(b.id).contact_id == "lead-1"

    def test_capture_on_sibling_of_captured_visitor(
        self, coordinator, session_repo, lead_repo, make_session, contact_info, crm_transport
    ):
        """A visitor captured on another plan is not captured a second time."""
        a = make_session(plan_id="plan-a")
        b = make_session(plan_id="plan-b")
        session_repo.mark_captured(a.id, "lead-A", a.created_at)

        result = coordinator.capture(b.id, contact_info)

        assert result.already_captured is True
        assert result.contact_id == "lead-A"
        stored = session_repo.get_session(b.id)
        assert stored.is_captured is True
        assert stored.contact_id == "lead-A"
        assert lead_repo.get_by_email(BUILDER_SLUG, "jane.doe@example.com") is None
        assert crm_transport.requests == []

    def test_concurrent_capture_adopts_winner(self, coordinator, session_repo, make_session, contact_info):
        """When another capture marks the session first, its contact is kept and backfilled."""
        a = make_session(plan_id="plan-a")
        b = make_session(plan_id="plan-b")
        winner_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        mark_captured = session_repo.mark_captured
        calls = []

        def _lose_race(session_id, contact_id, captured_at):
            if not calls:
                mark_captured(session_id, "lead-winner", winner_at)
            calls.append(session_id)
            return mark_captured(session_id, contact_id, captured_at)

        with patch.object(session_repo, "mark_captured", side_effect=_lose_race):
            result = coordinator.capture(a.id, contact_info)

        assert result.already_captured is True
        assert result.contact_id == "lead-winner"
        assert result.captured_at == winner_at
        assert result.sessions_backfilled == 1
        assert session_repo.get_session(a.id).contact_id == "lead-winner"
        assert session_repo.get_session(b.id).contact_id == "lead-winner"

    def test_same_email_reuses_lead(self, coordinator, make_session, contact_info):
        """The same person captured from two devices maps to one lead."""
        first = coordinator.capture(make_session(anonymous_id="device-1").id, contact_info)
        second = coordinator.capture(make_session(anonymous_id="device-2").id, contact_info)

        assert first.contact_id == second.contact_id


class TestCrmForwarding:
    """Tests for the CRM payload and failure handling."""

    def test_crm_payload(self, coordinator, session_repo, make_session, contact_info, crm_transport):
        """The CRM receives the lead and the visitor's browsing summary."""
        a = make_session(plan_id="plan-a")
        b = make_session(plan_id="plan-b")
        session_repo.append_modification_and_increment(
            a.id,
            Modification(
                type=ModificationType.STYLE_SWAP,
                style_preset="rustic",
                result_url="https://cdn.test/rustic.png",
            ),
        )
        contact_info.update({"favorites": ["plan-a"], "stylePref": "rustic", "sessionDuration": 95})

        coordinator.capture(b.id, contact_info)

        request = crm_transport.requests[0]
        assert str(request.url) == "https://crm.empowerbuilding.ai/api/leads/webhook"
        payload = json.loads(request.content)
        assert payload["email"] == "jane.doe@example.com"
        assert payload["source"] == "floor_plan_archive"
        metadata = payload["metadata"]
        assert metadata["planId"] == "plan-b"
        assert sorted(metadata["plansViewed"]) == ["plan-a", "plan-b"]
        assert metadata["modifications"][0]["resultUrl"] == "https://cdn.test/rustic.png"
        assert metadata["favorites"] == ["plan-a"]
        assert metadata["stylePref"] == "rustic"
        assert metadata["sessionDuration"] == 95

    def test_api_key_header(self, coordinator, make_session, contact_info, crm_transport, monkeypatch):
        """A configured builder API key is sent as x-api-key."""
        monkeypatch.setenv("BARNHAUS_WEBHOOK_API_KEY", "secret-key")

        coordinator.capture(make_session().id, contact_info)

        assert crm_transport.requests[0].headers["x-api-key"] == "secret-key"

    def test_crm_failure_does_not_block_capture(self, session_repo, lead_repo, make_session, contact_info):
        """A failing CRM webhook is logged and the capture still succeeds."""
        coordinator = CaptureCoordinator(
            session_repo=session_repo,
            lead_repo=lead_repo,
            forwarder=LeadForwarder(design_saved_url="", transport=RecordingTransport(status_code=500)),
        )
        session = make_session()

        result = coordinator.capture(session.id, contact_info)

        assert result.crm_forwarded is False
        assert session_repo.get_session(session.id).is_captured is True

    def test_crm_unreachable_does_not_block_capture(self, session_repo, lead_repo, make_session, contact_info):
        """Transport errors are swallowed by the forwarder."""
        def _refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        coordinator = CaptureCoordinator(
            session_repo=session_repo,
            lead_repo=lead_repo,
            forwarder=LeadForwarder(design_saved_url="", transport=httpx.MockTransport(_refuse)),
        )
        session = make_session()

        result = coordinator.capture(session.id, contact_info)

        assert result.crm_forwarded is False
        assert session_repo.get_session(session.id).is_captured is True

    def test_design_saved_notification(self, session_repo, lead_repo, make_session, contact_info):
        """The design saved automation receives the scheduler link."""
        transport = RecordingTransport()
        coordinator = CaptureCoordinator(
            session_repo=session_repo,
            lead_repo=lead_repo,
            forwarder=LeadForwarder(design_saved_url="https://n8n.test/webhook/design-saved", transport=transport),
        )
        session = make_session()

        coordinator.capture(session.id, contact_info)

        saved = [r for r in transport.requests if r.url.path == "/webhook/design-saved"]
        assert len(saved) == 1
        payload = json.loads(saved[0].content)
        assert payload["session_id"] == session.id
        assert payload["scheduler_url"].startswith("https://")
