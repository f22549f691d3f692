"""Tests for the lead capture API handler."""

import json
from unittest.mock import patch

import httpx
import pytest

from designvault.services.capture_coordinator import CaptureCoordinator
from designvault.services.lead_forwarder import LeadForwarder
from designvault.utils.rate_limiter import RateLimitResult

ALLOWED = RateLimitResult(allowed=True, requests_remaining=5, retry_after=None)


def _parse_body(response: dict) -> dict:
    """Parse JSON response body."""
    return json.loads(response["body"])


@pytest.fixture
def crm_requests():
    return []


@pytest.fixture
def coordinator(session_repo, lead_repo, crm_requests):
    """Coordinator wired to moto and a mocked builder CRM."""
    def _handle(request: httpx.Request) -> httpx.Response:
        crm_requests.append(request)
        return httpx.Response(200, json={"ok": True})

    coordinator = CaptureCoordinator(
        session_repo=session_repo,
        lead_repo=lead_repo,
        forwarder=LeadForwarder(design_saved_url="", transport=httpx.MockTransport(_handle)),
    )
    with patch("api.leads.get_capture_coordinator", return_value=coordinator):
        yield coordinator


def _save_design_event(api_gateway_event, session_id: str, lead_data: dict) -> dict:
    return api_gateway_event(
        path="/api/save-design",
        body={"sessionId": session_id, "builderSlug": "barnhaus", "leadData": lead_data},
    )


@patch("api.leads.check_rate_limit", return_value=ALLOWED)
class TestSaveDesign:
    """Tests for POST /api/save-design."""

    def test_capture_success(self, mock_rate_limit, coordinator, session_repo, lead_repo, make_session,
                             contact_info, crm_requests, api_gateway_event):
        """A valid form captures the visitor and forwards the lead."""
        from api.leads import handler

        session = make_session()

        response = handler(_save_design_event(api_gateway_event, session.id, contact_info), None)

        assert response["statusCode"] == 200
        assert _parse_body(response) == {"success": True, "alreadyCaptured": False}
        assert session_repo.get_session(session.id).is_captured is True
        assert len(crm_requests) == 1
        payload = json.loads(crm_requests[0].content)
        assert payload["client_ip_address"] == "1.2.3.4"
        assert payload["client_user_agent"] == "pytest-agent/1.0"
        lead = lead_repo.get_by_email("barnhaus", "jane.doe@example.com")
        assert lead.client_ip_address == "1.2.3.4"
        assert mock_rate_limit.call_args.kwargs["action"] == "capture"

    def test_capture_twice(self, mock_rate_limit, coordinator, make_session, contact_info, api_gateway_event):
        """A repeated submission succeeds and says so."""
        from api.leads import handler

        session = make_session()
        handler(_save_design_event(api_gateway_event, session.id, contact_info), None)

        response = handler(_save_design_event(api_gateway_event, session.id, contact_info), None)

        assert response["statusCode"] == 200
        assert _parse_body(response)["alreadyCaptured"] is True

    def test_short_phone(self, mock_rate_limit, coordinator, session_repo, make_session, contact_info,
                         crm_requests, api_gateway_event):
        """A 7-digit phone is a 400 on the phone field and nothing changes."""
        from api.leads import handler

        session = make_session()
        contact_info["phone"] = "555-123"

        response = handler(_save_design_event(api_gateway_event, session.id, contact_info), None)

        assert response["statusCode"] == 400
        body = _parse_body(response)
        assert body["error_code"] == "VALIDATION_ERROR"
        fields = {e["field"]: e["message"] for e in body["details"]["errors"]}
        assert fields == {"phone": "Phone number must have at least 10 digits"}
        assert session_repo.get_session(session.id).is_captured is False
        assert crm_requests == []

    def test_missing_lead_data(self, mock_rate_limit, coordinator, api_gateway_event):
        """leadData is required."""
        from api.leads import handler

        event = api_gateway_event(path="/api/save-design", body={"sessionId": "s"})

        response = handler(event, None)

        assert response["statusCode"] == 400
        fields = [e["field"] for e in _parse_body(response)["details"]["errors"]]
        assert "leadData" in fields

    def test_session_not_found(self, mock_rate_limit, coordinator, contact_info, api_gateway_event):
        """Capturing against an expired session is a 404."""
        from api.leads import handler

        response = handler(_save_design_event(api_gateway_event, "missing", contact_info), None)

        assert response["statusCode"] == 404
        assert _parse_body(response)["error_code"] == "SESSION_NOT_FOUND"

    def test_unexpected_error_is_500(self, mock_rate_limit, coordinator, make_session, contact_info, api_gateway_event):
        """Unexpected failures are logged and returned as 500."""
        from api.leads import handler

        session = make_session()
        with patch.object(coordinator, "capture", side_effect=RuntimeError("boom")):
            response = handler(_save_design_event(api_gateway_event, session.id, contact_info), None)

        assert response["statusCode"] == 500
        assert _parse_body(response)["message"] == "Internal server error"


class TestSaveDesignRateLimit:
    """Tests for capture rate limiting."""

    @patch("api.leads.check_rate_limit")
    def test_rate_limited(self, mock_rate_limit, coordinator, make_session, contact_info, api_gateway_event):
        """Rate limited submissions are rejected before validation."""
        from api.leads import handler

        mock_rate_limit.return_value = RateLimitResult(allowed=False, requests_remaining=0, retry_after=30)

        response = handler(_save_design_event(api_gateway_event, make_session().id, contact_info), None)

        assert response["statusCode"] == 429
        assert response["headers"]["Retry-After"] == "30"
