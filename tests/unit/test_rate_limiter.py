"""Tests for the per-IP rate limiter."""

import json
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from designvault.utils.rate_limiter import (
    AI_REQUESTS_PER_MINUTE,
    check_rate_limit,
    get_client_ip,
    rate_limit_response,
)


class TestRateLimiter:
    """Tests for check_rate_limit and rate_limit_response."""

    def test_ai_requests_under_limit(self, dynamodb_table):
        """AI requests under the per-minute limit are allowed."""
        result = check_rate_limit(identifier="1.2.3.4", action="ai")

        assert result.allowed is True
        assert result.requests_remaining == AI_REQUESTS_PER_MINUTE - 1
        assert result.retry_after is None

    def test_ai_requests_blocked_over_minute(self, dynamodb_table):
        """The sixth AI request in a minute is blocked."""
        for _ in range(AI_REQUESTS_PER_MINUTE):
            assert check_rate_limit(identifier="1.2.3.4", action="ai").allowed is True

        result = check_rate_limit(identifier="1.2.3.4", action="ai")

        assert result.allowed is False
        assert result.requests_remaining == 0
        assert 0 < result.retry_after <= 60

    def test_blocked_over_hour(self, dynamodb_table):
        """The hourly cap applies even when the minute bucket has room."""
        for _ in range(3):
            result = check_rate_limit(
                identifier="1.2.3.4",
                action="capture",
                requests_per_minute=100,
                requests_per_hour=3,
            )
            assert result.allowed is True

        result = check_rate_limit(
            identifier="1.2.3.4",
            action="capture",
            requests_per_minute=100,
            requests_per_hour=3,
        )

        assert result.allowed is False
        assert 0 < result.retry_after <= 3600

    def test_actions_counted_separately(self, dynamodb_table):
        """Exhausting AI requests leaves lead capture available."""
        for _ in range(AI_REQUESTS_PER_MINUTE + 1):
            check_rate_limit(identifier="1.2.3.4", action="ai")

        result = check_rate_limit(identifier="1.2.3.4", action="capture", requests_per_minute=5)

        assert result.allowed is True

    def test_identifiers_counted_separately(self, dynamodb_table):
        """Different client IPs have independent limits."""
        for _ in range(AI_REQUESTS_PER_MINUTE):
            check_rate_limit(identifier="ip-1", action="ai")

        result = check_rate_limit(identifier="ip-2", action="ai")

        assert result.allowed is True
        assert result.retry_after is None

    def test_fails_open_on_dynamodb_error(self):
        """DynamoDB errors never block widget traffic."""
        table = MagicMock()
        table.update_item.side_effect = ClientError(
            {"Error": {"Code": "InternalServerError", "Message": "boom"}},
            "UpdateItem",
        )
        resource = MagicMock()
        resource.Table.return_value = table

        with patch("designvault.utils.rate_limiter._get_dynamodb", return_value=resource):
            result = check_rate_limit(identifier="1.2.3.4", action="ai")

        assert result.allowed is True
        assert result.requests_remaining == -1

    def test_rate_limit_response_format(self):
        """rate_limit_response returns a 429 with Retry-After."""
        response = rate_limit_response(30)

        assert response["statusCode"] == 429
        assert response["headers"]["Retry-After"] == "30"
        assert response["headers"]["Access-Control-Allow-Origin"]

        body = json.loads(response["body"])
        assert body["error"] is True
        assert body["error_code"] == "RATE_LIMITED"

    def test_rate_limit_response_message(self):
        """A custom message replaces the default."""
        body = json.loads(rate_limit_response(5, message="Slow down")["body"])

        assert body["message"] == "Slow down"


class TestGetClientIp:
    """Tests for get_client_ip."""

    def test_get_client_ip_from_forwarded_for(self):
        """The first X-Forwarded-For entry is the client."""
        event = {
            "headers": {"x-forwarded-for": "1.2.3.4, 5.6.7.8"},
            "requestContext": {},
        }

        assert get_client_ip(event) == "1.2.3.4"

    def test_get_client_ip_from_source_ip(self):
        """Falls back to requestContext.identity.sourceIp."""
        event = {
            "headers": {},
            "requestContext": {"identity": {"sourceIp": "10.0.0.1"}},
        }

        assert get_client_ip(event) == "10.0.0.1"

    def test_get_client_ip_unknown(self):
        """Returns 'unknown' when no IP info is available."""
        assert get_client_ip({"headers": None, "requestContext": {}}) == "unknown"
