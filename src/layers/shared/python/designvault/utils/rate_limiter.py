"""Per-IP rate limiting for the public widget endpoints."""

import os
import time
from typing import NamedTuple

import boto3
import structlog
from botocore.exceptions import ClientError

logger = structlog.get_logger()

TABLE_NAME = os.environ.get("TABLE_NAME", "designvault-dev")

# AI endpoints: a handful per minute, 10 per hour per IP
AI_REQUESTS_PER_MINUTE = 5
AI_REQUESTS_PER_HOUR = 10

# Lead capture endpoint
CAPTURE_REQUESTS_PER_MINUTE = 5
CAPTURE_REQUESTS_PER_HOUR = 30


class RateLimitResult(NamedTuple):
    """Result of a rate limit check."""

    allowed: bool
    requests_remaining: int
    retry_after: int | None  # Seconds until limit resets


def _get_dynamodb():
    """Get DynamoDB resource."""
    return boto3.resource("dynamodb")


def _increment_bucket(table, key: str, identifier: str, ttl: int) -> int:
    """Atomically increment one bucket counter and return the new count."""
    response = table.update_item(
        Key={"PK": key, "SK": identifier},
        UpdateExpression="SET #count = if_not_exists(#count, :zero) + :inc, #ttl = :ttl",
        ExpressionAttributeNames={"#count": "count", "#ttl": "ttl"},
        ExpressionAttributeValues={":zero": 0, ":inc": 1, ":ttl": ttl},
        ReturnValues="ALL_NEW",
    )
    return int(response["Attributes"]["count"])


def check_rate_limit(
    identifier: str,
    action: str,
    requests_per_minute: int = AI_REQUESTS_PER_MINUTE,
    requests_per_hour: int = AI_REQUESTS_PER_HOUR,
) -> RateLimitResult:
    """Check if a request should be rate limited.

    Counts requests in fixed minute and hour buckets stored in DynamoDB with
    TTL cleanup. Fails open when DynamoDB is unavailable.

    Args:
        identifier: Unique identifier (usually the client IP).
        action: Action being rate limited (e.g., "ai", "capture").
        requests_per_minute: Max requests allowed per minute.
        requests_per_hour: Max requests allowed per hour.

    Returns:
        RateLimitResult with allowed status and remaining requests.
    """
    table = _get_dynamodb().Table(TABLE_NAME)
    current_time = int(time.time())
    minute_key = f"RATELIMIT#{action}#MIN#{current_time // 60}"
    hour_key = f"RATELIMIT#{action}#HOUR#{current_time // 3600}"

    try:
        minute_count = _increment_bucket(table, minute_key, identifier, current_time + 120)
        if minute_count > requests_per_minute:
            logger.warning(
                "Rate limit exceeded (minute)",
                identifier=identifier[:20],
                action=action,
                count=minute_count,
                limit=requests_per_minute,
            )
            return RateLimitResult(
                allowed=False,
                requests_remaining=0,
                retry_after=60 - (current_time % 60),
            )

        hour_count = _increment_bucket(table, hour_key, identifier, current_time + 7200)
        if hour_count > requests_per_hour:
            logger.warning(
                "Rate limit exceeded (hour)",
                identifier=identifier[:20],
                action=action,
                count=hour_count,
                limit=requests_per_hour,
            )
            return RateLimitResult(
                allowed=False,
                requests_remaining=0,
                retry_after=3600 - (current_time % 3600),
            )

        return RateLimitResult(
            allowed=True,
            requests_remaining=min(
                requests_per_minute - minute_count,
                requests_per_hour - hour_count,
            ),
            retry_after=None,
        )

    except ClientError as e:
        logger.error(
            "Rate limiter DynamoDB error",
            error=str(e),
            identifier=identifier[:20],
            action=action,
        )
        return RateLimitResult(allowed=True, requests_remaining=-1, retry_after=None)


def get_client_ip(event: dict) -> str:
    """Extract client IP from API Gateway event.

    Handles X-Forwarded-For header for requests behind CloudFront/ALB.
    """
    headers = event.get("headers", {}) or {}
    request_context = event.get("requestContext", {}) or {}
    identity = request_context.get("identity", {}) or {}

    forwarded_for = headers.get("X-Forwarded-For") or headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    return identity.get("sourceIp", "unknown")


def rate_limit_response(retry_after: int, message: str | None = None) -> dict:
    """Generate a 429 Too Many Requests response.

    Args:
        retry_after: Seconds until the client can retry.
        message: Optional message shown by the widget.

    Returns:
        API Gateway response dict.
    """
    from designvault.utils.responses import CORS_HEADERS, _serialize

    return {
        "statusCode": 429,
        "headers": {
            **CORS_HEADERS,
            "Retry-After": str(retry_after),
        },
        "body": _serialize({
            "error": True,
            "message": message or "Too many requests. Please try again later.",
            "error_code": "RATE_LIMITED",
        }),
    }
