"""Pytest configuration and fixtures."""

import json
import os

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "designvault-test"
os.environ["STAGE"] = "test"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["N8N_BASE_URL"] = "https://n8n.test"
os.environ["N8N_DESIGN_SAVED_WEBHOOK"] = ""
os.environ["MAX_FREE_INTERACTIONS"] = "1"
os.environ["CAPTURE_BONUS_INTERACTIONS"] = "3"

BUILDER_SLUG = "barnhaus"
ANONYMOUS_ID = "anon-test-123"


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="designvault-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI1SK", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "GSI1",
                    "KeySchema": [
                        {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


@pytest.fixture
def session_repo(dynamodb_table):
    """DesignSessionRepository bound to the mocked table."""
    from designvault.repositories.design_session import DesignSessionRepository

    return DesignSessionRepository()


@pytest.fixture
def lead_repo(dynamodb_table):
    """LeadRepository bound to the mocked table."""
    from designvault.repositories.lead import LeadRepository

    return LeadRepository()


@pytest.fixture
def cache_repo(dynamodb_table):
    """DesignCacheRepository bound to the mocked table."""
    from designvault.repositories.design_cache import DesignCacheRepository

    return DesignCacheRepository()


@pytest.fixture
def make_session(session_repo):
    """Persist a design session for the test visitor."""
    from designvault.models.design_session import DesignSession

    def _make_session(
        plan_id: str = "plan-a",
        anonymous_id: str = ANONYMOUS_ID,
        builder_slug: str = BUILDER_SLUG,
        interaction_count: int = 0,
        is_captured: bool = False,
        contact_id: str | None = None,
    ):
        session = DesignSession(
            plan_id=plan_id,
            anonymous_id=anonymous_id,
            builder_slug=builder_slug,
            interaction_count=interaction_count,
            is_captured=is_captured,
            contact_id=contact_id,
        )
        return session_repo.create_session(session)

    return _make_session


@pytest.fixture
def contact_info():
    """Valid capture form fields as the widget submits them."""
    return {
        "firstName": "Jane",
        "lastName": "Doe",
        "email": "Jane.Doe@Example.com",
        "phone": "(512) 555-0142",
    }


@pytest.fixture
def api_gateway_event():
    """Create a sample API Gateway event for the public widget endpoints."""
    def _create_event(
        method: str = "POST",
        path: str = "/",
        path_params: dict = None,
        body: dict = None,
        source_ip: str = "1.2.3.4",
    ):
        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": path_params or {},
            "queryStringParameters": {},
            "body": body if isinstance(body, str) else (json.dumps(body) if body else None),
            "headers": {
                "Content-Type": "application/json",
                "User-Agent": "pytest-agent/1.0",
            },
            "requestContext": {
                "identity": {"sourceIp": source_ip},
            },
        }

    return _create_event


class LambdaContext:
    """Mock Lambda context."""

    def __init__(self):
        self.function_name = "test-function"
        self.memory_limit_in_mb = 128
        self.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789:function:test"
        self.aws_request_id = "test-request-id"

    def get_remaining_time_in_millis(self):
        return 30000


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context."""
    return LambdaContext()
