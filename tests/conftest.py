"""Pytest configuration and fixtures."""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import MagicMock

# Set environment variables before imports
os.environ["TABLE_NAME"] = "pathwise-test"
os.environ["STAGE"] = "test"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

PROJECT_ID = "proj-test-001"
BASE_TIME = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


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
    """Create mocked DynamoDB table with both secondary indexes."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="pathwise-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI1SK", "AttributeType": "S"},
                {"AttributeName": "GSI2PK", "AttributeType": "S"},
                {"AttributeName": "GSI2SK", "AttributeType": "S"},
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
                {
                    "IndexName": "GSI2",
                    "KeySchema": [
                        {"AttributeName": "GSI2PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI2SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


@pytest.fixture
def repositories(dynamodb_table):
    """Touchpoint, lead and payment repositories bound to the mocked table."""
    from pathwise.repositories import LeadRepository, PaymentRepository, TouchpointRepository

    return {
        "touchpoints": TouchpointRepository(),
        "leads": LeadRepository(),
        "payments": PaymentRepository(),
    }


@pytest.fixture
def seed_journey(repositories):
    """Store the reference journey: two touchpoints, a signup, two payments.

    t1 page_view (google/cpc) -> t2 page_view -> lead -> p1 50.0 -> p2 30.0,
    all in session s1 for visitor v1.
    """
    from pathwise.models import Lead, Payment, Touchpoint

    def _seed(visitor_id: str = "v1", session_id: str = "s1", start: datetime = BASE_TIME):
        t1 = Touchpoint(
            project_id=PROJECT_ID,
            visitor_id=visitor_id,
            session_id=session_id,
            event_type="page_view",
            page_url="https://shop.example.com/?utm_source=google",
            utm_source="google",
            utm_medium="cpc",
            utm_campaign="spring",
            device_type="desktop",
            country_code="BR",
            created_at=start,
        )
        t2 = Touchpoint(
            project_id=PROJECT_ID,
            visitor_id=visitor_id,
            session_id=session_id,
            event_type="page_view",
            page_url="https://shop.example.com/pricing",
            device_type="mobile",
            country_code="BR",
            created_at=start + timedelta(minutes=5),
        )
        lead = Lead(
            project_id=PROJECT_ID,
            session_id=session_id,
            email=f"{visitor_id}@example.com",
            name="Ana",
            created_at=start + timedelta(minutes=6),
        )
        p1 = Payment(
            project_id=PROJECT_ID,
            visitor_id=visitor_id,
            amount=50.0,
            created_at=start + timedelta(days=1),
        )
        p2 = Payment(
            project_id=PROJECT_ID,
            visitor_id=visitor_id,
            amount=30.0,
            created_at=start + timedelta(days=2),
        )

        # Stored out of order on purpose
        repositories["touchpoints"].record(t2)
        repositories["touchpoints"].record(t1)
        repositories["leads"].create_lead(lead)
        repositories["payments"].create_payment(p2)
        repositories["payments"].create_payment(p1)

        return {"t1": t1, "t2": t2, "lead": lead, "p1": p1, "p2": p2}

    return _seed


class FakeClock:
    """Controllable clock returning seconds since the epoch."""

    def __init__(self, start: float = 1_772_366_400.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """A controllable clock."""
    return FakeClock()


@pytest.fixture
def mock_logger():
    """structlog-compatible logger capturing calls."""
    return MagicMock()


@pytest.fixture
def agent_config():
    """Agent settings for a consent-required, opt-out deployment."""
    from pathwise.client import AgentConfig

    return AgentConfig(
        project_key="pk_test_123",
        api_url="https://api.pathwise.test/functions/v1/track-event",
    )


@pytest.fixture
def api_gateway_event():
    """Create a sample API Gateway event."""
    def _create_event(
        method: str = "GET",
        path: str = "/",
        resource: str = "",
        path_params: dict = None,
        query_params: dict = None,
        body: dict = None,
    ):
        return {
            "httpMethod": method,
            "path": path,
            "resource": resource or path,
            "pathParameters": path_params or {},
            "queryStringParameters": query_params or {},
            "body": body if isinstance(body, str) else (json.dumps(body) if body else None),
            "headers": {
                "Content-Type": "application/json",
            },
        }

    return _create_event
