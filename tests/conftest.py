"""Pytest configuration and fixtures for the registration payment backend.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto
- Seeded catalog data (programs, packages, members)
- Gateway clients wired to httpx.MockTransport
- Signed webhook payload builders
"""

import hashlib
import json
import os
from collections.abc import Callable, Generator
from datetime import datetime, timezone
from typing import Any

import boto3
import httpx
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "ap-southeast-1")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-regpay")

if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from regpay.services.gateways import IpaymuClient, MidtransClient, sign_request  # noqa: E402
from regpay.services.ssm_service import SSMService, get_ssm_service  # noqa: E402

TABLE_PREFIX = "test-regpay"
MIDTRANS_SERVER_KEY = "SB-Mid-server-test-key"
IPAYMU_VA = "0000001234567890"
IPAYMU_API_KEY = "SANDBOX-TEST-API-KEY"


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached services before and after each test.

    Tests using mock_aws get fresh boto3 clients created inside the mock.
    """
    from regpay_api.dependencies import reset_services

    def _reset() -> None:
        reset_services()
        get_ssm_service.cache_clear()
        SSMService._instance = None
        SSMService._cache.clear()

    _reset()
    yield
    _reset()


# === AWS Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "ap-southeast-1"


@pytest.fixture
def dynamodb_client(aws_credentials: None) -> Generator[Any, None, None]:
    """Create a mocked DynamoDB client."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="ap-southeast-1")
        yield client


@pytest.fixture
def create_tables(dynamodb_client: Any) -> None:
    """Create all required DynamoDB tables for testing."""
    simple_keys = {
        "programs": "program_id",
        "membership-packages": "membership_package_id",
        "members": "email",
        "users": "email",
        "payments": "order_id",
        "payment-intents": "cache_key",
    }
    for table, key in simple_keys.items():
        dynamodb_client.create_table(
            TableName=f"{TABLE_PREFIX}-{table}",
            KeySchema=[{"AttributeName": key, "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": key, "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )

    dynamodb_client.create_table(
        TableName=f"{TABLE_PREFIX}-program-registrations",
        KeySchema=[
            {"AttributeName": "email", "KeyType": "HASH"},
            {"AttributeName": "program_id", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "email", "AttributeType": "S"},
            {"AttributeName": "program_id", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )

    dynamodb_client.update_time_to_live(
        TableName=f"{TABLE_PREFIX}-payment-intents",
        TimeToLiveSpecification={"AttributeName": "expires_at", "Enabled": True},
    )


@pytest.fixture
def db(create_tables: None) -> Any:
    """DynamoDBService bound to the mocked tables."""
    from regpay.services.dynamodb import get_dynamodb_service

    return get_dynamodb_service()


# === Sample Data Fixtures ===


@pytest.fixture
def seed_catalog(db: Any) -> dict[str, Any]:
    """Seed programs, membership packages and one existing member."""
    now = datetime.now(timezone.utc).isoformat()
    db.put_item(
        "programs",
        {
            "program_id": "prog-1",
            "name": "Data Science Bootcamp",
            "member_price": 100000,
            "non_member_price": 150000,
        },
    )
    db.put_item("programs", {"program_id": "prog-unpriced", "name": "Open Workshop"})
    db.put_item(
        "membership-packages",
        {"membership_package_id": "pkg-basic", "name": "Basic Membership", "price": 250000},
    )
    db.put_item(
        "members",
        {
            "email": "member@example.com",
            "member_id": "member-001",
            "name": "Existing Member",
            "status": "ACTIVE",
            "interest_areas": ["data"],
            "membership_package_id": "pkg-basic",
            "created_at": now,
        },
    )
    return {
        "program_id": "prog-1",
        "member_price": 100000,
        "non_member_price": 150000,
        "package_id": "pkg-basic",
        "package_price": 250000,
        "member_email": "member@example.com",
        "member_id": "member-001",
    }


# === Gateway Fixtures ===


@pytest.fixture
def gateway_requests() -> list[httpx.Request]:
    """Requests captured by the mock gateway transports."""
    return []


@pytest.fixture
def midtrans_client(gateway_requests: list[httpx.Request]) -> MidtransClient:
    """MidtransClient answering charges and Snap transactions from a MockTransport."""

    def handler(request: httpx.Request) -> httpx.Response:
        gateway_requests.append(request)
        body = json.loads(request.content) if request.content else {}
        if request.url.path.endswith("/charge"):
            order_id = body["transaction_details"]["order_id"]
            return httpx.Response(
                200,
                json={
                    "status_code": "201",
                    "status_message": "QRIS transaction is created",
                    "order_id": order_id,
                    "transaction_id": f"trx-{order_id}",
                    "transaction_status": "pending",
                    "qr_string": "00020101021226620014COM.GO-JEK.WWW",
                    "actions": [{"name": "generate-qr-code", "method": "GET", "url": "https://example.com/qr"}],
                },
            )
        if request.url.path.endswith("/transactions"):
            return httpx.Response(
                201,
                json={
                    "token": "snap-token-123",
                    "redirect_url": "https://app.sandbox.midtrans.com/snap/v4/redirection/snap-token-123",
                },
            )
        return httpx.Response(404, json={"status_message": "Not found"})

    return MidtransClient(
        server_key=MIDTRANS_SERVER_KEY,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        backoff_seconds=0,
    )


@pytest.fixture
def ipaymu_client(gateway_requests: list[httpx.Request]) -> IpaymuClient:
    """IpaymuClient answering redirect payments from a MockTransport."""

    def handler(request: httpx.Request) -> httpx.Response:
        gateway_requests.append(request)
        return httpx.Response(
            200,
            json={
                "Status": 200,
                "Success": True,
                "Message": "success",
                "Data": {
                    "SessionID": "session-abc",
                    "Url": "https://sandbox.ipaymu.com/payment/session-abc",
                },
            },
        )

    return IpaymuClient(
        va=IPAYMU_VA,
        api_key=IPAYMU_API_KEY,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        backoff_seconds=0,
    )


@pytest.fixture
def gateways(midtrans_client: MidtransClient, ipaymu_client: IpaymuClient) -> dict[Any, Any]:
    """Gateway clients keyed by gateway."""
    from regpay.models import PaymentGateway

    return {
        PaymentGateway.MIDTRANS: midtrans_client,
        PaymentGateway.IPAYMU: ipaymu_client,
    }


# === Webhook Payload Builders ===


@pytest.fixture
def midtrans_notification() -> Callable[..., dict[str, Any]]:
    """Build a Midtrans notification signed with the test server key."""

    def build(
        order_id: str,
        transaction_status: str = "settlement",
        gross_amount: str = "150000.00",
        status_code: str = "200",
        payment_type: str = "qris",
        **extra: Any,
    ) -> dict[str, Any]:
        raw = f"{order_id}{status_code}{gross_amount}{MIDTRANS_SERVER_KEY}"
        payload = {
            "order_id": order_id,
            "transaction_status": transaction_status,
            "gross_amount": gross_amount,
            "status_code": status_code,
            "payment_type": payment_type,
            "transaction_id": f"trx-{order_id}",
            "transaction_time": "2026-10-19 10:00:00",
            "signature_key": hashlib.sha512(raw.encode("utf-8")).hexdigest(),
        }
        payload.update(extra)
        return payload

    return build


@pytest.fixture
def ipaymu_notification() -> Callable[..., tuple[dict[str, Any], str]]:
    """Build an iPaymu notification and its signature header."""

    def build(
        order_id: str,
        status: str = "berhasil",
        amount: int = 150000,
        via: str = "qris",
    ) -> tuple[dict[str, Any], str]:
        payload = {
            "trx_id": 987654,
            "sid": "session-abc",
            "reference_id": order_id,
            "status": status,
            "status_code": 1 if status == "berhasil" else 0,
            "amount": amount,
            "via": via,
        }
        return payload, sign_request("POST", IPAYMU_VA, payload, IPAYMU_API_KEY)

    return build
