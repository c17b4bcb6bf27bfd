"""Contract tests for the gateway webhook endpoints.

Test categories:
- Signature validation (400)
- Settlement of a cached intent (200, committed)
- Idempotent redelivery (200, duplicate)
- Notifications without a cached intent (200, audit_only)
"""

from collections.abc import Callable
from typing import Any

from fastapi.testclient import TestClient
from starlette.status import HTTP_200_OK, HTTP_400_BAD_REQUEST

# === Test Configuration ===

PROGRAM_BODY = {"programId": "prog-1", "email": "ayu@example.com", "name": "Ayu"}
UNKNOWN_ORDER_ID = "PRG-LZ3K9Q1A-FFFFFFFF"


def _checkout(client: TestClient, **overrides: Any) -> str:
    response = client.post("/api/payments/checkout/program", json={**PROGRAM_BODY, **overrides})
    assert response.status_code == 201
    order_id: str = response.json()["order_id"]
    return order_id


class TestMidtransWebhook:
    """POST /api/webhooks/midtrans."""

    def test_settlement_commits(
        self, client: TestClient, midtrans_notification: Callable[..., dict[str, Any]]
    ) -> None:
        order_id = _checkout(client)

        response = client.post("/api/webhooks/midtrans", json=midtrans_notification(order_id))

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert data["ok"] is True
        assert data["result"]["outcome"] == "committed"
        assert data["result"]["status"] == "COMPLETED"
        assert data["result"]["registration_id"]

    def test_redelivery_is_duplicate(
        self, client: TestClient, midtrans_notification: Callable[..., dict[str, Any]]
    ) -> None:
        order_id = _checkout(client)
        payload = midtrans_notification(order_id)
        first = client.post("/api/webhooks/midtrans", json=payload).json()

        response = client.post("/api/webhooks/midtrans", json=payload)

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert data["result"]["outcome"] == "duplicate"
        assert data["result"]["registration_id"] == first["result"]["registration_id"]

    def test_invalid_signature(
        self, client: TestClient, midtrans_notification: Callable[..., dict[str, Any]]
    ) -> None:
        order_id = _checkout(client)
        payload = midtrans_notification(order_id)
        payload["signature_key"] = "forged"

        response = client.post("/api/webhooks/midtrans", json=payload)

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_PAY_001"
        assert client.get(f"/api/payments/{order_id}").status_code == 404

    def test_unknown_order_is_audit_only(
        self, client: TestClient, midtrans_notification: Callable[..., dict[str, Any]]
    ) -> None:
        response = client.post(
            "/api/webhooks/midtrans", json=midtrans_notification(UNKNOWN_ORDER_ID)
        )

        assert response.status_code == HTTP_200_OK
        assert response.json()["result"]["outcome"] == "audit_only"

    def test_pending_is_recorded(
        self, client: TestClient, midtrans_notification: Callable[..., dict[str, Any]]
    ) -> None:
        order_id = _checkout(client)

        response = client.post(
            "/api/webhooks/midtrans",
            json=midtrans_notification(order_id, transaction_status="pending", status_code="201"),
        )

        assert response.status_code == HTTP_200_OK
        assert response.json()["result"]["outcome"] == "recorded"
        assert response.json()["result"]["status"] == "PENDING"


class TestIpaymuWebhook:
    """POST /api/webhooks/ipaymu."""

    def test_signed_notification_commits(
        self,
        client: TestClient,
        ipaymu_notification: Callable[..., tuple[dict[str, Any], str]],
    ) -> None:
        order_id = _checkout(client, gateway="IPAYMU")
        payload, signature = ipaymu_notification(order_id)

        response = client.post(
            "/api/webhooks/ipaymu", json=payload, headers={"signature": signature}
        )

        assert response.status_code == HTTP_200_OK
        assert response.json()["result"]["outcome"] == "committed"

    def test_missing_signature_header(
        self,
        client: TestClient,
        ipaymu_notification: Callable[..., tuple[dict[str, Any], str]],
    ) -> None:
        order_id = _checkout(client, gateway="IPAYMU")
        payload, _ = ipaymu_notification(order_id)

        response = client.post("/api/webhooks/ipaymu", json=payload)

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_PAY_001"
