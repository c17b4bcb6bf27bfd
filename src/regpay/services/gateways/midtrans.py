"""Midtrans client: Core API charges, Snap transactions and notification checks.

Server key is read from SSM Parameter Store unless passed explicitly.
"""

import hashlib
import hmac
import os
from typing import Any

import httpx

from regpay.models import (
    ErrorCode,
    GatewayError,
    GatewayNotification,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
    RegistrationError,
)
from regpay.utils.logging import get_logger, log_payment_operation

from ..ssm_service import SSMServiceError, get_ssm_service
from .base import CheckoutParams, GatewayClient, parse_gross_amount

logger = get_logger(__name__)

MIDTRANS_STATUS_MAP: dict[str, PaymentStatus] = {
    "settlement": PaymentStatus.COMPLETED,
    "capture": PaymentStatus.COMPLETED,
    "success": PaymentStatus.COMPLETED,
    "pending": PaymentStatus.PENDING,
    "deny": PaymentStatus.FAILED,
    "cancel": PaymentStatus.FAILED,
    "failure": PaymentStatus.FAILED,
    "expire": PaymentStatus.FAILED,
    "refund": PaymentStatus.REFUNDED,
}

MIDTRANS_PAYMENT_TYPES: dict[str, PaymentMethod] = {
    "qris": PaymentMethod.QRIS,
    "gopay": PaymentMethod.EWALLET,
    "shopeepay": PaymentMethod.EWALLET,
    "bank_transfer": PaymentMethod.VA,
    "echannel": PaymentMethod.VA,
    "permata": PaymentMethod.VA,
    "credit_card": PaymentMethod.CARD,
}


def map_midtrans_status(transaction_status: str) -> PaymentStatus:
    """Map a Midtrans transaction_status token to an internal status.

    Unknown tokens map to FAILED.
    """
    return MIDTRANS_STATUS_MAP.get(transaction_status.strip().lower(), PaymentStatus.FAILED)


class MidtransClient(GatewayClient):
    """Primary gateway client.

    QRIS and e-wallet checkouts go through the Core API charge endpoint and
    return a QR string or deeplink; every other method opens a Snap
    transaction and returns a token plus redirect URL.
    """

    gateway = PaymentGateway.MIDTRANS

    def __init__(
        self,
        server_key: str | None = None,
        *,
        environment: str | None = None,
        api_url: str | None = None,
        snap_url: str | None = None,
        frontend_url: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._server_key = server_key
        self.api_url = (
            api_url
            or os.environ.get("MIDTRANS_API_URL", "https://api.sandbox.midtrans.com/v2")
        ).rstrip("/")
        self.snap_url = (
            snap_url
            or os.environ.get(
                "MIDTRANS_SNAP_URL", "https://app.sandbox.midtrans.com/snap/v1"
            )
        ).rstrip("/")
        self.frontend_url = (
            frontend_url or os.environ.get("FRONTEND_URL", "http://localhost:3000")
        ).rstrip("/")

    @property
    def server_key(self) -> str:
        """Server key, fetched from SSM on first use."""
        if self._server_key is None:
            try:
                self._server_key = get_ssm_service().get_gateway_secret(
                    self.gateway, "server_key", self._environment
                )
            except SSMServiceError as e:
                raise RegistrationError(
                    ErrorCode.GATEWAY_NOT_CONFIGURED,
                    details={"gateway": self.gateway.value, "reason": str(e)},
                ) from e
        return self._server_key

    def _auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(self.server_key, "")

    def create_checkout(self, params: CheckoutParams) -> dict[str, Any]:
        """Open a Midtrans transaction for the given order.

        Args:
            params: Normalized order, buyer and item details

        Returns:
            Gateway response body (charge result or Snap token/redirect_url)

        Raises:
            GatewayError: If Midtrans rejects the request
        """
        body: dict[str, Any] = {
            "transaction_details": {
                "order_id": params.order_id,
                "gross_amount": params.amount,
            },
            "customer_details": {
                "first_name": params.name,
                "email": params.email,
                "phone": params.phone or "",
            },
            "item_details": [
                {
                    "id": params.item_id,
                    "price": params.amount,
                    "quantity": 1,
                    "name": params.item_name[:50],
                }
            ],
        }

        if params.method == PaymentMethod.QRIS:
            body["payment_type"] = "qris"
            url = f"{self.api_url}/charge"
        elif params.method == PaymentMethod.EWALLET:
            body["payment_type"] = "gopay"
            body["gopay"] = {
                "enable_callback": True,
                "callback_url": f"{self.frontend_url}/payment/success",
            }
            url = f"{self.api_url}/charge"
        else:
            body["callbacks"] = {"finish": f"{self.frontend_url}/payment/success"}
            url = f"{self.snap_url}/transactions"

        response = self._send("POST", url, json=body, auth=self._auth())
        result = self._checked_body(response)

        log_payment_operation(
            logger,
            "create_checkout",
            order_id=params.order_id,
            gateway=self.gateway.value,
            amount=params.amount,
            method=params.method.value,
        )
        return result

    def get_transaction_status(self, order_id: str) -> dict[str, Any]:
        """Fetch the current status of a transaction from Midtrans."""
        response = self._send(
            "GET", f"{self.api_url}/{order_id}/status", auth=self._auth()
        )
        return self._checked_body(response)

    def verify_notification_signature(self, payload: dict[str, Any]) -> bool:
        """Check ``signature_key`` against SHA-512(order_id+status_code+gross_amount+server_key)."""
        supplied = payload.get("signature_key")
        if not isinstance(supplied, str) or not supplied:
            return False
        raw = (
            f"{payload.get('order_id', '')}"
            f"{payload.get('status_code', '')}"
            f"{payload.get('gross_amount', '')}"
            f"{self.server_key}"
        )
        expected = hashlib.sha512(raw.encode("utf-8")).hexdigest()
        return hmac.compare_digest(expected, supplied)

    def parse_notification(
        self, payload: dict[str, Any], signature: str | None = None
    ) -> GatewayNotification:
        """Verify and normalize a Midtrans HTTP notification.

        The signature travels inside the payload; the ``signature`` argument
        is accepted for interface parity and ignored.

        Raises:
            RegistrationError: INVALID_SIGNATURE on a forged payload,
                INVALID_NOTIFICATION when required fields are missing
        """
        order_id = payload.get("order_id")
        if not self.verify_notification_signature(payload):
            logger.warning("Rejected Midtrans notification for %s: bad signature", order_id)
            raise RegistrationError(
                ErrorCode.INVALID_SIGNATURE,
                details={"gateway": self.gateway.value, "order_id": order_id},
            )

        transaction_status = payload.get("transaction_status")
        if not order_id or not transaction_status:
            raise RegistrationError(
                ErrorCode.INVALID_NOTIFICATION,
                details={"gateway": self.gateway.value, "order_id": order_id},
            )

        payment_type = str(payload.get("payment_type") or "").lower()
        return GatewayNotification(
            gateway=self.gateway,
            order_id=str(order_id),
            raw_status=str(transaction_status),
            status=map_midtrans_status(str(transaction_status)),
            gross_amount=parse_gross_amount(payload.get("gross_amount", 0)),
            transaction_id=payload.get("transaction_id"),
            method=MIDTRANS_PAYMENT_TYPES.get(payment_type),
            raw_payload=payload,
        )

    def _checked_body(self, response: httpx.Response) -> dict[str, Any]:
        """Decode a response, raising GatewayError on HTTP or body-level failure.

        Core API answers HTTP 200 with a ``status_code`` field that may itself
        carry the failure.
        """
        if response.status_code >= 400:
            raise GatewayError(
                self.gateway.value, response.status_code, self._error_message(response)
            )
        try:
            body: dict[str, Any] = response.json()
        except ValueError as e:
            raise GatewayError(
                self.gateway.value, 502, "Invalid JSON from gateway"
            ) from e

        reported = body.get("status_code")
        if reported is not None:
            try:
                reported_code = int(reported)
            except (TypeError, ValueError):
                reported_code = 200
            if reported_code >= 400:
                raise GatewayError(
                    self.gateway.value,
                    reported_code,
                    str(body.get("status_message") or "Request rejected"),
                )
        return body
