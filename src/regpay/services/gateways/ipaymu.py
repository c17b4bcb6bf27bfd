"""iPaymu client: redirect payments and signed notifications."""

import datetime as dt
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
from .base import (
    CheckoutParams,
    GatewayClient,
    canonical_json,
    parse_gross_amount,
    sign_request,
)

logger = get_logger(__name__)

IPAYMU_STATUS_MAP: dict[str, PaymentStatus] = {
    "berhasil": PaymentStatus.COMPLETED,
    "sukses": PaymentStatus.COMPLETED,
    "success": PaymentStatus.COMPLETED,
    "completed": PaymentStatus.COMPLETED,
    "pending": PaymentStatus.PENDING,
    "gagal": PaymentStatus.FAILED,
    "failed": PaymentStatus.FAILED,
    "cancel": PaymentStatus.FAILED,
    "expired": PaymentStatus.FAILED,
}

IPAYMU_CHANNELS: dict[str, PaymentMethod] = {
    "qris": PaymentMethod.QRIS,
    "va": PaymentMethod.VA,
    "banktransfer": PaymentMethod.BANK_TRANSFER,
    "bank_transfer": PaymentMethod.BANK_TRANSFER,
    "cc": PaymentMethod.CARD,
    "credit_card": PaymentMethod.CARD,
    "ewallet": PaymentMethod.EWALLET,
    "gopay": PaymentMethod.EWALLET,
    "ovo": PaymentMethod.EWALLET,
    "dana": PaymentMethod.EWALLET,
    "shopeepay": PaymentMethod.EWALLET,
    "linkaja": PaymentMethod.EWALLET,
}


def map_ipaymu_status(status: str) -> PaymentStatus:
    """Map an iPaymu status token to an internal status.

    ``unknown`` and any unrecognized token map to FAILED.
    """
    return IPAYMU_STATUS_MAP.get(status.strip().lower(), PaymentStatus.FAILED)


class IpaymuClient(GatewayClient):
    """Secondary gateway client.

    Outbound requests and inbound notifications are both signed with
    ``sign_request`` using the merchant virtual account and API key.
    """

    gateway = PaymentGateway.IPAYMU

    def __init__(
        self,
        va: str | None = None,
        api_key: str | None = None,
        *,
        environment: str | None = None,
        api_url: str | None = None,
        frontend_url: str | None = None,
        notify_url: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._va = va
        self._api_key = api_key
        self.api_url = (
            api_url or os.environ.get("IPAYMU_API_URL", "https://sandbox.ipaymu.com/api/v2")
        ).rstrip("/")
        self.frontend_url = (
            frontend_url or os.environ.get("FRONTEND_URL", "http://localhost:3000")
        ).rstrip("/")
        self.notify_url = notify_url or (
            os.environ.get("API_URL", "http://localhost:8080/api").rstrip("/")
            + "/webhooks/ipaymu"
        )

    def _secret(self, name: str) -> str:
        try:
            return get_ssm_service().get_gateway_secret(self.gateway, name, self._environment)
        except SSMServiceError as e:
            raise RegistrationError(
                ErrorCode.GATEWAY_NOT_CONFIGURED,
                details={"gateway": self.gateway.value, "reason": str(e)},
            ) from e

    @property
    def va(self) -> str:
        if self._va is None:
            self._va = self._secret("va")
        return self._va

    @property
    def api_key(self) -> str:
        if self._api_key is None:
            self._api_key = self._secret("api_key")
        return self._api_key

    def create_checkout(self, params: CheckoutParams) -> dict[str, Any]:
        """Open an iPaymu redirect payment.

        Args:
            params: Normalized order, buyer and item details

        Returns:
            The ``Data`` object of the response (SessionID and Url)

        Raises:
            GatewayError: If iPaymu rejects the request
        """
        body: dict[str, Any] = {
            "product": [params.item_name],
            "qty": ["1"],
            "price": [str(params.amount)],
            "description": [params.item_name],
            "returnUrl": f"{self.frontend_url}/payment/success",
            "cancelUrl": f"{self.frontend_url}/payment/cancel",
            "notifyUrl": self.notify_url,
            "referenceId": params.order_id,
            "buyerName": params.name,
            "buyerEmail": params.email,
            "buyerPhone": params.phone or "",
        }
        data = self._post("/payment", body)

        log_payment_operation(
            logger,
            "create_checkout",
            order_id=params.order_id,
            gateway=self.gateway.value,
            amount=params.amount,
            session_id=data.get("SessionID"),
        )
        return data

    def check_transaction(self, transaction_id: str | int) -> dict[str, Any]:
        """Look up a transaction by its iPaymu transaction ID."""
        return self._post("/transaction", {"transactionId": str(transaction_id)})

    def verify_notification_signature(
        self, payload: dict[str, Any], signature: str | None
    ) -> bool:
        """Check an inbound signature against the outbound signing scheme."""
        if not signature:
            return False
        expected = sign_request("POST", self.va, payload, self.api_key)
        return hmac.compare_digest(expected, signature)

    def parse_notification(
        self, payload: dict[str, Any], signature: str | None = None
    ) -> GatewayNotification:
        """Verify and normalize an iPaymu notification.

        Args:
            payload: Notification body
            signature: Value of the ``signature`` request header

        Raises:
            RegistrationError: INVALID_SIGNATURE when the header is missing
                or wrong, INVALID_NOTIFICATION when required fields are missing
        """
        order_id = payload.get("reference_id")
        if not self.verify_notification_signature(payload, signature):
            logger.warning("Rejected iPaymu notification for %s: bad signature", order_id)
            raise RegistrationError(
                ErrorCode.INVALID_SIGNATURE,
                details={"gateway": self.gateway.value, "order_id": order_id},
            )

        status = payload.get("status")
        if not order_id or not status:
            raise RegistrationError(
                ErrorCode.INVALID_NOTIFICATION,
                details={"gateway": self.gateway.value, "order_id": order_id},
            )

        trx_id = payload.get("trx_id")
        via = str(payload.get("via") or "").lower()
        return GatewayNotification(
            gateway=self.gateway,
            order_id=str(order_id),
            raw_status=str(status),
            status=map_ipaymu_status(str(status)),
            gross_amount=parse_gross_amount(payload.get("amount", 0)),
            transaction_id=str(trx_id) if trx_id is not None else None,
            method=IPAYMU_CHANNELS.get(via),
            raw_payload=payload,
        )

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST a signed body and return the ``Data`` object."""
        content = canonical_json(body)
        headers = {
            "Content-Type": "application/json",
            "va": self.va,
            "signature": sign_request("POST", self.va, body, self.api_key),
            "timestamp": dt.datetime.now(dt.UTC).strftime("%Y%m%d%H%M%S"),
        }
        response = self._send("POST", f"{self.api_url}{path}", content=content, headers=headers)
        return self._checked_data(response)

    def _checked_data(self, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            if response.status_code >= 400:
                raise GatewayError(
                    self.gateway.value, response.status_code, self._error_message(response)
                ) from e
            raise GatewayError(self.gateway.value, 502, "Invalid JSON from gateway") from e

        reported = body.get("Status", response.status_code)
        try:
            reported_code = int(reported)
        except (TypeError, ValueError):
            reported_code = response.status_code
        if response.status_code >= 400 or reported_code != 200:
            raise GatewayError(
                self.gateway.value,
                reported_code if reported_code >= 400 else max(response.status_code, 502),
                str(body.get("Message") or "Request rejected"),
            )
        data: dict[str, Any] = body.get("Data") or {}
        return data
