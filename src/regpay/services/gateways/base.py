"""Shared plumbing for payment gateway clients.

Every outbound call goes through ``GatewayClient._send`` which applies a
bounded timeout and retries transport failures and throttling/unavailable
responses with exponential backoff. Retries are safe because each request
carries the caller-generated order ID as the gateway-side reference.
"""

import hashlib
import hmac
import json
import os
import time
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from pydantic import BaseModel, Field

from regpay.models import (
    ErrorCode,
    GatewayError,
    GatewayNotification,
    PaymentGateway,
    PaymentMethod,
    RegistrationError,
)
from regpay.utils.logging import get_logger, log_payment_operation

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_RETRIES = 2


def canonical_json(body: dict[str, Any]) -> str:
    """Serialize a request body as stable JSON (sorted keys, no whitespace)."""
    return json.dumps(body, sort_keys=True, separators=(",", ":"))


def sign_request(method: str, merchant_id: str, body: dict[str, Any], api_key: str) -> str:
    """Compute the HMAC request signature shared by both gateways.

    The body is canonicalized and hashed with SHA-256, the string
    ``METHOD:MERCHANT_ID:BODY_HASH:API_KEY`` is built and signed with
    HMAC-SHA256 keyed by the API key.

    Args:
        method: HTTP method, upper-cased in the signed string
        merchant_id: Merchant identifier (iPaymu virtual account)
        body: Request body exactly as it will be sent
        api_key: Merchant API key

    Returns:
        Hex-encoded signature
    """
    body_hash = hashlib.sha256(canonical_json(body).encode("utf-8")).hexdigest()
    string_to_sign = f"{method.upper()}:{merchant_id}:{body_hash}:{api_key}"
    return hmac.new(
        api_key.encode("utf-8"),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def parse_gross_amount(value: Any) -> int:
    """Parse a gateway amount such as ``"150000.00"`` into whole rupiah."""
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError, OverflowError) as e:
        raise RegistrationError(
            ErrorCode.INVALID_NOTIFICATION,
            details={"gross_amount": value},
        ) from e


class CheckoutParams(BaseModel):
    """Normalized buyer and item details handed to a gateway."""

    order_id: str
    amount: int = Field(..., ge=0)
    email: str
    name: str
    phone: str | None = None
    item_id: str
    item_name: str
    method: PaymentMethod = PaymentMethod.QRIS


class GatewayClient:
    """Base class for synchronous gateway HTTP clients.

    Subclasses set ``gateway`` and implement ``create_checkout`` and
    ``parse_notification``.
    """

    gateway: PaymentGateway

    def __init__(
        self,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float = 0.5,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize HTTP settings.

        Args:
            timeout: Per-request timeout. Defaults to GATEWAY_TIMEOUT_SECONDS.
            max_retries: Retries after the first attempt. Defaults to GATEWAY_MAX_RETRIES.
            backoff_seconds: Base delay, doubled on every retry
            http_client: Pre-built client (tests inject a MockTransport here)
        """
        self._timeout = timeout or float(
            os.environ.get("GATEWAY_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
        )
        self._max_retries = (
            max_retries
            if max_retries is not None
            else int(os.environ.get("GATEWAY_MAX_RETRIES", DEFAULT_MAX_RETRIES))
        )
        self._backoff_seconds = backoff_seconds
        self._http = http_client or httpx.Client(timeout=self._timeout)

    def create_checkout(self, params: CheckoutParams) -> dict[str, Any]:
        raise NotImplementedError

    def parse_notification(
        self, payload: dict[str, Any], signature: str | None = None
    ) -> GatewayNotification:
        raise NotImplementedError

    def close(self) -> None:
        self._http.close()

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with bounded retries.

        Returns:
            The first non-retryable response (callers inspect the status)

        Raises:
            GatewayError: When every attempt failed at transport level or
                with a retryable status
        """
        attempt = 0
        while True:
            try:
                response = self._http.request(method, url, timeout=self._timeout, **kwargs)
            except httpx.TransportError as e:
                if attempt >= self._max_retries:
                    log_payment_operation(
                        logger,
                        "gateway_request",
                        gateway=self.gateway.value,
                        error=str(e),
                        attempts=attempt + 1,
                    )
                    raise GatewayError(
                        self.gateway.value, 503, f"Gateway unreachable: {e}"
                    ) from e
                logger.warning(
                    "%s transport error on attempt %d: %s",
                    self.gateway.value,
                    attempt + 1,
                    e,
                )
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    return response
                if attempt >= self._max_retries:
                    raise GatewayError(
                        self.gateway.value,
                        response.status_code,
                        self._error_message(response),
                    )
                logger.warning(
                    "%s returned %d on attempt %d, retrying",
                    self.gateway.value,
                    response.status_code,
                    attempt + 1,
                )

            time.sleep(self._backoff_seconds * (2**attempt))
            attempt += 1

    def _error_message(self, response: httpx.Response) -> str:
        """Extract a human-readable message from an error response."""
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            for key in ("status_message", "Message", "message", "error_messages"):
                if body.get(key):
                    value = body[key]
                    return ", ".join(value) if isinstance(value, list) else str(value)
        return response.text or response.reason_phrase
