"""Webhook endpoints for payment gateway notifications.

These endpoints do not require authentication; every payload is verified
against the gateway's signature scheme before any state changes. Replays
are acknowledged with 200 so gateways stop redelivering.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Header

from regpay.models import ErrorResponse, PaymentGateway
from regpay.services.webhook_reconciler import WebhookReconciler
from regpay_api.dependencies import get_webhook_reconciler
from regpay_api.models.checkout import WebhookAck

router = APIRouter(tags=["webhooks"])

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"description": "Invalid signature or malformed notification", "model": ErrorResponse},
    503: {"description": "Settlement could not be committed, retry later", "model": ErrorResponse},
}


@router.post(
    "/webhooks/midtrans",
    summary="Receive Midtrans payment notifications",
    description="""
HTTP notification endpoint for Midtrans. The `signature_key` field is
verified as SHA-512(order_id + status_code + gross_amount + server_key).
""",
    response_model=WebhookAck,
    responses=_ERROR_RESPONSES,
)
def midtrans_webhook(
    payload: dict[str, Any] = Body(...),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
) -> WebhookAck:
    result = reconciler.process(PaymentGateway.MIDTRANS, payload)
    return WebhookAck(ok=True, result=result)


@router.post(
    "/webhooks/ipaymu",
    summary="Receive iPaymu payment notifications",
    description="""
Notification endpoint for iPaymu. The `signature` header must carry the
HMAC-SHA256 signature of the body computed with the merchant VA and API key.
""",
    response_model=WebhookAck,
    responses=_ERROR_RESPONSES,
)
def ipaymu_webhook(
    payload: dict[str, Any] = Body(...),
    signature: str | None = Header(default=None),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
) -> WebhookAck:
    result = reconciler.process(PaymentGateway.IPAYMU, payload, signature)
    return WebhookAck(ok=True, result=result)
