"""Payment model and the normalized gateway notification."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import PaymentGateway, PaymentMethod, PaymentStatus, ReconcileOutcome


class Payment(BaseModel):
    """Durable payment record, one per order ID.

    Amounts are whole rupiah.
    """

    order_id: str = Field(..., description="Unique order ID")
    email: str = Field(default="", description="Registrant email, empty when unknown")
    amount: int = Field(..., ge=0, description="Amount in IDR")
    currency: str = Field(default="IDR", description="Currency code")
    method: PaymentMethod | None = Field(default=None, description="Payment channel")
    gateway: PaymentGateway | None = Field(default=None, description="Gateway used")
    status: PaymentStatus = Field(..., description="Internal payment status")
    raw_payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Last gateway notification, retained for audit",
    )
    gateway_transaction_id: str | None = Field(
        default=None, description="Gateway-side transaction reference"
    )
    paid_at: datetime | None = Field(default=None, description="Settlement timestamp")
    registration_id: str | None = Field(
        default=None, description="Linked program registration"
    )
    member_id: str | None = Field(default=None, description="Linked member")
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def is_linked(self) -> bool:
        """Whether the payment has been attached to a registration or member."""
        return bool(self.registration_id or self.member_id)


class GatewayNotification(BaseModel):
    """A verified webhook notification normalized across gateways."""

    gateway: PaymentGateway
    order_id: str
    raw_status: str
    status: PaymentStatus
    gross_amount: int = 0
    transaction_id: str | None = None
    method: PaymentMethod | None = None
    raw_payload: dict[str, Any] = Field(default_factory=dict)


class WebhookResult(BaseModel):
    """Outcome of reconciling one webhook delivery."""

    order_id: str
    status: PaymentStatus
    outcome: ReconcileOutcome
    payment: Payment
    registration_id: str | None = None
    member_id: str | None = None
