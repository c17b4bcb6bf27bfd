"""API models for checkout and webhook endpoints.

Request bodies accept both camelCase (as sent by the web client) and
snake_case field names. Responses, including checkout results, webhook
acknowledgements, payment rows and error bodies, are always snake_case
(`order_id`, `registration_id`, `error_code`).
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from regpay.models import PaymentGateway, PaymentMethod, WebhookResult


class _CheckoutRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: EmailStr = Field(..., description="Registrant email")
    name: str = Field(..., min_length=1, max_length=200)
    phone: str | None = Field(default=None, max_length=30)
    institution: str | None = Field(default=None, max_length=200)
    segment: str | None = None
    method: PaymentMethod = Field(
        default=PaymentMethod.QRIS, description="Payment channel"
    )
    gateway: PaymentGateway = Field(
        default=PaymentGateway.MIDTRANS, description="Gateway to route the payment through"
    )


class ProgramCheckoutRequest(_CheckoutRequest):
    """Request to pay for a program registration."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "programId": "prog-1",
                    "email": "a@example.com",
                    "name": "Ayu",
                    "method": "QRIS",
                }
            ]
        },
    )

    program_id: str = Field(..., min_length=1, description="Program to register for")


class MembershipCheckoutRequest(_CheckoutRequest):
    """Request to pay for a membership package."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "membershipPackageId": "pkg-basic",
                    "email": "a@example.com",
                    "name": "Ayu",
                    "interestAreas": ["data", "ai"],
                }
            ]
        },
    )

    membership_package_id: str = Field(..., min_length=1)
    interest_areas: list[str] = Field(default_factory=list)
    join_date: datetime | None = None
    student_id: str | None = None
    degree: str | None = None


class CheckEmailResponse(BaseModel):
    """What the platform already knows about an email."""

    type: Literal["user", "member", "unregistered"]
    result: list[dict[str, Any]]


class WebhookAck(BaseModel):
    """Acknowledgement returned to the gateway."""

    ok: bool = True
    result: WebhookResult
