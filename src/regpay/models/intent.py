"""Checkout intents held in the ephemeral cache until a webhook settles them."""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from .enums import PaymentGateway, PaymentMethod, RegistrationSource


class IntentBase(BaseModel):
    """Fields shared by every pending checkout."""

    order_id: str = Field(..., description="Order ID (correlation key)")
    email: str = Field(..., description="Normalized registrant email")
    name: str
    phone: str | None = None
    institution: str | None = None
    segment: str | None = None
    amount: int = Field(..., ge=0, description="Computed amount in IDR")
    currency: Literal["IDR"] = "IDR"
    method: PaymentMethod = PaymentMethod.QRIS
    gateway: PaymentGateway
    user_id: str | None = None
    created_at: datetime


class ProgramIntent(IntentBase):
    """Pending program registration."""

    kind: Literal["program"] = "program"
    program_id: str
    member_id: str | None = Field(
        default=None, description="Existing member the price was resolved for"
    )
    source: RegistrationSource = RegistrationSource.NON_MEMBER


class MembershipIntent(IntentBase):
    """Pending membership package purchase."""

    kind: Literal["membership"] = "membership"
    membership_package_id: str
    interest_areas: list[str] = Field(default_factory=list)
    join_date: datetime | None = None
    student_id: str | None = None
    degree: str | None = None
    source: RegistrationSource = RegistrationSource.NON_MEMBER


RegistrationIntent = Annotated[
    Union[ProgramIntent, MembershipIntent],
    Field(discriminator="kind"),
]

intent_adapter: TypeAdapter[RegistrationIntent] = TypeAdapter(RegistrationIntent)
