"""Durable registration-side entities: programs, registrations, members, users."""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import MemberStatus, PaymentGateway, RegistrationSource, UserRole


class Program(BaseModel):
    """A workshop or bootcamp that can be registered for."""

    program_id: str
    name: str
    member_price: int | None = Field(default=None, ge=0)
    non_member_price: int | None = Field(default=None, ge=0)


class MembershipPackage(BaseModel):
    """A purchasable membership package."""

    membership_package_id: str
    name: str
    price: int | None = Field(default=None, ge=0)


class ProgramRegistration(BaseModel):
    """Enrollment of an email in a program. Unique on (email, program_id)."""

    registration_id: str
    email: str
    program_id: str
    name: str
    phone: str | None = None
    institution: str | None = None
    segment: str | None = None
    member_id: str | None = None
    user_id: str | None = None
    source: RegistrationSource
    created_at: datetime


class Member(BaseModel):
    """A paying member. Unique by email."""

    member_id: str
    email: str
    name: str
    phone: str | None = None
    institution: str | None = None
    segment: str | None = None
    degree: str | None = None
    student_id: str | None = None
    interest_areas: list[str] = Field(default_factory=list)
    membership_package_id: str | None = None
    status: MemberStatus = MemberStatus.ACTIVE
    user_id: str | None = None
    join_date: datetime | None = None
    created_at: datetime


class User(BaseModel):
    """Platform account. Unique by email."""

    user_id: str
    email: str
    name: str
    phone: str | None = None
    role: UserRole = UserRole.USER
    is_email_verified: bool = False
    created_at: datetime


class ProgramPrice(BaseModel):
    """Resolved price for a program registration."""

    program_id: str
    program_name: str
    amount: int | None
    source: RegistrationSource
    member_id: str | None = None


class MembershipPrice(BaseModel):
    """Resolved price for a membership package."""

    id: str
    name: str
    amount: int | None


class CheckoutResult(BaseModel):
    """Client-renderable payment descriptor returned by checkout."""

    order_id: str
    amount: int
    currency: str = "IDR"
    gateway: PaymentGateway
    gateway_response: dict = Field(
        default_factory=dict,
        description="Redirect URL, QR string or token from the gateway",
    )
