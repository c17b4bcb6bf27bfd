"""Enumeration types for registration and payment data models."""

from enum import Enum


class PaymentStatus(str, Enum):
    """Internal status of a payment, normalized from gateway vocabularies."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    """Payment channels offered at checkout."""

    QRIS = "QRIS"
    EWALLET = "EWALLET"
    VA = "VA"
    BANK_TRANSFER = "BANK_TRANSFER"
    CARD = "CARD"


class PaymentGateway(str, Enum):
    """Payment gateways a checkout can be routed through."""

    MIDTRANS = "MIDTRANS"
    IPAYMU = "IPAYMU"


class RegistrationSource(str, Enum):
    """Which price list a registration was made under."""

    MEMBER = "MEMBER"
    NON_MEMBER = "NON_MEMBER"
    ADMIN = "ADMIN"


class MemberStatus(str, Enum):
    """Lifecycle status of a member."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class UserRole(str, Enum):
    """Roles a platform user can hold."""

    USER = "USER"
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"


class ReconcileOutcome(str, Enum):
    """What a webhook delivery did to the durable state."""

    DUPLICATE = "duplicate"  # status unchanged, replay
    IGNORED = "ignored"  # out-of-order regression to PENDING
    UPDATED = "updated"
    LINKED = "linked"
    RECORDED = "recorded"
    AUDIT_ONLY = "audit_only"  # intent missing from cache
    COMMITTED = "committed"
