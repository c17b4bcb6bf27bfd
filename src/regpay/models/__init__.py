"""Pydantic models for registration and payment entities."""

from .enums import (
    MemberStatus,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
    ReconcileOutcome,
    RegistrationSource,
    UserRole,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    ErrorCode,
    ErrorResponse,
    GatewayError,
    RegistrationError,
)
from .intent import (
    MembershipIntent,
    ProgramIntent,
    RegistrationIntent,
    intent_adapter,
)
from .payment import GatewayNotification, Payment, WebhookResult
from .registration import (
    CheckoutResult,
    Member,
    MembershipPackage,
    MembershipPrice,
    Program,
    ProgramPrice,
    ProgramRegistration,
    User,
)

__all__ = [
    # Enums
    "MemberStatus",
    "PaymentGateway",
    "PaymentMethod",
    "PaymentStatus",
    "ReconcileOutcome",
    "RegistrationSource",
    "UserRole",
    # Errors
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "ErrorCode",
    "ErrorResponse",
    "GatewayError",
    "RegistrationError",
    # Intents
    "MembershipIntent",
    "ProgramIntent",
    "RegistrationIntent",
    "intent_adapter",
    # Payment
    "GatewayNotification",
    "Payment",
    "WebhookResult",
    # Registration
    "CheckoutResult",
    "Member",
    "MembershipPackage",
    "MembershipPrice",
    "Program",
    "ProgramPrice",
    "ProgramRegistration",
    "User",
]
