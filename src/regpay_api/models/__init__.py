"""API-specific request/response models.

Domain models (Payment, WebhookResult, ...) live in regpay.models and are
reused here where appropriate.
"""

from .checkout import (
    CheckEmailResponse,
    MembershipCheckoutRequest,
    ProgramCheckoutRequest,
    WebhookAck,
)

__all__ = [
    "CheckEmailResponse",
    "MembershipCheckoutRequest",
    "ProgramCheckoutRequest",
    "WebhookAck",
]
