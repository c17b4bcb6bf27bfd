"""Standard error codes for checkout and webhook reconciliation.

Every failure the core raises carries one of these codes so the API layer can
render a consistent, structured response.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Checkout error codes (ERR_001-ERR_005)
    DUPLICATE_REGISTRATION = "ERR_001"
    PROGRAM_NOT_FOUND = "ERR_002"
    PACKAGE_NOT_FOUND = "ERR_003"
    PAYMENT_NOT_FOUND = "ERR_004"
    GATEWAY_NOT_CONFIGURED = "ERR_005"

    # Gateway and webhook error codes (ERR_PAY_001-ERR_PAY_004)
    INVALID_SIGNATURE = "ERR_PAY_001"
    INVALID_NOTIFICATION = "ERR_PAY_002"
    GATEWAY_ERROR = "ERR_PAY_003"
    COMMIT_FAILED = "ERR_PAY_004"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.DUPLICATE_REGISTRATION: "Email is already registered",
    ErrorCode.PROGRAM_NOT_FOUND: "Program not found",
    ErrorCode.PACKAGE_NOT_FOUND: "Membership package not found",
    ErrorCode.PAYMENT_NOT_FOUND: "Payment not found",
    ErrorCode.GATEWAY_NOT_CONFIGURED: "Payment gateway is not available",
    ErrorCode.INVALID_SIGNATURE: "Invalid webhook signature",
    ErrorCode.INVALID_NOTIFICATION: "Malformed payment notification",
    ErrorCode.GATEWAY_ERROR: "Payment gateway error occurred",
    ErrorCode.COMMIT_FAILED: "Payment could not be recorded",
}

ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.DUPLICATE_REGISTRATION: "Use a different email or check the existing registration",
    ErrorCode.PROGRAM_NOT_FOUND: "Verify the program ID",
    ErrorCode.PACKAGE_NOT_FOUND: "Verify the membership package ID",
    ErrorCode.PAYMENT_NOT_FOUND: "Verify the order ID",
    ErrorCode.GATEWAY_NOT_CONFIGURED: "Choose another payment gateway",
    ErrorCode.INVALID_SIGNATURE: "Verify gateway credentials configuration",
    ErrorCode.INVALID_NOTIFICATION: "Verify the notification payload format",
    ErrorCode.GATEWAY_ERROR: "Try again or contact support",
    ErrorCode.COMMIT_FAILED: "The gateway will redeliver the notification; retry later",
}


class ErrorResponse(BaseModel):
    """Structured error body returned by every failing endpoint."""

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, Any]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, Any]] = None,
        message: Optional[str] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error
            message: Optional message overriding the default for the code

        Returns:
            An ErrorResponse with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            message=message or ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class RegistrationError(Exception):
    """Exception raised by checkout and reconciliation operations."""

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, Any]] = None,
        message: Optional[str] = None,
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert this exception to a structured error body."""
        return ErrorResponse.from_code(self.code, self.details, self.message)


class GatewayError(RegistrationError):
    """Upstream payment provider failure.

    Carries the provider's reported status and message so callers can surface
    them unchanged. Not retried by the caller.
    """

    def __init__(
        self,
        gateway: str,
        status_code: int,
        gateway_message: str,
    ):
        self.gateway = gateway
        self.status_code = status_code
        self.gateway_message = gateway_message
        super().__init__(
            ErrorCode.GATEWAY_ERROR,
            details={
                "gateway": gateway,
                "status_code": status_code,
                "gateway_message": gateway_message,
            },
            message=f"{gateway} error: {gateway_message}",
        )
