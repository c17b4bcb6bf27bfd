"""FastAPI exception handlers for converting RegistrationError to HTTP responses.

Every RegistrationError becomes an ErrorResponse body. Gateway failures keep
the provider's status when it is an HTTP error status.

Usage:
    from regpay_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from regpay.models import ErrorCode, GatewayError, RegistrationError
from regpay.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Business rule violations -> 400
    ErrorCode.DUPLICATE_REGISTRATION: HTTP_400_BAD_REQUEST,
    ErrorCode.GATEWAY_NOT_CONFIGURED: HTTP_400_BAD_REQUEST,
    # Forged or malformed webhooks -> 400, gateways do not redeliver on 4xx
    ErrorCode.INVALID_SIGNATURE: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_NOTIFICATION: HTTP_400_BAD_REQUEST,
    # Unknown references -> 404
    ErrorCode.PROGRAM_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.PACKAGE_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: HTTP_404_NOT_FOUND,
    # Upstream failure without a usable status -> 502
    ErrorCode.GATEWAY_ERROR: HTTP_502_BAD_GATEWAY,
    # Settlement not applied; gateway should redeliver -> 503
    ErrorCode.COMMIT_FAILED: HTTP_503_SERVICE_UNAVAILABLE,
}


def get_http_status_for_error(exc: RegistrationError) -> int:
    """Get the HTTP status for a RegistrationError.

    Returns:
        The provider's status for a GatewayError reporting 4xx/5xx, otherwise
        the mapped status for the code, defaulting to 400.
    """
    if isinstance(exc, GatewayError) and 400 <= exc.status_code <= 599:
        return exc.status_code
    return ERROR_CODE_TO_HTTP_STATUS.get(exc.code, HTTP_400_BAD_REQUEST)


async def registration_error_handler(
    request: Request, exc: RegistrationError
) -> JSONResponse:
    """Convert a RegistrationError into a structured JSON response."""
    status_code = get_http_status_for_error(exc)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)

    return JSONResponse(
        status_code=status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the FastAPI app."""
    app.add_exception_handler(RegistrationError, registration_error_handler)  # type: ignore[arg-type]
