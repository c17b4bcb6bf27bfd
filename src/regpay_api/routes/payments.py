"""Checkout and payment lookup endpoints.

Checkout opens a gateway transaction and parks the intent in the cache; the
durable records are written later by the webhook endpoints.
"""

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from starlette.status import HTTP_201_CREATED

from regpay.models import (
    CheckoutResult,
    ErrorCode,
    ErrorResponse,
    Payment,
    RegistrationError,
)
from regpay.services.checkout import CheckoutService
from regpay.services.registration_store import RegistrationStore
from regpay_api.dependencies import get_checkout_service, get_registration_store
from regpay_api.models.checkout import (
    CheckEmailResponse,
    MembershipCheckoutRequest,
    ProgramCheckoutRequest,
)

router = APIRouter(tags=["payments"])


def _checkout_response(result: CheckoutResult) -> dict[str, Any]:
    """Render the client payload, keyed by gateway (``midtrans`` / ``ipaymu``)."""
    return {
        "order_id": result.order_id,
        "amount": result.amount,
        "currency": result.currency,
        "gateway": result.gateway.value,
        result.gateway.value.lower(): result.gateway_response,
    }


@router.post(
    "/payments/checkout/program",
    summary="Start program registration checkout",
    description="""
Open a payment for a program registration.

The price is the member price when the email belongs to an existing member,
otherwise the non-member price. No registration is stored until the gateway
confirms the payment via webhook.
""",
    status_code=HTTP_201_CREATED,
    responses={
        201: {"description": "Gateway transaction opened"},
        400: {"description": "Already registered for this program", "model": ErrorResponse},
        404: {"description": "Program not found", "model": ErrorResponse},
        502: {"description": "Gateway error", "model": ErrorResponse},
    },
)
def checkout_program(
    body: ProgramCheckoutRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
) -> dict[str, Any]:
    result = checkout.checkout_program(
        program_id=body.program_id,
        email=body.email,
        name=body.name,
        phone=body.phone,
        institution=body.institution,
        segment=body.segment,
        method=body.method,
        gateway=body.gateway,
    )
    return _checkout_response(result)


@router.post(
    "/payments/checkout/membership",
    summary="Start membership package checkout",
    description="""
Open a payment for a membership package.

The member, and a user account if none exists, are created once the gateway
confirms the payment via webhook.
""",
    status_code=HTTP_201_CREATED,
    responses={
        201: {"description": "Gateway transaction opened"},
        400: {"description": "Already a member", "model": ErrorResponse},
        404: {"description": "Membership package not found", "model": ErrorResponse},
        502: {"description": "Gateway error", "model": ErrorResponse},
    },
)
def checkout_membership(
    body: MembershipCheckoutRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
) -> dict[str, Any]:
    result = checkout.checkout_membership(
        membership_package_id=body.membership_package_id,
        email=body.email,
        name=body.name,
        phone=body.phone,
        institution=body.institution,
        segment=body.segment,
        interest_areas=body.interest_areas,
        join_date=body.join_date,
        student_id=body.student_id,
        degree=body.degree,
        method=body.method,
        gateway=body.gateway,
    )
    return _checkout_response(result)


@router.get(
    "/payments/check-email",
    summary="Check what is known about an email",
    response_model=CheckEmailResponse,
)
def check_email(
    email: str = Query(..., min_length=3),
    purpose: Literal["program", "membership"] = Query(default="program"),
    store: RegistrationStore = Depends(get_registration_store),
) -> CheckEmailResponse:
    """Used by checkout forms to prefill details and warn about duplicates."""
    return CheckEmailResponse(**store.check_email_registration(email, purpose))


@router.get(
    "/payments/{order_id}",
    summary="Get payment by order ID",
    response_model=Payment,
    responses={404: {"description": "Payment not found", "model": ErrorResponse}},
)
def get_payment(
    order_id: str,
    store: RegistrationStore = Depends(get_registration_store),
) -> Payment:
    payment = store.get_payment(order_id)
    if payment is None:
        raise RegistrationError(ErrorCode.PAYMENT_NOT_FOUND, details={"order_id": order_id})
    return payment
