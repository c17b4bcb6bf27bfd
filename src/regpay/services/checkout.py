"""Checkout orchestration for program registrations and membership packages.

Checkout never writes to the durable store: the priced intent is parked in
the intent cache until a gateway webhook confirms payment.
"""

import datetime as dt

from regpay.models import (
    CheckoutResult,
    ErrorCode,
    GatewayError,
    MembershipIntent,
    PaymentGateway,
    PaymentMethod,
    ProgramIntent,
    RegistrationError,
)
from regpay.utils.email import normalize_email
from regpay.utils.logging import get_logger, log_payment_operation
from regpay.utils.order_id import MEMBERSHIP_PREFIX, PROGRAM_PREFIX, generate_order_id

from .gateways.base import CheckoutParams
from .ports import CachePort, GatewayPort, PricingPort, StorePort

logger = get_logger(__name__)


class CheckoutService:
    """Opens gateway transactions and caches the pending intent."""

    def __init__(
        self,
        pricing: PricingPort,
        cache: CachePort,
        gateways: dict[PaymentGateway, GatewayPort],
        store: StorePort,
    ) -> None:
        """Initialize checkout service.

        Args:
            pricing: Price resolver
            cache: Intent cache
            gateways: Gateway clients by gateway identifier
            store: Durable store, read for the duplicate pre-check
        """
        self.pricing = pricing
        self.cache = cache
        self.gateways = gateways
        self.store = store

    def checkout_program(
        self,
        *,
        program_id: str,
        email: str,
        name: str,
        phone: str | None = None,
        institution: str | None = None,
        segment: str | None = None,
        method: PaymentMethod = PaymentMethod.QRIS,
        gateway: PaymentGateway = PaymentGateway.MIDTRANS,
        user_id: str | None = None,
    ) -> CheckoutResult:
        """Start payment for a program registration.

        Returns:
            CheckoutResult with the order ID and gateway payload

        Raises:
            RegistrationError: DUPLICATE_REGISTRATION if the email is already
                registered for the program, PROGRAM_NOT_FOUND for an unknown
                program, GATEWAY_NOT_CONFIGURED for an unwired gateway
            GatewayError: If the gateway rejects the transaction
        """
        email = normalize_email(email)
        client = self._client(gateway)

        # Fast-path hint only; the composite key decides at commit time.
        if self.store.get_program_registration(email, program_id):
            raise RegistrationError(
                ErrorCode.DUPLICATE_REGISTRATION,
                details={"email": email, "program_id": program_id},
                message="Email is already registered for this program",
            )

        price = self.pricing.resolve_program_price(program_id, email)
        amount = price.amount or 0
        order_id = generate_order_id(PROGRAM_PREFIX)

        gateway_response = self._open_transaction(
            client,
            CheckoutParams(
                order_id=order_id,
                amount=amount,
                email=email,
                name=name,
                phone=phone,
                item_id=program_id,
                item_name=price.program_name or program_id,
                method=method,
            ),
        )

        self.cache.put(
            ProgramIntent(
                order_id=order_id,
                email=email,
                name=name,
                phone=phone,
                institution=institution,
                segment=segment,
                amount=amount,
                method=method,
                gateway=gateway,
                user_id=user_id,
                created_at=dt.datetime.now(dt.UTC),
                program_id=program_id,
                member_id=price.member_id,
                source=price.source,
            )
        )

        log_payment_operation(
            logger,
            "checkout_program",
            order_id=order_id,
            gateway=gateway.value,
            amount=amount,
            program_id=program_id,
            source=price.source.value,
        )
        return CheckoutResult(
            order_id=order_id,
            amount=amount,
            gateway=gateway,
            gateway_response=gateway_response,
        )

    def checkout_membership(
        self,
        *,
        membership_package_id: str,
        email: str,
        name: str,
        phone: str | None = None,
        institution: str | None = None,
        segment: str | None = None,
        interest_areas: list[str] | None = None,
        join_date: dt.datetime | None = None,
        student_id: str | None = None,
        degree: str | None = None,
        method: PaymentMethod = PaymentMethod.QRIS,
        gateway: PaymentGateway = PaymentGateway.MIDTRANS,
        user_id: str | None = None,
    ) -> CheckoutResult:
        """Start payment for a membership package.

        Returns:
            CheckoutResult with the order ID and gateway payload

        Raises:
            RegistrationError: DUPLICATE_REGISTRATION if the email already
                belongs to a member, PACKAGE_NOT_FOUND for an unknown package,
                GATEWAY_NOT_CONFIGURED for an unwired gateway
            GatewayError: If the gateway rejects the transaction
        """
        email = normalize_email(email)
        client = self._client(gateway)

        if self.store.get_member(email):
            raise RegistrationError(
                ErrorCode.DUPLICATE_REGISTRATION,
                details={"email": email},
                message="Email is already registered as a member",
            )

        price = self.pricing.resolve_membership_price(membership_package_id)
        amount = price.amount or 0
        order_id = generate_order_id(MEMBERSHIP_PREFIX)

        gateway_response = self._open_transaction(
            client,
            CheckoutParams(
                order_id=order_id,
                amount=amount,
                email=email,
                name=name,
                phone=phone,
                item_id=membership_package_id,
                item_name=price.name or membership_package_id,
                method=method,
            ),
        )

        self.cache.put(
            MembershipIntent(
                order_id=order_id,
                email=email,
                name=name,
                phone=phone,
                institution=institution,
                segment=segment,
                amount=amount,
                method=method,
                gateway=gateway,
                user_id=user_id,
                created_at=dt.datetime.now(dt.UTC),
                membership_package_id=membership_package_id,
                interest_areas=interest_areas or [],
                join_date=join_date,
                student_id=student_id,
                degree=degree,
            )
        )

        log_payment_operation(
            logger,
            "checkout_membership",
            order_id=order_id,
            gateway=gateway.value,
            amount=amount,
            membership_package_id=membership_package_id,
        )
        return CheckoutResult(
            order_id=order_id,
            amount=amount,
            gateway=gateway,
            gateway_response=gateway_response,
        )

    def _client(self, gateway: PaymentGateway) -> GatewayPort:
        client = self.gateways.get(gateway)
        if client is None:
            raise RegistrationError(
                ErrorCode.GATEWAY_NOT_CONFIGURED, details={"gateway": gateway.value}
            )
        return client

    def _open_transaction(self, client: GatewayPort, params: CheckoutParams) -> dict:
        try:
            return client.create_checkout(params)
        except GatewayError as e:
            log_payment_operation(
                logger,
                "create_checkout",
                order_id=params.order_id,
                gateway=client.gateway.value,
                amount=params.amount,
                error=e.message,
                status_code=e.status_code,
            )
            raise
