"""Collaborator protocols consumed by checkout and webhook reconciliation.

Concrete adapters live next to this module; tests substitute fakes.
"""

from typing import Any, Protocol

from regpay.models import (
    GatewayNotification,
    MembershipIntent,
    MembershipPrice,
    Payment,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
    ProgramIntent,
    ProgramPrice,
    RegistrationIntent,
)

from .gateways.base import CheckoutParams


class PricingPort(Protocol):
    def resolve_program_price(self, program_id: str, email: str) -> ProgramPrice: ...

    def resolve_membership_price(self, membership_package_id: str) -> MembershipPrice: ...


class CachePort(Protocol):
    def put(self, intent: RegistrationIntent) -> None: ...

    def get(self, order_id: str) -> RegistrationIntent | None: ...

    def delete(self, order_id: str) -> None: ...


class GatewayPort(Protocol):
    gateway: PaymentGateway

    def create_checkout(self, params: CheckoutParams) -> dict[str, Any]: ...

    def parse_notification(
        self, payload: dict[str, Any], signature: str | None = None
    ) -> GatewayNotification: ...


class StorePort(Protocol):
    def get_payment(self, order_id: str) -> Payment | None: ...

    def create_payment(self, payment: Payment) -> bool: ...

    def update_payment_status(
        self,
        order_id: str,
        *,
        status: PaymentStatus,
        raw_payload: dict[str, Any],
        transaction_id: str | None = None,
        method: PaymentMethod | None = None,
        paid_at: Any = None,
    ) -> Payment | None: ...

    def get_program_registration(self, email: str, program_id: str) -> Any: ...

    def get_member(self, email: str) -> Any: ...

    def commit_program_settlement(self, intent: ProgramIntent, payment: Payment) -> Payment: ...

    def link_program_settlement(self, intent: ProgramIntent, payment: Payment) -> Payment: ...

    def commit_membership_settlement(
        self, intent: MembershipIntent, payment: Payment
    ) -> Payment: ...

    def link_membership_settlement(
        self, intent: MembershipIntent, payment: Payment
    ) -> Payment: ...
