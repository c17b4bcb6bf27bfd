"""Webhook reconciliation: turns gateway notifications into durable state.

For every verified notification the reconciler either replays an existing
payment row, records a payment from the cached intent, or settles the intent
atomically into registration/member records plus a linked payment. At most
one payment row exists per order ID no matter how often a notification is
redelivered.
"""

import datetime as dt

from regpay.models import (
    ErrorCode,
    GatewayNotification,
    MembershipIntent,
    Payment,
    PaymentGateway,
    PaymentStatus,
    ProgramIntent,
    ReconcileOutcome,
    RegistrationError,
    RegistrationIntent,
    WebhookResult,
)
from regpay.utils.logging import get_logger, log_webhook_event

from .ports import CachePort, GatewayPort, StorePort

logger = get_logger(__name__)

# Status changes a notification may apply to an existing payment row
ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.REFUNDED}
    ),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


class WebhookReconciler:
    """State machine applied to each payment notification."""

    def __init__(
        self,
        store: StorePort,
        cache: CachePort,
        gateways: dict[PaymentGateway, GatewayPort],
    ) -> None:
        """Initialize the reconciler.

        Args:
            store: Durable registration/payment store
            cache: Intent cache written at checkout
            gateways: Gateway clients used to verify and parse notifications
        """
        self.store = store
        self.cache = cache
        self.gateways = gateways

    def process(
        self,
        gateway: PaymentGateway,
        payload: dict,
        signature: str | None = None,
    ) -> WebhookResult:
        """Verify, normalize and reconcile one webhook delivery.

        Args:
            gateway: Gateway the delivery came from
            payload: Decoded notification body
            signature: Signature header, for gateways that sign out-of-band

        Returns:
            WebhookResult describing what changed

        Raises:
            RegistrationError: INVALID_SIGNATURE before any state change,
                INVALID_NOTIFICATION for malformed bodies, COMMIT_FAILED when
                the settlement transaction could not be applied
        """
        client = self.gateways.get(gateway)
        if client is None:
            raise RegistrationError(
                ErrorCode.GATEWAY_NOT_CONFIGURED, details={"gateway": gateway.value}
            )
        notification = client.parse_notification(payload, signature)
        return self.reconcile(notification)

    def reconcile(self, notification: GatewayNotification) -> WebhookResult:
        """Apply a verified notification to the durable store."""
        try:
            result = self._reconcile(notification)
        except RegistrationError as e:
            log_webhook_event(
                logger,
                notification.gateway.value,
                notification.order_id,
                status=notification.status.value,
                result="error",
                error=e.message,
            )
            raise

        log_webhook_event(
            logger,
            notification.gateway.value,
            notification.order_id,
            status=result.status.value,
            result=result.outcome.value,
            raw_status=notification.raw_status,
        )
        return result

    def _reconcile(self, notification: GatewayNotification) -> WebhookResult:
        existing = self.store.get_payment(notification.order_id)
        if existing is not None:
            return self._apply_to_existing(existing, notification)

        intent = self.cache.get(notification.order_id)
        if intent is None:
            return self._record_audit_stub(notification)
        if notification.status != PaymentStatus.COMPLETED:
            return self._record_from_intent(intent, notification)
        return self._commit(intent, notification)

    def _apply_to_existing(
        self, existing: Payment, notification: GatewayNotification
    ) -> WebhookResult:
        if existing.status == notification.status:
            return _result(existing, ReconcileOutcome.DUPLICATE)

        if notification.status not in ALLOWED_TRANSITIONS[existing.status]:
            logger.warning(
                "Ignoring %s -> %s for %s (out-of-order delivery)",
                existing.status.value,
                notification.status.value,
                existing.order_id,
            )
            return _result(existing, ReconcileOutcome.IGNORED)

        now = dt.datetime.now(dt.UTC)
        completed = notification.status == PaymentStatus.COMPLETED

        if completed and not existing.is_linked:
            intent = self.cache.get(existing.order_id)
            if intent is not None:
                updated = existing.model_copy(
                    update={
                        "status": notification.status,
                        "raw_payload": notification.raw_payload,
                        "gateway_transaction_id": notification.transaction_id
                        or existing.gateway_transaction_id,
                        "method": notification.method or existing.method,
                        "paid_at": now,
                    }
                )
                linked = self._settle(intent, updated, link=True)
                self.cache.delete(existing.order_id)
                return _result(linked, ReconcileOutcome.LINKED)

        updated_row = self.store.update_payment_status(
            existing.order_id,
            status=notification.status,
            raw_payload=notification.raw_payload,
            transaction_id=notification.transaction_id,
            method=notification.method,
            paid_at=now if completed else None,
        )
        if updated_row is None:
            raise RegistrationError(
                ErrorCode.COMMIT_FAILED, details={"order_id": existing.order_id}
            )
        return _result(updated_row, ReconcileOutcome.UPDATED)

    def _record_audit_stub(self, notification: GatewayNotification) -> WebhookResult:
        """Keep an audit trail for a notification whose intent is gone."""
        logger.warning(
            "No cached intent for %s; recording audit-only payment", notification.order_id
        )
        now = dt.datetime.now(dt.UTC)
        stub = Payment(
            order_id=notification.order_id,
            email="",
            amount=notification.gross_amount,
            method=notification.method,
            gateway=notification.gateway,
            status=notification.status,
            raw_payload=notification.raw_payload,
            gateway_transaction_id=notification.transaction_id,
            paid_at=now if notification.status == PaymentStatus.COMPLETED else None,
            created_at=now,
        )
        if not self.store.create_payment(stub):
            return self._replay_after_conflict(notification)
        return _result(stub, ReconcileOutcome.AUDIT_ONLY)

    def _record_from_intent(
        self, intent: RegistrationIntent, notification: GatewayNotification
    ) -> WebhookResult:
        """Persist a not-yet-settled payment; the intent stays cached."""
        payment = self._payment_from_intent(intent, notification)
        if not self.store.create_payment(payment):
            return self._replay_after_conflict(notification)
        return _result(payment, ReconcileOutcome.RECORDED)

    def _commit(
        self, intent: RegistrationIntent, notification: GatewayNotification
    ) -> WebhookResult:
        payment = self._payment_from_intent(intent, notification)
        settled = self._settle(intent, payment, link=False)
        self.cache.delete(intent.order_id)
        return _result(settled, ReconcileOutcome.COMMITTED)

    def _settle(self, intent: RegistrationIntent, payment: Payment, *, link: bool) -> Payment:
        if isinstance(intent, ProgramIntent):
            if link:
                return self.store.link_program_settlement(intent, payment)
            return self.store.commit_program_settlement(intent, payment)
        if isinstance(intent, MembershipIntent):
            if link:
                return self.store.link_membership_settlement(intent, payment)
            return self.store.commit_membership_settlement(intent, payment)
        raise TypeError(f"Unsupported intent: {type(intent).__name__}")

    def _replay_after_conflict(self, notification: GatewayNotification) -> WebhookResult:
        """A concurrent delivery created the row first; reconcile against it."""
        current = self.store.get_payment(notification.order_id)
        if current is None:
            raise RegistrationError(
                ErrorCode.COMMIT_FAILED, details={"order_id": notification.order_id}
            )
        return self._apply_to_existing(current, notification)

    @staticmethod
    def _payment_from_intent(
        intent: RegistrationIntent, notification: GatewayNotification
    ) -> Payment:
        if notification.gross_amount and notification.gross_amount != intent.amount:
            logger.warning(
                "Amount mismatch for %s: intent %d, gateway %d",
                intent.order_id,
                intent.amount,
                notification.gross_amount,
            )
        now = dt.datetime.now(dt.UTC)
        return Payment(
            order_id=intent.order_id,
            email=intent.email,
            amount=intent.amount,
            currency=intent.currency,
            method=notification.method or intent.method,
            gateway=notification.gateway,
            status=notification.status,
            raw_payload=notification.raw_payload,
            gateway_transaction_id=notification.transaction_id,
            paid_at=now if notification.status == PaymentStatus.COMPLETED else None,
            created_at=now,
        )


def _result(payment: Payment, outcome: ReconcileOutcome) -> WebhookResult:
    return WebhookResult(
        order_id=payment.order_id,
        status=payment.status,
        outcome=outcome,
        payment=payment,
        registration_id=payment.registration_id,
        member_id=payment.member_id,
    )
