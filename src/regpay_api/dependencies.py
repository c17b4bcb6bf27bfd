"""FastAPI dependency injection providers for core services.

Services are lazily instantiated and cached with @lru_cache.

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── PricingService
        ├── IntentCache
        └── RegistrationStore
    Gateway clients (MidtransClient, IpaymuClient; secrets from SSM)
        ├── CheckoutService (+ pricing, cache, store)
        └── WebhookReconciler (+ store, cache)

Testing:
    Use reset_services() to clear cached instances between tests, or
    override get_gateway_clients via app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends

from regpay.models import PaymentGateway
from regpay.services.checkout import CheckoutService
from regpay.services.dynamodb import get_dynamodb_service
from regpay.services.gateways import IpaymuClient, MidtransClient
from regpay.services.intent_cache import IntentCache
from regpay.services.ports import GatewayPort
from regpay.services.pricing import PricingService
from regpay.services.registration_store import RegistrationStore
from regpay.services.webhook_reconciler import WebhookReconciler


@lru_cache
def get_pricing_service() -> PricingService:
    return PricingService(db=get_dynamodb_service())


@lru_cache
def get_intent_cache() -> IntentCache:
    return IntentCache(db=get_dynamodb_service())


@lru_cache
def get_registration_store() -> RegistrationStore:
    return RegistrationStore(db=get_dynamodb_service())


@lru_cache
def get_gateway_clients() -> dict[PaymentGateway, GatewayPort]:
    """Get gateway clients keyed by gateway.

    Credentials are resolved from SSM on first use, not here.
    """
    return {
        PaymentGateway.MIDTRANS: MidtransClient(),
        PaymentGateway.IPAYMU: IpaymuClient(),
    }


def get_checkout_service(
    gateways: dict[PaymentGateway, GatewayPort] = Depends(get_gateway_clients),
) -> CheckoutService:
    """Build a CheckoutService from the cached collaborators."""
    return CheckoutService(
        pricing=get_pricing_service(),
        cache=get_intent_cache(),
        gateways=gateways,
        store=get_registration_store(),
    )


def get_webhook_reconciler(
    gateways: dict[PaymentGateway, GatewayPort] = Depends(get_gateway_clients),
) -> WebhookReconciler:
    """Build a WebhookReconciler from the cached collaborators."""
    return WebhookReconciler(
        store=get_registration_store(),
        cache=get_intent_cache(),
        gateways=gateways,
    )


def reset_services() -> None:
    """Clear all cached service instances.

    Also resets the underlying DynamoDB singleton.
    """
    from regpay.services.dynamodb import reset_dynamodb_service

    get_pricing_service.cache_clear()
    get_intent_cache.cache_clear()
    get_registration_store.cache_clear()
    get_gateway_clients.cache_clear()

    reset_dynamodb_service()
