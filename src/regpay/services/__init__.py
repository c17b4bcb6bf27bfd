"""Backend services for checkout and payment reconciliation."""

from .checkout import CheckoutService
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .gateways import GatewayClient, IpaymuClient, MidtransClient
from .intent_cache import IntentCache
from .pricing import PricingService
from .registration_store import RegistrationStore
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .webhook_reconciler import WebhookReconciler

__all__ = [
    "CheckoutService",
    "DynamoDBService",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    "GatewayClient",
    "IpaymuClient",
    "MidtransClient",
    "IntentCache",
    "PricingService",
    "RegistrationStore",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "WebhookReconciler",
]
