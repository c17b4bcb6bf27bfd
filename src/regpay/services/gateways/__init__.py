"""Payment gateway clients."""

from .base import CheckoutParams, GatewayClient, canonical_json, sign_request
from .ipaymu import IpaymuClient, map_ipaymu_status
from .midtrans import MidtransClient, map_midtrans_status

__all__ = [
    "CheckoutParams",
    "GatewayClient",
    "IpaymuClient",
    "MidtransClient",
    "canonical_json",
    "map_ipaymu_status",
    "map_midtrans_status",
    "sign_request",
]
