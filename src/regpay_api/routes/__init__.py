"""API routes package.

- payments: checkout, email pre-check and payment lookup
- webhooks: gateway payment notifications

All routers are registered in main.py with /api prefix.
"""

from regpay_api.routes.payments import router as payments_router
from regpay_api.routes.webhooks import router as webhooks_router

__all__ = ["payments_router", "webhooks_router"]
