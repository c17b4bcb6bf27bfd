"""FastAPI application for the registration payment API.

Provides REST endpoints for:
- Program and membership checkout
- Payment lookup and email pre-check
- Midtrans and iPaymu webhook notifications
"""

import logging
import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from regpay.utils.logging import configure_logging
from regpay_api.exceptions import register_exception_handlers
from regpay_api.middleware.correlation import CorrelationIdMiddleware
from regpay_api.routes.payments import router as payments_router
from regpay_api.routes.webhooks import router as webhooks_router

configure_logging(logging.INFO)

app = FastAPI(
    title="Registration Payment API",
    description="Checkout and payment reconciliation for programs and memberships",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[os.environ.get("FRONTEND_URL", "http://localhost:3000")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

# This matches CloudFront routing: /api/* → API Gateway
app.include_router(payments_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    """Health check endpoint at /api/ping."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "regpay-api",
        "environment": os.environ.get("ENVIRONMENT", "dev"),
    }


# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Run the API under uvicorn for local development."""
    import uvicorn

    if reload:
        uvicorn.run("regpay_api.main:app", host=host, port=port, reload=True, reload_dirs=["src"])
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
