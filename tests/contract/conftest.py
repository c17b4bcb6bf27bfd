"""Shared fixtures for API contract tests."""

from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from regpay_api.dependencies import get_gateway_clients
from regpay_api.main import app


@pytest.fixture
def client(
    db: Any, seed_catalog: dict[str, Any], gateways: dict[Any, Any]
) -> Generator[TestClient, None, None]:
    """TestClient over mocked DynamoDB with MockTransport-backed gateways."""
    app.dependency_overrides[get_gateway_clients] = lambda: gateways
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
