"""Shared fixtures for API tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from listing.api.deps import get_product_service
from listing.application.product_service import ProductService
from listing.main import app


@pytest.fixture
def mock_service() -> MagicMock:
    """Product service double with async methods."""
    service = MagicMock(spec=ProductService)
    for name in (
        "create_product",
        "update_product",
        "delete_product",
        "get_product",
        "list_products",
        "list_by_category",
        "list_curated",
        "list_new_arrivals",
        "search_products",
        "list_owner_products",
        "list_related",
    ):
        setattr(service, name, AsyncMock())
    return service


@pytest.fixture
def client(mock_service: MagicMock):
    """Test client with the product service replaced."""
    app.dependency_overrides[get_product_service] = lambda: mock_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Caller identity headers."""
    return {"X-Account-ID": "acct-1"}
