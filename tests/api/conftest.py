"""Shared fixtures for API tests."""

import pytest  # type: ignore[import-not-found]
from fastapi import FastAPI  # type: ignore[import-untyped]
from fastapi.testclient import TestClient  # type: ignore[import-untyped]

from timeboard.api import create_app
from timeboard.api.auth import create_token_for_user
from timeboard.core.config import ConfigManager
from timeboard.core.storage import StorageManager


@pytest.fixture
def test_app(test_config: ConfigManager, clock) -> FastAPI:  # type: ignore[no-untyped-def]
    """Application bound to the temporary store and the frozen clock."""
    return create_app(test_config, clock=clock)


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    """Create a test client."""
    return TestClient(test_app)


@pytest.fixture
def app_storage(test_app: FastAPI) -> StorageManager:
    storage: StorageManager = test_app.state.storage
    return storage


@pytest.fixture
def auth_headers(test_config: ConfigManager) -> dict[str, str]:
    """Create authentication headers with a valid token."""
    token_data = create_token_for_user(test_config)
    return {"Authorization": f"Bearer {token_data['access_token']}"}
