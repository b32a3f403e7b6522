"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures that ensure
proper test isolation and mocking for API endpoint tests.
"""

from unittest.mock import AsyncMock, patch

import pytest


@pytest.fixture(autouse=True)
def mock_ollama_client():
    """Mock OllamaClient for all integration tests.

    This fixture patches the OllamaClient class before the app is created,
    ensuring the lifespan uses our mock instead of creating a real client.
    Tests script replies through ``mock_ollama_client.chat.side_effect``.
    """
    with patch("bankchat.app.OllamaClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.host = "http://localhost:11434"
        mock_instance.check_connection.return_value = True

        mock_client_class.return_value = mock_instance

        yield mock_instance


@pytest.fixture
def session_factory(async_client):
    """Create a session through the API and return its ID."""

    async def create(**body) -> str:
        response = await async_client.post("/api/v1/sessions", json=body)
        assert response.status_code == 201
        return response.json()["session_id"]

    return create
