"""Pytest configuration and shared fixtures for bankchat tests.

This module provides common fixtures used across all test modules,
including isolated settings, a seeded banking store, the function registry,
and test app creation.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from bankchat import create_app
from bankchat.banking import BankingStore
from bankchat.config import BankChatSettings
from bankchat.tools import FunctionContext, ToolExecutionService, discover_functions


@pytest.fixture
def test_settings(tmp_path):
    """Create test settings with isolated temporary directories.

    Args:
        tmp_path: Pytest fixture providing a temporary directory.

    Returns:
        BankChatSettings: Settings instance configured for testing.
    """
    return BankChatSettings(
        host="127.0.0.1",
        port=8000,
        ollama_host="http://localhost:11434",
        model="llama3.1:8b",
        data_dir=str(tmp_path),
        sessions_dir="chat_sessions",
        functions_dir="functions",
        max_sessions=50,
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def store():
    """A freshly seeded in-memory ledger."""
    return BankingStore()


@pytest.fixture
def function_context(store):
    return FunctionContext(store=store)


@pytest.fixture
def registry(function_context):
    """Registry holding the six built-in banking functions."""
    return discover_functions(function_context)


@pytest.fixture
def executor(registry):
    return ToolExecutionService(registry)


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance.

    Args:
        test_settings: Test settings fixture.

    Returns:
        FastAPI: Configured test application.
    """
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Args:
        test_app: Test application fixture.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
