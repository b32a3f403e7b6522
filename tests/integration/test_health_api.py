"""Integration tests for the health endpoint."""

import pytest


@pytest.mark.asyncio
async def test_health(async_client, mock_ollama_client):
    response = await async_client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["ollama_connected"] is True
    assert data["ollama_host"] == "http://localhost:11434"
    assert data["function_count"] == 6


@pytest.mark.asyncio
async def test_health_when_ollama_is_down(async_client, mock_ollama_client):
    mock_ollama_client.check_connection.return_value = False

    response = await async_client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["ollama_connected"] is False
