"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that are used across
multiple routers to inject the objects built once during application startup.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from bankchat.config import BankChatSettings
from bankchat.ollama import OllamaClient
from bankchat.services import ConversationEngine
from bankchat.sessions import ChatSession, SessionManager
from bankchat.tools import FunctionRegistry, ToolExecutionService


@lru_cache
def get_settings() -> BankChatSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the BANKCHAT_ prefix.

    Returns:
        BankChatSettings: The application configuration settings.
    """
    return BankChatSettings()


def _app_state(request: Request, name: str):
    if not hasattr(request.app.state, name):
        raise HTTPException(
            status_code=503,
            detail=f"{name} not initialized",
        )
    return getattr(request.app.state, name)


def get_ollama_client(request: Request) -> OllamaClient:
    """Get the Ollama client from app state.

    Raises:
        HTTPException: If the Ollama client is not initialized (503 Service Unavailable).
    """
    return _app_state(request, "ollama_client")


def get_session_manager(request: Request) -> SessionManager:
    return _app_state(request, "session_manager")


def get_function_registry(request: Request) -> FunctionRegistry:
    return _app_state(request, "function_registry")


def get_tool_executor(request: Request) -> ToolExecutionService:
    return _app_state(request, "tool_executor")


def get_conversation_engine(request: Request) -> ConversationEngine:
    return _app_state(request, "conversation_engine")


def load_session_or_404(session_manager: SessionManager, session_id: str) -> ChatSession:
    """Load a session, translating a missing file into a 404.

    Raises:
        HTTPException: 404 session_not_found, 500 session_load_error
    """
    try:
        return session_manager.get_session(session_id)
    except FileNotFoundError:
        raise HTTPException(
            status_code=404,
            detail={
                "error": {
                    "code": "session_not_found",
                    "message": f"Session {session_id} not found",
                    "details": {"session_id": session_id},
                }
            },
        )
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail={
                "error": {
                    "code": "session_load_error",
                    "message": f"Failed to load session: {str(e)}",
                    "details": {"session_id": session_id},
                }
            },
        )
