"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including lifespan management for startup/shutdown
and router registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bankchat.banking import BankingStore
from bankchat.config import BankChatSettings
from bankchat.ollama import OllamaClient
from bankchat.routers import chat, functions, health, sessions
from bankchat.services import ConversationEngine
from bankchat.sessions import SessionManager
from bankchat.tools import FunctionContext, ToolExecutionService, discover_functions

logger = logging.getLogger(__name__)


def build_components(settings: BankChatSettings, client: OllamaClient) -> dict:
    """Compose the store, registry, dispatcher, transcripts and engine.

    Shared by the server lifespan and the interactive CLI.

    Returns:
        Mapping of app.state attribute names to the built objects
    """
    store = BankingStore()
    context = FunctionContext(store=store)
    registry = discover_functions(
        context,
        functions_dir=settings.resolved_functions_dir,
        duplicate_policy=settings.duplicate_function_policy,
    )
    executor = ToolExecutionService(registry)
    session_manager = SessionManager(
        sessions_dir=settings.resolved_sessions_dir,
        max_sessions=settings.max_sessions,
        auto_save=settings.auto_save_history,
    )
    engine = ConversationEngine(
        client=client,
        executor=executor,
        model_options=settings.model_options,
        persist=session_manager.save,
    )
    logger.info(f"Registered {len(registry)} functions: {', '.join(registry.names())}")

    return {
        "banking_store": store,
        "function_registry": registry,
        "tool_executor": executor,
        "session_manager": session_manager,
        "conversation_engine": engine,
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    Expensive objects (the Ollama client, the function registry and the
    conversation engine) are created once at startup and stored in app.state
    for reuse across all requests.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: BankChatSettings = app.state.settings
    app.state.ollama_client = OllamaClient(
        host=settings.ollama_host, request_timeout=settings.request_timeout
    )
    logger.info(f"Initialized Ollama client with host: {settings.ollama_host}")

    for name, component in build_components(settings, app.state.ollama_client).items():
        setattr(app.state, name, component)

    connected = await app.state.ollama_client.check_connection()
    if connected:
        logger.info("Successfully connected to Ollama")
    else:
        logger.warning("Could not connect to Ollama - check if server is running")

    yield

    if hasattr(app.state, "ollama_client"):
        await app.state.ollama_client.close()
        logger.info("Ollama client closed")


def create_app(settings: BankChatSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional BankChatSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from bankchat.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="bankchat",
        description="Banking assistant with model-driven function calling via Ollama",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(functions.router)
    app.include_router(sessions.router)
    app.include_router(chat.router)

    return app
