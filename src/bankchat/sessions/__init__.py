"""Session management for bankchat.

This package provides the conversation message types, session persistence,
and CRUD operations for chat sessions.
"""

from bankchat.sessions.manager import SessionManager
from bankchat.sessions.session import ChatSession
from bankchat.sessions.types import (
    AssistantMessage,
    Message,
    SessionCreationOptions,
    SessionMetadata,
    SystemMessage,
    ToolCallRequest,
    ToolMessage,
    UserMessage,
)

__all__ = [
    # Core classes
    "ChatSession",
    "SessionManager",
    # Message types
    "Message",
    "UserMessage",
    "SystemMessage",
    "AssistantMessage",
    "ToolMessage",
    "ToolCallRequest",
    # Configuration types
    "SessionMetadata",
    "SessionCreationOptions",
]
