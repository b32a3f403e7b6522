"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from bankchat.models.chat import ChatRequest, ChatResponse
from bankchat.models.functions import (
    FunctionListResponse,
    InvokeFunctionRequest,
    InvokeFunctionResponse,
)
from bankchat.models.health import HealthResponse
from bankchat.models.sessions import (
    CreateSessionRequest,
    MessageResponse,
    MessagesResponse,
    SessionDetailResponse,
    SessionListResponse,
    SessionResponse,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "CreateSessionRequest",
    "FunctionListResponse",
    "HealthResponse",
    "InvokeFunctionRequest",
    "InvokeFunctionResponse",
    "MessageResponse",
    "MessagesResponse",
    "SessionDetailResponse",
    "SessionListResponse",
    "SessionResponse",
]
