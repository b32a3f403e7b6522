"""Pydantic models for chat API requests and responses.

This module defines the request and response schemas for the chat endpoints,
and the payloads of the Server-Sent Events emitted while a turn streams.
"""

from pydantic import BaseModel, ConfigDict, Field

from bankchat.models.sessions import MessageResponse


class ChatRequest(BaseModel):
    """Request body for chat endpoints.

    Used by both POST /api/v1/chat/{session_id} (non-streaming)
    and POST /api/v1/chat/{session_id}/stream (streaming).
    """

    message: str = Field(min_length=1, description="The user message to send")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{"message": "What's the balance of my checking account?"}]
        }
    )


class ToolCallExecuted(BaseModel):
    """A function call run during the turn, with its result text."""

    id: str
    function_name: str
    arguments: str
    result: str


class ChatResponse(BaseModel):
    """Response body for the non-streaming chat endpoint."""

    session_id: str = Field(description="Session identifier")
    message: MessageResponse = Field(description="The assistant's final message")
    tool_calls_executed: list[ToolCallExecuted] = Field(default_factory=list)
    fallback_used: bool = Field(
        default=False,
        description="True when the reply was produced without function calling",
    )
    state: str = Field(description="Final state of the turn")


class ContentDeltaEvent(BaseModel):
    content: str


class ToolCallEvent(BaseModel):
    id: str
    function_name: str
    arguments: str


class ToolResultEvent(BaseModel):
    id: str
    function_name: str
    result: str


class FallbackEvent(BaseModel):
    message: str


class ErrorEvent(BaseModel):
    code: str
    message: str
    details: dict = Field(default_factory=dict)


class DoneEvent(BaseModel):
    session_id: str
    state: str
    fallback_used: bool = False
    message_id: str | None = None
