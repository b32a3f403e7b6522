"""Pydantic models for session API requests and responses."""

from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    """Request body for creating a new session."""

    model: str | None = Field(
        None, description="The model to use (defaults to the configured model)"
    )
    system_prompt: str | None = Field(
        None, description="Optional system prompt (defaults to the configured one)"
    )


class SessionResponse(BaseModel):
    """Response model for a single session (metadata only)."""

    session_id: str
    model: str
    created_at: str
    updated_at: str
    message_count: int


class SessionListItem(SessionResponse):
    """A session item in the list response."""

    preview: str = Field("", description="Preview of first user message")


class SessionListResponse(BaseModel):
    """Response model for listing sessions."""

    sessions: list[SessionListItem]


class ToolCallResponse(BaseModel):
    id: str
    function_name: str
    raw_arguments: str = "{}"


class MessageResponse(BaseModel):
    """Response model for a single message."""

    role: str
    content: str
    message_id: str | None = None
    timestamp: str | None = None
    model: str | None = None
    eval_count: int | None = None
    prompt_eval_count: int | None = None
    tool_calls: list[ToolCallResponse] | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None


class SessionDetailResponse(SessionResponse):
    """Response model for a session with full message history."""

    messages: list[MessageResponse]


class MessagesResponse(BaseModel):
    """Response model for getting session messages."""

    messages: list[MessageResponse]
