"""Data types for conversations.

This module defines the messages that make up a conversation, the tool-call
requests carried by assistant messages, and session metadata.
"""

from dataclasses import dataclass, field


@dataclass
class ToolCallRequest:
    """A model-issued request to run a named function.

    Attributes:
        id: Opaque identifier; every ToolMessage answering it carries the same id
        function_name: Name of the requested function
        raw_arguments: JSON argument text, passed to the dispatcher unparsed
    """

    id: str
    function_name: str
    raw_arguments: str = "{}"


@dataclass
class UserMessage:
    """A message from the user."""

    role: str = "user"
    content: str = ""
    message_id: str = ""
    timestamp: str = ""

    def __post_init__(self) -> None:
        """Validate role is always 'user'."""
        self.role = "user"


@dataclass
class SystemMessage:
    """A system prompt message."""

    role: str = "system"
    content: str = ""
    message_id: str = ""
    timestamp: str = ""

    def __post_init__(self) -> None:
        """Validate role is always 'system'."""
        self.role = "system"


@dataclass
class AssistantMessage:
    """A response from the model, possibly requesting function calls."""

    role: str = "assistant"
    content: str = ""
    model: str = ""
    message_id: str = ""
    timestamp: str = ""
    eval_count: int | None = None
    prompt_eval_count: int | None = None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate role and rebuild tool calls loaded as plain dicts."""
        self.role = "assistant"
        self.tool_calls = [
            ToolCallRequest(**call) if isinstance(call, dict) else call
            for call in (self.tool_calls or [])
        ]


@dataclass
class ToolMessage:
    """The result of one function call."""

    role: str = "tool"
    tool_call_id: str = ""
    tool_name: str = ""
    content: str = ""
    message_id: str = ""
    timestamp: str = ""

    def __post_init__(self) -> None:
        """Validate role is always 'tool'."""
        self.role = "tool"


# Union type for all message types
Message = UserMessage | SystemMessage | AssistantMessage | ToolMessage


@dataclass
class SessionMetadata:
    """Metadata for a chat session."""

    session_id: str
    model: str
    created_at: str
    updated_at: str
    message_count: int = 0
    format_version: str = "1.0"


@dataclass
class SessionCreationOptions:
    """Options for creating a new session."""

    model: str
    system_prompt: str | None = None
