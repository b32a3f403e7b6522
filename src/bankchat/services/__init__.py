"""Services layer for bankchat.

This package contains the conversation engine that runs user turns through
the model and the function dispatcher.
"""

from bankchat.services.conversation import (
    FOLLOWUP_FALLBACK_MESSAGE,
    NOT_EXECUTED_MESSAGE,
    ContentDelta,
    ConversationEngine,
    FallbackNotice,
    ToolCallFinished,
    ToolCallRecord,
    ToolCallStarted,
    TurnCompleted,
    TurnEvent,
    TurnFailed,
    TurnResult,
    TurnState,
    to_ollama_messages,
)

__all__ = [
    "FOLLOWUP_FALLBACK_MESSAGE",
    "NOT_EXECUTED_MESSAGE",
    "ContentDelta",
    "ConversationEngine",
    "FallbackNotice",
    "ToolCallFinished",
    "ToolCallRecord",
    "ToolCallStarted",
    "TurnCompleted",
    "TurnEvent",
    "TurnFailed",
    "TurnResult",
    "TurnState",
    "to_ollama_messages",
]
