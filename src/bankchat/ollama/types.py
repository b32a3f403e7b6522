"""Type definitions for Ollama integration.

This module contains the reply structure returned by non-streaming chat
calls and the error raised for every transport failure.
"""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any

from bankchat.sessions.types import ToolCallRequest


class ModelTransportError(Exception):
    """A model request failed (network, HTTP status, timeout or bad payload).

    Attributes:
        status_code: HTTP status when the server answered, else None
        retryable: True for timeouts, connection failures, 429 and 5xx
    """

    def __init__(
        self, message: str, status_code: int | None = None, retryable: bool = False
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


def _get_value(obj: Any, key: str, default: Any = None) -> Any:
    """Read a value from either an object attribute or a dict key."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    if hasattr(obj, key):
        value = getattr(obj, key, default)
        return default if value is None else value
    return default


def generate_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:10]}"


@dataclass
class ModelReply:
    """A complete (non-streamed) model response.

    Attributes:
        content: Text of the reply (may be empty when only tools are requested)
        tool_calls: Requested function calls, in the order the model issued them
        model: Model that produced the reply
        eval_count: Number of generated tokens, if reported
        prompt_eval_count: Number of prompt tokens, if reported
    """

    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    model: str = ""
    eval_count: int | None = None
    prompt_eval_count: int | None = None

    @staticmethod
    def from_ollama_response(response: Any) -> "ModelReply":
        """Create a ModelReply from an Ollama chat response.

        Tool calls without an ID, or repeating an ID already seen in this
        reply, get a freshly generated one. Arguments are normalized to JSON
        text.

        Raises:
            ModelTransportError: If the response carries no message
        """
        message = _get_value(response, "message")
        if message is None:
            raise ModelTransportError("Invalid response from model: no message")

        tool_calls: list[ToolCallRequest] = []
        seen_ids: set[str] = set()

        for call in _get_value(message, "tool_calls", []) or []:
            function = _get_value(call, "function", {})
            name = _get_value(function, "name", "")
            arguments = _get_value(function, "arguments", {})
            if isinstance(arguments, str):
                raw_arguments = arguments
            else:
                raw_arguments = json.dumps(dict(arguments or {}))

            call_id = _get_value(call, "id", "")
            if not call_id or call_id in seen_ids:
                call_id = generate_tool_call_id()
            seen_ids.add(call_id)

            tool_calls.append(
                ToolCallRequest(
                    id=call_id, function_name=name, raw_arguments=raw_arguments
                )
            )

        return ModelReply(
            content=_get_value(message, "content", "") or "",
            tool_calls=tool_calls,
            model=_get_value(response, "model", ""),
            eval_count=_get_value(response, "eval_count"),
            prompt_eval_count=_get_value(response, "prompt_eval_count"),
        )
