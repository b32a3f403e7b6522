"""Conversation engine driving one user turn through function calling.

This module provides the ConversationEngine, the state machine that:
- sends the conversation plus tool declarations to the model,
- executes requested function calls in order, one result per request,
- asks the model to answer from the function results,
- falls back to plain streaming, then to a plain request, when the
  function-calling request fails.

``stream_turn()`` yields TurnEvents as the turn progresses so callers can
render output incrementally; ``run_turn()`` drains it and returns the
TurnResult. No failure escapes a turn: it becomes conversation content or a
TurnFailed event.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bankchat.ollama import ModelReply, ModelTransportError, OllamaClient
from bankchat.ollama.client import as_transport_error
from bankchat.sessions import (
    AssistantMessage,
    ChatSession,
    Message,
    ToolCallRequest,
    ToolMessage,
    UserMessage,
)
from bankchat.tools import ToolExecutionService

logger = logging.getLogger(__name__)

FOLLOWUP_FALLBACK_MESSAGE = (
    "I executed the requested functions, but encountered an error "
    "generating the final response."
)

NOT_EXECUTED_MESSAGE = "Function {name} was not executed because the turn was interrupted."


class TurnState(str, Enum):
    """States a user turn passes through."""

    AWAITING_USER_INPUT = "awaiting_user_input"
    MODEL_REQUESTED = "model_requested"
    TOOL_CALLS_PENDING = "tool_calls_pending"
    TOOLS_EXECUTING = "tools_executing"
    FOLLOWUP_MODEL_REQUESTED = "followup_model_requested"
    FINAL_ANSWER_RECEIVED = "final_answer_received"
    STREAMING_FALLBACK = "streaming_fallback"
    PLAIN_FALLBACK = "plain_fallback"
    FAILED = "failed"


@dataclass
class ToolCallRecord:
    """A function call executed during a turn and its result text."""

    id: str
    function_name: str
    raw_arguments: str
    result: str


@dataclass
class TurnResult:
    """Outcome of one user turn.

    Attributes:
        session: The conversation, with this turn's messages appended
        final_message: The assistant message that ended the turn, if any
        tool_calls: Function calls executed during the turn, in order
        states: Every state the turn entered, in order
        fallback_used: True when the function-calling request failed
        followup_failed: True when function results could not be summarized
        error: Set when the turn ended without an assistant answer
    """

    session: ChatSession
    final_message: AssistantMessage | None = None
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    states: list[TurnState] = field(
        default_factory=lambda: [TurnState.AWAITING_USER_INPUT]
    )
    fallback_used: bool = False
    followup_failed: bool = False
    error: str | None = None

    @property
    def state(self) -> TurnState:
        return self.states[-1]

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class ContentDelta:
    """Assistant text to display."""

    text: str


@dataclass
class ToolCallStarted:
    request: ToolCallRequest


@dataclass
class ToolCallFinished:
    request: ToolCallRequest
    result: str


@dataclass
class FallbackNotice:
    """A degraded strategy is being tried."""

    message: str


@dataclass
class TurnFailed:
    """Every strategy failed; no assistant message was added."""

    message: str


@dataclass
class TurnCompleted:
    """Always the last event of a turn."""

    result: TurnResult


TurnEvent = (
    ContentDelta
    | ToolCallStarted
    | ToolCallFinished
    | FallbackNotice
    | TurnFailed
    | TurnCompleted
)


def _arguments_mapping(raw_arguments: str) -> dict[str, Any]:
    """Decode stored argument text for replay to the model; {} if not an object."""
    try:
        value = json.loads(raw_arguments or "{}")
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


def _model_failure(error: BaseException) -> ModelTransportError:
    """Convert a failed model call into a ModelTransportError.

    A cancelled model call counts as a transport failure. Cancellation of the
    task running the turn is re-raised so callers can still stop it.
    """
    if isinstance(error, asyncio.CancelledError):
        task = asyncio.current_task()
        if task is not None and task.cancelling():
            raise error
        return ModelTransportError("Model request was cancelled", retryable=True)
    return as_transport_error(error)


def to_ollama_messages(messages: list[Message], plain: bool = False) -> list[dict]:
    """Convert session messages to Ollama API format.

    Args:
        messages: Session messages
        plain: Only role and content, for tool-free requests

    Returns:
        List of message dicts: [{"role": "...", "content": "..."}, ...]
    """
    ollama_messages = []

    for msg in messages:
        ollama_msg: dict[str, Any] = {"role": msg.role, "content": msg.content}

        if not plain:
            if isinstance(msg, AssistantMessage) and msg.tool_calls:
                ollama_msg["tool_calls"] = [
                    {
                        "function": {
                            "name": call.function_name,
                            "arguments": _arguments_mapping(call.raw_arguments),
                        }
                    }
                    for call in msg.tool_calls
                ]
            elif isinstance(msg, ToolMessage):
                ollama_msg["tool_name"] = msg.tool_name

        ollama_messages.append(ollama_msg)

    return ollama_messages


class ConversationEngine:
    """Runs user turns against the model and the function dispatcher.

    Callers run one turn at a time per conversation; the HTTP routes hold
    SessionManager.turn_lock for that. Within a turn every model call is
    awaited before the next one, and function calls run sequentially in
    request order.
    """

    def __init__(
        self,
        client: OllamaClient,
        executor: ToolExecutionService,
        model_options: dict[str, Any] | None = None,
        persist: Callable[[ChatSession], None] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            client: Model transport
            executor: Dispatcher for function calls
            model_options: Generation options sent with every request
            persist: Called with the session after every appended message
        """
        self.client = client
        self.executor = executor
        self.model_options = model_options
        self.persist = persist

    async def run_turn(self, session: ChatSession, user_text: str) -> TurnResult:
        """Run one user turn to completion and return its outcome."""
        result: TurnResult | None = None
        async for event in self.stream_turn(session, user_text):
            if isinstance(event, TurnCompleted):
                result = event.result
        if result is None:
            raise RuntimeError("Turn ended without a TurnCompleted event")
        return result

    async def stream_turn(
        self, session: ChatSession, user_text: str
    ) -> AsyncIterator[TurnEvent]:
        """Run one user turn, yielding events as it progresses.

        The final event is always TurnCompleted.
        """
        turn = TurnResult(session=session)

        self._answer_pending(session)
        self._append(session, UserMessage(content=user_text))
        self._advance(turn, TurnState.MODEL_REQUESTED)

        try:
            reply = await self.client.chat(
                model=session.model,
                messages=to_ollama_messages(session.messages),
                tools=self.executor.registry.tools(),
                options=self.model_options,
            )
        except (Exception, asyncio.CancelledError) as e:
            error = _model_failure(e)
            logger.warning(
                f"Function calling request failed for session {session.session_id}: "
                f"{error} (retryable={error.retryable})"
            )
            yield FallbackNotice(
                f"Function calling failed: {error}. Falling back to streaming..."
            )
            async with aclosing(self._fallback(session, turn)) as events:
                async for event in events:
                    yield event
            yield TurnCompleted(turn)
            return

        if not reply.tool_calls:
            turn.final_message = self._append_reply(session, reply)
            self._advance(turn, TurnState.FINAL_ANSWER_RECEIVED)
            if reply.content:
                yield ContentDelta(reply.content)
            yield TurnCompleted(turn)
            return

        self._advance(turn, TurnState.TOOL_CALLS_PENDING)
        if reply.content:
            yield ContentDelta(reply.content)
        self._append_reply(session, reply, tool_calls=reply.tool_calls)

        self._advance(turn, TurnState.TOOLS_EXECUTING)
        async with aclosing(
            self._execute_tool_calls(session, turn, reply.tool_calls)
        ) as events:
            async for event in events:
                yield event

        self._advance(turn, TurnState.FOLLOWUP_MODEL_REQUESTED)
        followup: ModelReply | None = None
        try:
            followup = await self.client.chat(
                model=session.model,
                messages=to_ollama_messages(session.messages),
                tools=self.executor.registry.tools(),
                options=self.model_options,
            )
        except (Exception, asyncio.CancelledError) as e:
            logger.warning(f"Follow-up request failed: {_model_failure(e)}")

        if followup is not None and followup.content.strip():
            if followup.tool_calls:
                logger.info(
                    f"Ignoring {len(followup.tool_calls)} tool calls in follow-up reply"
                )
            turn.final_message = self._append_reply(session, followup)
            yield ContentDelta(followup.content)
        else:
            logger.warning("No text after function execution; using fallback answer")
            turn.followup_failed = True
            turn.final_message = self._append(
                session,
                AssistantMessage(content=FOLLOWUP_FALLBACK_MESSAGE, model=session.model),
            )
            yield ContentDelta(FOLLOWUP_FALLBACK_MESSAGE)

        self._advance(turn, TurnState.FINAL_ANSWER_RECEIVED)
        yield TurnCompleted(turn)

    async def _execute_tool_calls(
        self,
        session: ChatSession,
        turn: TurnResult,
        requests: list[ToolCallRequest],
    ) -> AsyncIterator[TurnEvent]:
        """Dispatch each request once, in order, appending one result per id."""
        executed: set[str] = set()

        try:
            for request in requests:
                if request.id in executed:
                    logger.warning(f"Tool call {request.id} requested twice; not re-run")
                    continue
                executed.add(request.id)

                yield ToolCallStarted(request)
                logger.info(f"Calling function {request.function_name} ({request.id})")

                result = self.executor.execute(
                    request.function_name, request.raw_arguments
                )

                self._append(
                    session,
                    ToolMessage(
                        tool_call_id=request.id,
                        tool_name=request.function_name,
                        content=result,
                    ),
                )
                turn.tool_calls.append(
                    ToolCallRecord(
                        id=request.id,
                        function_name=request.function_name,
                        raw_arguments=request.raw_arguments,
                        result=result,
                    )
                )
                yield ToolCallFinished(request, result)
        finally:
            # a reader that stops early must not leave requests unanswered
            self._answer_pending(session)

    async def _fallback(
        self, session: ChatSession, turn: TurnResult
    ) -> AsyncIterator[TurnEvent]:
        """Tool-free streaming, then one tool-free plain request."""
        turn.fallback_used = True
        self._advance(turn, TurnState.STREAMING_FALLBACK)
        messages = to_ollama_messages(session.messages, plain=True)

        parts: list[str] = []
        stream_error: ModelTransportError | None = None
        try:
            async with aclosing(
                self.client.chat_stream(
                    model=session.model,
                    messages=messages,
                    options=self.model_options,
                )
            ) as stream:
                async for chunk in stream:
                    parts.append(chunk)
                    yield ContentDelta(chunk)
        except (Exception, asyncio.CancelledError) as e:
            stream_error = _model_failure(e)

        content = "".join(parts)
        if stream_error is None and content:
            turn.final_message = self._append(
                session, AssistantMessage(content=content, model=session.model)
            )
            self._advance(turn, TurnState.FINAL_ANSWER_RECEIVED)
            return

        reason = str(stream_error) if stream_error else "empty response"
        logger.warning(f"Streaming fallback failed: {reason}")
        yield FallbackNotice(
            f"Streaming failed: {reason}. Falling back to a regular request..."
        )

        self._advance(turn, TurnState.PLAIN_FALLBACK)
        try:
            reply = await self.client.chat(
                model=session.model,
                messages=messages,
                options=self.model_options,
            )
        except (Exception, asyncio.CancelledError) as e:
            error = _model_failure(e)
            yield self._fail(turn, f"Model unavailable: {error}")
            return

        if not reply.content:
            yield self._fail(turn, "Model returned an empty response")
            return

        turn.final_message = self._append_reply(session, reply)
        self._advance(turn, TurnState.FINAL_ANSWER_RECEIVED)
        yield ContentDelta(reply.content)

    def _answer_pending(self, session: ChatSession) -> None:
        """Append a not-executed result for every unanswered tool call."""
        pending = session.pending_tool_call_ids()
        if not pending:
            return

        assistant = next(
            m for m in reversed(session.messages) if isinstance(m, AssistantMessage)
        )
        names = {call.id: call.function_name for call in assistant.tool_calls}
        logger.warning(
            f"Session {session.session_id} has {len(set(pending))} unanswered "
            "tool calls; marking them as not executed"
        )
        for call_id in dict.fromkeys(pending):
            name = names[call_id]
            self._append(
                session,
                ToolMessage(
                    tool_call_id=call_id,
                    tool_name=name,
                    content=NOT_EXECUTED_MESSAGE.format(name=name),
                ),
            )

    def _fail(self, turn: TurnResult, message: str) -> TurnFailed:
        logger.error(f"Turn failed for session {turn.session.session_id}: {message}")
        turn.error = message
        self._advance(turn, TurnState.FAILED)
        return TurnFailed(message)

    def _append_reply(
        self,
        session: ChatSession,
        reply: ModelReply,
        tool_calls: list[ToolCallRequest] | None = None,
    ) -> AssistantMessage:
        message = AssistantMessage(
            content=reply.content,
            model=reply.model or session.model,
            eval_count=reply.eval_count,
            prompt_eval_count=reply.prompt_eval_count,
            tool_calls=list(tool_calls or []),
        )
        return self._append(session, message)

    def _append(self, session: ChatSession, message: Message):
        session.add_message(message)
        if self.persist is not None:
            try:
                self.persist(session)
            except Exception as e:
                logger.warning(f"Failed to save session {session.session_id}: {e}")
        return message

    def _advance(self, turn: TurnResult, state: TurnState) -> None:
        logger.debug(f"Turn state: {turn.state.value} -> {state.value}")
        turn.states.append(state)
