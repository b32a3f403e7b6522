"""Chat API endpoints.

This module provides endpoints that run one user turn against a session,
returning either the complete outcome or a stream of Server-Sent Events.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from bankchat.dependencies import (
    get_conversation_engine,
    get_session_manager,
    load_session_or_404,
)
from bankchat.models.chat import (
    ChatRequest,
    ChatResponse,
    ContentDeltaEvent,
    DoneEvent,
    ErrorEvent,
    FallbackEvent,
    ToolCallEvent,
    ToolCallExecuted,
    ToolResultEvent,
)
from bankchat.routers.sessions import message_response
from bankchat.services import (
    ContentDelta,
    ConversationEngine,
    FallbackNotice,
    ToolCallFinished,
    ToolCallStarted,
    TurnCompleted,
    TurnEvent,
    TurnFailed,
)
from bankchat.sessions import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.post("/{session_id}", response_model=ChatResponse)
async def chat_non_streaming(
    session_id: str,
    request_body: ChatRequest,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    engine: Annotated[ConversationEngine, Depends(get_conversation_engine)],
) -> ChatResponse:
    """Send a message to a session and receive the turn's outcome.

    Args:
        session_id: The session ID to chat with
        request_body: Chat request containing the message
        session_manager: Injected SessionManager
        engine: Injected ConversationEngine

    Returns:
        ChatResponse with the final assistant message and executed calls

    Raises:
        HTTPException: 404 if session not found, 502 if the model is unavailable
    """
    load_session_or_404(session_manager, session_id)

    # turns on one session run one after another, each on a fresh load
    async with session_manager.turn_lock(session_id):
        session = load_session_or_404(session_manager, session_id)
        logger.info(f"Running chat turn for session {session_id}")
        result = await engine.run_turn(session, request_body.message)

    if result.final_message is None:
        raise HTTPException(
            status_code=502,
            detail={
                "error": {
                    "code": "model_unavailable",
                    "message": result.error or "No response from model",
                    "details": {"session_id": session_id},
                }
            },
        )

    return ChatResponse(
        session_id=session_id,
        message=message_response(result.final_message),
        tool_calls_executed=[
            ToolCallExecuted(
                id=call.id,
                function_name=call.function_name,
                arguments=call.raw_arguments,
                result=call.result,
            )
            for call in result.tool_calls
        ],
        fallback_used=result.fallback_used,
        state=result.state.value,
    )


def _sse_event(event: TurnEvent, session_id: str) -> dict:
    """Translate an engine event into an SSE message."""
    if isinstance(event, ContentDelta):
        return {
            "event": "content_delta",
            "data": ContentDeltaEvent(content=event.text).model_dump_json(),
        }
    if isinstance(event, ToolCallStarted):
        payload = ToolCallEvent(
            id=event.request.id,
            function_name=event.request.function_name,
            arguments=event.request.raw_arguments,
        )
        return {"event": "tool_call", "data": payload.model_dump_json()}
    if isinstance(event, ToolCallFinished):
        payload = ToolResultEvent(
            id=event.request.id,
            function_name=event.request.function_name,
            result=event.result,
        )
        return {"event": "tool_result", "data": payload.model_dump_json()}
    if isinstance(event, FallbackNotice):
        return {
            "event": "fallback",
            "data": FallbackEvent(message=event.message).model_dump_json(),
        }
    if isinstance(event, TurnFailed):
        payload = ErrorEvent(
            code="model_unavailable",
            message=event.message,
            details={"session_id": session_id},
        )
        return {"event": "error", "data": payload.model_dump_json()}

    result = event.result
    payload = DoneEvent(
        session_id=session_id,
        state=result.state.value,
        fallback_used=result.fallback_used,
        message_id=result.final_message.message_id if result.final_message else None,
    )
    return {"event": "done", "data": payload.model_dump_json()}


@router.post("/{session_id}/stream")
async def chat_streaming(
    session_id: str,
    request_body: ChatRequest,
    request: Request,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    engine: Annotated[ConversationEngine, Depends(get_conversation_engine)],
) -> EventSourceResponse:
    """Stream a chat turn via Server-Sent Events (SSE).

    SSE Events:
        - content_delta: Assistant text as it becomes available
        - tool_call: A function call is about to run
        - tool_result: A function call finished, with its result text
        - fallback: Function calling failed and a degraded path is used
        - error: Every strategy failed
        - done: The turn is complete

    Raises:
        HTTPException: 404 if session not found
    """
    load_session_or_404(session_manager, session_id)
    lock = session_manager.turn_lock(session_id)

    logger.info(f"Starting streaming chat turn for session {session_id}")

    async def event_generator():
        async with lock:
            try:
                session = session_manager.get_session(session_id)
            except FileNotFoundError:
                payload = ErrorEvent(
                    code="session_not_found",
                    message=f"Session {session_id} not found",
                    details={"session_id": session_id},
                )
                yield {"event": "error", "data": payload.model_dump_json()}
                return

            turn = engine.stream_turn(session, request_body.message)
            try:
                async for event in turn:
                    if await request.is_disconnected():
                        logger.warning(
                            f"Client disconnected during streaming for session {session_id}"
                        )
                        break
                    yield _sse_event(event, session_id)
                    if isinstance(event, TurnCompleted):
                        break
            finally:
                await turn.aclose()

    return EventSourceResponse(event_generator())
