"""Unit tests for the conversation state machine."""

import asyncio
import json

import pytest

from bankchat.ollama import ModelReply, ModelTransportError
from bankchat.services import (
    FOLLOWUP_FALLBACK_MESSAGE,
    NOT_EXECUTED_MESSAGE,
    ContentDelta,
    ConversationEngine,
    FallbackNotice,
    ToolCallFinished,
    ToolCallStarted,
    TurnCompleted,
    TurnFailed,
    TurnState,
    to_ollama_messages,
)
from bankchat.sessions import (
    AssistantMessage,
    ChatSession,
    ToolCallRequest,
    ToolMessage,
    UserMessage,
)


class FakeModelClient:
    """Stands in for OllamaClient with scripted replies.

    ``replies`` feeds chat(); an exception item is raised instead of returned.
    ``stream`` feeds chat_stream(); an Exception item is raised mid-stream.
    """

    def __init__(self, replies=(), stream=()):
        self.replies = list(replies)
        self.stream = list(stream)
        self.chat_calls: list[dict] = []
        self.stream_calls: list[dict] = []
        self.stream_closed = False

    async def chat(self, model, messages, tools=None, options=None):
        self.chat_calls.append(
            {"model": model, "messages": messages, "tools": tools, "options": options}
        )
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def chat_stream(self, model, messages, options=None):
        self.stream_calls.append({"model": model, "messages": messages})
        try:
            for item in self.stream:
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.stream_closed = True


def tool_call(call_id: str, name: str, **arguments) -> ToolCallRequest:
    return ToolCallRequest(
        id=call_id, function_name=name, raw_arguments=json.dumps(arguments)
    )


@pytest.fixture
def session() -> ChatSession:
    return ChatSession(session_id="0123456789", model="llama3.1:8b")


@pytest.fixture
def saved():
    """Records every persisted snapshot's message count."""
    return []


def make_engine(client, executor, saved=None):
    persist = (lambda s: saved.append(len(s.messages))) if saved is not None else None
    return ConversationEngine(
        client=client,
        executor=executor,
        model_options={"temperature": 0.7, "num_predict": 4000},
        persist=persist,
    )


async def collect(engine, session, text):
    return [event async for event in engine.stream_turn(session, text)]


@pytest.mark.asyncio
async def test_plain_answer(executor, session, saved):
    """Test a turn where the model answers without calling functions."""
    client = FakeModelClient([ModelReply(content="Hello! How can I help?")])
    engine = make_engine(client, executor, saved)

    result = await engine.run_turn(session, "Hi")

    assert result.succeeded
    assert result.final_message.content == "Hello! How can I help?"
    assert result.states == [
        TurnState.AWAITING_USER_INPUT,
        TurnState.MODEL_REQUESTED,
        TurnState.FINAL_ANSWER_RECEIVED,
    ]
    assert [m.role for m in session.messages] == ["user", "assistant"]
    assert saved == [1, 2]
    assert len(client.chat_calls) == 1
    assert len(client.chat_calls[0]["tools"]) == 6
    assert client.chat_calls[0]["options"] == {"temperature": 0.7, "num_predict": 4000}


@pytest.mark.asyncio
async def test_tool_calls_then_followup(executor, session, saved):
    """Test that every requested call is answered before the follow-up request."""
    client = FakeModelClient(
        [
            ModelReply(
                content="",
                tool_calls=[
                    tool_call("call_a", "get_account_balance", account_id="acc-001"),
                    tool_call("call_b", "list_payees"),
                ],
            ),
            ModelReply(content="Your checking balance is $2,500.75."),
        ]
    )
    engine = make_engine(client, executor, saved)

    result = await engine.run_turn(session, "What's my balance and who can I pay?")

    roles = [m.role for m in session.messages]
    assert roles == ["user", "assistant", "tool", "tool", "assistant"]
    assert [m.tool_call_id for m in session.messages if isinstance(m, ToolMessage)] == [
        "call_a",
        "call_b",
    ]
    assert json.loads(session.messages[2].content)["account"]["id"] == "acc-001"
    assert [c.id for c in result.tool_calls] == ["call_a", "call_b"]
    assert result.final_message.content == "Your checking balance is $2,500.75."
    assert result.state == TurnState.FINAL_ANSWER_RECEIVED
    assert TurnState.TOOLS_EXECUTING in result.states
    assert saved == [1, 2, 3, 4, 5]

    # The follow-up request carries both results and the assistant's requests
    followup_messages = client.chat_calls[1]["messages"]
    assert [m["role"] for m in followup_messages] == [
        "user",
        "assistant",
        "tool",
        "tool",
    ]
    assert followup_messages[1]["tool_calls"][0]["function"] == {
        "name": "get_account_balance",
        "arguments": {"account_id": "acc-001"},
    }
    assert followup_messages[3]["tool_name"] == "list_payees"
    assert client.chat_calls[1]["tools"] == client.chat_calls[0]["tools"]


@pytest.mark.asyncio
async def test_event_order(executor, session):
    client = FakeModelClient(
        [
            ModelReply(content="Let me check.", tool_calls=[tool_call("c1", "list_accounts")]),
            ModelReply(content="You have 3 accounts."),
        ]
    )
    engine = make_engine(client, executor)

    events = await collect(engine, session, "How many accounts?")

    assert [type(e) for e in events] == [
        ContentDelta,
        ToolCallStarted,
        ToolCallFinished,
        ContentDelta,
        TurnCompleted,
    ]
    assert events[1].request.id == "c1"
    assert json.loads(events[2].result)["total_accounts"] == 3


@pytest.mark.asyncio
async def test_payment_through_conversation(executor, session, store):
    """Test that a requested payment mutates the ledger exactly once."""
    client = FakeModelClient(
        [
            ModelReply(
                tool_calls=[
                    tool_call(
                        "pay_1",
                        "make_payment",
                        from_account_id="acc-001",
                        payee_id="payee-002",
                        amount=75.25,
                    )
                ]
            ),
            ModelReply(content="Paid."),
        ]
    )
    before = len(store.list_transactions("acc-001"))

    await make_engine(client, executor).run_turn(session, "Pay my internet bill")

    assert len(store.list_transactions("acc-001")) == before + 1
    assert str(store.get_account("acc-001").balance) == "2425.50"


@pytest.mark.asyncio
async def test_duplicate_request_id_runs_once(executor, session, store):
    client = FakeModelClient(
        [
            ModelReply(
                tool_calls=[
                    tool_call(
                        "dup",
                        "make_payment",
                        from_account_id="acc-001",
                        payee_id="payee-001",
                        amount=10,
                    ),
                    tool_call(
                        "dup",
                        "make_payment",
                        from_account_id="acc-001",
                        payee_id="payee-001",
                        amount=10,
                    ),
                ]
            ),
            ModelReply(content="Done."),
        ]
    )

    result = await make_engine(client, executor).run_turn(session, "Pay $10")

    assert len(result.tool_calls) == 1
    assert str(store.get_account("acc-001").balance) == "2490.75"
    assert session.pending_tool_call_ids() == []


@pytest.mark.asyncio
async def test_unknown_function_result_goes_back_to_model(executor, session):
    client = FakeModelClient(
        [
            ModelReply(tool_calls=[tool_call("x1", "open_vault")]),
            ModelReply(content="I can't do that."),
        ]
    )

    result = await make_engine(client, executor).run_turn(session, "Open the vault")

    assert result.tool_calls[0].result == "Function open_vault not found"
    assert result.final_message.content == "I can't do that."


@pytest.mark.asyncio
async def test_followup_tool_calls_are_not_executed(executor, session):
    client = FakeModelClient(
        [
            ModelReply(tool_calls=[tool_call("c1", "list_accounts")]),
            ModelReply(
                content="Here you go.",
                tool_calls=[tool_call("c2", "list_payees")],
            ),
        ]
    )

    result = await make_engine(client, executor).run_turn(session, "Accounts?")

    assert [c.id for c in result.tool_calls] == ["c1"]
    assert session.messages[-1].tool_calls == []
    assert len(client.chat_calls) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "followup",
    [ModelTransportError("connection reset", retryable=True), ModelReply(content="  ")],
)
async def test_followup_failure_uses_fallback_answer(executor, session, followup):
    """Test that a failed or empty follow-up still ends the turn with an answer."""
    client = FakeModelClient(
        [ModelReply(tool_calls=[tool_call("c1", "list_accounts")]), followup]
    )

    result = await make_engine(client, executor).run_turn(session, "Accounts?")

    assert result.succeeded
    assert result.followup_failed
    assert result.final_message.content == FOLLOWUP_FALLBACK_MESSAGE
    assert session.messages[-1].content == FOLLOWUP_FALLBACK_MESSAGE
    assert result.state == TurnState.FINAL_ANSWER_RECEIVED


@pytest.mark.asyncio
async def test_initial_failure_falls_back_to_streaming(executor, session):
    """Test the streaming fallback when the function-calling request fails."""
    client = FakeModelClient(
        [ModelTransportError("Ollama API error 500: boom", status_code=500)],
        stream=["I can ", "help with that."],
    )
    engine = make_engine(client, executor)

    events = await collect(engine, session, "Hello")
    result = events[-1].result

    assert isinstance(events[0], FallbackNotice)
    assert [e.text for e in events if isinstance(e, ContentDelta)] == [
        "I can ",
        "help with that.",
    ]
    assert result.fallback_used
    assert result.final_message.content == "I can help with that."
    assert result.final_message.tool_calls == []
    assert result.states[-2:] == [
        TurnState.STREAMING_FALLBACK,
        TurnState.FINAL_ANSWER_RECEIVED,
    ]
    assert [m.role for m in session.messages] == ["user", "assistant"]
    assert client.stream_closed
    assert all("tool_calls" not in m for m in client.stream_calls[0]["messages"])


@pytest.mark.asyncio
async def test_stream_failure_falls_back_to_plain_request(executor, session):
    client = FakeModelClient(
        [
            ModelTransportError("timeout", retryable=True),
            ModelReply(content="Plain answer."),
        ],
        stream=["partial ", ModelTransportError("stream dropped")],
    )

    result = await make_engine(client, executor).run_turn(session, "Hello")

    assert result.final_message.content == "Plain answer."
    assert TurnState.PLAIN_FALLBACK in result.states
    assert client.chat_calls[1]["tools"] is None
    assert client.stream_closed
    assert [m.content for m in session.messages] == ["Hello", "Plain answer."]


@pytest.mark.asyncio
async def test_empty_stream_falls_back_to_plain_request(executor, session):
    client = FakeModelClient(
        [ModelTransportError("boom"), ModelReply(content="Plain answer.")],
        stream=[],
    )

    result = await make_engine(client, executor).run_turn(session, "Hello")

    assert result.final_message.content == "Plain answer."


@pytest.mark.asyncio
async def test_total_failure_appends_nothing(executor, session):
    """Test that when every strategy fails no assistant message is added."""
    client = FakeModelClient(
        [ModelTransportError("down"), ModelTransportError("still down")],
        stream=[ModelTransportError("also down")],
    )

    events = await collect(make_engine(client, executor), session, "Hello")
    result = events[-1].result

    assert isinstance(events[-2], TurnFailed)
    assert not result.succeeded
    assert result.state == TurnState.FAILED
    assert result.final_message is None
    assert [m.role for m in session.messages] == ["user"]


@pytest.mark.asyncio
async def test_unexpected_client_exception_is_contained(executor, session):
    client = FakeModelClient(
        [RuntimeError("bug"), ModelReply(content="Recovered.")],
        stream=[],
    )

    result = await make_engine(client, executor).run_turn(session, "Hello")

    assert result.final_message.content == "Recovered."


@pytest.mark.asyncio
async def test_consumer_stopping_early_closes_stream(executor, session):
    client = FakeModelClient([ModelTransportError("boom")], stream=["a", "b", "c"])
    turn = make_engine(client, executor).stream_turn(session, "Hello")

    async for event in turn:
        if isinstance(event, ContentDelta):
            break
    await turn.aclose()

    assert client.stream_closed


@pytest.mark.asyncio
async def test_persist_failure_does_not_break_turn(executor, session):
    def broken_persist(_session):
        raise OSError("disk full")

    engine = ConversationEngine(
        client=FakeModelClient([ModelReply(content="Hi")]),
        executor=executor,
        persist=broken_persist,
    )

    result = await engine.run_turn(session, "Hello")

    assert result.final_message.content == "Hi"


def test_to_ollama_messages_plain_strips_tool_metadata():
    messages = [
        UserMessage(content="Pay"),
        AssistantMessage(content="", tool_calls=[tool_call("c1", "list_payees")]),
        ToolMessage(tool_call_id="c1", tool_name="list_payees", content="{}"),
    ]

    full = to_ollama_messages(messages)
    plain = to_ollama_messages(messages, plain=True)

    assert full[1]["tool_calls"] == [
        {"function": {"name": "list_payees", "arguments": {}}}
    ]
    assert full[2] == {"role": "tool", "content": "{}", "tool_name": "list_payees"}
    assert plain == [
        {"role": "user", "content": "Pay"},
        {"role": "assistant", "content": ""},
        {"role": "tool", "content": "{}"},
    ]


def test_to_ollama_messages_bad_argument_text_becomes_empty_object():
    messages = [
        AssistantMessage(
            tool_calls=[ToolCallRequest(id="c", function_name="f", raw_arguments="nope")]
        )
    ]

    assert to_ollama_messages(messages)[0]["tool_calls"][0]["function"]["arguments"] == {}


def unanswered_after_tool_requests(messages: list[dict]) -> list[str]:
    """Names of requested calls with no tool message before the next non-tool message."""
    missing: list[str] = []
    for index, message in enumerate(messages):
        if message["role"] != "assistant" or not message.get("tool_calls"):
            continue
        answered = []
        for following in messages[index + 1 :]:
            if following["role"] != "tool":
                break
            answered.append(following["tool_name"])
        for call in message["tool_calls"]:
            name = call["function"]["name"]
            if name in answered:
                answered.remove(name)
            else:
                missing.append(name)
    return missing


@pytest.mark.asyncio
async def test_consumer_stopping_during_tool_calls_answers_every_request(
    executor, session, saved
):
    """Test that unexecuted calls get a result when the reader stops early."""
    client = FakeModelClient(
        [
            ModelReply(
                tool_calls=[
                    tool_call("c1", "list_accounts"),
                    tool_call("c2", "list_payees"),
                ]
            ),
            ModelReply(content="Hello again."),
        ]
    )
    engine = make_engine(client, executor, saved)
    turn = engine.stream_turn(session, "What do I have?")

    async for event in turn:
        if isinstance(event, ToolCallStarted):
            break
    await turn.aclose()

    assert session.pending_tool_call_ids() == []
    tool_messages = [m for m in session.messages if isinstance(m, ToolMessage)]
    assert [m.tool_call_id for m in tool_messages] == ["c1", "c2"]
    assert tool_messages[0].content == NOT_EXECUTED_MESSAGE.format(name="list_accounts")
    assert tool_messages[1].content == NOT_EXECUTED_MESSAGE.format(name="list_payees")
    assert saved[-1] == len(session.messages)

    result = await engine.run_turn(session, "hello again")

    next_request = client.chat_calls[-1]["messages"]
    assert [m["role"] for m in next_request] == ["user", "assistant", "tool", "tool", "user"]
    assert unanswered_after_tool_requests(next_request) == []
    assert result.final_message.content == "Hello again."


@pytest.mark.asyncio
async def test_stopping_after_first_call_keeps_its_result(executor, session):
    client = FakeModelClient(
        [
            ModelReply(
                tool_calls=[
                    tool_call("c1", "list_accounts"),
                    tool_call("c2", "list_payees"),
                ]
            )
        ]
    )
    turn = make_engine(client, executor).stream_turn(session, "What do I have?")

    async for event in turn:
        if isinstance(event, ToolCallFinished):
            break
    await turn.aclose()

    tool_messages = [m for m in session.messages if isinstance(m, ToolMessage)]
    assert [m.tool_call_id for m in tool_messages] == ["c1", "c2"]
    assert "acc-001" in tool_messages[0].content
    assert tool_messages[1].content == NOT_EXECUTED_MESSAGE.format(name="list_payees")


@pytest.mark.asyncio
async def test_pending_calls_in_loaded_history_are_answered_first(executor, session):
    """Test a session saved mid-execution before this fix can still continue."""
    session.add_message(UserMessage(content="Balance?"))
    session.add_message(
        AssistantMessage(content="", tool_calls=[tool_call("c9", "list_accounts")])
    )
    client = FakeModelClient([ModelReply(content="Sure.")])

    await make_engine(client, executor).run_turn(session, "Anything else?")

    sent = client.chat_calls[0]["messages"]
    assert [m["role"] for m in sent] == ["user", "assistant", "tool", "user"]
    assert sent[2]["content"] == NOT_EXECUTED_MESSAGE.format(name="list_accounts")
    assert session.pending_tool_call_ids() == []


@pytest.mark.asyncio
async def test_cancelled_model_call_follows_fallback(executor, session):
    client = FakeModelClient([asyncio.CancelledError()], stream=["Streamed ", "answer"])

    result = await make_engine(client, executor).run_turn(session, "Hello")

    assert result.fallback_used
    assert result.final_message.content == "Streamed answer"


@pytest.mark.asyncio
async def test_cancelling_the_turn_task_propagates(executor, session):
    started = asyncio.Event()

    class HangingClient(FakeModelClient):
        async def chat(self, model, messages, tools=None, options=None):
            started.set()
            await asyncio.sleep(3600)

    task = asyncio.create_task(
        make_engine(HangingClient(), executor).run_turn(session, "Hello")
    )
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_run_turn_raises_when_stream_ends_without_completion(executor, session):
    engine = make_engine(FakeModelClient(), executor)

    async def no_events(_session, _text):
        return
        yield

    engine.stream_turn = no_events

    with pytest.raises(RuntimeError):
        await engine.run_turn(session, "Hello")
