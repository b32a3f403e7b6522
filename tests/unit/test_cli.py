"""Unit tests for the command-line entry points."""

from unittest.mock import patch

import pytest

from bankchat.__main__ import build_parser, main, settings_from_args
from bankchat.cli import format_functions, run_chat_turn
from bankchat.ollama import ModelReply
from bankchat.services import ConversationEngine
from bankchat.sessions import ChatSession, ToolCallRequest


class ScriptedClient:
    def __init__(self, replies):
        self.replies = list(replies)

    async def chat(self, model, messages, tools=None, options=None):
        return self.replies.pop(0)


def test_format_functions_lists_parameters(registry):
    text = format_functions(registry.descriptors())

    assert text.startswith("Available functions (6):")
    assert "  make_payment: Make a payment from a specified account to a payee" in text
    assert "    - amount: number (required) Payment amount" in text
    assert "    - account_type: string [checking, savings] Filter by account type" in text


def test_settings_from_args_override_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("BANKCHAT_MODEL", "from-env")
    monkeypatch.setenv("BANKCHAT_PORT", "9000")

    args = build_parser().parse_args(
        ["serve", "--model", "from-cli", "--data-dir", str(tmp_path)]
    )
    settings = settings_from_args(args)

    assert settings.model == "from-cli"
    assert settings.port == 9000
    assert settings.data_dir == str(tmp_path)


def test_default_command_is_chat():
    with patch("bankchat.cli.run") as run:
        main(["chat", "--log-level", "DEBUG"])
        main([])

    assert run.call_count == 2
    assert run.call_args_list[0].args[0].log_level == "DEBUG"


def test_serve_starts_uvicorn(tmp_path):
    with patch("bankchat.__main__.uvicorn.run") as uvicorn_run:
        main(["serve", "--port", "8123", "--data-dir", str(tmp_path)])

    kwargs = uvicorn_run.call_args.kwargs
    assert kwargs["port"] == 8123
    assert kwargs["reload"] is False


@pytest.mark.asyncio
async def test_run_chat_turn_prints_calls_and_answer(executor, capsys):
    engine = ConversationEngine(
        client=ScriptedClient(
            [
                ModelReply(
                    tool_calls=[ToolCallRequest(id="c1", function_name="list_payees")]
                ),
                ModelReply(content="You have 4 payees."),
            ]
        ),
        executor=executor,
    )
    session = ChatSession(session_id="0123456789", model="m")

    await run_chat_turn(engine, session, "Who can I pay?")

    output = capsys.readouterr().out
    assert "[calling list_payees({})]" in output
    assert output.rstrip().endswith("You have 4 payees.")
