"""Interactive terminal chat.

Reads user lines, runs each as one conversation turn and prints the
streamed answer, function calls and fallback notices. ``exit`` quits and
``functions`` lists the functions the model can call.
"""

import asyncio
import logging

from bankchat.app import build_components
from bankchat.config import BankChatSettings
from bankchat.ollama import OllamaClient
from bankchat.services import (
    ContentDelta,
    ConversationEngine,
    FallbackNotice,
    ToolCallFinished,
    ToolCallStarted,
    TurnFailed,
)
from bankchat.sessions import SessionCreationOptions, SessionManager
from bankchat.tools import FunctionDescriptor

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit"}


def format_functions(descriptors: list[FunctionDescriptor]) -> str:
    """Render the function list with parameters and required names."""
    lines = [f"Available functions ({len(descriptors)}):"]
    for descriptor in descriptors:
        lines.append(f"  {descriptor.name}: {descriptor.description}")
        for name, prop in descriptor.parameters.properties.items():
            required = " (required)" if name in descriptor.parameters.required else ""
            choices = f" [{', '.join(prop.enum)}]" if prop.enum else ""
            lines.append(f"    - {name}: {prop.type}{choices}{required} {prop.description}")
    return "\n".join(lines)


async def run_chat_turn(engine: ConversationEngine, session, user_text: str) -> None:
    """Run one turn, printing events as they arrive."""
    print("Assistant: ", end="", flush=True)
    async for event in engine.stream_turn(session, user_text):
        if isinstance(event, ContentDelta):
            print(event.text, end="", flush=True)
        elif isinstance(event, ToolCallStarted):
            print(
                f"\n[calling {event.request.function_name}"
                f"({event.request.raw_arguments})]",
                flush=True,
            )
        elif isinstance(event, ToolCallFinished):
            logger.debug(f"{event.request.function_name} returned: {event.result}")
        elif isinstance(event, FallbackNotice):
            print(f"\n[{event.message}]", flush=True)
        elif isinstance(event, TurnFailed):
            print(f"\nError: {event.message}", flush=True)
    print()


async def chat_loop(settings: BankChatSettings) -> None:
    """Interactive loop over one new session until the user exits."""
    client = OllamaClient(
        host=settings.ollama_host, request_timeout=settings.request_timeout
    )
    components = build_components(settings, client)
    engine: ConversationEngine = components["conversation_engine"]
    session_manager: SessionManager = components["session_manager"]
    descriptors = engine.executor.available_functions()

    session = session_manager.create_session(
        SessionCreationOptions(model=settings.model, system_prompt=settings.system_prompt)
    )

    print(f"bankchat | model={settings.model} | session={session.session_id}")
    print(format_functions(descriptors))
    print("Type 'functions' to list functions again, 'exit' to quit.")

    try:
        while True:
            try:
                user_text = (await asyncio.to_thread(input, "\nYou: ")).strip()
            except EOFError:
                break
            if not user_text:
                continue
            if user_text.lower() in EXIT_COMMANDS:
                break
            if user_text.lower() == "functions":
                print(format_functions(descriptors))
                continue

            await run_chat_turn(engine, session, user_text)
    finally:
        await client.close()

    print("Goodbye!")


def run(settings: BankChatSettings) -> None:
    """Configure logging and run the interactive loop."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(chat_loop(settings))
    except KeyboardInterrupt:
        print("\nGoodbye!")
