"""CLI entry point for bankchat.

This module provides the command-line interface. It can be invoked as
`bankchat` (via the script entry point) or `python -m bankchat`.

Commands:
    chat   Interactive terminal conversation (default)
    serve  Start the HTTP API server
"""

import argparse
import sys

import uvicorn

from bankchat import __version__, create_app
from bankchat.config import BankChatSettings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bankchat",
        description="Banking assistant with model function calling via Ollama",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"bankchat {__version__}",
    )

    shared = argparse.ArgumentParser(add_help=False)
    shared.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via BANKCHAT_OLLAMA_HOST)",
    )
    shared.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model name (default: llama3.1:8b, can be set via BANKCHAT_MODEL)",
    )
    shared.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Base directory for all data (default: ., can be set via BANKCHAT_DATA_DIR)",
    )
    shared.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via BANKCHAT_LOG_LEVEL)",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("chat", parents=[shared], help="Interactive chat (default)")

    serve = subparsers.add_parser("serve", parents=[shared], help="Start the API server")
    serve.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via BANKCHAT_HOST)",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via BANKCHAT_PORT)",
    )
    serve.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development (uvicorn --reload)",
    )

    return parser


def settings_from_args(args: argparse.Namespace) -> BankChatSettings:
    """Build settings; CLI args override environment variables."""
    settings_kwargs = {}
    for name in ("ollama_host", "model", "data_dir", "log_level", "host", "port"):
        value = getattr(args, name, None)
        if value is not None:
            settings_kwargs[name] = value
    return BankChatSettings(**settings_kwargs)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the bankchat CLI."""
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)

    if args.command == "serve":
        app = create_app(settings=settings)
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
            reload=args.reload,
        )
        return

    from bankchat.cli import run

    run(settings)


if __name__ == "__main__":
    sys.exit(main())
