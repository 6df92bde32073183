# src/antigravity_bridge/cli.py
"""
Developer command line for the bridge.

    antigravity-bridge models
    antigravity-bridge resolve antigravity-gemini-3-pro
    antigravity-bridge schema tool_schema.json --gemini-cli
    antigravity-bridge chat claude-sonnet-4-5 "Hello" --system "Be brief"
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import colorlog
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .auth import EnvCredentialSource
from .error_handler import BridgeError
from .model_catalog import list_available_models
from .model_resolver import resolve_model
from .provider import AntigravityChatProvider
from .schema_cleaning import (
    clean_json_schema,
    ensure_gemini_cli_object_schema,
    normalize_gemini_cli_schema_types,
)
from .types import ChatRequestOptions, Message, TextResponsePart, ToolCallResponsePart
from .utils.paths import get_logs_dir


class LibraryDebugFilter(logging.Filter):
    """Only DEBUG records from the bridge reach the debug log file."""

    def filter(self, record):
        return record.levelno == logging.DEBUG and record.name.startswith("antigravity_bridge")


def setup_logging(verbose: bool = False, log_to_file: bool = False) -> None:
    logger = logging.getLogger("antigravity_bridge")
    for handler in list(logger.handlers):
        if getattr(handler, "_cli_handler", False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = colorlog.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    console_handler._cli_handler = True
    logger.addHandler(console_handler)

    if log_to_file:
        debug_file_handler = logging.FileHandler(
            get_logs_dir() / "antigravity_debug.log", encoding="utf-8"
        )
        debug_file_handler.setLevel(logging.DEBUG)
        debug_file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        debug_file_handler.addFilter(LibraryDebugFilter())
        debug_file_handler._cli_handler = True
        logger.addHandler(debug_file_handler)

    logger.setLevel(logging.DEBUG)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="antigravity-bridge",
        description="Inspect and exercise the Antigravity chat bridge",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logs")
    parser.add_argument(
        "--log-file", action="store_true", help="Write debug logs to logs/antigravity_debug.log"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("models", help="List available models")

    resolve = sub.add_parser("resolve", help="Show how a model id is resolved")
    resolve.add_argument("model")

    schema = sub.add_parser("schema", help="Normalize a JSON tool schema")
    schema.add_argument("path", help="Schema file, or '-' for stdin")
    schema.add_argument(
        "--gemini-cli", action="store_true", help="Apply gemini-cli type upper-casing"
    )

    chat = sub.add_parser("chat", help="Send a single prompt")
    chat.add_argument("model")
    chat.add_argument("prompt")
    chat.add_argument("--system", default=None)
    chat.add_argument("--temperature", type=float, default=None)
    chat.add_argument("--max-output-tokens", type=int, default=None)
    return parser


def _cmd_models(console: Console) -> int:
    table = Table(title="Antigravity models")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Family")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    for model in list_available_models():
        table.add_row(
            model.id,
            model.name,
            model.family,
            str(model.max_input_tokens),
            str(model.max_output_tokens),
        )
    console.print(table)
    return 0


def _cmd_resolve(console: Console, model: str) -> int:
    console.print_json(data=resolve_model(model).to_dict())
    return 0


def _cmd_schema(console: Console, path: str, gemini_cli: bool) -> int:
    raw = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    try:
        schema = json.loads(raw)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON schema:[/red] {escape(str(e))}")
        return 1
    cleaned = clean_json_schema(schema)
    if gemini_cli:
        cleaned = ensure_gemini_cli_object_schema(normalize_gemini_cli_schema_types(cleaned))
    console.print_json(data=cleaned)
    return 0


async def _run_chat(console: Console, args: argparse.Namespace) -> int:
    messages = []
    if args.system:
        messages.append(Message.system(args.system))
    messages.append(Message.user(args.prompt))

    model_options = {}
    if args.temperature is not None:
        model_options["temperature"] = args.temperature
    if args.max_output_tokens is not None:
        model_options["maxOutputTokens"] = args.max_output_tokens

    async with AntigravityChatProvider(EnvCredentialSource()) as provider:
        async for part in provider.provide_chat_response(
            args.model, messages, ChatRequestOptions(model_options=model_options)
        ):
            if isinstance(part, TextResponsePart):
                console.print(part.value, end="", soft_wrap=True, markup=False)
            elif isinstance(part, ToolCallResponsePart):
                console.print()
                console.print(f"[yellow]tool call[/yellow] {escape(part.name)} ({escape(part.call_id)})")
                console.print_json(data=part.input)
    console.print()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(Path.cwd() / ".env", override=False)
    args = _build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, log_to_file=args.log_file)
    console = Console()

    if args.command == "models":
        return _cmd_models(console)
    if args.command == "resolve":
        return _cmd_resolve(console, args.model)
    if args.command == "schema":
        return _cmd_schema(console, args.path, args.gemini_cli)

    try:
        return asyncio.run(_run_chat(console, args))
    except BridgeError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
