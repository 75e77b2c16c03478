"""
futures-retry command line

Commands:
1. serve   - Run a TCP echo server whose accept loop retries on errors
2. connect - Send a message to an echo server over a retried connection

Usage:
    futures-retry serve --port 12345
    futures-retry connect --port 12345 --message hello
    futures-retry --json-logs --config config/retry_config.yaml serve
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from .echo import EchoServer, connect
from .errors import ForwardedError
from .handlers import build_handler
from .utils.config_loader import RetryConfig, load_config
from .utils.structured_logging import setup_structured_logging

console = Console()
logger = logging.getLogger(__name__)

TRUE_VALUES = ("1", "true", "yes", "on")


def load_environment(env_file: str | Path = ".env") -> dict[str, str]:
    """Load optional settings from the environment (and a .env file if present)."""
    env_file = Path(env_file)
    if env_file.exists():
        load_dotenv(env_file)

    env_vars = {}
    for var in ("FUTURES_RETRY_CONFIG", "FUTURES_RETRY_LOG_LEVEL", "FUTURES_RETRY_JSON_LOGS"):
        value = os.getenv(var)
        if value:
            env_vars[var] = value
    return env_vars


def resolve_config(args: argparse.Namespace, env_vars: dict[str, str]) -> RetryConfig:
    """Load the config file and apply environment and command line overrides."""
    config = load_config(args.config or env_vars.get("FUTURES_RETRY_CONFIG"))

    if "FUTURES_RETRY_LOG_LEVEL" in env_vars:
        config.logging.level = env_vars["FUTURES_RETRY_LOG_LEVEL"]
    if "FUTURES_RETRY_JSON_LOGS" in env_vars:
        config.logging.json_output = env_vars["FUTURES_RETRY_JSON_LOGS"].lower() in TRUE_VALUES

    if args.log_level:
        config.logging.level = args.log_level
    if args.json_logs:
        config.logging.json_output = True
    if args.host:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.max_attempts is not None:
        config.handler.max_attempts = args.max_attempts
    return config


async def run_serve(config: RetryConfig, max_connections: int | None) -> int:
    server = EchoServer(
        config.server.host,
        config.server.port,
        build_handler(config.handler, "Accepting connections"),
    )
    server.start()
    host, port = server.address[:2]
    console.print(Panel.fit(
        f"[bold cyan]futures-retry echo server[/bold cyan]\nListening at {host}:{port}",
        border_style="cyan",
    ))
    try:
        accepted = await server.serve(max_connections=max_connections)
    finally:
        server.close()
    console.print(f"[green]✓[/green] Served {accepted} connection(s)")
    return 0


async def run_connect(config: RetryConfig, message: str) -> int:
    handler = build_handler(config.handler, "Connecting")
    reply, attempt = await connect(
        config.server.host,
        config.server.port,
        message.encode("utf-8"),
        handler,
    )
    console.print(f"[green]✓[/green] Connected on attempt {attempt}")
    console.print(reply.decode("utf-8", errors="replace"))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="futures-retry",
        description="Retry wrappers for asyncio futures and streams - echo demo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  futures-retry serve --port 12345
  futures-retry serve --max-connections 1
  futures-retry connect --port 12345 --message hello

Environment:
  FUTURES_RETRY_CONFIG      Path to a YAML config file
  FUTURES_RETRY_LOG_LEVEL   Log level (DEBUG, INFO, WARNING, ERROR)
  FUTURES_RETRY_JSON_LOGS   Emit JSON log lines (true/false)
        """,
    )
    parser.add_argument("--config", "-c", help="Path to YAML config file")
    parser.add_argument("--log-level", "-l", help="Log level (default: INFO)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--host", help="Host to bind/connect to (default: 127.0.0.1)")
    common.add_argument("--port", "-p", type=int, help="Port (default: 12345)")
    common.add_argument(
        "--max-attempts", "-a",
        type=int,
        help="Consecutive failures tolerated before giving up (default: 3)",
    )

    serve = subparsers.add_parser("serve", parents=[common], help="Run the echo server")
    serve.add_argument(
        "--max-connections", "-n",
        type=int,
        help="Stop after accepting this many connections",
    )

    client = subparsers.add_parser("connect", parents=[common], help="Talk to an echo server")
    client.add_argument("--message", "-m", default="hello", help="Message to send (default: hello)")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args, load_environment())
        setup_structured_logging(config.logging.level, config.logging.json_output)

        if args.command == "serve":
            return asyncio.run(run_serve(config, args.max_connections))
        return asyncio.run(run_connect(config, args.message))

    except ForwardedError as e:
        console.print(f"[red]✗ Gave up after attempt {e.attempt}: {escape(str(e.error))}[/red]")
        return 1
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
