"""
Interactive command-line chat built on ChatClient.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import IO, Optional

from . import __version__
from .client import ChatClient
from .config import Settings, env_flag, load_env_file
from .exceptions import NoProviderAvailableError, SwitchboardError
from .registry import ProviderRegistry
from .services.memory import ConversationMemory
from .services.store import create_store

logger = logging.getLogger(__name__)

LOG_DIR = "~/.switchboard/logs"

HELP_TEXT = """Commands:
  /clear          Forget this conversation
  /providers      List configured providers and their models
  /search <query> Search the web
  /quit           Exit
"""


def setup_logging(debug: bool = False) -> str:
    """Configure stderr and rotating file logging.

    Returns:
        The path of the log file.
    """
    log_dir = os.path.expanduser(LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "switchboard.log")

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stderr),
        RotatingFileHandler(
            log_file,
            mode="a",
            encoding="utf-8",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        ),
    ]

    log_level = logging.DEBUG if debug or env_flag("SWITCHBOARD_DEBUG") else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    logger.info(f"Logging to file: {log_file}")
    return log_file


def build_client(settings: Settings, provider: Optional[str] = None) -> ChatClient:
    """Wire settings, registry, store and memory into a client."""
    registry = ProviderRegistry(settings)
    memory = ConversationMemory(create_store(settings), ttl_seconds=settings.memory_ttl_seconds)
    return ChatClient(provider=provider, registry=registry, memory=memory)


def handle_command(client: ChatClient, line: str, out: IO[str]) -> bool:
    """Run a slash command. Returns False when the session should end."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()

    if command in ("/quit", "/exit"):
        return False

    if command == "/clear":
        if client.clear_conversation():
            out.write("Conversation cleared.\n")
        else:
            out.write("Could not clear the conversation.\n")
    elif command == "/providers":
        for name in client.available_providers():
            out.write(f"{name}: {', '.join(client.models_for(name))}\n")
    elif command == "/search":
        if not argument:
            out.write("Usage: /search <query>\n")
        else:
            out.write(client.search_internet(argument) + "\n")
    else:
        out.write(HELP_TEXT)

    out.flush()
    return True


def run_repl(client: ChatClient, stdin: IO[str], out: IO[str]) -> None:
    """Read prompts line by line and stream answers until EOF."""

    def on_chunk(content: str, done: bool) -> None:
        out.write(content)
        if done:
            out.write("\n")
        out.flush()

    for raw_line in stdin:
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith("/"):
            if not handle_command(client, line, out):
                break
            continue

        client.generate_streaming(line, on_chunk)


def main():
    """Main entry point."""
    load_env_file()
    settings = Settings.from_env()
    setup_logging(settings.debug)

    logger.info(f"Starting switchboard v{__version__}")

    try:
        client = build_client(settings, os.getenv("SWITCHBOARD_PROVIDER") or None)
    except NoProviderAvailableError as e:
        logger.error(str(e))
        print(f"switchboard: {e}", file=sys.stderr)
        sys.exit(1)
    except SwitchboardError as e:
        logger.error(f"Failed to start: {e}")
        print(f"switchboard: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        run_repl(client, sys.stdin, sys.stdout)
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    logger.info(f"Session stats: {client.get_stats()}")


if __name__ == "__main__":
    main()
