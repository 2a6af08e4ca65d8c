"""Console chat against the support knowledge base."""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

from supportrag import ChatSession, KnowledgeRetriever
from supportrag.config import config

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

EXIT_COMMANDS = frozenset({"exit", "quit"})
CLEAR_COMMAND = "/clear"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Chat with the support assistant in the terminal.",
    )
    parser.add_argument(
        "question",
        nargs="*",
        help="Ask a single question and exit instead of starting a session.",
    )
    return parser.parse_args(argv)


def format_reply(session: ChatSession, message: str) -> str:
    """Answer one message and annotate it with retrieval details."""  # noqa: DOC201
    result = session.send(message)
    return f"{result.text}\n  [documents retrieved: {result.documents_retrieved}]"


def run_session(
    session: ChatSession,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """Read messages until EOF or an exit command."""
    while True:
        try:
            message = read("You: ").strip()
        except EOFError:
            break
        if not message:
            continue
        if message.lower() in EXIT_COMMANDS:
            break
        if message == CLEAR_COMMAND:
            session.clear_history()
            write("History cleared.")
            continue
        write(f"Assistant: {format_reply(session, message)}")


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and start chatting."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    session = ChatSession(KnowledgeRetriever.from_config())

    if args.question:
        print(format_reply(session, " ".join(args.question)))  # noqa: T201
        return 0

    run_session(session)
    return 0


if __name__ == "__main__":
    sys.exit(main())
