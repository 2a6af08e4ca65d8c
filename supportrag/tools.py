"""Function-call entry point for assistants that search the knowledge base."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from .config import config

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .retriever import KnowledgeRetriever

logger = config.get_logger(__name__)

KNOWLEDGE_SEARCH_TOOL_NAME = "search_knowledge_base"

KNOWLEDGE_SEARCH_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": KNOWLEDGE_SEARCH_TOOL_NAME,
        "description": "Search the customer support knowledge base for relevant information",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query",
                },
            },
            "required": ["query"],
        },
    },
}


def parse_arguments(arguments: str | Mapping[str, Any] | None) -> dict[str, Any]:
    """Decode tool-call arguments.

    Returns:
        Argument mapping.

    Raises:
        ValueError: If the arguments are not a JSON object.
    """
    if arguments is None:
        return {}
    if isinstance(arguments, str):
        try:
            decoded = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as exc:
            msg = f"Tool arguments are not valid JSON: {exc}"
            raise ValueError(msg) from exc
    else:
        decoded = dict(arguments)
    if not isinstance(decoded, dict):
        msg = "Tool arguments must be a JSON object"
        raise ValueError(msg)  # noqa: TRY004
    return decoded


def handle_tool_call(
    retriever: KnowledgeRetriever,
    name: str,
    arguments: str | Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Run a knowledge-search function call.

    Returns:
        Mapping with ``result``, ``contextUsed`` and ``documentsRetrieved``.

    Raises:
        ValueError: If the tool is unknown or the query is missing.
    """
    if name != KNOWLEDGE_SEARCH_TOOL_NAME:
        msg = f"Unknown tool: {name}"
        raise ValueError(msg)

    query = parse_arguments(arguments).get("query")
    if not isinstance(query, str) or not query.strip():
        msg = "Tool call requires a non-empty 'query' argument"
        raise ValueError(msg)

    logger.info("Handling %s call", name)
    result = retriever.answer(query.strip())
    return {
        "result": result.text,
        "contextUsed": result.context_used,
        "documentsRetrieved": result.documents_retrieved,
    }
