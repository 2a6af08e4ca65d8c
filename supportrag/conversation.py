"""Conversation management with history and user-facing error handling."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING

from openai import OpenAIError

from .config import config
from .exceptions import SupportRAGError
from .models import AnswerResult, ConversationTurn

if TYPE_CHECKING:
    from .retriever import KnowledgeRetriever

logger = config.get_logger(__name__)

GENERIC_ERROR_MESSAGE = (
    "I'm sorry, something went wrong while processing your message. "
    "Please try again in a moment."
)


class ChatSession:
    """Multi-turn chat over the knowledge retriever.

    Failures anywhere in the retrieval chain are logged and answered with one
    generic message; the error kind is never shown to the user.
    """

    def __init__(
        self,
        retriever: KnowledgeRetriever,
        max_history_turns: int | None = None,
    ) -> None:
        """Initialize ChatSession.

        Args:
            retriever: Answers each message.
            max_history_turns: Number of recent turns passed as conversation
                context. If None, uses config.CHAT_HISTORY_TURNS.
        """
        self.retriever = retriever
        self.conversation_history: list[ConversationTurn] = []
        self.max_history_turns = (
            max_history_turns
            if max_history_turns is not None
            else config.CHAT_HISTORY_TURNS
        )

    def recent_context(self) -> str | None:
        """Render the most recent turns as plain text.

        Returns:
            Conversation text, or None when there is no history.
        """
        if not self.conversation_history or self.max_history_turns <= 0:
            return None
        lines = []
        for turn in self.conversation_history[-self.max_history_turns :]:
            lines.append(f"Customer: {turn.user_message}")
            lines.append(f"Assistant: {turn.bot_response}")
        return "\n".join(lines)

    def send(self, message: str) -> AnswerResult:
        """Answer a customer message.

        Returns:
            The generated answer, or the generic error reply on failure.

        Raises:
            ValueError: If the message is empty.
        """
        if not message or not message.strip():
            msg = "Message is required"
            raise ValueError(msg)
        message = message.strip()

        try:
            result = self.retriever.answer(message, self.recent_context())
        except (SupportRAGError, OpenAIError, ValueError):
            logger.exception("Failed to answer message")
            return AnswerResult(
                text=GENERIC_ERROR_MESSAGE,
                context_used=False,
                documents_retrieved=0,
            )

        self.conversation_history.append(
            ConversationTurn(
                user_message=message,
                bot_response=result.text,
                context_used=result.context_used,
                timestamp=datetime.datetime.now(tz=datetime.UTC).isoformat(),
            )
        )
        return result

    def clear_history(self) -> None:
        """Clear the conversation history."""
        self.conversation_history = []
        logger.info("Conversation history cleared.")
