"""Text generation through OpenAI chat completions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import config
from .embeddings import build_openai_client

if TYPE_CHECKING:
    from openai import OpenAI

logger = config.get_logger(__name__)

EMPTY_COMPLETION_FALLBACK = "I apologize, but I couldn't generate a response."


class CompletionService:
    """Turns a single prompt into generated text."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the completion service.

        Args:
            api_key: OpenAI API key. If None, reads from OPENAI_API_KEY.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            client: Pre-built OpenAI client.
        """
        self.client = client or build_openai_client(api_key)
        self.model = model or config.CHAT_MODEL

    def complete(self, prompt: str) -> str:
        """Generate a reply for the prompt.

        Provider errors propagate unchanged.

        Returns:
            The generated text, or a fixed apology if the model returned nothing.
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=config.CHAT_MAX_TOKENS,
            temperature=config.CHAT_TEMPERATURE,
        )
        answer = response.choices[0].message.content
        if answer and answer.strip():
            return answer.strip()

        logger.warning("Model %s returned an empty completion", self.model)
        return EMPTY_COMPLETION_FALLBACK
