"""OpenAI embeddings service."""

from __future__ import annotations

import numpy as np
from openai import OpenAI, OpenAIError

from .config import config
from .exceptions import EmbeddingFailed
from .models import EmbeddingResult
from .scheduling import GroupScheduler

logger = config.get_logger(__name__)


def build_openai_client(api_key: str | None = None) -> OpenAI:
    """Create an OpenAI client from configuration.

    Retries are disabled by default; callers own any retry policy.

    Returns:
        Configured OpenAI client.
    """
    default_headers = config.get_api_headers()
    return OpenAI(
        api_key=api_key or config.get_openai_api_key(),
        base_url=config.OPENAI_BASE_URL,
        default_headers=default_headers or None,
        timeout=config.OPENAI_TIMEOUT,
        max_retries=config.OPENAI_MAX_RETRIES,
    )


class EmbeddingService:
    """Handles OpenAI embeddings generation."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        scheduler: GroupScheduler | None = None,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the EmbeddingService with OpenAI API key and model.

        Args:
            api_key: OpenAI API key. If None,
                reads from OPENAI_API_KEY environment variable.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
            dimensions: Requested vector dimension. When set it is sent to the
                provider and every returned vector is checked against it.
            scheduler: Batch pacing policy. If None, groups of
                config.EMBEDDING_GROUP_SIZE with config.EMBEDDING_GROUP_PAUSE
                seconds between groups.
            client: Pre-built OpenAI client.
        """
        self.client = client or build_openai_client(api_key)
        self.model = model or config.EMBEDDING_MODEL
        self.dimensions = dimensions
        self.scheduler = scheduler or GroupScheduler(
            group_size=config.EMBEDDING_GROUP_SIZE,
            pause_seconds=config.EMBEDDING_GROUP_PAUSE,
        )

    def embed(self, text: str) -> np.ndarray:
        """Get embedding for a single text.

        Args:
            text: The input text to generate an embedding for.

        Returns:
            np.ndarray: The embedding vector for the input text.

        Raises:
            EmbeddingFailed: If the text is blank, the provider call fails or
                the provider returns a malformed vector.
        """
        if not text or not text.strip():
            raise EmbeddingFailed(text, "input text is empty")

        request: dict[str, object] = {"model": self.model, "input": text}
        if self.dimensions is not None:
            request["dimensions"] = self.dimensions

        try:
            response = self.client.embeddings.create(**request)  # type: ignore[call-overload]
        except OpenAIError as exc:
            logger.exception("Error generating embedding")
            raise EmbeddingFailed(text, str(exc)) from exc

        return self._parse_embedding(text, response)

    def _parse_embedding(self, text: str, response: object) -> np.ndarray:
        """Validate a provider response into a float vector.

        Returns:
            The embedding as a float32 array.

        Raises:
            EmbeddingFailed: If the payload is empty, non-numeric or has the
                wrong dimension.
        """
        data = getattr(response, "data", None)
        if not data:
            raise EmbeddingFailed(text, "provider returned no embedding")

        try:
            embedding = np.asarray(data[0].embedding, dtype=np.float32)
        except (TypeError, ValueError, AttributeError) as exc:
            raise EmbeddingFailed(text, f"malformed embedding: {exc}") from exc

        if embedding.ndim != 1 or embedding.size == 0:
            raise EmbeddingFailed(text, "provider returned an empty embedding")

        if self.dimensions is not None and embedding.shape[0] != self.dimensions:
            msg = (
                f"expected {self.dimensions} dimensions, "
                f"got {embedding.shape[0]}"
            )
            raise EmbeddingFailed(text, msg)

        return embedding

    def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Get embeddings for multiple texts in paced groups.

        The call is all-or-nothing: the first failure aborts the batch.

        Args:
            texts: List of input texts to generate embeddings for.

        Returns:
            list[EmbeddingResult]: One result per input text, in input order.
        """
        try:
            vectors = self.scheduler.run(self.embed, texts)
        except Exception:
            logger.exception("Error generating batch embeddings")
            raise

        logger.info(
            "Generated %d embeddings in %d groups",
            len(vectors),
            len(self.scheduler.groups(texts)),
        )
        return [
            EmbeddingResult(text=text, embedding=vector)
            for text, vector in zip(texts, vectors, strict=True)
        ]
