"""Data models for the support knowledge base."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, cast

import numpy as np

Category = Literal[
    "fees",
    "rates",
    "application",
    "payments",
    "card_features",
    "home_equity",
    "debt_protection",
    "account_management",
    "general",
]

CATEGORIES: tuple[Category, ...] = (
    "fees",
    "rates",
    "application",
    "payments",
    "card_features",
    "home_equity",
    "debt_protection",
    "account_management",
    "general",
)

DEFAULT_CATEGORY: Category = "general"

# Persisted property names, in schema order.
PROPERTY_NAMES: tuple[str, ...] = (
    "content",
    "question",
    "answer",
    "source",
    "chunkIndex",
    "totalChunks",
    "category",
)


def normalize_category(value: object) -> Category:
    """Coerce a stored category value to a known category.

    Returns:
        The category if it is known, otherwise ``general``.
    """
    if isinstance(value, str) and value in CATEGORIES:
        return cast("Category", value)
    return DEFAULT_CATEGORY


@dataclass(frozen=True)
class SourceMetadata:
    """Where a chunk came from.

    ``total_chunks`` is the corpus size at ingestion time and is never updated.
    """

    source: str
    chunk_index: int
    total_chunks: int


@dataclass
class KnowledgeChunk:
    """A retrievable knowledge unit derived from one Q&A pair."""

    id: str
    content: str
    category: Category
    metadata: SourceMetadata
    question: str | None = None
    answer: str | None = None


@dataclass
class VectorDocument:
    """Persisted form of a chunk: all chunk fields plus its embedding."""

    id: str
    content: str
    category: Category
    metadata: SourceMetadata
    question: str | None = None
    answer: str | None = None
    embedding: np.ndarray | None = None

    @classmethod
    def from_chunk(cls, chunk: KnowledgeChunk, embedding: np.ndarray) -> VectorDocument:
        """Attach an embedding to a chunk.

        Returns:
            VectorDocument carrying the chunk fields and the embedding.
        """
        return cls(
            id=chunk.id,
            content=chunk.content,
            category=chunk.category,
            metadata=chunk.metadata,
            question=chunk.question,
            answer=chunk.answer,
            embedding=embedding,
        )

    @classmethod
    def from_properties(
        cls,
        doc_id: str,
        properties: dict[str, Any],
        *,
        embedding: np.ndarray | None = None,
    ) -> VectorDocument:
        """Validate a stored property map into a typed document.

        Missing text fields become empty strings, blank question/answer become
        ``None`` and unknown categories fall back to ``general``.

        Returns:
            VectorDocument hydrated from the property map.
        """
        question = properties.get("question") or None
        answer = properties.get("answer") or None
        return cls(
            id=str(doc_id),
            content=str(properties.get("content") or ""),
            category=normalize_category(properties.get("category")),
            metadata=SourceMetadata(
                source=str(properties.get("source") or "unknown"),
                chunk_index=int(properties.get("chunkIndex") or 0),
                total_chunks=int(properties.get("totalChunks") or 0),
            ),
            question=str(question) if question is not None else None,
            answer=str(answer) if answer is not None else None,
            embedding=embedding,
        )

    def to_properties(self) -> dict[str, Any]:
        """Render the seven persisted properties.

        Returns:
            Mapping of property name to value.
        """
        return {
            "content": self.content,
            "question": self.question or "",
            "answer": self.answer or "",
            "source": self.metadata.source,
            "chunkIndex": self.metadata.chunk_index,
            "totalChunks": self.metadata.total_chunks,
            "category": self.category,
        }


@dataclass
class EmbeddingResult:
    """An input text paired with its embedding."""

    text: str
    embedding: np.ndarray


@dataclass
class AnswerResult:
    """Generated reply plus retrieval bookkeeping."""

    text: str
    context_used: bool
    documents_retrieved: int


@dataclass
class IngestionSummary:
    """Counts reported by one ingestion run.

    ``documents_stored`` comes from ``count()`` and may be approximate.
    """

    chunks_created: int
    embeddings_generated: int
    documents_stored: int


@dataclass
class ConversationTurn:
    """Represents a single turn in the conversation."""

    user_message: str
    bot_response: str
    context_used: bool
    timestamp: str
