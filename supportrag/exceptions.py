"""Exception hierarchy for the support knowledge base."""

from __future__ import annotations

from typing import Any

MAX_TEXT_PREVIEW = 80


class SupportRAGError(Exception):
    """Base exception for all knowledge base errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message.
            details: Optional dictionary of additional context for debugging.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""  # noqa: DOC201
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class SourceUnavailable(SupportRAGError):  # noqa: N818
    """Raised when the knowledge-source text cannot be read."""

    def __init__(self, path: str, reason: str | None = None) -> None:
        """Initialize with the unreadable path and the underlying reason."""
        details: dict[str, Any] = {"path": path}
        if reason:
            details["reason"] = reason
        self.path = path
        super().__init__(f"Knowledge source unavailable: {path}", details)


class EmbeddingFailed(SupportRAGError):  # noqa: N818
    """Raised when the embedding provider fails or returns malformed data.

    The original text is kept on the exception for diagnostics.
    """

    def __init__(self, text: str, reason: str) -> None:
        """Initialize with the text that could not be embedded."""
        self.text = text
        self.reason = reason
        preview = text[:MAX_TEXT_PREVIEW]
        super().__init__(
            f"Failed to generate embedding: {reason}",
            {"text": preview, "length": len(text)},
        )


class IndexUnavailable(SupportRAGError):  # noqa: N818
    """Raised when the vector index cannot be reached or a schema operation fails."""

    def __init__(self, collection: str, reason: str) -> None:
        """Initialize with the collection name and failure reason."""
        self.collection = collection
        super().__init__(
            f"Vector index unavailable: {reason}",
            {"collection": collection},
        )
