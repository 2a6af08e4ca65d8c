"""Query-time retrieval and answer generation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import config
from .embeddings import EmbeddingService
from .generation import CompletionService
from .models import AnswerResult
from .vector_store import get_vector_store

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import VectorDocument
    from .vector_store import BaseSQLiteStore

logger = config.get_logger(__name__)

PERSONA_PREAMBLE = (
    "You are a senior customer support specialist. Use the following information "
    "from our knowledge base to answer the customer's question. Keep your "
    "response warm, professional, and concise (2-4 sentences maximum)."
)

CLOSING_INSTRUCTION = (
    "Please provide a helpful, accurate response based on the information above. "
    "If the information doesn't fully address their question, acknowledge what "
    "you can help with and suggest next steps."
)


def format_document(position: int, document: VectorDocument) -> str:
    """Render one retrieved document for the context block.

    Returns:
        The document in the fixed ``Document N (Category: C)`` template.
    """
    return (
        f"Document {position} (Category: {document.category}):\n"
        f"Question: {document.question or ''}\n"
        f"Answer: {document.answer or ''}\n"
        f"Content: {document.content}\n"
        "---"
    )


def format_context(results: Sequence[tuple[VectorDocument, float]]) -> str:
    """Join retrieved documents into a context block.

    Returns:
        Blank-line separated documents, or an empty string when there are none.
    """
    return "\n\n".join(
        format_document(position, document)
        for position, (document, _score) in enumerate(results, start=1)
    )


def build_prompt(
    query: str,
    context_block: str,
    conversation_context: str | None = None,
) -> str:
    """Compose the generation prompt.

    Returns:
        Preamble, knowledge block, optional recent conversation and the
        literal customer question.
    """
    sections = [
        PERSONA_PREAMBLE,
        f"Relevant Information from Our Knowledge Base:\n{context_block}",
    ]
    if conversation_context:
        sections.append(f"Recent Conversation:\n{conversation_context}")
    sections.extend((f"Customer Question: {query}", CLOSING_INSTRUCTION))
    return "\n\n".join(sections)


class KnowledgeRetriever:
    """Embeds a query, searches the index and conditions generation on the hits.

    Results are used exactly as the index ranks them: no re-ranking,
    deduplication or relevance filtering.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: BaseSQLiteStore,
        completion_service: CompletionService,
        top_k: int | None = None,
    ) -> None:
        """Initialize the retriever with its collaborators.

        Args:
            embedding_service: Turns the query into a vector.
            vector_store: Index searched for nearest documents.
            completion_service: Generates the final answer.
            top_k: Number of documents to retrieve. If None, uses
                config.RETRIEVAL_TOP_K.
        """
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.completion_service = completion_service
        self.top_k = top_k if top_k is not None else config.RETRIEVAL_TOP_K

    @classmethod
    def from_config(cls, openai_api_key: str | None = None) -> KnowledgeRetriever:
        """Build a retriever wired to the configured services.

        Returns:
            KnowledgeRetriever using the configured embedding model, vector
            backend and chat model.
        """
        return cls(
            embedding_service=EmbeddingService(
                api_key=openai_api_key,
                dimensions=config.EMBEDDING_DIMENSIONS,
            ),
            vector_store=get_vector_store(config.VECTOR_BACKEND),
            completion_service=CompletionService(api_key=openai_api_key),
        )

    def retrieve(self, query: str) -> list[tuple[VectorDocument, float]]:
        """Find the documents nearest to the query.

        Returns:
            Up to ``top_k`` (VectorDocument, score) tuples in index order.
        """
        query_embedding = self.embedding_service.embed(query)
        results = self.vector_store.search(query_embedding, limit=self.top_k)

        for position, (document, score) in enumerate(results, start=1):
            logger.debug(
                "Context %d: %s [%s] (score: %.4f)",
                position,
                document.id,
                document.category,
                score,
            )
        return results

    def answer(
        self,
        query: str,
        conversation_context: str | None = None,
    ) -> AnswerResult:
        """Answer a customer query with retrieved knowledge as context.

        Every step runs in sequence and any error propagates to the caller.
        With no hits the prompt simply carries an empty knowledge block.

        Returns:
            AnswerResult with the generated text and retrieval bookkeeping.
        """
        logger.info("Processing query: %s", query)

        results = self.retrieve(query)
        context_block = format_context(results)
        prompt = build_prompt(query, context_block, conversation_context)
        text = self.completion_service.complete(prompt)

        logger.info("Answered with %d retrieved documents", len(results))
        return AnswerResult(
            text=text,
            context_used=len(results) > 0,
            documents_retrieved=len(results),
        )
