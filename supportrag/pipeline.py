"""Ingestion pipeline orchestrating Load -> Chunk -> Embed -> Store."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .config import config
from .document_processing import QAChunker
from .embeddings import EmbeddingService
from .models import IngestionSummary, KnowledgeChunk, VectorDocument
from .vector_store import get_vector_store

if TYPE_CHECKING:
    from .vector_store import BaseSQLiteStore

logger = config.get_logger(__name__)


class IngestionPipeline:
    """One-shot batch job that (re)populates the knowledge base.

    Stages run strictly in sequence and the first failure aborts the run.
    Nothing is checkpointed, so a rerun always starts from re-chunking.
    """

    def __init__(
        self,
        chunker: QAChunker,
        embedding_service: EmbeddingService,
        vector_store: BaseSQLiteStore,
        source_path: Path,
    ) -> None:
        """Initialize the pipeline with explicit collaborators.

        Args:
            chunker: Splits the knowledge source into Q&A chunks.
            embedding_service: Embeds chunk contents in paced batches.
            vector_store: Collection the documents are written to.
            source_path: Knowledge-source text file.
        """
        self.chunker = chunker
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.source_path = Path(source_path)
        self.chunks: list[KnowledgeChunk] = []

    @classmethod
    def from_config(
        cls,
        openai_api_key: str | None = None,
        source_path: Path | None = None,
        vector_backend: str | None = None,
    ) -> IngestionPipeline:
        """Build a pipeline wired to the configured services.

        Args:
            openai_api_key: OpenAI API key.
            source_path: Knowledge source. If None, uses
                config.KNOWLEDGE_SOURCE_PATH.
            vector_backend: Which vector store backend to use ("faiss" | "sqlite").
                Defaults to config.VECTOR_BACKEND.

        Returns:
            IngestionPipeline ready to run.
        """
        vector_store = get_vector_store(vector_backend or config.VECTOR_BACKEND)
        logger.info("Using %s vector storage", vector_store.backend)
        return cls(
            chunker=QAChunker(),
            embedding_service=EmbeddingService(
                api_key=openai_api_key,
                dimensions=config.EMBEDDING_DIMENSIONS,
            ),
            vector_store=vector_store,
            source_path=source_path or config.KNOWLEDGE_SOURCE_PATH,
        )

    def run(self, *, reset: bool = False) -> IngestionSummary:
        """Run the full ingestion.

        Args:
            reset: Drop the existing collection before storing, so the run
                replaces the knowledge base instead of appending to it.

        Returns:
            IngestionSummary with chunk, embedding and stored-document counts.
        """
        logger.info("Starting ingestion for knowledge source: %s", self.source_path)

        self.chunks = self.chunker.chunk_file(self.source_path)
        logger.info("Step 1: created %d chunks", len(self.chunks))

        embedding_results = self.embedding_service.embed_batch(
            [chunk.content for chunk in self.chunks]
        )
        logger.info("Step 2: generated %d embeddings", len(embedding_results))

        documents = [
            VectorDocument.from_chunk(chunk, result.embedding)
            for chunk, result in zip(self.chunks, embedding_results, strict=True)
        ]

        if reset:
            logger.info("Step 3: purging existing collection")
            self.vector_store.delete_all()
        self.vector_store.ensure_schema()

        self.vector_store.store(documents)
        documents_stored = self.vector_store.count()
        logger.info("Step 4: collection now holds %d documents", documents_stored)

        logger.info("Ingestion completed successfully")
        return IngestionSummary(
            chunks_created=len(self.chunks),
            embeddings_generated=len(embedding_results),
            documents_stored=documents_stored,
        )
