"""SupportRAG - retrieval-augmented customer support knowledge base."""

from .conversation import ChatSession
from .document_processing import DocumentLoader, QAChunker, categorize
from .embeddings import EmbeddingService
from .exceptions import (
    EmbeddingFailed,
    IndexUnavailable,
    SourceUnavailable,
    SupportRAGError,
)
from .generation import CompletionService
from .models import (
    AnswerResult,
    ConversationTurn,
    EmbeddingResult,
    IngestionSummary,
    KnowledgeChunk,
    SourceMetadata,
    VectorDocument,
)
from .pipeline import IngestionPipeline
from .retriever import KnowledgeRetriever
from .scheduling import GroupScheduler
from .vector_store import FaissVectorStore, SQLiteVectorStore, get_vector_store

__all__ = [
    "AnswerResult",
    "ChatSession",
    "CompletionService",
    "ConversationTurn",
    "DocumentLoader",
    "EmbeddingFailed",
    "EmbeddingResult",
    "EmbeddingService",
    "FaissVectorStore",
    "GroupScheduler",
    "IndexUnavailable",
    "IngestionPipeline",
    "IngestionSummary",
    "KnowledgeChunk",
    "KnowledgeRetriever",
    "QAChunker",
    "SQLiteVectorStore",
    "SourceMetadata",
    "SourceUnavailable",
    "SupportRAGError",
    "VectorDocument",
    "categorize",
    "get_vector_store",
]
