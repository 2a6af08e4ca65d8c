"""Test configuration and fixtures for the support knowledge base tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock services and API responses
- EmbeddingService fixtures
- Chunking fixtures
- Vector store fixtures
- Retriever fixtures
"""

import hashlib
from unittest.mock import Mock, create_autospec, patch

import numpy as np
import pytest

from supportrag import (
    CompletionService,
    EmbeddingResult,
    EmbeddingService,
    GroupScheduler,
    KnowledgeChunk,
    KnowledgeRetriever,
    QAChunker,
    SourceMetadata,
    VectorDocument,
    get_vector_store,
)


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_EMBEDDING_MODEL = "text-embedding-3-small"
    DEFAULT_EMBEDDING_DIMENSION = 16

    # Vector store
    TEST_COLLECTION = "TestKnowledge"

    # Retrieval
    TEST_RESPONSE = "Test response"


FAQ_TEXT = """What fees do you charge?
There is no annual fee.
Late payments cost $25.

What is the APR on the card
Rates range from 7.99% to 14.99% variable APR.

How do I apply?
Apply online in about 15 minutes.

Do mortgage payments have to be current
Yes, your mortgage must be current to qualify.

How to Contact Us
Call 1-800-555-0100 or email support@example.com.
"""


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        """Initialize mock embedding service.

        Args:
            dimension: Dimensionality of generated embeddings.
        """
        self.dimension = dimension
        self.calls: list[str] = []

    def embed(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        self.calls.append(text)
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate batch of mock embeddings."""
        return [EmbeddingResult(text=text, embedding=self.embed(text)) for text in texts]


class RecordingSleep:
    """Sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response.

    Args:
        embeddings: List of embedding vectors to return.

    Returns:
        Mock object representing OpenAI embeddings API response.
    """
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response.

    Args:
        content: The content for the chat completion response.

    Returns:
        Mock object representing OpenAI chat completion response.
    """
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


@pytest.fixture
def openai_response_factory():
    """Builder for OpenAI embeddings responses."""
    return create_mock_openai_response


@pytest.fixture
def chat_response_factory():
    """Builder for OpenAI chat completion responses."""
    return create_mock_chat_response


@pytest.fixture
def openai_embeddings_api_mock():
    """Base fixture that patches OpenAI embeddings.create method."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def openai_embeddings_factory(openai_embeddings_api_mock):
    """Factory for creating OpenAI embeddings API mocks with different scenarios."""

    def _create_mock(  # noqa: ANN202
        scenario="single_success",
        embedding=None,
        error=None,
        side_effects=None,
    ):
        """Create a mock based on scenario type.

        Args:
            scenario: Type of mock ('single_success', 'error', 'empty',
                'malformed', 'sequence')
            embedding: Custom embedding to return, or None for defaults
            error: Exception raised in the 'error' scenario
            side_effects: Side effects list for the 'sequence' scenario
        """
        openai_embeddings_api_mock.reset_mock()
        openai_embeddings_api_mock.side_effect = None
        openai_embeddings_api_mock.return_value = None

        if scenario == "single_success":
            mock_embedding = embedding or [0.1, 0.2, 0.3, 0.4, 0.5]
            openai_embeddings_api_mock.return_value = create_mock_openai_response([
                mock_embedding
            ])
        elif scenario == "error":
            openai_embeddings_api_mock.side_effect = error
        elif scenario == "empty":
            openai_embeddings_api_mock.return_value = create_mock_openai_response([])
        elif scenario == "malformed":
            openai_embeddings_api_mock.return_value = create_mock_openai_response([
                ["not", "a", "number"]
            ])
        elif scenario == "sequence":
            openai_embeddings_api_mock.side_effect = side_effects

        return openai_embeddings_api_mock

    return _create_mock


@pytest.fixture
def recording_sleep():
    """Sleep stand-in recording every requested pause."""
    return RecordingSleep()


@pytest.fixture
def embedding_service_factory(recording_sleep):
    """Factory for creating EmbeddingService instances with different configurations."""

    def _create_service(  # noqa: ANN202
        api_key=None,
        model=TestConstants.TEST_EMBEDDING_MODEL,
        dimensions=None,
        group_size=5,
        pause_seconds=1.0,
    ):
        """Create an EmbeddingService instance with a non-blocking scheduler."""
        return EmbeddingService(
            api_key=api_key or TestConstants.TEST_API_KEY,
            model=model,
            dimensions=dimensions,
            scheduler=GroupScheduler(
                group_size=group_size,
                pause_seconds=pause_seconds,
                sleep=recording_sleep,
            ),
        )

    return _create_service


@pytest.fixture
def embedding_service(embedding_service_factory):
    """Default EmbeddingService with test API key for most tests."""
    return embedding_service_factory()


@pytest.fixture
def chunker():
    """Q&A chunker with the default known-question list."""
    return QAChunker()


@pytest.fixture
def faq_text():
    """Small FAQ corpus with five complete pairs."""
    return FAQ_TEXT


@pytest.fixture
def faq_file(tmp_path, faq_text):
    """FAQ corpus written to a temporary knowledge-source file."""
    path = tmp_path / "knowledge_base.txt"
    path.write_text(faq_text, encoding="utf-8")
    return path


@pytest.fixture(scope="session")
def mock_embedding_service():
    """Pre-configured MockEmbeddingService for consistent test embeddings."""
    return MockEmbeddingService()


@pytest.fixture
def mock_embeddings(mock_embedding_service):
    """Factory function to create mock embeddings using the service."""

    def _create_mock_embedding(
        text: str, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> np.ndarray:
        if dimension != TestConstants.DEFAULT_EMBEDDING_DIMENSION:
            return MockEmbeddingService(dimension).embed(text)
        return mock_embedding_service.embed(text)

    return _create_mock_embedding


@pytest.fixture
def faiss_store(tmp_path):
    """Create temporary FAISS vector store for testing."""
    return get_vector_store(
        "faiss",
        collection=TestConstants.TEST_COLLECTION,
        db_path=tmp_path / "test_store.db",
        index_dir=tmp_path / "faiss",
    )


@pytest.fixture
def sqlite_store(tmp_path):
    """Create temporary SQLite vector store for testing."""
    return get_vector_store(
        "sqlite",
        collection=TestConstants.TEST_COLLECTION,
        db_path=tmp_path / "test_store.db",
        vectors_dir=tmp_path / "vectors",
    )


@pytest.fixture(params=["faiss", "sqlite"])
def vector_store(request, tmp_path):
    """Temporary vector store, once per backend."""
    return get_vector_store(
        request.param,
        collection=TestConstants.TEST_COLLECTION,
        db_path=tmp_path / "test_store.db",
        vectors_dir=tmp_path / "vectors",
        index_dir=tmp_path / "faiss",
    )


@pytest.fixture
def sample_chunks(chunker, faq_text):
    """Chunks produced from the FAQ corpus."""
    return chunker.chunk_source(faq_text, source="faq.txt")


@pytest.fixture
def sample_documents(sample_chunks, mock_embeddings):
    """FAQ chunks with deterministic mock embeddings attached."""
    return [
        VectorDocument.from_chunk(chunk, mock_embeddings(chunk.content))
        for chunk in sample_chunks
    ]


@pytest.fixture
def document_factory(mock_embeddings):
    """Factory building standalone documents with mock embeddings."""

    def _create_document(
        index: int,
        question: str = "Question?",
        answer: str = "Answer.",
        category: str = "general",
    ) -> VectorDocument:
        chunk = KnowledgeChunk(
            id=f"chunk_{index}",
            content=f"{question}\n\n{answer}",
            category=category,  # type: ignore[arg-type]
            metadata=SourceMetadata(
                source="factory.txt",
                chunk_index=index,
                total_chunks=index + 1,
            ),
            question=question,
            answer=answer,
        )
        return VectorDocument.from_chunk(chunk, mock_embeddings(chunk.content))

    return _create_document


@pytest.fixture
def mock_completion_service():
    """Completion service stand-in returning a fixed reply."""
    service = create_autospec(CompletionService, instance=True)
    service.complete.return_value = TestConstants.TEST_RESPONSE
    return service


@pytest.fixture
def retriever_factory(mock_completion_service):
    """Factory wiring a KnowledgeRetriever to test doubles."""

    def _create_retriever(  # noqa: ANN202
        vector_store,
        embedding_service=None,
        completion_service=None,
        top_k=5,
    ):
        return KnowledgeRetriever(
            embedding_service=embedding_service or MockEmbeddingService(),
            vector_store=vector_store,
            completion_service=completion_service or mock_completion_service,
            top_k=top_k,
        )

    return _create_retriever
