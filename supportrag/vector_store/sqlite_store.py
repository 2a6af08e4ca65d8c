"""SQLite-based vector storage with numpy file backend."""

from __future__ import annotations

import shutil
import sqlite3
from pathlib import Path

import numpy as np

from supportrag.config import config
from supportrag.models import VectorDocument  # noqa: TC001
from supportrag.vector_store.base import ROW_COLUMNS, BaseSQLiteStore

logger = config.get_logger(__name__)


class SQLiteVectorStore(BaseSQLiteStore):
    """Vector storage using SQLite for metadata and numpy files for embeddings."""

    backend = "sqlite"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        vectors_dir: Path = Path("data/vectors"),
        collection: str = "SupportKnowledge",
    ) -> None:
        """Initialize the SQLiteVectorStore with database and vector directory paths.

        Args:
            db_path: Path to the SQLite database file.
            vectors_dir: Directory to store numpy vector files, one
                subdirectory per collection.
            collection: Name of the collection.
        """
        super().__init__(db_path, collection)
        self.vectors_dir = Path(vectors_dir) / collection
        self.dimension: int | None = None

    def _known_dimension(self) -> int | None:
        """Dimension of already stored vectors, read from any vector file.

        Returns:
            Vector dimension, or None when nothing is stored.
        """
        if self.dimension is None and self.vectors_dir.exists():
            for vector_path in self.vectors_dir.glob("*.npy"):
                self.dimension = int(np.load(vector_path).shape[0])
                break
        return self.dimension

    def _prepare_vector(self, embedding: np.ndarray) -> np.ndarray:
        """Check a vector against the stored dimension.

        Returns:
            Flat float32 copy of the embedding.

        Raises:
            ValueError: If the embedding dimension differs from stored vectors.
        """
        vector = np.array(embedding, dtype="float32").reshape(-1)
        dimension = self._known_dimension()
        if dimension is not None and vector.shape[0] != dimension:
            msg = (
                f"Embedding dimension {vector.shape[0]} does not match "
                f"stored dimension {dimension}"
            )
            raise ValueError(msg)
        self.dimension = vector.shape[0]
        return vector

    def _add_vector(
        self,
        cursor: sqlite3.Cursor,
        row_id: int,
        vector: np.ndarray,
    ) -> None:
        """Save the vector as ``<row_id>.npy`` and link it to the row."""
        self.vectors_dir.mkdir(exist_ok=True, parents=True)
        vector_filename = f"{row_id:06d}.npy"
        np.save(self.vectors_dir / vector_filename, vector)
        cursor.execute(
            f'UPDATE "{self.collection}" SET vector_file = ? WHERE id = ?',
            (vector_filename, row_id),
        )

    @staticmethod
    def cosine_similarity(
        query_embedding: np.ndarray,
        embeddings: np.ndarray,
    ) -> np.ndarray:
        """Calculate cosine similarity between query and document embeddings.

        Zero vectors score 0 instead of producing NaN.

        Returns:
            np.ndarray: Array of cosine similarity scores
                    between the query and each document embedding.
        """
        query_norm = np.linalg.norm(query_embedding)
        doc_norms = np.linalg.norm(embeddings, axis=1)
        denominators = doc_norms * query_norm
        dots = embeddings @ query_embedding
        return np.divide(
            dots,
            denominators,
            out=np.zeros_like(dots),
            where=denominators != 0,
        )

    def search(
        self,
        query_vector: np.ndarray,
        limit: int = 5,
    ) -> list[tuple[VectorDocument, float]]:
        """Search for similar documents by brute-force cosine similarity.

        Returns:
            Up to ``limit`` (VectorDocument, cosine score) tuples, best first.

        Raises:
            ValueError: If limit is below 1 or the query dimension is wrong.
            IndexUnavailable: If the metadata store cannot be read.
        """
        if limit < 1:
            msg = f"limit must be at least 1, got {limit}"
            raise ValueError(msg)

        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                cursor = conn.cursor()
                if not self._collection_exists(cursor):
                    logger.warning("Collection %s does not exist", self.collection)
                    return []
                cursor.execute(
                    f'SELECT {ROW_COLUMNS} FROM "{self.collection}" '
                    "WHERE vector_file IS NOT NULL ORDER BY id"
                )
                rows = cursor.fetchall()
        except sqlite3.Error as exc:
            raise self._unavailable("search", exc) from exc

        documents: list[VectorDocument] = []
        vectors: list[np.ndarray] = []
        for row in rows:
            vector_path = self.vectors_dir / str(row[-1])
            if not vector_path.exists():
                logger.warning("Vector file not found: %s", vector_path)
                continue
            documents.append(self._build_document_from_row(row))
            vectors.append(np.load(vector_path))

        if not vectors:
            return []

        embeddings = np.vstack(vectors).astype("float32")
        query = np.asarray(query_vector, dtype="float32").reshape(-1)
        if query.shape[0] != embeddings.shape[1]:
            msg = (
                f"Query dimension {query.shape[0]} does not match "
                f"stored dimension {embeddings.shape[1]}"
            )
            raise ValueError(msg)

        similarities = self.cosine_similarity(query, embeddings)
        top_indices = np.argsort(-similarities, kind="stable")[:limit]

        results = []
        for idx in top_indices:
            document = documents[int(idx)]
            score = float(similarities[idx])
            logger.debug("Retrieved %s with similarity %.4f", document.id, score)
            results.append((document, score))

        return results

    def _approximate_count(self) -> int:
        """Count vector files on disk.

        Returns:
            Number of stored vector files.
        """
        if not self.vectors_dir.exists():
            return 0
        return sum(1 for _ in self.vectors_dir.glob("*.npy"))

    def _drop_vectors(self) -> None:
        """Delete the collection's vector directory."""
        self.dimension = None
        if self.vectors_dir.exists():
            shutil.rmtree(self.vectors_dir)
