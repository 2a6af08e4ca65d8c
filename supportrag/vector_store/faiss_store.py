"""FAISS-backed vector storage with SQLite metadata."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import faiss
import numpy as np

from supportrag.config import config
from supportrag.models import VectorDocument  # noqa: TC001
from supportrag.vector_store.base import BaseSQLiteStore

logger = config.get_logger(__name__)


class FaissVectorStore(BaseSQLiteStore):
    """Vector storage using FAISS for embeddings and SQLite for metadata."""

    backend = "faiss"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        index_dir: Path = Path("data/faiss"),
        collection: str = "SupportKnowledge",
        raw_top_k_multiplier: int = 2,
    ) -> None:
        """Configure FAISS-backed vector store.

        Args:
            db_path: Path to the SQLite metadata database.
            index_dir: Directory holding one ``<collection>.faiss`` file.
            collection: Name of the collection.
            raw_top_k_multiplier: Over-fetch factor so vectors whose metadata
                rows are gone do not shrink the result set.
        """
        super().__init__(db_path, collection)
        self.index_path = Path(index_dir) / f"{collection}.faiss"
        self.index_path.parent.mkdir(exist_ok=True, parents=True)

        self.index: faiss.IndexIDMap | None = None
        self._index_signature: tuple[int, int, int] | None = None
        self.raw_top_k_multiplier = max(1, raw_top_k_multiplier)

    @staticmethod
    def _normalize_embedding(embedding: np.ndarray) -> np.ndarray:
        """Normalize embedding for cosine similarity using inner product search.

        Returns:
            Normalized copy of the embedding vector.
        """
        vector = np.array(embedding, dtype="float32").reshape(-1)
        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector
        faiss.normalize_L2(vector.reshape(1, -1))
        return vector

    def _init_index(self, dimension: int) -> faiss.IndexIDMap:
        """Create an empty ID-mapped inner-product index.

        Returns:
            The new index.
        """
        base_index = faiss.IndexFlatIP(dimension)
        self.index = faiss.IndexIDMap(base_index)
        logger.info("Initialized FAISS IndexIDMap with dimension %d", dimension)
        return self.index

    def _file_signature(self) -> tuple[int, int, int] | None:
        """Stat the index file.

        Returns:
            (inode, mtime in ns, size), or None if the file does not exist.
        """
        try:
            stat = self.index_path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_ino, stat.st_mtime_ns, stat.st_size)

    def _load_index(self) -> faiss.IndexIDMap | None:
        """Return the in-memory index, re-reading it when the file changed.

        Another store on the same paths may purge and re-ingest the collection;
        row ids restart at 1 after that, so a cached index must not outlive
        the file it was read from.

        Returns:
            The index, or None if nothing has been stored yet.
        """
        signature = self._file_signature()
        if signature is None:
            if self._index_signature is not None:
                logger.info("FAISS index %s was removed; dropping it", self.index_path)
                self.index = None
                self._index_signature = None
            # An index built in memory stays until its first flush.
            return self.index
        if self.index is not None and signature == self._index_signature:
            return self.index

        loaded_index = faiss.read_index(str(self.index_path))
        if not isinstance(loaded_index, (faiss.IndexIDMap, faiss.IndexIDMap2)):
            logger.warning(
                "Loaded FAISS index is %s; wrapping with IndexIDMap to enable IDs",
                type(loaded_index).__name__,
            )
            loaded_index = faiss.IndexIDMap(loaded_index)
        self.index = loaded_index
        self._index_signature = signature
        logger.info(
            "Loaded FAISS index from %s with %d vectors",
            self.index_path,
            loaded_index.ntotal,
        )
        return self.index

    def _prepare_vector(self, embedding: np.ndarray) -> np.ndarray:
        """Normalize a vector and check it against the index dimension.

        Returns:
            Normalized float32 vector.

        Raises:
            ValueError: If embedding dimension mismatches the index.
        """
        vector = self._normalize_embedding(embedding)
        index = self._load_index()
        if index is None:
            self._init_index(vector.shape[0])
        elif vector.shape[0] != index.d:
            msg = (
                f"Embedding dimension {vector.shape[0]} does not match "
                f"FAISS index dimension {index.d}"
            )
            raise ValueError(msg)
        return vector

    def _add_vector(
        self,
        cursor: sqlite3.Cursor,  # noqa: ARG002
        row_id: int,
        vector: np.ndarray,
    ) -> None:
        """Add one vector to the index under its row id."""
        if self.index is None:
            msg = "FAISS index is not initialized"
            raise RuntimeError(msg)
        self.index.add_with_ids(  # pyright: ignore[reportCallIssue]
            vector.reshape(1, -1),
            np.asarray([row_id], dtype="int64"),
        )

    def _flush(self) -> None:
        """Persist FAISS index to disk."""
        index = self.index
        if index is None:
            logger.warning("No FAISS index to save")
            return

        self.index_path.parent.mkdir(exist_ok=True, parents=True)
        faiss.write_index(index, str(self.index_path))
        self._index_signature = self._file_signature()
        logger.info("Saved FAISS index to %s (%d vectors)", self.index_path, index.ntotal)

    def search(
        self,
        query_vector: np.ndarray,
        limit: int = 5,
    ) -> list[tuple[VectorDocument, float]]:
        """Search similar documents using the FAISS index.

        No score threshold is applied: the closest documents are returned even
        when they are poor matches.

        Returns:
            Up to ``limit`` (VectorDocument, cosine score) tuples, best first.

        Raises:
            ValueError: If limit is below 1 or the query dimension is wrong.
            IndexUnavailable: If the index or metadata store cannot be read.
        """
        if limit < 1:
            msg = f"limit must be at least 1, got {limit}"
            raise ValueError(msg)

        try:
            index = self._load_index()
        except RuntimeError as exc:
            raise self._unavailable("index load", exc) from exc

        if index is None or index.ntotal == 0:
            logger.warning("FAISS index is empty; returning no results")
            return []

        normalized_query = self._normalize_embedding(query_vector)
        if normalized_query.shape[0] != index.d:
            msg = (
                f"Query dimension {normalized_query.shape[0]} does not match "
                f"FAISS index dimension {index.d}"
            )
            raise ValueError(msg)

        raw_top_k = max(limit, self.raw_top_k_multiplier * limit)
        raw_top_k = min(raw_top_k, index.ntotal)

        scores, vector_ids = index.search(
            normalized_query.reshape(1, -1),
            raw_top_k,
        )  # pyright: ignore[reportCallIssue]

        results: list[tuple[VectorDocument, float]] = []
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                cursor = conn.cursor()
                if not self._collection_exists(cursor):
                    logger.warning("Collection %s does not exist", self.collection)
                    return []
                for score, vector_id in zip(scores[0], vector_ids[0], strict=True):
                    if int(vector_id) == -1:  # faiss returns -1 for empty results
                        continue
                    document = self._fetch_document(cursor, int(vector_id))
                    if document:
                        results.append((document, float(score)))
        except sqlite3.Error as exc:
            raise self._unavailable("search", exc) from exc

        return results[:limit]

    def _approximate_count(self) -> int:
        """Probe the index with a one-result sample search.

        Returns:
            The index vector total when the probe finds anything, else 0.
        """
        index = self._load_index()
        if index is None or index.ntotal == 0:
            return 0
        probe = np.zeros((1, index.d), dtype="float32")
        _scores, vector_ids = index.search(probe, 1)  # pyright: ignore[reportCallIssue]
        if int(vector_ids[0][0]) == -1:
            return 0
        return int(index.ntotal)

    def _drop_vectors(self) -> None:
        """Forget the in-memory index and delete its file."""
        self.index = None
        self._index_signature = None
        self.index_path.unlink(missing_ok=True)
