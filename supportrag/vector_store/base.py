"""Shared SQLite metadata layer for vector index backends."""

from __future__ import annotations

import re
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

from supportrag.config import config
from supportrag.exceptions import IndexUnavailable
from supportrag.models import VectorDocument

if TYPE_CHECKING:
    from collections.abc import Sequence

    import numpy as np

COLLECTION_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
STORE_PROGRESS_INTERVAL = 10

ROW_COLUMNS = (
    "id, doc_id, content, question, answer, source, "
    "chunk_index, total_chunks, category, vector_file"
)

logger = config.get_logger(__name__)


class BaseSQLiteStore:
    """Collection management shared by vector stores using SQLite metadata.

    A collection is one SQLite table holding the seven document properties.
    Subclasses own the vectors and implement similarity search.
    """

    backend = "base"

    def __init__(self, db_path: Path, collection: str) -> None:
        """Initialize the metadata store for one named collection.

        Raises:
            ValueError: If the collection name is not a plain identifier.
        """
        if not COLLECTION_NAME_PATTERN.match(collection):
            msg = f"Invalid collection name: {collection!r}"
            raise ValueError(msg)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self.collection = collection

    def _unavailable(self, action: str, exc: Exception) -> IndexUnavailable:
        """Log a backend failure and wrap it.

        Returns:
            IndexUnavailable describing the failed action.
        """
        logger.exception("Vector index %s failed for %s", action, self.collection)
        return IndexUnavailable(self.collection, f"{action} failed: {exc}")

    def _collection_exists(self, cursor: sqlite3.Cursor) -> bool:
        """Check whether the collection table exists.

        Returns:
            True if the table is present.
        """
        cursor.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            (self.collection,),
        )
        return cursor.fetchone() is not None

    def collection_exists(self) -> bool:
        """Check whether the collection has been created.

        Returns:
            True if the collection exists.

        Raises:
            IndexUnavailable: If the metadata store cannot be queried.
        """
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                return self._collection_exists(conn.cursor())
        except sqlite3.Error as exc:
            raise self._unavailable("existence check", exc) from exc

    def ensure_schema(self) -> bool:
        """Create the collection if it does not exist yet.

        A missing collection is the normal "needs creation" signal. Vectors are
        never computed by the index; callers always supply them.

        Returns:
            True if the collection was created by this call.

        Raises:
            IndexUnavailable: If the schema cannot be inspected or created.
        """
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                cursor = conn.cursor()
                if self._collection_exists(cursor):
                    logger.info("Collection %s already exists", self.collection)
                    return False

                logger.info("Creating collection %s", self.collection)
                cursor.execute(f"""
                    CREATE TABLE IF NOT EXISTS "{self.collection}" (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        doc_id TEXT NOT NULL,
                        content TEXT NOT NULL,
                        question TEXT,
                        answer TEXT,
                        source TEXT NOT NULL,
                        chunk_index INTEGER NOT NULL,
                        total_chunks INTEGER NOT NULL,
                        category TEXT NOT NULL DEFAULT 'general',
                        vector_file TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    )
                """)
                cursor.execute(
                    f'CREATE INDEX IF NOT EXISTS "idx_{self.collection}_doc_id" '
                    f'ON "{self.collection}"(doc_id)'
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise self._unavailable("schema creation", exc) from exc

        logger.info("Collection %s created", self.collection)
        return True

    def store(self, documents: Sequence[VectorDocument]) -> int:
        """Insert documents one record at a time, each with its own vector.

        Every record is committed on its own. A failure part-way through leaves
        the earlier records stored; nothing is rolled back or retried.

        Returns:
            Number of documents stored.

        Raises:
            ValueError: If a document has no embedding or a wrong dimension.
            IndexUnavailable: If the metadata store or vector index rejects a write.
        """
        if not documents:
            return 0

        stored = 0
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                cursor = conn.cursor()
                for document in documents:
                    if document.embedding is None:
                        msg = f"Document {document.id} has no embedding"
                        raise ValueError(msg)

                    vector = self._prepare_vector(document.embedding)
                    row_id = self._insert_row(cursor, document)
                    self._add_vector(cursor, row_id, vector)
                    conn.commit()
                    stored += 1

                    if stored % STORE_PROGRESS_INTERVAL == 0:
                        logger.info("Stored %d documents", stored)
        except (sqlite3.Error, RuntimeError, OSError) as exc:
            raise self._unavailable("store", exc) from exc
        finally:
            if stored:
                self._flush()

        logger.info("Successfully stored %d documents", stored)
        return stored

    def count(self) -> int:
        """Count stored documents.

        Falls back to a backend-specific approximation when the aggregate query
        fails, so the result is not guaranteed to be exact.

        Returns:
            Number of stored documents, or an approximation.
        """
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                row = conn.execute(
                    f'SELECT COUNT(*) FROM "{self.collection}"'
                ).fetchone()
        except sqlite3.Error:
            logger.warning(
                "Aggregate count failed for %s; using approximate count",
                self.collection,
                exc_info=True,
            )
            return self._fallback_count()
        return int(row[0])

    def _fallback_count(self) -> int:
        """Run the approximate count, returning 0 if it fails too.

        Returns:
            Approximate document count.
        """
        try:
            return self._approximate_count()
        except (OSError, RuntimeError, ValueError, sqlite3.Error):
            logger.exception("Fallback count method also failed")
            return 0

    def delete_all(self) -> None:
        """Drop the whole collection and its vectors.

        Raises:
            IndexUnavailable: If the collection cannot be dropped.
        """
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                conn.execute(f'DROP TABLE IF EXISTS "{self.collection}"')
                conn.commit()
            self._drop_vectors()
        except (sqlite3.Error, OSError) as exc:
            raise self._unavailable("delete", exc) from exc
        logger.info("All documents deleted from %s", self.collection)

    def _insert_row(self, cursor: sqlite3.Cursor, document: VectorDocument) -> int:
        """Persist a document's properties.

        Returns:
            Row id, which doubles as the vector id.

        Raises:
            RuntimeError: If the row id cannot be retrieved.
        """
        properties = document.to_properties()
        cursor.execute(
            f"""
            INSERT INTO "{self.collection}" (
                doc_id,
                content,
                question,
                answer,
                source,
                chunk_index,
                total_chunks,
                category
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                document.id,
                properties["content"],
                properties["question"],
                properties["answer"],
                properties["source"],
                properties["chunkIndex"],
                properties["totalChunks"],
                properties["category"],
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            msg = f"Failed to insert document {document.id}"
            raise RuntimeError(msg)
        return int(row_id)

    @staticmethod
    def _build_document_from_row(row: tuple) -> VectorDocument:
        """Create a VectorDocument from a metadata row.

        Returns:
            VectorDocument without its embedding.
        """
        (
            _row_id,
            doc_id,
            content,
            question,
            answer,
            source,
            chunk_index,
            total_chunks,
            category,
            _vector_file,
        ) = row
        return VectorDocument.from_properties(
            doc_id,
            {
                "content": content,
                "question": question,
                "answer": answer,
                "source": source,
                "chunkIndex": chunk_index,
                "totalChunks": total_chunks,
                "category": category,
            },
        )

    def _fetch_document(
        self,
        cursor: sqlite3.Cursor,
        row_id: int,
    ) -> VectorDocument | None:
        """Fetch a document by row id.

        Returns:
            VectorDocument if found; otherwise None.
        """
        cursor.execute(
            f'SELECT {ROW_COLUMNS} FROM "{self.collection}" WHERE id = ?',
            (int(row_id),),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._build_document_from_row(row)

    def _prepare_vector(self, embedding: np.ndarray) -> np.ndarray:
        """Validate and convert a vector before it is stored."""
        raise NotImplementedError

    def _add_vector(
        self,
        cursor: sqlite3.Cursor,
        row_id: int,
        vector: np.ndarray,
    ) -> None:
        """Attach a vector to a freshly inserted row."""
        raise NotImplementedError

    def _flush(self) -> None:
        """Persist buffered vector state after a store call."""

    def _approximate_count(self) -> int:
        """Estimate the document count without the metadata table."""
        raise NotImplementedError

    def _drop_vectors(self) -> None:
        """Remove every stored vector of the collection."""
        raise NotImplementedError

    def search(
        self,
        query_vector: np.ndarray,
        limit: int = 5,
    ) -> list[tuple[VectorDocument, float]]:
        """Return up to ``limit`` nearest documents with their scores."""
        raise NotImplementedError
