"""Exact cosine-similarity vector store on top of SQLite."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Iterable, List

import numpy as np

from docrecall.index.storage import Database

LOGGER = logging.getLogger(__name__)

# Stays under SQLite's host parameter limit.
_ID_BATCH = 500


@dataclass(frozen=True, slots=True)
class VectorMatch:
    id: str
    similarity: float


class SQLiteVectorStore:
    """Embeddings stored as float32 blobs, searched by brute-force cosine similarity."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def store(self, key: str, text: str, vector: np.ndarray) -> None:
        """Store or replace the embedding for ``key``.

        Replacing keeps the original insertion position, which is what breaks
        similarity ties during search.
        """
        data = np.asarray(vector, dtype="float32").ravel()
        with self.database.transaction() as conn:
            conn.execute(
                """
                INSERT INTO chunk_embeddings(chunk_id, text, dimensions, embedding)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(chunk_id) DO UPDATE SET
                    text = excluded.text,
                    dimensions = excluded.dimensions,
                    embedding = excluded.embedding
                """,
                (key, text, int(data.shape[0]), sqlite3.Binary(data.tobytes())),
            )

    def search(self, vector: np.ndarray, limit: int = 10) -> List[VectorMatch]:
        """Return up to ``limit`` matches ordered by descending cosine similarity."""
        if limit <= 0:
            return []
        query = np.asarray(vector, dtype="float32").ravel()
        rows = self.database.fetchall(
            """
            SELECT chunk_id, embedding FROM chunk_embeddings
            WHERE dimensions = ?
            ORDER BY seq
            """,
            (int(query.shape[0]),),
        )
        if not rows:
            return []

        matrix = np.vstack([np.frombuffer(row["embedding"], dtype="float32") for row in rows])
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, (matrix @ query) / norms, 0.0)

        # Stable sort keeps insertion order among equal scores.
        order = np.argsort(-scores, kind="stable")[:limit]
        return [VectorMatch(rows[idx]["chunk_id"], float(scores[idx])) for idx in order]

    def remove(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        with self.database.transaction() as conn:
            cursor = conn.executemany(
                "DELETE FROM chunk_embeddings WHERE chunk_id = ?", [(key,) for key in keys]
            )
            return cursor.rowcount

    def missing(self, keys: Iterable[str]) -> List[str]:
        """Keys from ``keys`` that have no stored embedding."""
        keys = list(keys)
        stored: set[str] = set()
        for start in range(0, len(keys), _ID_BATCH):
            batch = keys[start : start + _ID_BATCH]
            placeholders = ", ".join("?" * len(batch))
            rows = self.database.fetchall(
                f"SELECT chunk_id FROM chunk_embeddings WHERE chunk_id IN ({placeholders})", batch
            )
            stored.update(row["chunk_id"] for row in rows)
        return [key for key in keys if key not in stored]

    def clear_all(self) -> None:
        with self.database.transaction() as conn:
            conn.execute("DELETE FROM chunk_embeddings")
        LOGGER.info("Cleared all stored embeddings")

    def count(self) -> int:
        row = self.database.fetchone("SELECT COUNT(*) AS n FROM chunk_embeddings")
        return int(row["n"]) if row else 0
