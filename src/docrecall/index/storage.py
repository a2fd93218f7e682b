"""SQLite persistence for documents, chunks, embeddings and the FTS5 index."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Sequence

from docrecall.models import Chunk, Document


class Database:
    """Shared SQLite connection.

    The connection may be used from the worker threads of a hybrid query, so
    every statement runs under one re-entrant lock. Nested transactions only
    commit at the outermost level.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self._depth += 1
            try:
                yield self._conn
                if self._depth == 1:
                    self._conn.commit()
            except Exception:
                if self._depth == 1:
                    self._conn.rollback()
                raise
            finally:
                self._depth -= 1

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    path TEXT NOT NULL UNIQUE,
                    title TEXT,
                    content TEXT NOT NULL,
                    sha256 TEXT NOT NULL,
                    mtime REAL NOT NULL DEFAULT 0,
                    size INTEGER NOT NULL DEFAULT 0,
                    indexed_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id TEXT PRIMARY KEY,
                    document_id TEXT NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    heading TEXT,
                    content TEXT NOT NULL,
                    start_offset INTEGER NOT NULL,
                    end_offset INTEGER NOT NULL,
                    word_count INTEGER NOT NULL,
                    token_count INTEGER NOT NULL,
                    FOREIGN KEY(document_id) REFERENCES documents(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_chunks_document_id
                    ON chunks(document_id, chunk_index)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunk_embeddings (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    chunk_id TEXT NOT NULL UNIQUE,
                    text TEXT NOT NULL,
                    dimensions INTEGER NOT NULL,
                    embedding BLOB NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
                    chunk_id UNINDEXED,
                    file_path UNINDEXED,
                    heading,
                    content,
                    tokenize = 'porter unicode61'
                )
                """
            )


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        path=Path(row["path"]),
        title=row["title"] or Path(row["path"]).stem,
        content=row["content"],
        sha256=row["sha256"],
        mtime=row["mtime"],
        size=row["size"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        ordinal_index=row["chunk_index"],
        heading_path=row["heading"],
        content=row["content"],
        start_offset=row["start_offset"],
        end_offset=row["end_offset"],
        word_count=row["word_count"],
        token_count=row["token_count"],
    )


class DocumentStore:
    """Documents and their chunk sets."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def init_document(
        self, path: Path, *, title: str, content: str, sha256: str, mtime: float = 0.0, size: int = 0
    ) -> tuple[str, str]:
        """Insert or refresh the document stored for ``path``.

        Returns:
            (doc_id, status) where status is 'inserted', 'updated', or 'skipped'.
            An unchanged document (same hash) is 'skipped'.
        """
        with self.database.transaction() as conn:
            existing = conn.execute(
                "SELECT id, sha256 FROM documents WHERE path = ?", (str(path),)
            ).fetchone()

            if existing and existing["sha256"] == sha256:
                return existing["id"], "skipped"

            if existing:
                conn.execute(
                    """
                    UPDATE documents
                    SET title = ?, content = ?, sha256 = ?, mtime = ?, size = ?,
                        indexed_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                    """,
                    (title, content, sha256, mtime, size, existing["id"]),
                )
                return existing["id"], "updated"

            doc_id = uuid.uuid4().hex
            conn.execute(
                """
                INSERT INTO documents(id, path, title, content, sha256, mtime, size)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (doc_id, str(path), title, content, sha256, mtime, size),
            )
            return doc_id, "inserted"

    def replace_chunks(self, doc_id: str, chunks: Sequence[Chunk]) -> List[str]:
        """Swap the full chunk set of a document; return the ids that were replaced."""
        with self.database.transaction() as conn:
            old_ids = [
                row["id"]
                for row in conn.execute("SELECT id FROM chunks WHERE document_id = ?", (doc_id,))
            ]
            conn.execute("DELETE FROM chunks WHERE document_id = ?", (doc_id,))
            conn.executemany(
                """
                INSERT INTO chunks(id, document_id, chunk_index, heading, content,
                                   start_offset, end_offset, word_count, token_count)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        chunk.id,
                        doc_id,
                        chunk.ordinal_index,
                        chunk.heading_path,
                        chunk.content,
                        chunk.start_offset,
                        chunk.end_offset,
                        chunk.word_count,
                        chunk.token_count,
                    )
                    for chunk in chunks
                ],
            )
        return old_ids

    def get_all_files(self) -> List[Document]:
        rows = self.database.fetchall("SELECT * FROM documents ORDER BY path")
        return [_row_to_document(row) for row in rows]

    def get_file_by_id(self, doc_id: str) -> Document | None:
        row = self.database.fetchone("SELECT * FROM documents WHERE id = ?", (doc_id,))
        return _row_to_document(row) if row else None

    def get_file_by_path(self, path: Path) -> Document | None:
        row = self.database.fetchone("SELECT * FROM documents WHERE path = ?", (str(path),))
        return _row_to_document(row) if row else None

    def get_chunks_for_file(self, doc_id: str) -> List[Chunk]:
        rows = self.database.fetchall(
            "SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index", (doc_id,)
        )
        return [_row_to_chunk(row) for row in rows]

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        row = self.database.fetchone("SELECT * FROM chunks WHERE id = ?", (chunk_id,))
        return _row_to_chunk(row) if row else None

    def get_chunk_at(self, doc_id: str, ordinal: int) -> Chunk | None:
        row = self.database.fetchone(
            "SELECT * FROM chunks WHERE document_id = ? AND chunk_index = ?", (doc_id, ordinal)
        )
        return _row_to_chunk(row) if row else None

    def chunk_ids_for_file(self, doc_id: str) -> List[str]:
        rows = self.database.fetchall("SELECT id FROM chunks WHERE document_id = ?", (doc_id,))
        return [row["id"] for row in rows]

    def delete_document(self, doc_id: str) -> bool:
        with self.database.transaction() as conn:
            conn.execute("DELETE FROM chunks WHERE document_id = ?", (doc_id,))
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))
            return cursor.rowcount > 0

    def missing_files(self) -> List[Document]:
        """Documents whose source file no longer exists on disk."""
        return [doc for doc in self.get_all_files() if not doc.path.exists()]

    def list_documents(self) -> List[Dict[str, Any]]:
        rows = self.database.fetchall(
            """
            SELECT d.id, d.path, d.title, d.size, d.indexed_at, COUNT(c.id) AS chunk_count
            FROM documents d
            LEFT JOIN chunks c ON c.document_id = d.id
            GROUP BY d.id
            ORDER BY d.path
            """
        )
        return [dict(row) for row in rows]

    def get_stats(self) -> Dict[str, int]:
        documents = self.database.fetchone("SELECT COUNT(*) AS n, COALESCE(SUM(size), 0) AS s FROM documents")
        chunks = self.database.fetchone("SELECT COUNT(*) AS n FROM chunks")
        return {
            "document_count": documents["n"],
            "chunk_count": chunks["n"],
            "total_size_bytes": documents["s"],
        }
