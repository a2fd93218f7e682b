"""SQLite FTS5 full-text engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from docrecall.index.storage import Database

LOGGER = logging.getLogger(__name__)

# Column position of ``content`` in chunks_fts, used by snippet().
CONTENT_COLUMN = 3

# Stays under SQLite's host parameter limit.
_ID_BATCH = 500


@dataclass(frozen=True, slots=True)
class FullTextEntry:
    chunk_id: str
    file_path: str
    heading: str | None
    content: str


@dataclass(frozen=True, slots=True)
class RankedMatch:
    chunk_id: str
    rank: float
    snippet: str | None = None


def to_match_expression(query: str) -> str:
    """Quote every term so user input never trips the FTS5 query syntax.

    Quoted terms separated by spaces are ANDed together, as bare terms would be.
    Terms without any letter or digit are dropped since they index nothing.
    """
    terms = [term for term in query.split() if any(ch.isalnum() for ch in term)]
    return " ".join('"{}"'.format(term.replace('"', '""')) for term in terms)


class FullTextEngine:
    """Ranked match queries and excerpts over the ``chunks_fts`` table.

    Ranks come from FTS5's bm25, where more negative means a better match.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    def add(self, entries: Sequence[FullTextEntry]) -> None:
        if not entries:
            return
        with self.database.transaction() as conn:
            conn.executemany(
                "DELETE FROM chunks_fts WHERE chunk_id = ?",
                [(entry.chunk_id,) for entry in entries],
            )
            conn.executemany(
                """
                INSERT INTO chunks_fts(chunk_id, file_path, heading, content)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (entry.chunk_id, entry.file_path, entry.heading, entry.content)
                    for entry in entries
                ],
            )

    def match(self, query: str, limit: int) -> List[RankedMatch]:
        expression = to_match_expression(query)
        if not expression or limit <= 0:
            return []
        rows = self.database.fetchall(
            """
            SELECT chunk_id, rank
            FROM chunks_fts
            WHERE chunks_fts MATCH ?
            ORDER BY rank
            LIMIT ?
            """,
            (expression, limit),
        )
        return [RankedMatch(row["chunk_id"], float(row["rank"])) for row in rows]

    def snippets(
        self,
        query: str,
        limit: int,
        *,
        start_tag: str = "<mark>",
        end_tag: str = "</mark>",
        ellipsis: str = "...",
        max_tokens: int = 32,
    ) -> List[RankedMatch]:
        expression = to_match_expression(query)
        if not expression or limit <= 0:
            return []
        rows = self.database.fetchall(
            f"""
            SELECT chunk_id,
                   snippet(chunks_fts, {CONTENT_COLUMN}, ?, ?, ?, ?) AS snippet,
                   rank
            FROM chunks_fts
            WHERE chunks_fts MATCH ?
            ORDER BY rank
            LIMIT ?
            """,
            (start_tag, end_tag, ellipsis, max_tokens, expression, limit),
        )
        return [RankedMatch(row["chunk_id"], float(row["rank"]), row["snippet"]) for row in rows]

    def remove(self, chunk_ids: Iterable[str]) -> None:
        chunk_ids = list(chunk_ids)
        if not chunk_ids:
            return
        with self.database.transaction() as conn:
            conn.executemany(
                "DELETE FROM chunks_fts WHERE chunk_id = ?", [(cid,) for cid in chunk_ids]
            )

    def missing(self, chunk_ids: Iterable[str]) -> List[str]:
        """Ids from ``chunk_ids`` that have no full-text entry."""
        chunk_ids = list(chunk_ids)
        indexed: set[str] = set()
        for start in range(0, len(chunk_ids), _ID_BATCH):
            batch = chunk_ids[start : start + _ID_BATCH]
            placeholders = ", ".join("?" * len(batch))
            rows = self.database.fetchall(
                f"SELECT chunk_id FROM chunks_fts WHERE chunk_id IN ({placeholders})", batch
            )
            indexed.update(row["chunk_id"] for row in rows)
        return [cid for cid in chunk_ids if cid not in indexed]

    def clear(self) -> None:
        with self.database.transaction() as conn:
            conn.execute("DELETE FROM chunks_fts")
        LOGGER.info("Cleared full-text index")

    def count(self) -> int:
        row = self.database.fetchone("SELECT COUNT(*) AS n FROM chunks_fts")
        return int(row["n"]) if row else 0
