"""Keyword search over chunk text."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from docrecall.errors import ConfigurationError
from docrecall.index.fulltext import FullTextEngine, FullTextEntry, RankedMatch
from docrecall.index.storage import DocumentStore
from docrecall.models import Chunk, KeywordResult

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class KeywordSearchConfig:
    limit: int = 10
    highlight_tags: Tuple[str, str] = ("<mark>", "</mark>")
    ellipsis: str = "..."
    snippet_tokens: int = 32

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ConfigurationError("limit must be greater than 0")
        if not 1 <= self.snippet_tokens <= 64:
            raise ConfigurationError("snippet_tokens must be between 1 and 64")


def rank_to_similarity(rank: float) -> float:
    """Map an unbounded smaller-is-better rank onto a (0, 1] similarity."""
    return 1.0 / (abs(rank) + 1.0)


class KeywordIndex:
    """Ranked keyword lookup, optionally with highlighted excerpts."""

    def __init__(
        self,
        engine: FullTextEngine,
        store: DocumentStore,
        config: KeywordSearchConfig | None = None,
    ) -> None:
        self.engine = engine
        self.store = store
        self.config = config or KeywordSearchConfig()

    def index_chunks(self, chunks: Sequence[Chunk]) -> int:
        paths: Dict[str, str] = {}
        entries: List[FullTextEntry] = []
        for chunk in chunks:
            if chunk.document_id not in paths:
                document = self.store.get_file_by_id(chunk.document_id)
                paths[chunk.document_id] = str(document.path) if document else ""
            entries.append(
                FullTextEntry(
                    chunk_id=chunk.id,
                    file_path=paths[chunk.document_id],
                    heading=chunk.heading_path,
                    content=chunk.content,
                )
            )
        self.engine.add(entries)
        LOGGER.debug("Indexed %d chunks for keyword search", len(entries))
        return len(entries)

    def search(self, query: str, limit: int | None = None) -> List[KeywordResult]:
        """Chunks matching ``query``, best match first."""
        matches = self.engine.match(query, limit or self.config.limit)
        return self._resolve(matches)

    def search_with_snippets(
        self,
        query: str,
        limit: int | None = None,
        highlight_tags: Tuple[str, str] | None = None,
    ) -> List[KeywordResult]:
        """Same ranking as :meth:`search`, each result carrying a highlighted excerpt."""
        start_tag, end_tag = highlight_tags or self.config.highlight_tags
        matches = self.engine.snippets(
            query,
            limit or self.config.limit,
            start_tag=start_tag,
            end_tag=end_tag,
            ellipsis=self.config.ellipsis,
            max_tokens=self.config.snippet_tokens,
        )
        return self._resolve(matches)

    def _resolve(self, matches: Iterable[RankedMatch]) -> List[KeywordResult]:
        results: List[KeywordResult] = []
        for match in matches:
            chunk = self.store.get_chunk(match.chunk_id)
            if chunk is None:
                LOGGER.debug("Skipping keyword hit for unknown chunk %s", match.chunk_id)
                continue
            document = self.store.get_file_by_id(chunk.document_id)
            if document is None:
                LOGGER.debug("Skipping keyword hit for unknown document %s", chunk.document_id)
                continue
            results.append(
                KeywordResult(
                    chunk=chunk,
                    file=document,
                    similarity=rank_to_similarity(match.rank),
                    snippet=match.snippet,
                )
            )
        return results

    def remove_chunks(self, chunk_ids: Iterable[str]) -> None:
        self.engine.remove(chunk_ids)

    def missing_chunks(self, chunk_ids: Iterable[str]) -> List[str]:
        return self.engine.missing(chunk_ids)

    def clear_index(self) -> None:
        self.engine.clear()

    def get_index_stats(self) -> Dict[str, int]:
        return {"total_chunks": self.engine.count()}
