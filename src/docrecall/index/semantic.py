"""Semantic search over chunk embeddings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

import numpy as np

from docrecall.embedding.provider import EmbeddingProvider, ModelInfo
from docrecall.errors import ConfigurationError
from docrecall.index.storage import DocumentStore
from docrecall.index.vectors import SQLiteVectorStore
from docrecall.models import Chunk, SemanticResult
from docrecall.utils.text import head_words, tail_words

LOGGER = logging.getLogger(__name__)

CONTEXT_ELLIPSIS = "..."


@dataclass(slots=True)
class SemanticSearchConfig:
    limit: int = 10
    min_similarity: float = 0.5
    include_context: bool = True
    context_words: int = 50  # words borrowed from each neighbouring chunk

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ConfigurationError("limit must be greater than 0")
        if self.context_words < 0:
            raise ConfigurationError("context_words must not be negative")


@dataclass(frozen=True, slots=True)
class IngestionFailure:
    chunk_id: str
    error: str


@dataclass(slots=True)
class IngestionReport:
    indexed: int = 0
    failures: List[IngestionFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


class SemanticIndex:
    """Maps chunk ids to embeddings and answers nearest-neighbour queries.

    When the embedding provider is unavailable the index stays queryable but
    returns no results, leaving keyword search to carry the query.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        vectors: SQLiteVectorStore,
        store: DocumentStore,
        config: SemanticSearchConfig | None = None,
    ) -> None:
        self.provider = provider
        self.vectors = vectors
        self.store = store
        self.config = config or SemanticSearchConfig()

    def is_available(self) -> bool:
        return self.provider.is_available()

    def model_info(self) -> ModelInfo:
        return self.provider.get_model_info()

    def index_chunk(self, chunk: Chunk) -> None:
        """Embed one chunk and store the vector under its id."""
        vector = self.provider.embed(chunk.content)
        self.vectors.store(chunk.id, chunk.content, vector)

    def index_chunks(self, chunks: Sequence[Chunk], *, batch_size: int = 32) -> IngestionReport:
        """Embed chunks in small batches.

        A batch that fails to embed is retried chunk by chunk so one bad input
        only costs its own embedding. Vectors already stored are kept.
        """
        report = IngestionReport()
        if not chunks:
            return report

        if not self.is_available():
            LOGGER.warning("Embedding provider unavailable, %d chunks not embedded", len(chunks))
            report.failures.extend(
                IngestionFailure(chunk.id, "embedding provider unavailable") for chunk in chunks
            )
            return report

        for start in range(0, len(chunks), batch_size):
            batch = chunks[start : start + batch_size]
            try:
                vectors = self.provider.embed_batch([chunk.content for chunk in batch], batch_size)
            except Exception as exc:
                LOGGER.warning("Batch embedding failed (%s), retrying chunks one by one", exc)
                for chunk in batch:
                    self._index_one(chunk, report)
                continue

            for chunk, vector in zip(batch, vectors):
                self._store_one(chunk, vector, report)

        LOGGER.info("Embedded %d chunks (%d failed)", report.indexed, report.failed)
        return report

    def _index_one(self, chunk: Chunk, report: IngestionReport) -> None:
        try:
            self.index_chunk(chunk)
        except Exception as exc:
            LOGGER.error("Failed to embed chunk %s: %s", chunk.id, exc)
            report.failures.append(IngestionFailure(chunk.id, str(exc)))
        else:
            report.indexed += 1

    def _store_one(self, chunk: Chunk, vector: np.ndarray, report: IngestionReport) -> None:
        try:
            self.vectors.store(chunk.id, chunk.content, vector)
        except Exception as exc:
            LOGGER.error("Failed to store embedding for chunk %s: %s", chunk.id, exc)
            report.failures.append(IngestionFailure(chunk.id, str(exc)))
        else:
            report.indexed += 1

    def search(
        self,
        query: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        include_context: bool | None = None,
    ) -> List[SemanticResult]:
        """Chunks closest to ``query`` by cosine similarity; never raises on provider failure."""
        limit = limit or self.config.limit
        threshold = self.config.min_similarity if min_similarity is None else min_similarity
        with_context = self.config.include_context if include_context is None else include_context

        if not self.is_available():
            LOGGER.debug("Semantic search skipped: embedding provider unavailable")
            return []
        try:
            query_vector = self.provider.embed(query)
        except Exception as exc:
            LOGGER.warning("Could not embed query, semantic results skipped: %s", exc)
            return []

        results: List[SemanticResult] = []
        for match in self.vectors.search(query_vector, limit):
            if match.similarity < threshold:
                continue
            chunk = self.store.get_chunk(match.id)
            if chunk is None:
                LOGGER.debug("Skipping semantic hit for unknown chunk %s", match.id)
                continue
            document = self.store.get_file_by_id(chunk.document_id)
            if document is None:
                LOGGER.debug("Skipping semantic hit for unknown document %s", chunk.document_id)
                continue
            context = self.build_context(chunk) if with_context else None
            results.append(SemanticResult(chunk, document, match.similarity, context))
        return results

    def build_context(self, chunk: Chunk) -> str:
        """Chunk text framed by the tail of the previous and head of the next chunk."""
        words = self.config.context_words
        parts: List[str] = []

        previous = self.store.get_chunk_at(chunk.document_id, chunk.ordinal_index - 1)
        if previous is not None and words:
            parts.append(CONTEXT_ELLIPSIS + tail_words(previous.content, words))

        parts.append(chunk.content)

        following = self.store.get_chunk_at(chunk.document_id, chunk.ordinal_index + 1)
        if following is not None and words:
            parts.append(head_words(following.content, words) + CONTEXT_ELLIPSIS)

        return "\n\n".join(parts)

    def remove_chunks(self, chunk_ids: Iterable[str]) -> None:
        self.vectors.remove(chunk_ids)

    def missing_chunks(self, chunk_ids: Iterable[str]) -> List[str]:
        """Ids from ``chunk_ids`` that have no embedding yet."""
        return self.vectors.missing(chunk_ids)

    def clear_index(self) -> None:
        self.vectors.clear_all()

    def get_index_stats(self) -> Dict[str, int]:
        return {"total_chunks": self.vectors.count()}
