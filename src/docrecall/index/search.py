"""Cached search interface."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Sequence

from docrecall.cache.query_cache import MISSING, QueryCache
from docrecall.index.hybrid import HybridConfig, HybridRanker
from docrecall.index.semantic import IngestionReport
from docrecall.models import Chunk, SearchHit

LOGGER = logging.getLogger(__name__)


def search_cache_key(query: str, config: HybridConfig) -> str:
    return f"search:{query}:{config.cache_key()}"


class Searcher:
    """High-level API: hybrid search with a query cache in front of it.

    Any change to the indices clears the cache, so cached results never
    outlive the chunks they point to. Every change also bumps a generation
    counter, and a search only caches its results if no change happened
    while it was ranking.
    """

    def __init__(self, ranker: HybridRanker, cache: QueryCache) -> None:
        self.ranker = ranker
        self.cache = cache
        self._generation = 0
        self._lock = threading.Lock()

    def search(self, query: str, config: HybridConfig | None = None) -> List[SearchHit]:
        query = query.strip()
        if not query:
            return []
        config = config or self.ranker.config
        key = search_cache_key(query, config)

        cached = self.cache.get(key)
        if cached is not MISSING:
            LOGGER.debug("Cache hit for query %r", query)
            return list(cached)

        with self._lock:
            generation = self._generation
        results = self.ranker.search(query, config)
        with self._lock:
            if generation == self._generation:
                self.cache.set(key, tuple(results))
            else:
                LOGGER.debug("Index changed during query %r, result not cached", query)
        return results

    def index_chunks(self, chunks: Sequence[Chunk]) -> IngestionReport:
        try:
            return self.ranker.index_chunks(chunks)
        finally:
            self._invalidate()

    def remove_chunks(self, chunk_ids: Iterable[str]) -> None:
        try:
            self.ranker.remove_chunks(chunk_ids)
        finally:
            self._invalidate()

    def missing_chunks(self, chunk_ids: Iterable[str]) -> List[str]:
        return self.ranker.missing_chunks(chunk_ids)

    def clear_index(self) -> None:
        try:
            self.ranker.clear_index()
        finally:
            self._invalidate()

    def _invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self.cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        ranker_stats = self.ranker.get_stats()
        model = self.ranker.semantic.model_info()
        return {
            "total_chunks": ranker_stats["keyword_index_size"],
            **ranker_stats,
            "embedding_model": {
                "provider": model.provider,
                "model": model.model,
                "dimensions": model.dimensions,
                "available": model.available,
            },
            "cache": self.cache.get_stats().to_dict(),
        }
