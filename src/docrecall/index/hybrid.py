"""Hybrid ranking: weighted fusion of semantic and keyword results."""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Iterable, List, Sequence

from docrecall.errors import ConfigurationError
from docrecall.index.keyword import KeywordIndex
from docrecall.index.semantic import IngestionReport, SemanticIndex
from docrecall.models import Chunk, KeywordResult, ScoredResult, SearchHit, SemanticResult

LOGGER = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 0.001


@dataclass(slots=True)
class HybridConfig:
    limit: int = 10
    semantic_weight: float = 0.7
    keyword_weight: float = 0.3
    min_semantic_similarity: float = 0.5
    include_context: bool = True
    include_snippets: bool = False
    candidate_multiplier: int = 2  # each branch fetches limit * multiplier candidates
    semantic_timeout: float | None = 10.0  # seconds; None waits indefinitely

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ConfigurationError("limit must be greater than 0")
        if self.semantic_weight < 0 or self.keyword_weight < 0:
            raise ConfigurationError("Semantic and keyword weights must not be negative")
        if abs(self.semantic_weight + self.keyword_weight - 1.0) > WEIGHT_TOLERANCE:
            raise ConfigurationError("Semantic and keyword weights must sum to 1.0")
        if self.candidate_multiplier < 1:
            raise ConfigurationError("candidate_multiplier must be at least 1")
        if self.semantic_timeout is not None and self.semantic_timeout <= 0:
            raise ConfigurationError("semantic_timeout must be greater than 0")

    @property
    def candidate_limit(self) -> int:
        return self.limit * self.candidate_multiplier

    def cache_key(self) -> str:
        """Canonical string form, used to key cached query results."""
        return json.dumps(asdict(self), sort_keys=True)


def fuse_results(
    semantic: Iterable[SemanticResult],
    keyword: Iterable[KeywordResult],
    semantic_weight: float,
    keyword_weight: float,
) -> List[ScoredResult]:
    """Merge both result sets into one list ordered by combined score.

    A chunk missing from one side scores 0 on that side. Chunks with equal
    combined scores keep the order in which they were first seen, semantic
    results first.
    """
    scored: Dict[str, ScoredResult] = {}
    for result in semantic:
        if result.chunk.id in scored:
            continue
        scored[result.chunk.id] = ScoredResult(
            chunk=result.chunk,
            file=result.file,
            semantic_score=result.similarity,
            context=result.context,
        )

    seen_keyword: set[str] = set()
    for result in keyword:
        if result.chunk.id in seen_keyword:
            continue
        seen_keyword.add(result.chunk.id)
        existing = scored.get(result.chunk.id)
        if existing is None:
            scored[result.chunk.id] = ScoredResult(
                chunk=result.chunk,
                file=result.file,
                keyword_score=result.similarity,
                snippet=result.snippet,
            )
        else:
            existing.keyword_score = result.similarity
            existing.snippet = result.snippet

    for item in scored.values():
        item.combined_score = (
            item.semantic_score * semantic_weight + item.keyword_score * keyword_weight
        )
    return sorted(scored.values(), key=lambda item: item.combined_score, reverse=True)


class HybridRanker:
    """Runs semantic and keyword search side by side and fuses their results.

    The semantic branch runs on a worker thread while the keyword branch runs
    in the caller's thread. If the semantic side is unavailable, fails, or
    exceeds ``semantic_timeout``, it contributes nothing and the query is
    answered from keyword matches alone.
    """

    def __init__(
        self,
        semantic: SemanticIndex,
        keyword: KeywordIndex,
        config: HybridConfig | None = None,
        *,
        max_workers: int = 4,
    ) -> None:
        self.semantic = semantic
        self.keyword = keyword
        self.config = config or HybridConfig()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="docrecall-semantic"
        )

    def update_config(self, **changes: Any) -> HybridConfig:
        """Apply configuration changes; invalid combinations raise ConfigurationError."""
        self.config = replace(self.config, **changes)
        return self.config

    def search(self, query: str, config: HybridConfig | None = None) -> List[SearchHit]:
        config = config or self.config
        intake = config.candidate_limit

        semantic_future: Future | None = None
        deadline: float | None = None
        if self.semantic.is_available():
            semantic_future = self._executor.submit(
                self.semantic.search,
                query,
                intake,
                config.min_semantic_similarity,
                config.include_context,
            )
            if config.semantic_timeout is not None:
                deadline = time.monotonic() + config.semantic_timeout
        else:
            LOGGER.info("Semantic search unavailable, using keyword results only")

        if config.include_snippets:
            keyword_results = self.keyword.search_with_snippets(query, intake)
        else:
            keyword_results = self.keyword.search(query, intake)

        semantic_results = self._join_semantic(semantic_future, deadline)

        fused = fuse_results(
            semantic_results, keyword_results, config.semantic_weight, config.keyword_weight
        )
        LOGGER.debug(
            "Fused %d semantic and %d keyword results into %d candidates",
            len(semantic_results),
            len(keyword_results),
            len(fused),
        )
        return [
            SearchHit(
                chunk=item.chunk,
                file=item.file,
                similarity=item.combined_score,
                context=item.context,
                snippet=item.snippet,
            )
            for item in fused[: config.limit]
        ]

    def _join_semantic(
        self, future: Future | None, deadline: float | None
    ) -> List[SemanticResult]:
        if future is None:
            return []
        timeout = None if deadline is None else max(deadline - time.monotonic(), 0.0)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            LOGGER.warning("Semantic search timed out, using keyword results only")
        except Exception as exc:
            LOGGER.warning("Semantic search failed, using keyword results only: %s", exc)
        return []

    def index_chunks(self, chunks: Sequence[Chunk]) -> IngestionReport:
        """Feed chunks to both indices; embedding failures are reported, not raised."""
        self.keyword.index_chunks(chunks)
        return self.semantic.index_chunks(chunks)

    def remove_chunks(self, chunk_ids: Iterable[str]) -> None:
        chunk_ids = list(chunk_ids)
        self.keyword.remove_chunks(chunk_ids)
        self.semantic.remove_chunks(chunk_ids)

    def missing_chunks(self, chunk_ids: Iterable[str]) -> List[str]:
        """Ids absent from the keyword index, or from the semantic index while it can embed."""
        chunk_ids = list(chunk_ids)
        missing = set(self.keyword.missing_chunks(chunk_ids))
        if self.semantic.is_available():
            missing.update(self.semantic.missing_chunks(chunk_ids))
        return [chunk_id for chunk_id in chunk_ids if chunk_id in missing]

    def clear_index(self) -> None:
        self.semantic.clear_index()
        self.keyword.clear_index()
        LOGGER.info("Cleared hybrid search indexes")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "semantic_available": self.semantic.is_available(),
            "semantic_index_size": self.semantic.get_index_stats()["total_chunks"],
            "keyword_index_size": self.keyword.get_index_stats()["total_chunks"],
        }

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "HybridRanker":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
