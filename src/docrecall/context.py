"""Application context: every long-lived component, wired once by the entry point."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from docrecall.cache.query_cache import QueryCache
from docrecall.chunking.chunker import Chunker
from docrecall.config import AppConfig
from docrecall.embedding.encoder import EmbeddingConfig, SentenceTransformerEmbeddings
from docrecall.embedding.provider import EmbeddingProvider
from docrecall.index.fulltext import FullTextEngine
from docrecall.index.hybrid import HybridRanker
from docrecall.index.indexer import Indexer
from docrecall.index.keyword import KeywordIndex
from docrecall.index.search import Searcher
from docrecall.index.semantic import SemanticIndex
from docrecall.index.storage import Database, DocumentStore
from docrecall.index.vectors import SQLiteVectorStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    config: AppConfig
    database: Database
    store: DocumentStore
    embedder: EmbeddingProvider
    ranker: HybridRanker
    cache: QueryCache
    searcher: Searcher
    indexer: Indexer

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        embedder: EmbeddingProvider | None = None,
        base_dir: Path | None = None,
        load_embeddings: bool = True,
    ) -> "AppContext":
        """Open the database and construct every component against it.

        With ``load_embeddings=False`` the embedding model is not loaded and
        search runs keyword-only, which suits maintenance commands.
        """
        db_path = config.resolve_db_path(base_dir)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        database = Database(db_path)
        store = DocumentStore(database)

        if embedder is None:
            local = SentenceTransformerEmbeddings(EmbeddingConfig(model_name=config.model_name))
            if load_embeddings:
                local.initialize()
            embedder = local

        semantic = SemanticIndex(embedder, SQLiteVectorStore(database), store, config.semantic)
        keyword = KeywordIndex(FullTextEngine(database), store, config.keyword)
        ranker = HybridRanker(semantic, keyword, config.hybrid)
        cache = QueryCache(config.cache)
        searcher = Searcher(ranker, cache)
        indexer = Indexer(store, Chunker(config.chunking), searcher)
        LOGGER.debug("Application context ready (database: %s)", db_path)

        return cls(
            config=config,
            database=database,
            store=store,
            embedder=embedder,
            ranker=ranker,
            cache=cache,
            searcher=searcher,
            indexer=indexer,
        )

    def close(self) -> None:
        self.ranker.close()
        self.database.close()

    def __enter__(self) -> "AppContext":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
