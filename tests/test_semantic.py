"""Tests for the semantic index."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeEmbeddings, add_document
from docrecall.chunking.chunker import ChunkConfig, Chunker
from docrecall.errors import ConfigurationError
from docrecall.index.semantic import SemanticIndex, SemanticSearchConfig
from docrecall.index.storage import Database, DocumentStore
from docrecall.index.vectors import SQLiteVectorStore

FIVE_WORDS = Chunker(ChunkConfig(max_chunk_size=5, overlap_size=0))

LONG_TEXT = "river stone meadow lantern harbor violin copper orchard glacier compass"


def _index(
    database: Database,
    store: DocumentStore,
    embedder: FakeEmbeddings,
    **config,
) -> SemanticIndex:
    return SemanticIndex(
        embedder, SQLiteVectorStore(database), store, SemanticSearchConfig(**config)
    )


class TestSemanticSearchConfig:
    """Test SemanticSearchConfig validation."""

    def test_defaults(self) -> None:
        config = SemanticSearchConfig()
        assert config.limit == 10
        assert config.min_similarity == 0.5
        assert config.context_words == 50

    def test_rejects_bad_values(self) -> None:
        with pytest.raises(ConfigurationError):
            SemanticSearchConfig(limit=0)
        with pytest.raises(ConfigurationError):
            SemanticSearchConfig(context_words=-1)


class TestIndexing:
    """Embedding chunks into the vector store."""

    def test_index_chunks(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, tmp_path: Path
    ) -> None:
        index = _index(database, store, fake_embedder)
        _, chunks = add_document(store, tmp_path / "a.md", LONG_TEXT, chunker=FIVE_WORDS)

        report = index.index_chunks(chunks)

        assert report.indexed == 2
        assert report.failed == 0
        assert index.get_index_stats() == {"total_chunks": 2}

    def test_empty_input(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings
    ) -> None:
        report = _index(database, store, fake_embedder).index_chunks([])
        assert report.indexed == 0
        assert fake_embedder.calls == 0

    def test_failed_batch_is_retried_per_chunk(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, tmp_path: Path
    ) -> None:
        fake_embedder.fail_on = {"poison"}
        index = _index(database, store, fake_embedder)
        content = "alpha beta gamma delta epsilon poison zeta eta theta iota kappa lambda mu nu xi"
        _, chunks = add_document(store, tmp_path / "a.md", content, chunker=FIVE_WORDS)

        report = index.index_chunks(chunks)

        assert report.indexed == 2
        assert report.failed == 1
        assert report.failures[0].chunk_id == chunks[1].id
        assert "poison" in report.failures[0].error
        assert index.vectors.count() == 2

    def test_unavailable_provider_reports_every_chunk(
        self, database: Database, store: DocumentStore, tmp_path: Path
    ) -> None:
        index = _index(database, store, FakeEmbeddings(available=False))
        _, chunks = add_document(store, tmp_path / "a.md", LONG_TEXT, chunker=FIVE_WORDS)

        report = index.index_chunks(chunks)

        assert report.indexed == 0
        assert [failure.chunk_id for failure in report.failures] == [c.id for c in chunks]
        assert index.vectors.count() == 0

    def test_reindexing_replaces_vector(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, tmp_path: Path
    ) -> None:
        index = _index(database, store, fake_embedder)
        _, chunks = add_document(store, tmp_path / "a.md", LONG_TEXT)
        index.index_chunks(chunks)
        index.index_chunk(chunks[0])

        assert index.vectors.count() == 1


class TestSearch:
    """Nearest-neighbour queries."""

    def test_finds_matching_chunk(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, tmp_path: Path
    ) -> None:
        index = _index(database, store, fake_embedder)
        _, chunks = add_document(store, tmp_path / "a.md", LONG_TEXT)
        index.index_chunks(chunks)

        results = index.search(LONG_TEXT)

        assert len(results) == 1
        assert results[0].chunk.id == chunks[0].id
        assert results[0].file.path == tmp_path / "a.md"
        assert results[0].similarity == pytest.approx(1.0, abs=1e-5)

    def test_min_similarity_filters(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, tmp_path: Path
    ) -> None:
        index = _index(database, store, fake_embedder)
        _, chunks = add_document(store, tmp_path / "a.md", LONG_TEXT)
        index.index_chunks(chunks)

        assert index.search("river", min_similarity=0.9) == []
        assert len(index.search("river", min_similarity=0.0)) == 1

    def test_results_ordered_by_similarity(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, tmp_path: Path
    ) -> None:
        index = _index(database, store, fake_embedder, min_similarity=0.0)
        _, first = add_document(store, tmp_path / "a.md", "river stone meadow")
        _, second = add_document(store, tmp_path / "b.md", "river stone meadow lantern harbor violin")
        index.index_chunks(first + second)

        results = index.search("river stone meadow")

        assert [r.chunk.id for r in results] == [first[0].id, second[0].id]
        assert results[0].similarity >= results[1].similarity

    def test_unavailable_provider_returns_empty(
        self, database: Database, store: DocumentStore, tmp_path: Path
    ) -> None:
        index = _index(database, store, FakeEmbeddings(available=False))
        assert index.search("anything") == []

    def test_query_embedding_failure_returns_empty(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, tmp_path: Path
    ) -> None:
        index = _index(database, store, fake_embedder)
        _, chunks = add_document(store, tmp_path / "a.md", LONG_TEXT)
        index.index_chunks(chunks)
        fake_embedder.fail_on = {"boom"}

        assert index.search("boom") == []

    def test_skips_vectors_without_chunk(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings
    ) -> None:
        index = _index(database, store, fake_embedder, min_similarity=0.0)
        index.vectors.store("ghost", "ghost text", fake_embedder.embed("ghost text"))

        assert index.search("ghost text") == []

    def test_without_context(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, tmp_path: Path
    ) -> None:
        index = _index(database, store, fake_embedder)
        _, chunks = add_document(store, tmp_path / "a.md", LONG_TEXT)
        index.index_chunks(chunks)

        assert index.search(LONG_TEXT, include_context=False)[0].context is None
        assert index.search(LONG_TEXT)[0].context == LONG_TEXT


class TestContext:
    """Neighbouring chunk context."""

    @pytest.fixture
    def chunks(self, store: DocumentStore, tmp_path: Path):
        content = "a0 a1 a2 a3 a4 b0 b1 b2 b3 b4 c0 c1 c2 c3 c4"
        _, chunks = add_document(store, tmp_path / "a.md", content, chunker=FIVE_WORDS)
        return chunks

    def test_middle_chunk(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, chunks
    ) -> None:
        index = _index(database, store, fake_embedder, context_words=2)
        assert index.build_context(chunks[1]) == "...a3 a4\n\nb0 b1 b2 b3 b4\n\nc0 c1..."

    def test_first_chunk_has_no_leading_context(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, chunks
    ) -> None:
        index = _index(database, store, fake_embedder, context_words=2)
        assert index.build_context(chunks[0]) == "a0 a1 a2 a3 a4\n\nb0 b1..."

    def test_last_chunk_has_no_trailing_context(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, chunks
    ) -> None:
        index = _index(database, store, fake_embedder, context_words=2)
        assert index.build_context(chunks[2]) == "...b3 b4\n\nc0 c1 c2 c3 c4"

    def test_zero_context_words(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, chunks
    ) -> None:
        index = _index(database, store, fake_embedder, context_words=0)
        assert index.build_context(chunks[1]) == "b0 b1 b2 b3 b4"


class TestMaintenance:
    """Removal and statistics."""

    def test_remove_and_clear(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings, tmp_path: Path
    ) -> None:
        index = _index(database, store, fake_embedder)
        _, chunks = add_document(store, tmp_path / "a.md", LONG_TEXT, chunker=FIVE_WORDS)
        index.index_chunks(chunks)

        index.remove_chunks([chunks[0].id])
        assert index.get_index_stats() == {"total_chunks": 1}

        index.clear_index()
        assert index.get_index_stats() == {"total_chunks": 0}

    def test_model_info(
        self, database: Database, store: DocumentStore, fake_embedder: FakeEmbeddings
    ) -> None:
        info = _index(database, store, fake_embedder).model_info()
        assert info.dimensions == 64
        assert info.available is True
