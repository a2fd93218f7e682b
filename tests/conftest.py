"""Shared fixtures: a deterministic embedding provider and SQLite-backed components."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterator, Sequence

import numpy as np
import pytest

from docrecall.chunking.chunker import Chunker
from docrecall.config import AppConfig
from docrecall.context import AppContext
from docrecall.embedding.provider import ModelInfo
from docrecall.errors import EmbeddingUnavailableError
from docrecall.index.hybrid import HybridConfig
from docrecall.index.semantic import SemanticSearchConfig
from docrecall.index.storage import Database, DocumentStore
from docrecall.models import Chunk


class FakeEmbeddings:
    """Bag-of-words hashing embedder: texts sharing words get similar vectors."""

    def __init__(self, dimension: int = 64, *, available: bool = True) -> None:
        self.dimension = dimension
        self.available = available
        self.fail_on: set[str] = set()
        self.calls = 0

    def _vector(self, text: str) -> np.ndarray:
        if any(marker in text for marker in self.fail_on):
            raise RuntimeError(f"cannot embed {text[:20]!r}")
        vector = np.zeros(self.dimension, dtype="float32")
        for word in text.lower().split():
            word = word.strip(".,;:!?\"'()#")
            if not word:
                continue
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "little") % self.dimension] += 1.0
        norm = np.linalg.norm(vector)
        return vector / norm if norm else vector

    def embed(self, text: str) -> np.ndarray:
        if not self.available:
            raise EmbeddingUnavailableError("fake provider offline")
        self.calls += 1
        return self._vector(text)

    def embed_batch(self, texts: Sequence[str], batch_size: int | None = None) -> np.ndarray:
        if not self.available:
            raise EmbeddingUnavailableError("fake provider offline")
        self.calls += 1
        return np.vstack([self._vector(text) for text in texts])

    def is_available(self) -> bool:
        return self.available

    def get_model_info(self) -> ModelInfo:
        return ModelInfo("fake", "bag-of-words", self.dimension, self.available)


@pytest.fixture
def fake_embedder() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def database(tmp_path: Path) -> Iterator[Database]:
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def store(database: Database) -> DocumentStore:
    return DocumentStore(database)


@pytest.fixture
def context(tmp_path: Path, fake_embedder: FakeEmbeddings) -> Iterator[AppContext]:
    config = AppConfig(
        db_path=tmp_path / "context.db",
        semantic=SemanticSearchConfig(min_similarity=0.0),
        hybrid=HybridConfig(min_semantic_similarity=0.0),
    )
    ctx = AppContext.build(config, embedder=fake_embedder)
    yield ctx
    ctx.close()


def add_document(
    store: DocumentStore, path: Path, content: str, *, chunker: Chunker | None = None
) -> tuple[str, list[Chunk]]:
    """Store a document and its chunks, returning the document id and chunks."""
    doc_id, _ = store.init_document(path, title=path.stem, content=content, sha256=path.name)
    chunks = (chunker or Chunker()).chunk(doc_id, content)
    store.replace_chunks(doc_id, chunks)
    return doc_id, chunks
