"""Core DocRecall data models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class Document:
    """A stored source document."""

    id: str
    path: Path
    title: str
    content: str
    sha256: str
    mtime: float = 0.0
    size: int = 0


@dataclass(frozen=True, slots=True)
class Heading:
    """A heading in a document; ``line_number`` is 1-based."""

    id: str
    level: int
    text: str
    line_number: int
    parent_id: str | None = None


@dataclass(frozen=True, slots=True)
class Chunk:
    """Bounded unit of document text, annotated with its heading ancestry."""

    id: str
    document_id: str
    ordinal_index: int
    heading_path: str | None
    content: str
    start_offset: int
    end_offset: int
    word_count: int
    token_count: int


@dataclass(frozen=True, slots=True)
class SemanticResult:
    """A chunk returned by the semantic index."""

    chunk: Chunk
    file: Document
    similarity: float
    context: str | None = None


@dataclass(frozen=True, slots=True)
class KeywordResult:
    """A chunk returned by the keyword index."""

    chunk: Chunk
    file: Document
    similarity: float
    snippet: str | None = None


@dataclass(slots=True)
class ScoredResult:
    """A candidate during score fusion, carrying both per-side scores."""

    chunk: Chunk
    file: Document
    semantic_score: float = 0.0
    keyword_score: float = 0.0
    combined_score: float = 0.0
    context: str | None = None
    snippet: str | None = None

    @property
    def chunk_id(self) -> str:
        return self.chunk.id


@dataclass(frozen=True, slots=True)
class SearchHit:
    """Ranked search result handed to callers."""

    chunk: Chunk
    file: Document
    similarity: float
    context: str | None = None
    snippet: str | None = None

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk.id,
            "chunk_index": self.chunk.ordinal_index,
            "heading": self.chunk.heading_path,
            "content": self.chunk.content,
            "document_id": self.file.id,
            "path": str(self.file.path),
            "title": self.file.title,
            "similarity": self.similarity,
            "context": self.context,
            "snippet": self.snippet,
        }
