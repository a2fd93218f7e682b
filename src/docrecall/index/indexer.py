"""Document indexing pipeline."""

from __future__ import annotations

import gc
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from docrecall.chunking.chunker import Chunker
from docrecall.index.search import Searcher
from docrecall.index.storage import DocumentStore
from docrecall.ingestion.markdown_loader import load_document
from docrecall.models import Chunk
from docrecall.utils.files import compute_sha256, iter_document_paths

LOGGER = logging.getLogger(__name__)


def find_documents(paths: Sequence[Path]) -> list[Path]:
    """Find all markdown and text files under the given paths."""
    return list(iter_document_paths(paths))


@dataclass(slots=True)
class IndexStats:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    repaired: int = 0
    failed: int = 0
    chunks: int = 0
    embedding_failures: int = 0
    processed_files: list[Path] = field(default_factory=list)

    def increment(self, status: str, path: Path) -> None:
        if status == "inserted":
            self.inserted += 1
        elif status == "updated":
            self.updated += 1
        elif status == "skipped":
            self.skipped += 1
        elif status == "repaired":
            self.repaired += 1
        else:
            self.failed += 1
        self.processed_files.append(path)


class Indexer:
    """Coordinates document loading, chunking, persistence and indexing.

    An unchanged file is not re-chunked, but any of its stored chunks that
    are missing from the search indices, for example after a clear or a
    failed embedding run, are fed to them again and the file is reported as
    ``repaired``.
    """

    def __init__(
        self,
        store: DocumentStore,
        chunker: Chunker,
        searcher: Searcher,
        *,
        batch_size: int = 8,
    ) -> None:
        self.store = store
        self.chunker = chunker
        self.searcher = searcher
        self.batch_size = batch_size

    def index(self, paths: Sequence[Path], *, force: bool = False) -> IndexStats:
        """Index all supported documents found under the given paths.

        With ``force`` every chunk of an unchanged file is re-indexed, not
        only the missing ones.
        """
        files = find_documents(paths)
        if not files:
            LOGGER.warning("No documents found")
            return IndexStats()

        stats = IndexStats()
        for i in range(0, len(files), self.batch_size):
            for path in files[i : i + self.batch_size]:
                try:
                    LOGGER.info("Processing: %s", path)
                    status = self._index_single(path, stats, force=force)
                    stats.increment(status, path)
                except Exception as exc:
                    LOGGER.error("Failed to process %s: %s", path, exc)
                    stats.increment("failed", path)

            # Embedding batches can hold on to large buffers
            gc.collect()

        return stats

    def _index_single(self, path: Path, stats: IndexStats, *, force: bool = False) -> str:
        document = load_document(path)
        stat = path.stat()

        # Document row and chunk set change together or not at all
        with self.store.database.transaction():
            doc_id, status = self.store.init_document(
                path,
                title=document.title,
                content=document.content,
                sha256=compute_sha256(path),
                mtime=stat.st_mtime,
                size=stat.st_size,
            )
            if status != "skipped":
                chunks = self.chunker.chunk(doc_id, document.content, document.headings)
                if not chunks:
                    LOGGER.warning("No text extracted from %s", path)
                old_ids = self.store.replace_chunks(doc_id, chunks)

        if status == "skipped":
            return self._restore(path, doc_id, stats, force=force)

        if old_ids:
            self.searcher.remove_chunks(old_ids)

        self._feed(chunks, stats)
        return status

    def _restore(self, path: Path, doc_id: str, stats: IndexStats, *, force: bool) -> str:
        chunks = self.store.get_chunks_for_file(doc_id)
        if not force:
            missing = set(self.searcher.missing_chunks(chunk.id for chunk in chunks))
            chunks = [chunk for chunk in chunks if chunk.id in missing]
        if not chunks:
            return "skipped"

        LOGGER.info("Re-indexing %d chunks of unchanged %s", len(chunks), path)
        self._feed(chunks, stats)
        return "repaired"

    def _feed(self, chunks: Sequence[Chunk], stats: IndexStats) -> None:
        report = self.searcher.index_chunks(chunks)
        stats.chunks += len(chunks)
        stats.embedding_failures += report.failed

    def prune(self) -> int:
        """Remove documents whose files no longer exist, along with their index entries."""
        removed = 0
        for document in self.store.missing_files():
            chunk_ids = self.store.chunk_ids_for_file(document.id)
            self.searcher.remove_chunks(chunk_ids)
            if self.store.delete_document(document.id):
                removed += 1
                LOGGER.info("Removed missing document %s", document.path)
        return removed
