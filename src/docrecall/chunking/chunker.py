"""Heading-aware chunking with word-window overlap."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

from docrecall.errors import ConfigurationError
from docrecall.models import Chunk, Heading
from docrecall.utils.files import sha1_text
from docrecall.utils.text import count_words, estimate_tokens, word_spans

LOGGER = logging.getLogger(__name__)

HEADING_SEPARATOR = " > "


@dataclass(slots=True)
class ChunkConfig:
    max_chunk_size: int = 500  # words per chunk
    overlap_size: int = 50  # words repeated between adjacent windows
    split_on_headings: bool = True
    preserve_context: bool = True  # full ancestor path instead of the bare heading

    def __post_init__(self) -> None:
        if self.max_chunk_size <= 0:
            raise ConfigurationError("max_chunk_size must be greater than 0")
        if self.overlap_size < 0:
            raise ConfigurationError("overlap_size must not be negative")


@dataclass(slots=True)
class _Piece:
    heading_path: str | None
    content: str
    start_offset: int
    end_offset: int
    word_count: int


class Chunker:
    """Split a document into bounded chunks that remember their headings.

    With heading splitting enabled, every heading opens a section that runs up
    to the next heading. Text before the first heading becomes a preamble
    chunk. Sections longer than ``max_chunk_size`` words are cut into sliding
    windows that share ``overlap_size`` words with their neighbour.
    """

    def __init__(self, config: ChunkConfig | None = None) -> None:
        self.config = config or ChunkConfig()

    def chunk(
        self, document_id: str, content: str, headings: Sequence[Heading] = ()
    ) -> List[Chunk]:
        """Return the ordered chunks for ``content``."""
        if not content.strip():
            return []

        if self.config.split_on_headings and headings:
            pieces = self._split_by_headings(content, headings)
        else:
            pieces = self._window(content, 0, None)

        chunks = [
            self._build_chunk(document_id, ordinal, piece)
            for ordinal, piece in enumerate(pieces)
        ]
        LOGGER.debug("Chunked document %s into %d chunks", document_id, len(chunks))
        return chunks

    def _split_by_headings(self, content: str, headings: Sequence[Heading]) -> List[_Piece]:
        lines = content.split("\n")
        line_starts = _line_starts(lines, len(content))
        by_id: Dict[str, Heading] = {heading.id: heading for heading in headings}
        ordered = sorted(headings, key=lambda heading: heading.line_number)

        def line_index(heading: Heading) -> int:
            return min(max(heading.line_number - 1, 0), len(lines))

        pieces: List[_Piece] = []

        first_line = line_index(ordered[0])
        if first_line > 0:
            preamble = "\n".join(lines[:first_line]).strip()
            if preamble:
                pieces.append(
                    _Piece(None, preamble, 0, line_starts[first_line], count_words(preamble))
                )

        for position, heading in enumerate(ordered):
            start_line = line_index(heading)
            if position + 1 < len(ordered):
                end_line = line_index(ordered[position + 1])
            else:
                end_line = len(lines)

            section = "\n".join(lines[start_line:end_line])
            heading_path = self._heading_path(heading, by_id)
            word_count = count_words(section)
            if word_count == 0:
                continue

            if word_count > self.config.max_chunk_size:
                pieces.extend(self._window(section, line_starts[start_line], heading_path))
            else:
                pieces.append(
                    _Piece(
                        heading_path,
                        section,
                        line_starts[start_line],
                        line_starts[end_line],
                        word_count,
                    )
                )
        return pieces

    def _window(self, text: str, base_offset: int, heading_path: str | None) -> List[_Piece]:
        """Cut ``text`` into overlapping word windows.

        Window ``k`` covers words ``[k * step, k * step + max_chunk_size)`` with
        ``step = max_chunk_size - overlap_size``. A non-positive step yields a
        single window.
        """
        spans = word_spans(text)
        if not spans:
            return []

        size = self.config.max_chunk_size
        step = size - self.config.overlap_size
        pieces: List[_Piece] = []
        start = 0
        while start < len(spans):
            stop = min(start + size, len(spans))
            words = [text[begin:end] for begin, end in spans[start:stop]]
            pieces.append(
                _Piece(
                    heading_path,
                    " ".join(words),
                    base_offset + spans[start][0],
                    base_offset + spans[stop - 1][1],
                    stop - start,
                )
            )
            if step <= 0 or stop >= len(spans):
                break
            start += step
        return pieces

    def _heading_path(self, heading: Heading, by_id: Dict[str, Heading]) -> str:
        if not self.config.preserve_context:
            return heading.text

        parts: List[str] = []
        seen: set[str] = set()
        current: Heading | None = heading
        while current is not None and current.id not in seen:
            seen.add(current.id)
            parts.append(current.text)
            current = by_id.get(current.parent_id) if current.parent_id else None
        return HEADING_SEPARATOR.join(reversed(parts))

    @staticmethod
    def _build_chunk(document_id: str, ordinal: int, piece: _Piece) -> Chunk:
        return Chunk(
            id=sha1_text(f"{document_id}::{ordinal}::{piece.content}"),
            document_id=document_id,
            ordinal_index=ordinal,
            heading_path=piece.heading_path,
            content=piece.content,
            start_offset=piece.start_offset,
            end_offset=piece.end_offset,
            word_count=piece.word_count,
            token_count=estimate_tokens(piece.word_count),
        )


def _line_starts(lines: Sequence[str], length: int) -> List[int]:
    """Character offset at which each line begins, plus the end of content."""
    starts = [0]
    offset = 0
    for line in lines:
        offset += len(line) + 1
        starts.append(min(offset, length))
    return starts
