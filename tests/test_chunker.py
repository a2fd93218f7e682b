"""Tests for the heading-aware chunker."""

from __future__ import annotations

import pytest

from docrecall.chunking.chunker import ChunkConfig, Chunker
from docrecall.errors import ConfigurationError
from docrecall.models import Heading


def _words(count: int, prefix: str = "w") -> str:
    return " ".join(f"{prefix}{i}" for i in range(count))


NESTED = "\n".join(
    [
        "# Book",
        "Intro text.",
        "## Part One",
        "Part text.",
        "### Chapter 1",
        "Chapter words here.",
    ]
)

NESTED_HEADINGS = [
    Heading(id="h1", level=1, text="Book", line_number=1),
    Heading(id="h3", level=2, text="Part One", line_number=3, parent_id="h1"),
    Heading(id="h5", level=3, text="Chapter 1", line_number=5, parent_id="h3"),
]


class TestChunkConfig:
    """Test ChunkConfig validation."""

    def test_defaults(self) -> None:
        config = ChunkConfig()
        assert config.max_chunk_size == 500
        assert config.overlap_size == 50
        assert config.split_on_headings is True
        assert config.preserve_context is True

    @pytest.mark.parametrize("size", [0, -5])
    def test_rejects_non_positive_size(self, size: int) -> None:
        with pytest.raises(ConfigurationError):
            ChunkConfig(max_chunk_size=size)

    def test_rejects_negative_overlap(self) -> None:
        with pytest.raises(ConfigurationError):
            ChunkConfig(overlap_size=-1)


class TestEmptyContent:
    """Empty input yields no chunks."""

    @pytest.mark.parametrize("content", ["", "   ", "\n\t \n"])
    def test_blank_content(self, content: str) -> None:
        assert Chunker().chunk("doc", content) == []

    def test_blank_content_with_headings(self) -> None:
        heading = Heading(id="h1", level=1, text="Title", line_number=1)
        assert Chunker().chunk("doc", "  \n ", [heading]) == []


class TestSizeChunking:
    """Sliding-window chunking without headings."""

    def test_short_text_single_chunk(self) -> None:
        chunks = Chunker().chunk("doc", "one two three four five six seven eight nine ten")

        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.ordinal_index == 0
        assert chunk.heading_path is None
        assert chunk.word_count == 10
        assert chunk.token_count == 13
        assert chunk.document_id == "doc"

    def test_windows_overlap_by_exactly_overlap_size(self) -> None:
        chunker = Chunker(ChunkConfig(max_chunk_size=500, overlap_size=50))
        chunks = chunker.chunk("doc", _words(1200))

        assert len(chunks) == 3
        for current, following in zip(chunks, chunks[1:]):
            assert current.content.split()[-50:] == following.content.split()[:50]

    def test_window_starts_follow_step(self) -> None:
        chunker = Chunker(ChunkConfig(max_chunk_size=100, overlap_size=20))
        chunks = chunker.chunk("doc", _words(250))

        firsts = [chunk.content.split()[0] for chunk in chunks]
        assert firsts == ["w0", "w80", "w160"]
        assert [chunk.word_count for chunk in chunks] == [100, 100, 90]

    def test_stops_once_window_reaches_end(self) -> None:
        chunker = Chunker(ChunkConfig(max_chunk_size=500, overlap_size=50))
        chunks = chunker.chunk("doc", _words(950))

        assert len(chunks) == 2
        assert chunks[-1].content.split()[-1] == "w949"

    def test_overlap_not_smaller_than_size_yields_one_window(self) -> None:
        chunker = Chunker(ChunkConfig(max_chunk_size=10, overlap_size=10))
        chunks = chunker.chunk("doc", _words(30))

        assert len(chunks) == 1
        assert chunks[0].word_count == 10

    def test_no_overlap(self) -> None:
        chunker = Chunker(ChunkConfig(max_chunk_size=10, overlap_size=0))
        chunks = chunker.chunk("doc", _words(30))

        assert [chunk.content.split()[0] for chunk in chunks] == ["w0", "w10", "w20"]

    def test_offsets_point_into_content(self) -> None:
        content = "  alpha beta\ngamma   delta epsilon"
        chunker = Chunker(ChunkConfig(max_chunk_size=3, overlap_size=1))
        chunks = chunker.chunk("doc", content)

        assert content[chunks[0].start_offset : chunks[0].end_offset] == "alpha beta\ngamma"
        assert content[chunks[1].start_offset : chunks[1].end_offset] == "gamma   delta epsilon"

    def test_token_count_rounds_up(self) -> None:
        chunks = Chunker().chunk("doc", _words(7))
        # 7 * 1.3 = 9.1
        assert chunks[0].token_count == 10


class TestHeadingChunking:
    """Chunking at heading boundaries."""

    def test_one_chunk_per_section(self) -> None:
        chunks = Chunker().chunk("doc", NESTED, NESTED_HEADINGS)

        assert [chunk.content for chunk in chunks] == [
            "# Book\nIntro text.",
            "## Part One\nPart text.",
            "### Chapter 1\nChapter words here.",
        ]

    def test_heading_path_includes_ancestors(self) -> None:
        chunks = Chunker().chunk("doc", NESTED, NESTED_HEADINGS)

        assert chunks[0].heading_path == "Book"
        assert chunks[1].heading_path == "Book > Part One"
        assert chunks[2].heading_path == "Book > Part One > Chapter 1"

    def test_heading_path_without_context(self) -> None:
        chunker = Chunker(ChunkConfig(preserve_context=False))
        chunks = chunker.chunk("doc", NESTED, NESTED_HEADINGS)

        assert chunks[2].heading_path == "Chapter 1"

    def test_preamble_becomes_first_chunk(self) -> None:
        content = "Preface line.\n# Title\nBody"
        headings = [Heading(id="h2", level=1, text="Title", line_number=2)]
        chunks = Chunker().chunk("doc", content, headings)

        assert len(chunks) == 2
        assert chunks[0].heading_path is None
        assert chunks[0].content == "Preface line."
        assert chunks[0].ordinal_index == 0
        assert chunks[0].start_offset == 0
        assert chunks[0].end_offset == len("Preface line.\n")
        assert chunks[1].heading_path == "Title"
        assert chunks[1].ordinal_index == 1
        assert chunks[1].start_offset == len("Preface line.\n")
        assert chunks[1].end_offset == len(content)

    def test_blank_preamble_is_skipped(self) -> None:
        content = "\n\n# Title\nBody"
        headings = [Heading(id="h3", level=1, text="Title", line_number=3)]
        chunks = Chunker().chunk("doc", content, headings)

        assert len(chunks) == 1
        assert chunks[0].ordinal_index == 0

    def test_large_section_is_windowed_under_its_heading(self) -> None:
        content = "# Big\n" + _words(20) + "\n# Small\nshort text"
        headings = [
            Heading(id="a", level=1, text="Big", line_number=1),
            Heading(id="b", level=1, text="Small", line_number=3),
        ]
        chunker = Chunker(ChunkConfig(max_chunk_size=10, overlap_size=2))
        chunks = chunker.chunk("doc", content, headings)

        big = [chunk for chunk in chunks if chunk.heading_path == "Big"]
        assert len(big) == 3
        for current, following in zip(big, big[1:]):
            assert current.content.split()[-2:] == following.content.split()[:2]
        assert chunks[-1].heading_path == "Small"

    def test_ordinals_and_offsets_are_ordered(self) -> None:
        content = "Lead in words.\n# A\n" + _words(40) + "\n## B\n" + _words(5, "b") + "\n# C\nend"
        headings = [
            Heading(id="a", level=1, text="A", line_number=2),
            Heading(id="b", level=2, text="B", line_number=4, parent_id="a"),
            Heading(id="c", level=1, text="C", line_number=6),
        ]
        chunker = Chunker(ChunkConfig(max_chunk_size=15, overlap_size=5))
        chunks = chunker.chunk("doc", content, headings)

        assert [chunk.ordinal_index for chunk in chunks] == list(range(len(chunks)))
        for chunk in chunks:
            assert chunk.start_offset <= chunk.end_offset
        starts = [chunk.start_offset for chunk in chunks]
        ends = [chunk.end_offset for chunk in chunks]
        assert starts == sorted(starts)
        assert ends == sorted(ends)

    def test_split_disabled_ignores_headings(self) -> None:
        chunker = Chunker(ChunkConfig(split_on_headings=False))
        chunks = chunker.chunk("doc", NESTED, NESTED_HEADINGS)

        assert len(chunks) == 1
        assert chunks[0].heading_path is None

    def test_heading_past_end_of_content_is_dropped(self) -> None:
        headings = [
            Heading(id="a", level=1, text="A", line_number=1),
            Heading(id="z", level=1, text="Stale", line_number=40),
        ]
        chunks = Chunker().chunk("doc", "# A\nbody text", headings)

        assert [chunk.heading_path for chunk in chunks] == ["A"]
        assert all(chunk.word_count > 0 for chunk in chunks)

    def test_parent_cycle_does_not_loop(self) -> None:
        headings = [
            Heading(id="x", level=1, text="X", line_number=1, parent_id="y"),
            Heading(id="y", level=2, text="Y", line_number=2, parent_id="x"),
        ]
        chunks = Chunker().chunk("doc", "# X\n## Y\n", headings)

        assert chunks[1].heading_path == "X > Y"


class TestChunkIdentity:
    """Chunk ids are stable across runs."""

    def test_ids_are_deterministic(self) -> None:
        first = Chunker().chunk("doc", NESTED, NESTED_HEADINGS)
        second = Chunker().chunk("doc", NESTED, NESTED_HEADINGS)
        assert [c.id for c in first] == [c.id for c in second]

    def test_ids_depend_on_document(self) -> None:
        first = Chunker().chunk("doc-a", "same text")
        second = Chunker().chunk("doc-b", "same text")
        assert first[0].id != second[0].id

    def test_chunks_are_immutable(self) -> None:
        chunk = Chunker().chunk("doc", "some text")[0]
        with pytest.raises(AttributeError):
            chunk.content = "changed"  # type: ignore[misc]
