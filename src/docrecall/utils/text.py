"""Text helpers shared by the chunker and the search layers."""

from __future__ import annotations

import re
from typing import List, Tuple

_WORD_RE = re.compile(r"\S+")


def split_words(text: str) -> List[str]:
    """Split text on runs of whitespace, ignoring leading and trailing space."""
    return text.split()


def word_spans(text: str) -> List[Tuple[int, int]]:
    """Return ``(start, end)`` character offsets of every word in ``text``."""
    return [match.span() for match in _WORD_RE.finditer(text)]


def count_words(text: str) -> int:
    return len(split_words(text))


def estimate_tokens(word_count: int) -> int:
    """Approximate token count as ``ceil(words * 1.3)``.

    Integer arithmetic keeps the result exact (``10 * 1.3`` is not 13.0 in floats).
    """
    return (word_count * 13 + 9) // 10


def head_words(text: str, count: int) -> str:
    return " ".join(split_words(text)[:count])


def tail_words(text: str, count: int) -> str:
    if count <= 0:
        return ""
    return " ".join(split_words(text)[-count:])
