"""Markdown and plain-text loading.

Only what the chunker needs is extracted: the raw text, a title, and the ATX
heading tree (``#`` to ``######``) with parent links. Headings inside fenced
code blocks are ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from docrecall.models import Heading

LOGGER = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")

MARKDOWN_SUFFIXES = (".md", ".markdown")


@dataclass(slots=True)
class LoadedDocument:
    path: Path
    title: str
    content: str
    headings: List[Heading] = field(default_factory=list)


def parse_headings(content: str) -> List[Heading]:
    """Return headings in document order, each linked to its nearest shallower ancestor."""
    headings: List[Heading] = []
    stack: List[Heading] = []
    fence: str | None = None

    for line_number, line in enumerate(content.split("\n"), start=1):
        fence_match = _FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker
            elif marker == fence:
                fence = None
            continue
        if fence is not None:
            continue

        match = _HEADING_RE.match(line)
        if not match:
            continue

        level = len(match.group(1))
        while stack and stack[-1].level >= level:
            stack.pop()
        heading = Heading(
            id=f"h{line_number}",
            level=level,
            text=match.group(2).strip(),
            line_number=line_number,
            parent_id=stack[-1].id if stack else None,
        )
        headings.append(heading)
        stack.append(heading)
    return headings


def load_document(path: Path) -> LoadedDocument:
    """Read a markdown or text file; plain text has no headings."""
    content = path.read_text(encoding="utf-8", errors="replace")
    headings = parse_headings(content) if path.suffix.lower() in MARKDOWN_SUFFIXES else []

    title = next((heading.text for heading in headings if heading.level == 1), path.stem)
    LOGGER.debug("Loaded %s (%d headings)", path, len(headings))
    return LoadedDocument(path=path, title=title, content=content, headings=headings)
