"""Markdown section outline with character offsets.

Sections are the unit the collision detector tracks. A section starts at
an ATX heading line and runs to the next heading of any level. Headings
inside fenced code blocks and setext headings do not start sections.

Section ids are stable slugs built from the ancestor chain, e.g.
``architecture/storage``; empty slugs fall back to ``h{level}_{ordinal}``
and duplicates get ``~2``, ``~3``... suffixes.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass

PREAMBLE_SECTION_ID = "_preamble"

_ATX_HEADING = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
_CLOSING_HASHES = re.compile(r"(?:^|[ \t]+)#+$")
_FENCE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_NON_SLUG = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class Section:
    """A heading-delimited region of a markdown document.

    Attributes:
        id: Stable slug id built from the ancestor chain.
        parent_id: Id of the enclosing section, or None at top level.
        heading: Heading text without markers.
        level: Heading level 1-6 (0 for the preamble).
        start: Offset of the heading line's first character.
        end: Offset where the next section starts (exclusive).
    """

    id: str
    parent_id: str | None
    heading: str
    level: int
    start: int
    end: int

    @property
    def length(self) -> int:
        """Section size in characters."""
        return self.end - self.start


def slugify(heading: str) -> str:
    """Lowercase, collapse non-alphanumerics to single hyphens, trim hyphens."""
    return _NON_SLUG.sub("-", heading.strip().lower()).strip("-")


def _iter_headings(markdown: str) -> list[tuple[int, int, str]]:
    """Return ``(offset, level, heading)`` for every ATX heading."""
    headings: list[tuple[int, int, str]] = []
    fence: str | None = None
    offset = 0

    for line in markdown.splitlines(keepends=True):
        stripped = line.rstrip("\r\n")
        fence_match = _FENCE.match(stripped)
        marker = fence_match.group(1) if fence_match else None
        if fence is not None:
            if marker and marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
        elif marker:
            fence = marker
        else:
            match = _ATX_HEADING.match(stripped)
            if match:
                text = _CLOSING_HASHES.sub("", match.group(2) or "").strip()
                headings.append((offset, len(match.group(1)), text))
        offset += len(line)

    return headings


def parse_sections(markdown: str) -> list[Section]:
    """Split markdown into heading-delimited sections.

    Text before the first heading becomes a ``_preamble`` section when it
    is non-empty.

    Returns:
        Sections in document order; together they cover the whole text.
    """
    headings = _iter_headings(markdown)
    sections: list[Section] = []

    first_start = headings[0][0] if headings else len(markdown)
    if first_start > 0:
        sections.append(
            Section(
                id=PREAMBLE_SECTION_ID,
                parent_id=None,
                heading="",
                level=0,
                start=0,
                end=first_start,
            )
        )

    # (level, id) of open ancestors
    stack: list[tuple[int, str]] = []
    seen: dict[str, int] = {}

    for ordinal, (offset, level, heading) in enumerate(headings, start=1):
        while stack and stack[-1][0] >= level:
            stack.pop()

        slug = slugify(heading) or f"h{level}_{ordinal}"
        base_id = f"{stack[-1][1]}/{slug}" if stack else slug
        seen[base_id] = seen.get(base_id, 0) + 1
        section_id = base_id if seen[base_id] == 1 else f"{base_id}~{seen[base_id]}"

        end = headings[ordinal][0] if ordinal < len(headings) else len(markdown)
        sections.append(
            Section(
                id=section_id,
                parent_id=stack[-1][1] if stack else None,
                heading=heading,
                level=level,
                start=offset,
                end=end,
            )
        )
        stack.append((level, section_id))

    return sections


def section_at(sections: list[Section], offset: int) -> Section | None:
    """Return the section containing ``offset``.

    An offset equal to the text length belongs to the last section.
    """
    if not sections:
        return None
    starts = [s.start for s in sections]
    index = bisect_right(starts, offset) - 1
    return sections[max(index, 0)]
