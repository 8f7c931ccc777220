"""Tests for the markdown section outline."""

from __future__ import annotations

import pytest

from reconciler.sections import (
    PREAMBLE_SECTION_ID,
    parse_sections,
    section_at,
    slugify,
)

DOC = "# Intro\ntext\n## Setup\nmore\n# Intro\n"


def _ids(markdown: str) -> list[str]:
    return [s.id for s in parse_sections(markdown)]


class TestSlugify:
    """Tests for heading slugs."""

    @pytest.mark.parametrize(
        ("heading", "expected"),
        [
            ("Hello, World!", "hello-world"),
            ("  Data   Model  ", "data-model"),
            ("Step 2: Deploy", "step-2-deploy"),
            ("!!!", ""),
        ],
    )
    def test_slugify(self, heading: str, expected: str) -> None:
        """Non-alphanumeric runs collapse to one hyphen."""
        assert slugify(heading) == expected


class TestParseSections:
    """Tests for splitting markdown into sections."""

    def test_sections_cover_document(self) -> None:
        """Each section runs to the next heading of any level."""
        sections = parse_sections(DOC)

        assert [(s.start, s.end) for s in sections] == [(0, 13), (13, 27), (27, 35)]
        assert sections[-1].end == len(DOC)
        assert [s.level for s in sections] == [1, 2, 1]
        assert sections[1].heading == "Setup"
        assert sections[1].length == 14

    def test_ids_follow_ancestor_chain(self) -> None:
        """Nested headings are prefixed with their parent's id."""
        sections = parse_sections(DOC)

        assert sections[1].id == "intro/setup"
        assert sections[1].parent_id == "intro"
        assert sections[0].parent_id is None

    def test_duplicate_ids_get_suffix(self) -> None:
        """Repeated slugs get ~2, ~3 suffixes."""
        assert _ids(DOC) == ["intro", "intro/setup", "intro~2"]
        assert _ids("# A\n# A\n# A\n") == ["a", "a~2", "a~3"]

    def test_preamble_section(self) -> None:
        """Text before the first heading forms its own section."""
        sections = parse_sections("hello\n# A\n")

        assert sections[0].id == PREAMBLE_SECTION_ID
        assert (sections[0].start, sections[0].end) == (0, 6)
        assert sections[0].level == 0
        assert sections[1].id == "a"

    def test_no_headings(self) -> None:
        """A document without headings is one preamble section."""
        assert _ids("just text\n") == [PREAMBLE_SECTION_ID]
        assert parse_sections("") == []

    def test_empty_heading_uses_level_and_ordinal(self) -> None:
        """Headings without slug characters fall back to h{level}_{n}."""
        assert _ids("# A\n## !!!\n") == ["a", "a/h2_2"]

    def test_closing_hashes_are_stripped(self) -> None:
        """Optional closing hash sequences are not part of the heading."""
        (section,) = parse_sections("## Title ##\n")
        assert section.heading == "Title"

    def test_headings_in_fences_are_ignored(self) -> None:
        """Lines inside fenced code blocks never start sections."""
        markdown = "# A\n```\n# not a heading\n```\n# B\n"
        assert _ids(markdown) == ["a", "b"]

    def test_fence_closes_only_with_matching_marker(self) -> None:
        """A shorter or different fence does not close the block."""
        markdown = "# A\n````\n```\n# hidden\n~~~~\n````\n# B\n"
        assert _ids(markdown) == ["a", "b"]

    @pytest.mark.parametrize(
        "line", ["#NoSpace", "####### seven", "    # indented code", "Title\n====="]
    )
    def test_non_headings(self, line: str) -> None:
        """Malformed ATX lines and setext headings are plain text."""
        assert _ids(line + "\n") == [PREAMBLE_SECTION_ID]

    def test_sibling_after_deeper_nesting(self) -> None:
        """A shallower heading closes every deeper ancestor."""
        markdown = "# A\n## B\n### C\n## D\n"
        assert _ids(markdown) == ["a", "a/b", "a/b/c", "a/d"]


class TestSectionAt:
    """Tests for locating the section containing an offset."""

    def test_offsets_map_to_sections(self) -> None:
        """Offsets resolve to the section whose span contains them."""
        sections = parse_sections(DOC)

        assert section_at(sections, 0).id == "intro"
        assert section_at(sections, 12).id == "intro"
        assert section_at(sections, 13).id == "intro/setup"

    def test_end_of_text_belongs_to_last_section(self) -> None:
        """The offset equal to the text length is in the last section."""
        sections = parse_sections(DOC)
        assert section_at(sections, len(DOC)).id == "intro~2"

    def test_no_sections(self) -> None:
        """An empty outline has no section at any offset."""
        assert section_at([], 0) is None
