"""Data models for parsed notes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

LinkKind = Literal["external", "internal"]


@dataclass(frozen=True)
class Header:
    """An ATX heading (`#` .. `######`)."""

    level: int
    text: str
    line: int


@dataclass(frozen=True)
class Link:
    """A link found in the body.

    External links are http(s) URLs; internal links are cross-references
    (`[[target]]`) or relative markdown links.
    """

    kind: LinkKind
    target: str
    text: str
    line: int


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block."""

    language: str | None
    content: str
    line: int


@dataclass(frozen=True)
class ChecklistItem:
    """A `- [ ]` / `- [x]` task line."""

    text: str
    completed: bool
    line: int
    assignee: str | None = None


@dataclass(frozen=True)
class Section:
    """Body text between a heading and the next heading of the same or higher level."""

    id: str
    title: str
    level: int
    text: str
    line: int


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated identifier for a heading."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return slug.strip("-")


@dataclass(frozen=True)
class Document:
    """A parsed note.

    Immutable once parsed. Edits produce a new value through `with_metadata`;
    the metadata mapping itself must never be mutated in place.
    """

    path: Path
    metadata: dict[str, Any]
    body: str
    metadata_raw: str = ""
    headers: tuple[Header, ...] = ()
    links: tuple[Link, ...] = ()
    code_blocks: tuple[CodeBlock, ...] = ()
    checklist: tuple[ChecklistItem, ...] = ()
    word_count: int = 0
    line_count: int = 0
    size: int = 0
    modified: datetime | None = None
    body_start_line: int = 1
    warnings: tuple[str, ...] = field(default=(), compare=False)
    metadata_error: str | None = field(default=None, compare=False)

    @property
    def name(self) -> str:
        """Filename without extension."""
        return self.path.stem

    @property
    def title(self) -> str:
        """First H1 header text, or the filename."""
        for header in self.headers:
            if header.level == 1:
                return header.text
        return self.name

    @property
    def external_links(self) -> list[Link]:
        return [link for link in self.links if link.kind == "external"]

    @property
    def internal_links(self) -> list[Link]:
        return [link for link in self.links if link.kind == "internal"]

    def with_metadata(self, metadata: dict[str, Any]) -> "Document":
        """Return a copy carrying `metadata` instead of the current block."""
        return replace(self, metadata=dict(metadata))

    def sections(self) -> list[Section]:
        """Split the body into heading-delimited sections.

        Text before the first heading is returned as a section with id
        ``preamble`` when it is not blank.
        """
        lines = self.body.split("\n")
        # Headers carry file line numbers; convert to body indices.
        starts = [(h.line - self.body_start_line, h) for h in self.headers]

        result: list[Section] = []
        first_index = starts[0][0] if starts else len(lines)
        preamble = "\n".join(lines[:first_index]).strip()
        if preamble:
            result.append(
                Section(id="preamble", title="", level=0, text=preamble, line=self.body_start_line)
            )

        for pos, (index, header) in enumerate(starts):
            end = len(lines)
            for next_index, next_header in starts[pos + 1:]:
                if next_header.level <= header.level:
                    end = next_index
                    break
            text = "\n".join(lines[index + 1:end]).strip()
            result.append(
                Section(
                    id=slugify(header.text),
                    title=header.text,
                    level=header.level,
                    text=text,
                    line=header.line,
                )
            )
        return result
