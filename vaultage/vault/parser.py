"""Markdown scanning utilities for headings, links, code blocks and checklists.

Only the structural facts needed for classification and change planning are
extracted; this is not a markdown renderer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..models import ChecklistItem, CodeBlock, Header, Link

# Match [[target]], [[target|display]], [[target#section]], ![[embed]]
WIKILINK_PATTERN = re.compile(r"!?\[\[([^\]]+)\]\]")

# [text](url "title") but not ![alt](src); url may hold one level of (...)
MARKDOWN_LINK_PATTERN = re.compile(r"(?<!!)\[([^\]\[]*)\]\(\s*<?((?:[^()\s>]|\([^()\s]*\))+)>?(?:\s+[\"'][^\"']*[\"'])?\s*\)")

AUTOLINK_PATTERN = re.compile(r"<(https?://[^>\s]+)>", re.IGNORECASE)

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")

FENCE_PATTERN = re.compile(r"^\s{0,3}(`{3,}|~{3,})\s*([^`\s]*)")

CHECKLIST_PATTERN = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+\[([ xX])\]\s+(.*?)\s*$")

ASSIGNEE_PATTERN = re.compile(r"^([A-Za-z]+):\s*(.+)")

SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


@dataclass
class BodyStructure:
    """Structural index collected from one pass over a note body."""

    headers: list[Header] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    code_blocks: list[CodeBlock] = field(default_factory=list)
    checklist: list[ChecklistItem] = field(default_factory=list)
    word_count: int = 0
    line_count: int = 0


def classify_link_target(url: str) -> str | None:
    """Return 'external' or 'internal' for a standard link target.

    Non-http schemes (mailto:, ftp:, ...) and pure anchors are ignored (None).
    """
    if url.startswith("#"):
        return None
    lowered = url.lower()
    if lowered.startswith(("http://", "https://")):
        return "external"
    if SCHEME_PATTERN.match(url) or url.startswith("//"):
        return None
    return "internal"


def split_cross_reference(raw: str) -> tuple[str, str]:
    """Split `target|display` into (target, display); display defaults to target."""
    if "|" in raw:
        target, display = raw.split("|", 1)
        return target.strip(), display.strip()
    return raw.strip(), raw.strip()


def extract_links(line: str, line_no: int) -> list[Link]:
    """Extract standard, autolink and cross-reference links from one line."""
    links: list[Link] = []

    for match in MARKDOWN_LINK_PATTERN.finditer(line):
        text, url = match.group(1), match.group(2)
        kind = classify_link_target(url)
        if kind is None:
            continue
        links.append(Link(kind=kind, target=url, text=text.strip(), line=line_no))  # type: ignore[arg-type]

    for match in AUTOLINK_PATTERN.finditer(line):
        url = match.group(1)
        links.append(Link(kind="external", target=url, text=url, line=line_no))

    for match in WIKILINK_PATTERN.finditer(line):
        target, display = split_cross_reference(match.group(1))
        if not target:
            continue
        links.append(Link(kind="internal", target=target, text=display, line=line_no))

    return links


def parse_checklist_item(line: str, line_no: int) -> ChecklistItem | None:
    """Parse a task line; a leading `Name:` becomes the assignee."""
    match = CHECKLIST_PATTERN.match(line)
    if not match:
        return None

    completed = match.group(1).lower() == "x"
    text = match.group(2)
    assignee = None

    assignee_match = ASSIGNEE_PATTERN.match(text)
    if assignee_match:
        assignee = assignee_match.group(1)
        text = assignee_match.group(2)

    return ChecklistItem(text=text, completed=completed, line=line_no, assignee=assignee)


def count_words(text: str) -> int:
    return len(text.split())


def scan_body(body: str, start_line: int = 1) -> BodyStructure:
    """Scan a note body once and build its structural index.

    Args:
        body: Markdown body (metadata block already removed)
        start_line: File line number of the first body line

    Returns:
        BodyStructure with file-relative line numbers
    """
    structure = BodyStructure(
        word_count=count_words(body),
        line_count=len(body.split("\n")),
    )

    fence: str | None = None
    fence_language: str | None = None
    fence_line = 0
    fence_lines: list[str] = []

    for index, line in enumerate(body.split("\n")):
        line_no = start_line + index

        if fence is not None:
            stripped = line.strip()
            if stripped.startswith(fence[0] * len(fence)) and stripped.strip(fence[0]) == "":
                structure.code_blocks.append(
                    CodeBlock(language=fence_language, content="\n".join(fence_lines), line=fence_line)
                )
                fence = None
                fence_lines = []
            else:
                fence_lines.append(line)
            continue

        fence_match = FENCE_PATTERN.match(line)
        if fence_match:
            fence = fence_match.group(1)
            fence_language = fence_match.group(2) or None
            fence_line = line_no
            continue

        heading = HEADING_PATTERN.match(line)
        if heading:
            structure.headers.append(
                Header(level=len(heading.group(1)), text=heading.group(2).strip(), line=line_no)
            )

        item = parse_checklist_item(line, line_no)
        if item is not None:
            structure.checklist.append(item)

        structure.links.extend(extract_links(line, line_no))

    # Unterminated fence runs to the end of the body
    if fence is not None:
        structure.code_blocks.append(
            CodeBlock(language=fence_language, content="\n".join(fence_lines), line=fence_line)
        )

    return structure
