"""Tests for note loading and structural scanning."""

from __future__ import annotations

from pathlib import Path

import pytest

from vaultage.errors import MalformedMetadataError, NoteNotFoundError, UnsupportedExtensionError
from vaultage.vault.loader import load_document, render_document
from vaultage.vault.parser import scan_body, split_cross_reference


def test_load_meeting_note_structure(meeting_note: Path) -> None:
    doc = load_document(meeting_note)

    assert doc.path == meeting_note.resolve()
    assert list(doc.metadata) == ["date", "attendees", "project", "tags", "author", "status"]
    assert doc.metadata["attendees"] == ["Ana", "Ben"]

    assert [(h.level, h.text) for h in doc.headers] == [
        (1, "Weekly sync"),
        (2, "Agenda"),
        (2, "Action items"),
    ]
    assert len(doc.checklist) == 2
    assert doc.checklist[0].assignee == "Ana"
    assert doc.checklist[0].text == "send the release notes"
    assert doc.checklist[0].completed is False
    assert doc.checklist[1].completed is True
    assert doc.size == meeting_note.stat().st_size
    assert doc.modified is not None and doc.modified.tzinfo is not None
    assert doc.warnings == ()


def test_line_numbers_are_file_lines(meeting_note: Path) -> None:
    doc = load_document(meeting_note)
    lines = meeting_note.read_text(encoding="utf-8").split("\n")

    for header in doc.headers:
        assert lines[header.line - 1].lstrip("#").strip() == header.text

    for item in doc.checklist:
        assert "[" in lines[item.line - 1]


def test_links_are_classified() -> None:
    body = "\n".join(
        [
            "See [docs](https://example.com/docs) and <https://example.org>.",
            "Local [file](notes/other.md), mail [me](mailto:a@b.c), anchor [top](#top).",
            "Cross refs [[Project Plan|the plan]] and [[Roadmap#Q3]] and ![[diagram.png]].",
            "Image ![alt](https://example.com/x.png) is not a link.",
        ]
    )
    structure = scan_body(body)

    external = [(l.target, l.text) for l in structure.links if l.kind == "external"]
    internal = [(l.target, l.text) for l in structure.links if l.kind == "internal"]

    assert external == [("https://example.com/docs", "docs"), ("https://example.org", "https://example.org")]
    assert ("notes/other.md", "file") in internal
    assert ("Project Plan", "the plan") in internal
    assert ("Roadmap#Q3", "Roadmap#Q3") in internal
    assert ("diagram.png", "diagram.png") in internal
    assert all(not t.startswith("mailto") for t, _ in internal)
    assert not any("x.png" in l.target for l in structure.links)


def test_link_target_keeps_balanced_parentheses() -> None:
    structure = scan_body(
        "See [wiki](https://en.wikipedia.org/wiki/Foo_(bar)) and [plain](https://example.com/x)."
    )

    assert [l.target for l in structure.links] == [
        "https://en.wikipedia.org/wiki/Foo_(bar)",
        "https://example.com/x",
    ]


def test_nothing_inside_fences_is_indexed() -> None:
    body = "\n".join(
        [
            "# Real",
            "```python",
            "# not a heading",
            "- [ ] not a task",
            "[[not a link]]",
            "```",
            "~~~",
            "plain fence",
            "~~~",
            "## Also real",
        ]
    )
    structure = scan_body(body)

    assert [h.text for h in structure.headers] == ["Real", "Also real"]
    assert structure.checklist == []
    assert structure.links == []
    assert [(c.language, c.line) for c in structure.code_blocks] == [("python", 2), (None, 7)]
    assert "not a heading" in structure.code_blocks[0].content


def test_unterminated_fence_runs_to_end() -> None:
    structure = scan_body("intro\n```js\nconst a = 1;\n# still code")
    assert len(structure.code_blocks) == 1
    assert structure.headers == []


def test_split_cross_reference() -> None:
    assert split_cross_reference("Target|Shown") == ("Target", "Shown")
    assert split_cross_reference(" Target ") == ("Target", "Target")


def test_malformed_metadata_yields_warning(write_note) -> None:
    path = write_note("broken.md", "---\ntitle: [unclosed\n---\n# Body\n")
    doc = load_document(path)

    assert doc.metadata == {}
    assert doc.body.startswith("# Body")
    assert any("Malformed metadata" in w for w in doc.warnings)
    assert doc.metadata_error is not None


def test_render_refuses_unloadable_block(write_note) -> None:
    path = write_note("broken.md", "---\ntitle: Weekly: sync\nproject: apollo\n---\n# Body\n")
    doc = load_document(path)

    with pytest.raises(MalformedMetadataError):
        render_document(doc.with_metadata({"aged_date": "2026-03-01"}))


def test_non_mapping_metadata_yields_warning(write_note) -> None:
    path = write_note("list.md", "---\n- a\n- b\n---\ntext\n")
    doc = load_document(path)

    assert doc.metadata == {}
    assert doc.warnings


def test_note_without_metadata(write_note) -> None:
    path = write_note("plain.markdown", "# Title\n\nsome words here\n")
    doc = load_document(path)

    assert doc.metadata == {}
    assert doc.word_count == 5
    assert doc.title == "Title"
    assert render_document(doc) == doc.body


def test_size_threshold_warns_but_loads(write_note) -> None:
    path = write_note("big.md", "# Big\n" + "word " * 200)
    doc = load_document(path, size_warning_bytes=100)

    assert doc.headers
    assert any("processing may be slow" in w for w in doc.warnings)


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(NoteNotFoundError):
        load_document(tmp_path / "nope.md")


def test_directory_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(NoteNotFoundError):
        load_document(tmp_path)


def test_wrong_extension_raises(tmp_path: Path) -> None:
    path = tmp_path / "note.txt"
    path.write_text("hello", encoding="utf-8")

    with pytest.raises(UnsupportedExtensionError) as excinfo:
        load_document(path)
    assert excinfo.value.extension == ".txt"


def test_extension_check_is_case_insensitive(tmp_path: Path) -> None:
    path = tmp_path / "NOTE.MD"
    path.write_text("# Upper\n", encoding="utf-8")
    assert load_document(path).title == "Upper"


def test_render_keeps_key_order_and_body(meeting_note: Path) -> None:
    doc = load_document(meeting_note)
    updated = doc.with_metadata({"zeta": 1, **doc.metadata})
    text = render_document(updated)

    reparsed_path = meeting_note.with_name("copy.md")
    reparsed_path.write_text(text, encoding="utf-8")
    reparsed = load_document(reparsed_path)

    assert list(reparsed.metadata) == list(updated.metadata)
    assert reparsed.body.strip() == doc.body.strip()
    # Original value untouched
    assert "zeta" not in doc.metadata


def test_sections(meeting_note: Path) -> None:
    doc = load_document(meeting_note)
    sections = {s.id: s for s in doc.sections()}

    assert set(sections) == {"weekly-sync", "agenda", "action-items"}
    assert "discussed the launch" in sections["agenda"].text
    # H1 section spans its H2 children
    assert "book the room" in sections["weekly-sync"].text
    assert "book the room" not in sections["agenda"].text
