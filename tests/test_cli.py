"""Tests for the command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from vaultage import __version__
from vaultage.cli import cli
from vaultage.vault.loader import load_document


@pytest.fixture
def invoke(home: Path):
    runner = CliRunner(env={"COLUMNS": "200"})

    def _invoke(*args: str, input: str | None = None):
        return runner.invoke(cli, ["--home", str(home), *args], input=input)

    return _invoke


def test_version(invoke) -> None:
    result = invoke("--version")
    assert result.exit_code == 0
    assert __version__ in result.output


def test_detect_json(invoke, meeting_note: Path) -> None:
    result = invoke("detect", str(meeting_note), "--json")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["primary_type"] == "meeting-notes"
    assert len(payload["scores"]) == 4
    assert payload["scores"][0]["type"] == "meeting-notes"


def test_detect_table(invoke, meeting_note: Path) -> None:
    result = invoke("detect", str(meeting_note))

    assert result.exit_code == 0, result.output
    assert "meeting-notes" in result.output
    assert "Primary type" in result.output


def test_detect_missing_file(invoke, tmp_path: Path) -> None:
    result = invoke("detect", str(tmp_path / "missing.md"))

    assert result.exit_code == 1
    assert "not found" in result.output


def test_detect_wrong_extension(invoke, tmp_path: Path) -> None:
    path = tmp_path / "note.txt"
    path.write_text("hello", encoding="utf-8")

    result = invoke("detect", str(path))

    assert result.exit_code == 1
    assert ".md or .markdown" in result.output


def test_detect_table_escapes_heading_markup(invoke, write_note) -> None:
    path = write_note("meetings/odd.md", "# Agenda [/x]\n\nWe met.\n")

    result = invoke("detect", str(path))

    assert result.exit_code == 0, result.output
    assert "[/x]" in result.output


def test_age_refuses_unloadable_metadata(invoke, write_note) -> None:
    path = write_note("meetings/broken.md", "---\ntitle: Weekly: sync\nproject: apollo\n---\n# Agenda\n")
    original = path.read_bytes()

    result = invoke("age", str(path), "--yes")

    assert result.exit_code == 1
    assert "Refusing to rewrite" in result.output
    assert path.read_bytes() == original


def test_age_yes_then_undo(invoke, meeting_note: Path) -> None:
    original = meeting_note.read_bytes()

    aged = invoke("age", str(meeting_note), "--yes")
    assert aged.exit_code == 0, aged.output
    assert "Aged weekly-sync.md" in aged.output
    metadata = load_document(meeting_note).metadata
    assert "aged_date" in metadata
    assert "author" not in metadata

    again = invoke("age", str(meeting_note), "--yes")
    assert again.exit_code == 0
    assert "already aged" in again.output

    listed = invoke("backups", "list", str(meeting_note))
    assert listed.exit_code == 0
    assert "Backups of weekly-sync.md" in listed.output

    undone = invoke("undo", str(meeting_note), "--yes")
    assert undone.exit_code == 0, undone.output
    assert "File restored." in undone.output
    assert meeting_note.read_bytes() == original


def test_age_prompt_reject(invoke, meeting_note: Path) -> None:
    original = meeting_note.read_bytes()

    result = invoke("age", str(meeting_note), input="n\n")

    assert result.exit_code == 0, result.output
    assert "Detected type" in result.output
    assert "Cancelled" in result.output
    assert meeting_note.read_bytes() == original


def test_age_prompt_preview_then_approve(invoke, meeting_note: Path) -> None:
    result = invoke("age", str(meeting_note), input="p\ny\n")

    assert result.exit_code == 0, result.output
    assert "Preview: weekly-sync.md" in result.output
    assert "Aged weekly-sync.md" in result.output


def test_age_dry_run(invoke, meeting_note: Path) -> None:
    original = meeting_note.read_bytes()

    result = invoke("age", str(meeting_note), "--dry-run")

    assert result.exit_code == 0, result.output
    assert "Dry run" in result.output
    assert "+ aged_date" in result.output
    assert meeting_note.read_bytes() == original


def test_undo_without_backups(invoke, meeting_note: Path) -> None:
    result = invoke("undo", str(meeting_note), "--yes")

    assert result.exit_code == 1
    assert "No backups found" in result.output


def test_links_command_without_links(invoke, meeting_note: Path) -> None:
    result = invoke("links", str(meeting_note))

    assert result.exit_code == 0
    assert "No links" in result.output


def test_links_command_reports_broken_internal(invoke, write_note) -> None:
    path = write_note("daily/today.md", "See [[Nowhere]]\n")

    result = invoke("links", str(path))

    assert result.exit_code == 1
    assert "1 broken" in result.output


def test_backups_prune_validates_retention(invoke, vault: Path) -> None:
    result = invoke("backups", "prune", str(vault), "--retention", "soon")

    assert result.exit_code == 2
    assert "--retention" in result.output


def test_backups_prune_nothing_to_do(invoke, vault: Path) -> None:
    result = invoke("backups", "prune", str(vault), "--retention", "7d")

    assert result.exit_code == 0, result.output
    assert "Removed 0 backup(s)" in result.output


def test_config_init_and_show(invoke, vault: Path) -> None:
    created = invoke("config", "init", str(vault))
    assert created.exit_code == 0, created.output
    assert (vault / ".age" / "config.json").is_file()
    assert (vault / ".age" / "backups").is_dir()

    shown = invoke("config", "show", str(vault), "--json")
    assert shown.exit_code == 0, shown.output
    payload = json.loads(shown.stdout)
    assert payload["tiers"]["local"] == str((vault / ".age" / "config.json").resolve())
    assert "meeting-notes" in payload["types"]

    again = invoke("config", "init", str(vault))
    assert again.exit_code == 0
    assert "already initialised" in again.output
