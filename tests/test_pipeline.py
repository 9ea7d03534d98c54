"""Tests for the single-note aging pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from vaultage import pipeline as pipeline_module
from vaultage.errors import MalformedMetadataError, NoteNotFoundError, ProcessingFailed
from vaultage.pipeline import (
    CONFIGURE_MESSAGE,
    MAX_APPROVAL_ROUNDS,
    ApprovalDecision,
    Pipeline,
    PipelineContext,
    PipelineState,
    check_metadata_shape,
)
from vaultage.vault.links import LinkVerifier
from vaultage.vault.loader import load_document

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)

FULL_RUN = [
    PipelineState.PARSED,
    PipelineState.CLASSIFIED,
    PipelineState.PLANNED,
    PipelineState.APPROVED,
    PipelineState.BACKED_UP,
    PipelineState.APPLIED,
    PipelineState.VALIDATED,
]


class ScriptedApprover:
    def __init__(self, *decisions):
        self.decisions = list(decisions)
        self.calls: list[str] = []

    def __call__(self, document, plan, category):
        self.calls.append(category)
        if len(self.decisions) > 1:
            return self.decisions.pop(0)
        return self.decisions[0]


@pytest.fixture
def context(home: Path, fake_opener) -> PipelineContext:
    return PipelineContext(
        home=home,
        verifier=LinkVerifier(opener=fake_opener({}), home=home),
        now=NOW,
    )


def test_full_run_rewrites_metadata(context: PipelineContext, meeting_note: Path) -> None:
    original = meeting_note.read_bytes()
    approver = ScriptedApprover(ApprovalDecision.APPROVE)

    result = Pipeline(context).run(meeting_note, approver)

    assert result.success
    assert result.state is PipelineState.VALIDATED
    assert result.history == FULL_RUN
    assert approver.calls == ["meeting-notes"]

    aged = load_document(meeting_note)
    assert list(aged.metadata) == ["date", "attendees", "project", "tags", "aged_date", "summary_length"]
    assert aged.metadata["aged_date"] == "2026-03-01"
    assert aged.body.strip() == load_document(result.backup.backup_path).body.strip()

    assert result.backup is not None
    assert result.backup.backup_path.read_bytes() == original
    assert context.backups.list_backups(meeting_note) == [result.backup]
    assert result.errors == []


def test_reject_leaves_file_alone(context: PipelineContext, meeting_note: Path) -> None:
    original = meeting_note.read_bytes()

    result = Pipeline(context).run(meeting_note, ScriptedApprover(ApprovalDecision.REJECT))

    assert result.state is PipelineState.REJECTED
    assert not result.success
    assert meeting_note.read_bytes() == original
    assert context.backups.list_backups(meeting_note) == []


def test_preview_and_configure_loop(context: PipelineContext, meeting_note: Path) -> None:
    previews = []
    approver = ScriptedApprover(
        ApprovalDecision.PREVIEW,
        "configure",
        ApprovalDecision.APPROVE,
    )

    result = Pipeline(context, previewer=lambda doc, plan: previews.append(plan.category)).run(
        meeting_note, approver
    )

    assert previews == ["meeting-notes"]
    assert result.messages == [CONFIGURE_MESSAGE]
    assert len(approver.calls) == 3
    assert result.state is PipelineState.VALIDATED


def test_endless_preview_is_rejected(context: PipelineContext, meeting_note: Path) -> None:
    approver = ScriptedApprover(ApprovalDecision.PREVIEW)

    result = Pipeline(context).run(meeting_note, approver)

    assert result.state is PipelineState.REJECTED
    assert len(approver.calls) == MAX_APPROVAL_ROUNDS
    assert any("treating as rejected" in w for w in result.warnings)


def test_non_interactive_skips_approver(context: PipelineContext, meeting_note: Path) -> None:
    def approver(document, plan, category):
        raise AssertionError("approver should not be called")

    result = Pipeline(context).run(meeting_note, approver, interactive=False)

    assert result.state is PipelineState.VALIDATED


def test_second_run_has_no_changes(context: PipelineContext, meeting_note: Path) -> None:
    pipe = Pipeline(context)
    pipe.run(meeting_note)
    aged = meeting_note.read_bytes()

    result = pipe.run(meeting_note)

    assert result.state is PipelineState.NO_CHANGES
    assert result.success
    assert result.history[-1] is PipelineState.NO_CHANGES
    assert meeting_note.read_bytes() == aged
    assert len(context.backups.list_backups(meeting_note)) == 1


def test_dry_run_stops_after_planning(context: PipelineContext, meeting_note: Path) -> None:
    original = meeting_note.read_bytes()

    result = Pipeline(context).run(meeting_note, dry_run=True)

    assert result.state is PipelineState.PLANNED
    assert result.plan is not None and not result.plan.is_empty
    assert meeting_note.read_bytes() == original
    assert context.backups.list_backups(meeting_note) == []


def test_validation_failure_restores_original(
    context: PipelineContext, meeting_note: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    original = meeting_note.read_bytes()
    monkeypatch.setattr(pipeline_module, "render_document", lambda doc: "---\nunexpected: 1\n---\n" + doc.body)

    with pytest.raises(ProcessingFailed) as excinfo:
        Pipeline(context).run(meeting_note)

    assert excinfo.value.restored is True
    assert any("ValidationMismatch" in e for e in excinfo.value.errors)
    assert meeting_note.read_bytes() == original


UNLOADABLE_BLOCK_NOTE = """\
---
title: Weekly: sync
attendees: [Ana
project: apollo
---
# Agenda

We discussed the launch.
"""


def test_unloadable_metadata_block_is_never_rewritten(context: PipelineContext, write_note) -> None:
    path = write_note("meetings/broken.md", UNLOADABLE_BLOCK_NOTE)
    original = path.read_bytes()

    with pytest.raises(MalformedMetadataError) as excinfo:
        Pipeline(context).run(path, interactive=False)

    assert "broken.md" in str(excinfo.value)
    assert path.read_bytes() == original
    assert context.backups.list_backups(path) == []

    # Planning alone is still allowed
    assert Pipeline(context).run(path, dry_run=True).state is PipelineState.PLANNED


def test_missing_note_raises(context: PipelineContext, tmp_path: Path) -> None:
    with pytest.raises(NoteNotFoundError):
        Pipeline(context).run(tmp_path / "absent.md")


def test_check_metadata_shape() -> None:
    warnings = check_metadata_shape(
        {"due_date": "next week", "aged_date": "2026-03-01", "tags": "one", "attendees": ["a"], "start_date": 5}
    )

    assert warnings == [
        "Field 'due_date' should be in YYYY-MM-DD format",
        "Field 'tags' should be an array",
        "Field 'start_date' should be a date",
    ]
