"""Tests for the backup manager."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from vaultage.backup import REGISTRY_FILE, BackupManager, compute_checksum
from vaultage.errors import BackupNotFoundError, IntegrityError

START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(home: Path, clock: FakeClock) -> BackupManager:
    return BackupManager(home=home, clock=clock)


def test_backup_location_falls_back_to_home(manager: BackupManager, meeting_note: Path, home: Path) -> None:
    assert manager.find_backup_dir(meeting_note) == home.resolve() / ".age" / "backups"


def test_backup_location_prefers_nearest_age_dir(manager: BackupManager, vault: Path, meeting_note: Path) -> None:
    (vault / ".age").mkdir()
    assert manager.find_backup_dir(meeting_note) == vault.resolve() / ".age" / "backups"


def test_backup_then_restore_is_byte_identical(manager: BackupManager, clock: FakeClock, meeting_note: Path) -> None:
    original = meeting_note.read_bytes()
    record = manager.backup(meeting_note)

    assert record.backup_path.read_bytes() == original
    assert record.file_size == len(original)
    assert record.checksum == compute_checksum(original)
    assert record.timestamp == START
    assert record.backup_path.name == "weekly-sync_20260101-120000-000000.md"

    meeting_note.write_text("overwritten\n", encoding="utf-8")
    clock.advance(minutes=5)
    safety = manager.restore(record)

    assert meeting_note.read_bytes() == original
    assert safety is not None
    assert safety.backup_path.read_bytes() == b"overwritten\n"


def test_registry_is_newest_first(manager: BackupManager, clock: FakeClock, meeting_note: Path) -> None:
    first = manager.backup(meeting_note)
    clock.advance(hours=1)
    second = manager.backup(meeting_note)

    assert manager.list_backups(meeting_note) == [second, first]

    registry = json.loads((first.backup_path.parent / REGISTRY_FILE).read_text(encoding="utf-8"))
    assert [entry["backup_path"] for entry in registry] == [str(second.backup_path), str(first.backup_path)]


def test_same_timestamp_gets_unique_name(manager: BackupManager, meeting_note: Path) -> None:
    first = manager.backup(meeting_note)
    second = manager.backup(meeting_note)

    assert first.backup_path != second.backup_path
    assert second.backup_path.name.endswith("-1.md")


def test_tampered_backup_is_refused(manager: BackupManager, meeting_note: Path) -> None:
    record = manager.backup(meeting_note)
    record.backup_path.write_text("tampered\n", encoding="utf-8")
    before = meeting_note.read_bytes()

    with pytest.raises(IntegrityError):
        manager.restore(record)
    assert meeting_note.read_bytes() == before


def test_missing_backup_file(manager: BackupManager, meeting_note: Path) -> None:
    record = manager.backup(meeting_note)
    record.backup_path.unlink()

    with pytest.raises(BackupNotFoundError):
        manager.restore(record)
    assert manager.list_backups(meeting_note) == []


def test_restore_recreates_deleted_original(manager: BackupManager, meeting_note: Path) -> None:
    original = meeting_note.read_bytes()
    record = manager.backup(meeting_note)
    meeting_note.unlink()

    assert manager.restore(record) is None
    assert meeting_note.read_bytes() == original


def test_list_backups_filters_by_note(manager: BackupManager, meeting_note: Path, write_note) -> None:
    other = write_note("meetings/other.md", "# Other\n")
    manager.backup(meeting_note)
    manager.backup(other)

    records = manager.list_backups(other)

    assert len(records) == 1
    assert records[0].original_path == other.resolve()


def test_corrupt_registry_warns_and_restarts(manager: BackupManager, meeting_note: Path, home: Path) -> None:
    backup_dir = home / ".age" / "backups"
    backup_dir.mkdir(parents=True)
    (backup_dir / REGISTRY_FILE).write_text("{oops", encoding="utf-8")

    record = manager.backup(meeting_note)

    assert len(manager.warnings) == 1
    assert "unreadable" in manager.warnings[0]
    assert manager.list_backups(meeting_note) == [record]


def test_prune_removes_only_expired(manager: BackupManager, clock: FakeClock, meeting_note: Path) -> None:
    old = manager.backup(meeting_note)
    clock.advance(days=20)
    middle = manager.backup(meeting_note)
    clock.advance(days=15)
    recent = manager.backup(meeting_note)

    removed = manager.prune_older_than(old.backup_path.parent, "30d")

    assert removed == 1
    assert not old.backup_path.exists()
    assert middle.backup_path.exists() and recent.backup_path.exists()
    assert manager.list_backups(meeting_note) == [recent, middle]

    # Nothing left to prune inside the window
    assert manager.prune_older_than(old.backup_path.parent, timedelta(days=30)) == 0


def test_prune_accepts_parent_of_age_dir(manager: BackupManager, clock: FakeClock, vault: Path, meeting_note: Path) -> None:
    (vault / ".age").mkdir()
    record = manager.backup(meeting_note)

    removed = manager.prune_older_than(vault, "1d", now=START + timedelta(days=2))

    assert removed == 1
    assert not record.backup_path.exists()
