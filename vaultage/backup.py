"""
Backups taken before a note is rewritten.

Backups live in the ``.age/backups`` directory of the nearest ancestor that
has a ``.age`` directory, falling back to ``~/.age/backups``. Each backup
directory keeps a ``registry.json`` index (newest first) of BackupRecords;
the registry is the only index of restore points.

    .age/backups/
        registry.json
        standup_20260118-093012-123456.md
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .config import BACKUP_DIR_NAME, CONFIG_DIR_NAME, parse_duration
from .errors import BackupIOError, BackupNotFoundError, IntegrityError

logger = logging.getLogger(__name__)

REGISTRY_FILE = "registry.json"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S-%f"


@dataclass(frozen=True)
class BackupRecord:
    original_path: Path
    backup_path: Path
    timestamp: datetime
    file_size: int
    checksum: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["original_path"] = str(self.original_path)
        data["backup_path"] = str(self.backup_path)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BackupRecord":
        timestamp = datetime.fromisoformat(str(data["timestamp"]))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            original_path=Path(data["original_path"]),
            backup_path=Path(data["backup_path"]),
            timestamp=timestamp,
            file_size=int(data["file_size"]),
            checksum=str(data["checksum"]),
        )


def compute_checksum(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write to a temp file beside `path`, then rename over it."""
    temp_path = path.with_name(f".{path.name}.tmp")
    try:
        temp_path.write_bytes(content)
        os.replace(temp_path, path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


class BackupManager:
    """Create, list, restore and prune note backups."""

    def __init__(self, home: Path | None = None, clock=None):
        self.home = (home or Path.home()).expanduser().resolve()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.warnings: list[str] = []

    # -------------------------------------------------------------------------
    # Locations
    # -------------------------------------------------------------------------

    def find_backup_dir(self, path: Path) -> Path:
        """Backup directory for a note (not created)."""
        start = path.expanduser().resolve()
        directory = start if start.is_dir() else start.parent
        for candidate in (directory, *directory.parents):
            if (candidate / CONFIG_DIR_NAME).is_dir():
                return candidate / CONFIG_DIR_NAME / BACKUP_DIR_NAME
        return self.home / CONFIG_DIR_NAME / BACKUP_DIR_NAME

    def _registry_dir(self, directory: Path) -> Path:
        directory = directory.expanduser().resolve()
        if (directory / REGISTRY_FILE).is_file() or directory.name == BACKUP_DIR_NAME:
            return directory
        nested = directory / CONFIG_DIR_NAME / BACKUP_DIR_NAME
        if nested.is_dir():
            return nested
        return self.find_backup_dir(directory)

    def _backup_name(self, backup_dir: Path, original: Path, timestamp: datetime) -> Path:
        stamp = timestamp.strftime(TIMESTAMP_FORMAT)
        candidate = backup_dir / f"{original.stem}_{stamp}{original.suffix}"
        counter = 1
        while candidate.exists():
            candidate = backup_dir / f"{original.stem}_{stamp}-{counter}{original.suffix}"
            counter += 1
        return candidate

    # -------------------------------------------------------------------------
    # Registry
    # -------------------------------------------------------------------------

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def read_registry(self, backup_dir: Path) -> list[BackupRecord]:
        registry_path = backup_dir / REGISTRY_FILE
        if not registry_path.exists():
            return []

        try:
            raw = json.loads(registry_path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("registry is not a JSON array")
            records = [BackupRecord.from_dict(entry) for entry in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            self._warn(f"Backup registry {registry_path} is unreadable ({e}); starting a fresh one")
            return []

        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    def write_registry(self, backup_dir: Path, records: list[BackupRecord]) -> None:
        ordered = sorted(records, key=lambda r: r.timestamp, reverse=True)
        payload = json.dumps([r.to_dict() for r in ordered], indent=2) + "\n"
        try:
            atomic_write_bytes(backup_dir / REGISTRY_FILE, payload.encode("utf-8"))
        except OSError as e:
            raise BackupIOError(f"Cannot write backup registry in {backup_dir}: {e}") from e

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def backup(self, path: Path | str) -> BackupRecord:
        """Copy `path` into its backup directory and register the copy.

        Raises:
            BackupIOError: the note cannot be read or the backup cannot be written
        """
        original = Path(path).expanduser().resolve()
        try:
            content = original.read_bytes()
        except OSError as e:
            raise BackupIOError(f"Cannot read {original} for backup: {e}") from e

        backup_dir = self.find_backup_dir(original)
        timestamp = self._clock()
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            backup_path = self._backup_name(backup_dir, original, timestamp)
            atomic_write_bytes(backup_path, content)
        except OSError as e:
            raise BackupIOError(f"Cannot write backup of {original} to {backup_dir}: {e}") from e

        record = BackupRecord(
            original_path=original,
            backup_path=backup_path,
            timestamp=timestamp,
            file_size=len(content),
            checksum=compute_checksum(content),
        )

        records = self.read_registry(backup_dir)
        records.insert(0, record)
        self.write_registry(backup_dir, records)

        logger.debug("backed up %s -> %s", original, backup_path)
        return record

    def restore(self, record: BackupRecord) -> BackupRecord | None:
        """Restore a backup over its original path.

        The current file, when present, is backed up first; that record is
        returned so the restore itself can be undone.

        Raises:
            BackupNotFoundError: the backup file is gone
            IntegrityError: the backup file no longer matches its checksum
            BackupIOError: reading or writing failed
        """
        if not record.backup_path.is_file():
            raise BackupNotFoundError(record.backup_path)

        try:
            content = record.backup_path.read_bytes()
        except OSError as e:
            raise BackupIOError(f"Cannot read backup {record.backup_path}: {e}") from e

        actual = compute_checksum(content)
        if actual != record.checksum:
            raise IntegrityError(record.backup_path, record.checksum, actual)

        safety: BackupRecord | None = None
        if record.original_path.exists():
            safety = self.backup(record.original_path)

        try:
            record.original_path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(record.original_path, content)
        except OSError as e:
            raise BackupIOError(f"Cannot restore {record.original_path}: {e}") from e

        logger.debug("restored %s from %s", record.original_path, record.backup_path)
        return safety

    def list_backups(self, path: Path | str) -> list[BackupRecord]:
        """Existing backups of `path`, newest first."""
        original = Path(path).expanduser().resolve()
        backup_dir = self.find_backup_dir(original)
        return [
            r
            for r in self.read_registry(backup_dir)
            if r.original_path == original and r.backup_path.exists()
        ]

    def prune_older_than(
        self,
        directory: Path | str,
        retention: timedelta | str,
        now: datetime | None = None,
    ) -> int:
        """Drop registry entries older than `now - retention` and delete their files.

        `directory` is a backup directory or a directory holding ``.age/backups``.
        Returns the number of registry entries removed.
        """
        if isinstance(retention, str):
            retention = parse_duration(retention)
        cutoff = (now or self._clock()) - retention

        backup_dir = self._registry_dir(Path(directory))
        records = self.read_registry(backup_dir)
        kept = [r for r in records if r.timestamp >= cutoff]
        expired = [r for r in records if r.timestamp < cutoff]
        if not expired:
            return 0

        for record in expired:
            try:
                record.backup_path.unlink(missing_ok=True)
            except OSError as e:
                self._warn(f"Could not delete backup {record.backup_path}: {e}")

        self.write_registry(backup_dir, kept)
        logger.debug("pruned %d backup(s) from %s", len(expired), backup_dir)
        return len(expired)
