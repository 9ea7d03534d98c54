"""Error taxonomy for vaultage.

Validation errors (missing, unreadable or non-note files) and backup integrity
errors are fatal for the operation that raises them. Configuration problems,
link-check failures and classification gaps are never raised; they surface as
warnings or status values instead.
"""

from __future__ import annotations

from pathlib import Path


class VaultageError(Exception):
    """Base class for all vaultage errors."""


class NoteNotFoundError(VaultageError, FileNotFoundError):
    """The note path does not exist or is not a file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"File '{path}' not found")


class AccessDeniedError(VaultageError, PermissionError):
    """The note exists but cannot be read."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Permission denied reading '{path}'")


class UnsupportedExtensionError(VaultageError, ValueError):
    """The file is not a recognised note extension."""

    def __init__(self, path: Path | str, extension: str):
        self.path = Path(path)
        self.extension = extension
        super().__init__(f"File must have .md or .markdown extension, got '{extension or '(none)'}'")


class BackupIOError(VaultageError, OSError):
    """Reading, writing or indexing a backup failed."""


class BackupNotFoundError(VaultageError, FileNotFoundError):
    """A registry entry points at a backup file that no longer exists."""

    def __init__(self, backup_path: Path | str):
        self.backup_path = Path(backup_path)
        super().__init__(f"Backup file not found: {backup_path}")


class IntegrityError(VaultageError):
    """A backup file no longer matches the checksum recorded at backup time."""

    def __init__(self, backup_path: Path | str, expected: str, actual: str):
        self.backup_path = Path(backup_path)
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Backup file integrity check failed for {backup_path} - file may be corrupted"
        )


class UnknownCategoryError(VaultageError, KeyError):
    """The detected category has no profile in the effective configuration."""

    def __init__(self, category: str):
        self.category = category
        super().__init__(category)

    def __str__(self) -> str:
        return f"No configuration found for document type: {self.category}"


class MalformedMetadataError(VaultageError, ValueError):
    """The note has a metadata block that could not be loaded, so it cannot be rewritten safely."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(
            f"Refusing to rewrite '{self.path.name}', its metadata block could not be loaded ({reason})"
        )


class ProcessingFailed(VaultageError):
    """Applying a plan failed; the note was restored from its backup."""

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        warnings: list[str] | None = None,
        restored: bool = False,
    ):
        self.errors = list(errors or [])
        self.warnings = list(warnings or [])
        self.restored = restored
        super().__init__(message)
