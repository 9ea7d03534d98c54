"""Note loading: metadata block splitting, structural scan and metrics."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import frontmatter
import yaml

from ..errors import (
    AccessDeniedError,
    MalformedMetadataError,
    NoteNotFoundError,
    UnsupportedExtensionError,
)
from ..models import Document
from .parser import scan_body

logger = logging.getLogger(__name__)

NOTE_EXTENSIONS = {".md", ".markdown"}

DEFAULT_SIZE_WARNING_BYTES = 10 * 1024 * 1024

_YAML = frontmatter.YAMLHandler()


def is_note_path(path: Path) -> bool:
    return path.suffix.lower() in NOTE_EXTENSIONS


def validate_note_path(path: Path) -> None:
    """Raise the matching validation error if `path` cannot be parsed as a note."""
    if not path.exists() or path.is_dir():
        raise NoteNotFoundError(path)

    if not is_note_path(path):
        raise UnsupportedExtensionError(path, path.suffix.lower())

    if not os.access(path, os.R_OK):
        raise AccessDeniedError(path)


def split_metadata(text: str) -> tuple[dict[str, Any], str, str, int, list[str]]:
    """Split a note into its metadata block and body.

    Returns:
        (metadata, raw block text, body, file line of the first body line, warnings)

    A malformed block yields empty metadata and a warning; the block is still
    removed from the body. load_document records that warning as the
    document's `metadata_error` so the note is never rewritten without it.
    """
    warnings: list[str] = []

    if not _YAML.detect(text):
        return {}, "", text, 1, warnings

    try:
        raw, body = _YAML.split(text)
    except ValueError:
        # Opening delimiter without a closing one: treat everything as body
        return {}, "", text, 1, warnings

    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    prefix = text[: len(text) - len(body)]
    start_line = prefix.count("\n") + 1

    metadata: dict[str, Any] = {}
    try:
        loaded = _YAML.load(raw)
    except yaml.YAMLError as e:
        warnings.append(f"Malformed metadata block: {_first_line(str(e))}")
    else:
        if isinstance(loaded, dict):
            metadata = {str(key): value for key, value in loaded.items()}
        elif loaded is not None:
            warnings.append(
                f"Metadata block is a {type(loaded).__name__}, not a mapping"
            )

    return metadata, raw.strip("\n"), body, start_line, warnings


def load_document(
    path: Path | str,
    *,
    size_warning_bytes: int = DEFAULT_SIZE_WARNING_BYTES,
) -> Document:
    """Load a single markdown file into an immutable Document.

    Raises:
        NoteNotFoundError: path missing or a directory
        UnsupportedExtensionError: not a .md / .markdown file
        AccessDeniedError: file cannot be read
    """
    path = Path(path).expanduser().resolve()
    validate_note_path(path)

    try:
        raw_bytes = path.read_bytes()
        stat = path.stat()
    except PermissionError as e:
        raise AccessDeniedError(path) from e
    except FileNotFoundError as e:
        raise NoteNotFoundError(path) from e

    warnings: list[str] = []

    if stat.st_size > size_warning_bytes:
        warnings.append(f"File is {stat.st_size / 1024 / 1024:.1f}MB, processing may be slow")

    try:
        text = raw_bytes.decode("utf-8")
    except UnicodeDecodeError:
        text = raw_bytes.decode("utf-8", errors="replace")
        warnings.append("File is not valid UTF-8; undecodable bytes were replaced")

    if text.startswith("\ufeff"):
        text = text[1:]

    metadata, raw_block, body, start_line, split_warnings = split_metadata(text)
    warnings.extend(split_warnings)

    structure = scan_body(body, start_line)

    for warning in warnings:
        logger.warning("%s: %s", path.name, warning)

    return Document(
        path=path,
        metadata=metadata,
        body=body,
        metadata_raw=raw_block,
        headers=tuple(structure.headers),
        links=tuple(structure.links),
        code_blocks=tuple(structure.code_blocks),
        checklist=tuple(structure.checklist),
        word_count=structure.word_count,
        line_count=structure.line_count,
        size=stat.st_size,
        modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        body_start_line=start_line,
        warnings=tuple(warnings),
        metadata_error=split_warnings[0] if split_warnings else None,
    )


def render_document(document: Document) -> str:
    """Serialise a Document back to note text, keeping metadata key order.

    Raises:
        MalformedMetadataError: the document was loaded from an unreadable block
    """
    if document.metadata_error:
        raise MalformedMetadataError(document.path, document.metadata_error)
    if not document.metadata:
        return document.body

    # dumps() already puts one blank line after the closing delimiter
    post = frontmatter.Post(document.body.lstrip("\r\n"))
    post.metadata.update(document.metadata)
    return frontmatter.dumps(post, sort_keys=False) + "\n"


def _first_line(message: str) -> str:
    return message.strip().split("\n", 1)[0]
