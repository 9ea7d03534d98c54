"""Pytest configuration and fixtures."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable
from urllib.error import HTTPError

import pytest

MEETING_NOTE = """\
---
date: 2026-01-15
attendees:
  - Ana
  - Ben
project: apollo
tags: [sync, weekly]
author: ana
status: draft
---

# Weekly sync

## Agenda

We discussed the launch and agreed on the scope. Follow-up meeting at 10:30.

## Action items

- [ ] Ana: send the release notes
- [x] Ben: book the room
"""


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Isolated home directory (global config and fallback backups)."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """Empty vault root marked with .obsidian."""
    path = tmp_path / "vault"
    (path / ".obsidian").mkdir(parents=True)
    return path


@pytest.fixture
def write_note(vault: Path) -> Callable[[str, str], Path]:
    """Write `text` (dedented) to `relpath` inside the vault and return the path."""

    def _write(relpath: str, text: str) -> Path:
        path = vault / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def meeting_note(write_note) -> Path:
    return write_note("meetings/weekly-sync.md", MEETING_NOTE)


class FakeResponse:
    def __init__(self, status: int, headers: dict[str, str] | None = None):
        self.status = status
        self.headers = headers or {}

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info) -> bool:
        return False


class FakeOpener:
    """Stand-in for a urllib opener.

    `outcomes` maps URL -> status code, (status code, Location) or an
    exception instance to raise.
    """

    def __init__(self, outcomes: dict[str, object]):
        self.outcomes = outcomes
        self.calls: list[tuple[str, str, float | None]] = []

    def open(self, request, timeout=None):
        url = request.full_url
        self.calls.append((url, request.get_method(), timeout))
        outcome = self.outcomes.get(url, 200)

        if isinstance(outcome, BaseException):
            raise outcome

        location = None
        if isinstance(outcome, tuple):
            outcome, location = outcome

        code = int(outcome)
        headers = {"Location": location} if location else {}
        if code >= 300:
            raise HTTPError(url, code, "fake", headers, None)
        return FakeResponse(code, headers)


@pytest.fixture
def fake_opener() -> Callable[[dict[str, object]], FakeOpener]:
    return FakeOpener
