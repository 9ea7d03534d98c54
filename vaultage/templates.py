"""Placeholder substitution for metadata values added by category rules.

A template such as ``"{{current_date}}"`` is rendered by looking each name up
in TEMPLATE_FUNCTIONS. Unknown names are left in place verbatim and reported
as warnings.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from .models import Document

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

NEXT_REVIEW_DAYS = 60

TemplateFunction = Callable[[Document, datetime], str]


def _summary_length(document: Document, now: datetime) -> str:
    words = document.word_count
    if words < 100:
        return "very_short"
    if words < 300:
        return "short"
    if words < 800:
        return "medium"
    return "long"


TEMPLATE_FUNCTIONS: dict[str, TemplateFunction] = {
    "current_date": lambda doc, now: now.date().isoformat(),
    "current_datetime": lambda doc, now: now.isoformat(),
    "aged_date": lambda doc, now: now.date().isoformat(),
    "file_size": lambda doc, now: str(doc.size),
    "word_count": lambda doc, now: str(doc.word_count),
    "next_review": lambda doc, now: (now + timedelta(days=NEXT_REVIEW_DAYS)).date().isoformat(),
    "summary_length": _summary_length,
}


def render_template(
    template: Any,
    document: Document,
    *,
    now: datetime | None = None,
) -> tuple[Any, list[str]]:
    """Render `template` for `document`.

    Non-string templates are returned unchanged.

    Returns:
        (rendered value, warnings)
    """
    if not isinstance(template, str):
        return template, []

    now = now or datetime.now(timezone.utc)
    warnings: list[str] = []

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        func = TEMPLATE_FUNCTIONS.get(name)
        if func is None:
            warnings.append(f"Unknown template function '{name}'; kept literal '{match.group(0)}'")
            return match.group(0)
        return func(document, now)

    return PLACEHOLDER_PATTERN.sub(substitute, template), warnings
