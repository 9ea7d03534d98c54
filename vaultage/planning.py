"""
Plan types for the compute / execute split of note aging.

A ChangePlan is diagnostic output: computing one has no side effects. The
pipeline executes an approved plan; nothing is written before approval.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

MetadataChangeKind = Literal["add", "remove", "modify"]
ContentChangeKind = Literal["summarize", "preserve", "modify"]
LinkChangeKind = Literal["verify", "update", "remove"]
Complexity = Literal["simple", "moderate", "complex"]


@dataclass(frozen=True)
class MetadataChange:
    kind: MetadataChangeKind
    field: str
    old: Any = None
    new: Any = None
    reason: str = ""


@dataclass(frozen=True)
class ContentChange:
    kind: ContentChangeKind
    section: str
    old: str = ""
    new: str = ""
    reason: str = ""


@dataclass(frozen=True)
class LinkChange:
    kind: LinkChangeKind
    link_kind: Literal["external", "internal"]
    target: str
    status: str
    replacement: str | None = None
    reason: str = ""


@dataclass
class PlanMetadata:
    """Aggregate figures shown before approval."""

    original_size: int = 0
    estimated_new_size: int = 0
    size_change_percent: int = 0
    complexity: Complexity = "simple"
    requires_ai: bool = False
    estimated_time: str = "< 10 seconds"


@dataclass
class ChangePlan:
    category: str
    metadata_changes: list[MetadataChange] = field(default_factory=list)
    content_changes: list[ContentChange] = field(default_factory=list)
    link_changes: list[LinkChange] = field(default_factory=list)
    summary_info: PlanMetadata = field(default_factory=PlanMetadata)
    warnings: list[str] = field(default_factory=list)

    @property
    def actionable_link_changes(self) -> list[LinkChange]:
        return [c for c in self.link_changes if c.kind != "verify"]

    @property
    def is_empty(self) -> bool:
        return not self.metadata_changes and not self.content_changes and not self.actionable_link_changes

    @property
    def total_changes(self) -> int:
        return len(self.metadata_changes) + len(self.content_changes) + len(self.link_changes)

    def summary(self) -> str:
        info = self.summary_info
        lines = [
            f"Change plan for '{self.category}'",
            f"  Metadata changes: {len(self.metadata_changes)}",
            f"  Content changes: {len(self.content_changes)}",
            f"  Link changes: {len(self.link_changes)} ({len(self.actionable_link_changes)} need attention)",
            f"  Size: {info.original_size} -> ~{info.estimated_new_size} bytes ({info.size_change_percent:+d}%)",
            f"  Complexity: {info.complexity}, estimated time {info.estimated_time}",
        ]
        if info.requires_ai:
            lines.append("  Requires AI summarization")
        return "\n".join(lines)

    def metadata_diff(self) -> list[str]:
        """One `+`/`-`/`~` line per metadata change."""
        lines: list[str] = []
        for change in self.metadata_changes:
            if change.kind == "add":
                lines.append(f"+ {change.field}: {format_value(change.new)}")
            elif change.kind == "remove":
                lines.append(f"- {change.field}: {format_value(change.old)}")
            else:
                lines.append(f"~ {change.field}: {format_value(change.old)} -> {format_value(change.new)}")
        return lines


def format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(str(v) for v in value) + "]"
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    if isinstance(value, str) and " " in value:
        return f'"{value}"'
    return str(value)


def _json_size(value: Any) -> int:
    return len(json.dumps(value, default=str))


def compute_plan_metadata(
    original_size: int,
    metadata_changes: list[MetadataChange],
    content_changes: list[ContentChange],
    link_changes: list[LinkChange],
    *,
    requires_ai: bool = False,
) -> PlanMetadata:
    """Rough size / effort estimate for a plan."""
    delta = 0
    for change in metadata_changes:
        if change.kind == "add":
            delta += _json_size(change.new) + len(change.field) + 10
        elif change.kind == "remove":
            delta -= _json_size(change.old) + len(change.field) + 10

    new_size = max(original_size + delta, 0)
    percent = round((new_size - original_size) / original_size * 100) if original_size > 0 else 0

    total = len(metadata_changes) + len(content_changes) + len(link_changes)
    complexity: Complexity
    if total <= 3:
        complexity = "simple"
    elif total <= 8:
        complexity = "moderate"
    else:
        complexity = "complex"

    estimated_time = "< 10 seconds"
    if len(link_changes) > 15:
        estimated_time = "30-60 seconds"
    elif len(link_changes) > 5:
        estimated_time = "10-30 seconds"

    return PlanMetadata(
        original_size=original_size,
        estimated_new_size=new_size,
        size_change_percent=percent,
        complexity=complexity,
        requires_ai=requires_ai,
        estimated_time=estimated_time,
    )
